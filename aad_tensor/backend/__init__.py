# backend/__init__.py
"""
Dense backends behind one contract (`RawTensor`).

    cpu             : numpy buffers, every kernel computed
    shape_checking  : shapes only, preconditions checked symbolically
"""

from .raw import RawTensor, DType, Device, BackendKind, UNARY_KERNELS, BINARY_KERNELS
from .cpu import RawTensorCPU
from .shape_checking import RawTensorShapeChecking
from .random import RandomSource, default_random, seed

_BACKENDS = {
    BackendKind.cpu: RawTensorCPU,
    BackendKind.shape_checking: RawTensorShapeChecking,
}


def backend_class(backend="cpu"):
    """The RawTensor subclass implementing `backend` ("cpu" or "shape_checking")."""
    return _BACKENDS[BackendKind(backend)]


__all__ = [
    "RawTensor", "DType", "Device", "BackendKind", "UNARY_KERNELS", "BINARY_KERNELS",
    "RawTensorCPU", "RawTensorShapeChecking",
    "RandomSource", "default_random", "seed",
    "backend_class",
]
