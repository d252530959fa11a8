# aad_tensor/__init__.py
# Differentiable tensors: shapes, raw backends, forward/reverse AD

from .errors import (
    TensorError,
    ShapeMismatchError,
    InvalidParameterError,
    UnsupportedConversionError,
    BackendMismatchError,
    UnresolvedDimensionError,
    DifferentiationError,
)
from .config import PoolConfig, ConvConfig
from .shape import Dim, Shape, SymbolScope
from .backend import RawTensor, RawTensorCPU, RawTensorShapeChecking, RandomSource, seed
from .aad import Tensor, Tape, use_tape, reverse, grad, jvp, vjp, ops, forward_n, DualN
from .aad.core.tensor import tensor, zeros, ones, full, rand, randn, multinomial, symbolic, stack

__version__ = "0.1.0"

__all__ = [
    "TensorError", "ShapeMismatchError", "InvalidParameterError", "UnsupportedConversionError",
    "BackendMismatchError", "UnresolvedDimensionError", "DifferentiationError",
    "PoolConfig", "ConvConfig",
    "Dim", "Shape", "SymbolScope",
    "RawTensor", "RawTensorCPU", "RawTensorShapeChecking", "RandomSource", "seed",
    "Tensor", "Tape", "use_tape", "reverse", "grad", "jvp", "vjp", "ops", "forward_n", "DualN",
    "tensor", "zeros", "ones", "full", "rand", "randn", "multinomial", "symbolic", "stack",
]
