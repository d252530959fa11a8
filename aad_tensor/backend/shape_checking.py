# backend/shape_checking.py
"""
Shape-only backend.

A `RawTensorShapeChecking` carries a Shape (concrete or symbolic) and no
values. Every kernel runs the same precondition checks as the CPU backend and
returns a tensor of the resulting shape, so a whole model can be validated
against symbolic input sizes before any numeric work is done.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..errors import UnsupportedConversionError
from ..shape.dim import Dim
from ..shape.shape import Shape, as_shape
from ..shape.symbolic import SymbolScope
from .raw import BackendKind, DType, RawTensor

logger = logging.getLogger(__name__)


class RawTensorShapeChecking(RawTensor):
    backend = BackendKind.shape_checking

    def __init__(self, shape, dtype: DType = DType.float64):
        super().__init__(shape, dtype)

    @classmethod
    def symbolic(cls, scope: SymbolScope, names: Sequence, dtype: DType = DType.float64) -> "RawTensorShapeChecking":
        """
        Tensor whose dims are the given names (new symbolic variables in
        `scope`) or ints (concrete dims), e.g. `symbolic(scope, ["N", 3, "L"])`.
        """
        dims = [Dim.symbolic(scope.create_var(n)) if isinstance(n, str) else Dim.of(n) for n in names]
        return cls(Shape(dims), dtype)

    # ------------------------------------------------------------------ #
    @classmethod
    def zeros(cls, shape, dtype: DType = DType.float64):
        return cls(as_shape(shape), dtype)

    @classmethod
    def ones(cls, shape, dtype: DType = DType.float64):
        return cls(as_shape(shape), dtype)

    @classmethod
    def full(cls, shape, value: float, dtype: DType = DType.float64):
        return cls(as_shape(shape), dtype)

    @classmethod
    def create(cls, values, dtype: DType = DType.float64):
        raise UnsupportedConversionError("Shape-checking tensors carry no values; build them from a shape")

    @classmethod
    def random(cls, shape, rng=None, dtype: DType = DType.float64):
        return cls(as_shape(shape), dtype)

    @classmethod
    def random_normal(cls, shape, rng=None, dtype: DType = DType.float64):
        return cls(as_shape(shape), dtype)

    @classmethod
    def _stack(cls, tensors, out_shape: Shape):
        return cls(out_shape, tensors[0].dtype)

    def clone(self):
        return RawTensorShapeChecking(self._shape, self._dtype)

    def to_value(self) -> float:
        raise UnsupportedConversionError(f"Cannot get the value of a shape-checking tensor of shape {self._shape}")

    def to_array(self):
        raise UnsupportedConversionError(f"Cannot get an array for a shape-checking tensor of shape {self._shape}")

    # ------------------------------------------------------------------ #
    _VALUE_KERNELS = ("arg_extreme", "get_item", "equals")

    def _run(self, kernel: str, out_shape: Shape, *args):
        if kernel in self._VALUE_KERNELS:
            raise UnsupportedConversionError(
                f"Kernel {kernel!r} needs tensor values, unavailable on a shape-checking tensor of shape {self._shape}"
            )
        logger.debug("shape check %s: %s -> %s", kernel, self._shape, out_shape)
        if kernel == "unstack":
            return [RawTensorShapeChecking(out_shape, self._dtype) for _ in range(self._shape[0].value)]
        return RawTensorShapeChecking(out_shape, self._dtype)

    def __str__(self):
        return f"<shape {self._shape}>"
