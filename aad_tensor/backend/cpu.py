# backend/cpu.py
"""
Reference dense backend on numpy.

The buffer is a flat, row-major `np.ndarray`; kernels view it with the tensor
shape, compute with numpy and flatten the result into a new RawTensorCPU.
Preconditions are already checked by `RawTensor` before `_run` is reached.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np
from scipy import special

from ..config import ConvConfig, PoolConfig
from ..errors import InvalidParameterError
from ..shape import checks
from ..shape.shape import Shape, as_shape
from ..shape.util import flat_index_to_index, index_to_flat_index, shape_length
from .random import default_random
from .raw import BackendKind, DType, RawTensor

_NP_DTYPES = {DType.float32: np.float32, DType.float64: np.float64}

_UNARY = {
    "neg": np.negative,
    "sign": np.sign,
    "floor": np.floor,
    "ceil": np.ceil,
    "round": np.round,
    "abs": np.abs,
    "relu": lambda x: np.maximum(x, 0.0),
    "sigmoid": special.expit,
    "exp": np.exp,
    "log": np.log,
    "log10": np.log10,
    "sqrt": np.sqrt,
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "sinh": np.sinh,
    "cosh": np.cosh,
    "tanh": np.tanh,
    "asin": np.arcsin,
    "acos": np.arccos,
    "atan": np.arctan,
    "erf": special.erf,
}

_BINARY = {
    "add": np.add,
    "sub": np.subtract,
    "mul": np.multiply,
    "div": np.divide,
    "pow": np.power,
    "lt": np.less,
    "gt": np.greater,
    "le": np.less_equal,
    "ge": np.greater_equal,
}


class RawTensorCPU(RawTensor):
    backend = BackendKind.cpu

    def __init__(self, values, shape, dtype: DType = DType.float64):
        super().__init__(shape, dtype)
        data = np.ascontiguousarray(values, dtype=_NP_DTYPES[self._dtype]).reshape(-1)
        if data.size != self._shape.nelement:
            raise InvalidParameterError(
                f"Expecting {self._shape.nelement} values for shape {self._shape}, received {data.size}"
            )
        self._data = data

    # ------------------------------------------------------------------ #
    # constructors
    # ------------------------------------------------------------------ #
    @classmethod
    def zeros(cls, shape, dtype: DType = DType.float64) -> "RawTensorCPU":
        shape = as_shape(shape)
        return cls(np.zeros(shape.nelement), shape, dtype)

    @classmethod
    def ones(cls, shape, dtype: DType = DType.float64) -> "RawTensorCPU":
        shape = as_shape(shape)
        return cls(np.ones(shape.nelement), shape, dtype)

    @classmethod
    def full(cls, shape, value: float, dtype: DType = DType.float64) -> "RawTensorCPU":
        shape = as_shape(shape)
        return cls(np.full(shape.nelement, float(value)), shape, dtype)

    @classmethod
    def create(cls, values, dtype: DType = DType.float64) -> "RawTensorCPU":
        """From a scalar, a (nested) sequence or an ndarray; the shape is inferred."""
        arr = np.asarray(values, dtype=_NP_DTYPES[DType(dtype)])
        return cls(arr.reshape(-1), arr.shape, dtype)

    @classmethod
    def random(cls, shape, rng=None, dtype: DType = DType.float64) -> "RawTensorCPU":
        shape = as_shape(shape)
        return cls((rng or default_random).uniform(shape.nelement), shape, dtype)

    @classmethod
    def random_normal(cls, shape, rng=None, dtype: DType = DType.float64) -> "RawTensorCPU":
        shape = as_shape(shape)
        return cls((rng or default_random).normal(shape.nelement), shape, dtype)

    @classmethod
    def _stack(cls, tensors: Sequence["RawTensorCPU"], out_shape: Shape) -> "RawTensorCPU":
        return cls(np.concatenate([t._data for t in tensors]), out_shape, tensors[0]._dtype)

    # ------------------------------------------------------------------ #
    # value access
    # ------------------------------------------------------------------ #
    @property
    def values(self) -> np.ndarray:
        """Read-only view of the flat buffer."""
        v = self._data.view()
        v.flags.writeable = False
        return v

    def _array(self) -> np.ndarray:
        return self._data.reshape(self._shape.values)

    def _new(self, arr, shape) -> "RawTensorCPU":
        return RawTensorCPU(np.asarray(arr).reshape(-1), shape, self._dtype)

    def clone(self) -> "RawTensorCPU":
        return RawTensorCPU(self._data.copy(), self._shape, self._dtype)

    def to_value(self) -> float:
        checks.check_can_to_value(self._shape)
        return float(self._data[0])

    def to_array(self) -> np.ndarray:
        checks.check_can_to_array(self._shape)
        return self._array().copy()

    def __float__(self):
        return self.to_value()

    def __str__(self):
        if self._shape.length == 0:
            return repr(float(self._data[0]))
        return np.array2string(self._array(), separator=", ")

    # ------------------------------------------------------------------ #
    # kernels
    # ------------------------------------------------------------------ #
    def _run(self, kernel: str, out_shape: Shape, *args):
        return getattr(self, "_k_" + kernel)(out_shape, *args)

    def _k_binary(self, out_shape, name, other):
        return self._new(_BINARY[name](self._data, other._data), out_shape)

    def _k_binary_scalar(self, out_shape, name, scalar, scalar_first):
        s = scalar._data[0]
        f = _BINARY[name]
        return self._new(f(s, self._data) if scalar_first else f(self._data, s), out_shape)

    def _k_add_t2t1(self, out_shape, t2):
        return self._new(self._array() + t2._data[None, :], out_shape)

    def _k_add_tt_slice(self, out_shape, location, t2):
        out = self._array().copy()
        block_shape = (1,) * (self.dim - t2.dim) + tuple(t2.shape.values)
        block = t2._data.reshape(block_shape)
        region = tuple(slice(loc, loc + n) for loc, n in zip(location, block_shape))
        out[region] += block
        return self._new(out, out_shape)

    def _k_unary(self, out_shape, name):
        return self._new(_UNARY[name](self._data), out_shape)

    def _k_sum(self, out_shape):
        return self._new(self._data.sum(), out_shape)

    def _k_sum_t2_dim0(self, out_shape):
        return self._new(self._array().sum(axis=0), out_shape)

    def _k_arg_extreme(self, out_shape, which) -> Tuple[int, ...]:
        flat = int(np.argmax(self._data) if which == "max" else np.argmin(self._data))
        return flat_index_to_index(self._shape.values, flat)

    def _k_matmul(self, out_shape, t2):
        return self._new(self._array() @ t2._array(), out_shape)

    def _k_transpose_t2(self, out_shape):
        return self._new(self._array().T, out_shape)

    def _k_view(self, out_shape):
        return RawTensorCPU(self._data.copy(), out_shape, self._dtype)

    def _k_flip(self, out_shape, dims):
        if not dims:
            return self.clone()
        return self._new(np.flip(self._array(), axis=dims), out_shape)

    def _k_dilate(self, out_shape, dilations):
        out = np.zeros(out_shape.values, dtype=self._data.dtype)
        out[tuple(slice(None, None, d) for d in dilations)] = self._array()
        return self._new(out, out_shape)

    def _k_undilate(self, out_shape, dilations):
        return self._new(self._array()[tuple(slice(None, None, d) for d in dilations)], out_shape)

    def _k_get_slice(self, out_shape, bounds):
        return self._new(self._array()[tuple(slice(lo, hi + 1) for lo, hi in bounds)], out_shape)

    def _k_get_item(self, out_shape, index) -> float:
        return float(self._data[index_to_flat_index(self._shape.values, index)])

    def _k_unstack(self, out_shape) -> List["RawTensorCPU"]:
        n = self._shape[0].value
        step = shape_length(out_shape.values)
        return [RawTensorCPU(self._data[i * step:(i + 1) * step].copy(), out_shape, self._dtype)
                for i in range(n)]

    def _k_multinomial(self, out_shape, num_samples, rng):
        rng = rng or default_random
        if self.dim == 1:
            return self._new(rng.choice_index(self._data, num_samples), out_shape)
        rows = [rng.choice_index(p, num_samples) for p in self._array()]
        return self._new(np.stack(rows), out_shape)

    def _k_equals(self, out_shape, other, tolerance) -> bool:
        if tolerance == 0.0:
            return bool(np.array_equal(self._data, other._data))
        return bool(np.allclose(self._data, other._data, rtol=tolerance, atol=tolerance))

    # ------------------------------------------------------------------ #
    # convolution
    # ------------------------------------------------------------------ #
    def _k_conv(self, out_shape, n, weight, config: ConvConfig):
        x, w = self._array(), weight._array()
        xp = _pad(x, config.paddings)
        kernel = w.shape[2:]
        full = tuple(xp.shape[2 + i] - kernel[i] + 1 for i in range(n))
        out = np.zeros((x.shape[0], w.shape[0]) + full, dtype=x.dtype)
        for u in np.ndindex(*kernel):
            window = xp[_spatial(u, full)]
            out += np.einsum("bc...,oc->bo...", window, w[(slice(None), slice(None)) + u])
        # stride-1 result, subsampled
        out = out[(slice(None), slice(None)) + tuple(slice(None, None, s) for s in config.strides)]
        return self._new(out, out_shape)

    def _k_conv_input_adjoint(self, out_shape, n, weight, config: ConvConfig):
        g, w = self._array(), weight._array()
        in_spatial = out_shape.values[2:]
        kernel = w.shape[2:]
        full = tuple(in_spatial[i] + 2 * config.paddings[i] - kernel[i] + 1 for i in range(n))
        gd = _dilate_to(g, config.strides, full)
        padded = tuple(in_spatial[i] + 2 * config.paddings[i] for i in range(n))
        xp_bar = np.zeros((g.shape[0], w.shape[1]) + padded, dtype=g.dtype)
        for u in np.ndindex(*kernel):
            xp_bar[_spatial(u, full)] += np.einsum("bo...,oc->bc...", gd, w[(slice(None), slice(None)) + u])
        crop = (slice(None), slice(None)) + tuple(slice(p, p + m) for p, m in zip(config.paddings, in_spatial))
        return self._new(xp_bar[crop], out_shape)

    def _k_conv_weight_adjoint(self, out_shape, n, grad_output, config: ConvConfig):
        x, g = self._array(), grad_output._array()
        xp = _pad(x, config.paddings)
        kernel = out_shape.values[2:]
        full = tuple(xp.shape[2 + i] - kernel[i] + 1 for i in range(n))
        gd = _dilate_to(g, config.strides, full)
        w_bar = np.zeros(out_shape.values, dtype=x.dtype)
        for u in np.ndindex(*kernel):
            summed = [0] + list(range(2, 2 + n))
            w_bar[(slice(None), slice(None)) + u] = np.tensordot(gd, xp[_spatial(u, full)], axes=(summed, summed))
        return self._new(w_bar, out_shape)

    # ------------------------------------------------------------------ #
    # pooling
    # ------------------------------------------------------------------ #
    def _k_avgpool(self, out_shape, n, config: PoolConfig):
        x = self._array()
        out = np.zeros(out_shape.values, dtype=x.dtype)
        axes = tuple(range(2, 2 + n))
        for out_idx, region, divisor in _pool_windows(x.shape[2:], out_shape.values[2:], config):
            out[(slice(None), slice(None)) + out_idx] = x[(slice(None), slice(None)) + region].sum(axis=axes) / divisor
        return self._new(out, out_shape)

    def _k_avgpool_reverse(self, out_shape, n, config: PoolConfig):
        g = self._array()
        out = np.zeros(out_shape.values, dtype=g.dtype)
        expand = (slice(None), slice(None)) + (None,) * n
        for out_idx, region, divisor in _pool_windows(out_shape.values[2:], g.shape[2:], config):
            contribution = g[(slice(None), slice(None)) + out_idx] / divisor
            out[(slice(None), slice(None)) + region] += contribution[expand]
        return self._new(out, out_shape)


def _spatial(offset: Sequence[int], extent: Sequence[int]) -> Tuple[slice, ...]:
    return (slice(None), slice(None)) + tuple(slice(o, o + e) for o, e in zip(offset, extent))


def _pad(x: np.ndarray, paddings: Sequence[int]) -> np.ndarray:
    """Zero-filled larger buffer with `x` added into its interior."""
    if not any(paddings):
        return x
    shape = x.shape[:2] + tuple(m + 2 * p for m, p in zip(x.shape[2:], paddings))
    out = np.zeros(shape, dtype=x.dtype)
    out[(slice(None), slice(None)) + tuple(slice(p, p + m) for p, m in zip(paddings, x.shape[2:]))] += x
    return out


def _dilate_to(g: np.ndarray, strides: Sequence[int], extent: Sequence[int]) -> np.ndarray:
    """
    Spread a strided output adjoint back onto the stride-1 output grid:
    zeros between elements, zero tail up to `extent`.
    """
    out = np.zeros(g.shape[:2] + tuple(extent), dtype=g.dtype)
    out[(slice(None), slice(None)) + tuple(slice(None, (m - 1) * s + 1, s) for m, s in zip(g.shape[2:], strides))] = g
    return out


def _pool_windows(in_spatial, out_spatial, config: PoolConfig):
    """
    Yield (output index, valid input region, divisor) for every pooling window.

    The window of output position o along an axis starts at o*stride - padding
    and is clipped to [0, n) for summation. The include-pad divisor counts the
    window clipped to the padded extent [-padding, n + padding).
    """
    for out_idx in np.ndindex(*out_spatial):
        region = []
        padded_size, valid_size = 1, 1
        for axis, o in enumerate(out_idx):
            n = in_spatial[axis]
            k, s, p = config.kernel_sizes[axis], config.strides[axis], config.paddings[axis]
            start = o * s - p
            end = min(start + k, n + p)
            lo, hi = max(start, 0), min(end, n)
            region.append(slice(lo, hi))
            padded_size *= end - start
            valid_size *= max(hi - lo, 0)
        divisor = padded_size if config.count_include_pad else valid_size
        yield out_idx, tuple(region), divisor
