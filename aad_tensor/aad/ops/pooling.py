# aad/ops/pooling.py
"""
Average pooling (1d/2d/3d) and its reverse.

`avgpool_reverse` scatters each pooled value equally over the input positions
of its window (divided by the same divisor avgpool used), so it is exactly
the adjoint of `avgpool`:

    <avgpool(x), g> == <x, avgpool_reverse(g)>

The two ops are each other's reverse rule; as both are linear, their forward
rules apply the op itself to the tangent.
"""

from typing import Optional, Sequence

from ...config import PoolConfig
from ...shape.shape import as_shape
from ..core.op import Op, UnaryRule, register
from ..core.tensor import Tensor, _as_tensor, apply_op


def _pool_raw(raw, n: int, config: PoolConfig):
    if n == 1:
        return raw.avgpool1d(config)
    return raw.avgpool(n, config)


def _pool_reverse_raw(raw, n: int, config: PoolConfig, original_shape):
    if n == 1:
        return raw.avgpool_reverse1d(original_shape, config)
    return raw.avgpool_reverse(n, original_shape, config)


def _avgpool(x: Tensor, n: int, config: PoolConfig) -> Tensor:
    return apply_op(Op("avgpool", (n, config)), x)


def _avgpool_reverse(g: Tensor, n: int, config: PoolConfig, original_shape) -> Tensor:
    return apply_op(Op("avgpool_reverse", (n, config, original_shape)), g)


register("avgpool", UnaryRule(
    compute=lambda op, a: _pool_raw(a, *op.params),
    forward=lambda op, fab, a, ad: _avgpool(ad, *op.params),
    reverse=lambda op, a, td: _avgpool_reverse(td, *op.params, a.shape),
))
register("avgpool_reverse", UnaryRule(
    compute=lambda op, a: _pool_reverse_raw(a, *op.params),
    forward=lambda op, fab, a, ad: _avgpool_reverse(ad, *op.params),
    reverse=lambda op, a, td: _avgpool(td, op.params[0], op.params[1]),
))


def _config(n, kernel_size, stride, padding, kernel_sizes, strides, paddings, ceil_mode, count_include_pad):
    return PoolConfig.resolve(n, kernel_size=kernel_size, stride=stride, padding=padding,
                              kernel_sizes=kernel_sizes, strides=strides, paddings=paddings,
                              ceil_mode=ceil_mode, count_include_pad=count_include_pad)


def _original_shape(original_input):
    return original_input.shape if isinstance(original_input, Tensor) else as_shape(original_input)


# ----------------------------------------------------------------- forward
def avgpool1d(x, kernel_size: int, stride: Optional[int] = None, padding: Optional[int] = None,
              ceil_mode: bool = False, count_include_pad: bool = True) -> Tensor:
    """
    1d average pooling of x (batch, channels, length).
    stride defaults to kernel_size, padding to 0.
    """
    config = _config(1, kernel_size, stride, padding, None, None, None, ceil_mode, count_include_pad)
    return _avgpool(_as_tensor(x), 1, config)


def avgpool2d(x, kernel_size: Optional[int] = None, stride: Optional[int] = None, padding: Optional[int] = None,
              kernel_sizes: Optional[Sequence[int]] = None, strides: Optional[Sequence[int]] = None,
              paddings: Optional[Sequence[int]] = None, ceil_mode: bool = False,
              count_include_pad: bool = True) -> Tensor:
    """
    2d average pooling of x (batch, channels, height, width).
    Give either `kernel_size` (both axes) or `kernel_sizes` (per axis); the
    same for stride/strides and padding/paddings.
    """
    config = _config(2, kernel_size, stride, padding, kernel_sizes, strides, paddings, ceil_mode, count_include_pad)
    return _avgpool(_as_tensor(x), 2, config)


def avgpool3d(x, kernel_size: Optional[int] = None, stride: Optional[int] = None, padding: Optional[int] = None,
              kernel_sizes: Optional[Sequence[int]] = None, strides: Optional[Sequence[int]] = None,
              paddings: Optional[Sequence[int]] = None, ceil_mode: bool = False,
              count_include_pad: bool = True) -> Tensor:
    """3d average pooling of x (batch, channels, depth, height, width)."""
    config = _config(3, kernel_size, stride, padding, kernel_sizes, strides, paddings, ceil_mode, count_include_pad)
    return _avgpool(_as_tensor(x), 3, config)


# ----------------------------------------------------------------- reverse
def avgpool_reverse1d(g, original_input, kernel_size: int, stride: Optional[int] = None,
                      padding: Optional[int] = None, ceil_mode: bool = False,
                      count_include_pad: bool = True) -> Tensor:
    """
    Adjoint of avgpool1d: maps a pooled-shape tensor back to the shape of
    `original_input` (a Tensor or a shape).
    """
    config = _config(1, kernel_size, stride, padding, None, None, None, ceil_mode, count_include_pad)
    return _avgpool_reverse(_as_tensor(g), 1, config, _original_shape(original_input))


def avgpool_reverse2d(g, original_input, kernel_size: Optional[int] = None, stride: Optional[int] = None,
                      padding: Optional[int] = None, kernel_sizes: Optional[Sequence[int]] = None,
                      strides: Optional[Sequence[int]] = None, paddings: Optional[Sequence[int]] = None,
                      ceil_mode: bool = False, count_include_pad: bool = True) -> Tensor:
    config = _config(2, kernel_size, stride, padding, kernel_sizes, strides, paddings, ceil_mode, count_include_pad)
    return _avgpool_reverse(_as_tensor(g), 2, config, _original_shape(original_input))


def avgpool_reverse3d(g, original_input, kernel_size: Optional[int] = None, stride: Optional[int] = None,
                      padding: Optional[int] = None, kernel_sizes: Optional[Sequence[int]] = None,
                      strides: Optional[Sequence[int]] = None, paddings: Optional[Sequence[int]] = None,
                      ceil_mode: bool = False, count_include_pad: bool = True) -> Tensor:
    config = _config(3, kernel_size, stride, padding, kernel_sizes, strides, paddings, ceil_mode, count_include_pad)
    return _avgpool_reverse(_as_tensor(g), 3, config, _original_shape(original_input))
