# aad/ops/conv.py
"""
Convolution (cross-correlation) and its two adjoints.

    conv(x, w)        : (batch, in, L...) x (out, in, K...) -> (batch, out, O...)
    input_adj(g, w)   : adjoint of conv w.r.t. x, shape of x
    weight_adj(x, g)  : adjoint of conv w.r.t. w, shape of w

All three are bilinear and mutually adjoint, so the reverse rule of each is
expressed with the other two:

    <conv(x, w), g> = <x, input_adj(g, w)> = <w, weight_adj(x, g)>

which keeps conv gradients differentiable again.
"""

from typing import Optional, Sequence

from ...config import ConvConfig
from ..core.op import BinaryRule, Op, register
from ..core.tensor import Tensor, _as_tensor, apply_op


def _conv(x: Tensor, w: Tensor, n: int, config: ConvConfig) -> Tensor:
    return apply_op(Op("conv", (n, config)), x, w)


def _input_adj(g: Tensor, w: Tensor, n: int, config: ConvConfig, input_shape) -> Tensor:
    return apply_op(Op("conv_input_adjoint", (n, config, input_shape)), g, w)


def _weight_adj(x: Tensor, g: Tensor, n: int, config: ConvConfig, kernel_shape) -> Tensor:
    return apply_op(Op("conv_weight_adjoint", (n, config, kernel_shape)), x, g)


register("conv", BinaryRule(
    compute=lambda op, x, w: x.conv(op.params[0], w, op.params[1]),
    forward_a=lambda op, fab, x, xd, w: _conv(xd, w, *op.params),
    forward_b=lambda op, fab, x, w, wd: _conv(x, wd, *op.params),
    reverse_a=lambda op, x, w, td: _input_adj(td, w, *op.params, x.shape),
    reverse_b=lambda op, x, w, td: _weight_adj(x, td, *op.params, w.shape),
))
register("conv_input_adjoint", BinaryRule(
    compute=lambda op, g, w: g.conv_input_adjoint(op.params[0], w, op.params[2], op.params[1]),
    forward_a=lambda op, fab, g, gd, w: _input_adj(gd, w, *op.params),
    forward_b=lambda op, fab, g, w, wd: _input_adj(g, wd, *op.params),
    reverse_a=lambda op, g, w, td: _conv(td, w, op.params[0], op.params[1]),
    reverse_b=lambda op, g, w, td: _weight_adj(td, g, op.params[0], op.params[1], w.shape),
))
register("conv_weight_adjoint", BinaryRule(
    compute=lambda op, x, g: x.conv_weight_adjoint(op.params[0], g, op.params[2], op.params[1]),
    forward_a=lambda op, fab, x, xd, g: _weight_adj(xd, g, *op.params),
    forward_b=lambda op, fab, x, g, gd: _weight_adj(x, gd, *op.params),
    reverse_a=lambda op, x, g, td: _input_adj(g, td, op.params[0], op.params[1], x.shape),
    reverse_b=lambda op, x, g, td: _conv(x, td, op.params[0], op.params[1]),
))


def _operands(x, w):
    x = _as_tensor(x, like=w if isinstance(w, Tensor) else None)
    return x, _as_tensor(w, like=x)


def conv1d(x, weight, stride: int = 1, padding: int = 0) -> Tensor:
    """
    1d cross-correlation (the kernel is not flipped).

    x: (batch, in_channels, length), weight: (out_channels, in_channels, kernel)
    -> (batch, out_channels, (length + 2*padding - kernel) // stride + 1)
    """
    x, weight = _operands(x, weight)
    return _conv(x, weight, 1, ConvConfig.resolve(1, stride=stride, padding=padding))


def conv2d(x, weight, stride: Optional[int] = None, padding: Optional[int] = None,
           strides: Optional[Sequence[int]] = None, paddings: Optional[Sequence[int]] = None) -> Tensor:
    """
    2d cross-correlation; `stride`/`padding` apply to both axes, `strides`/
    `paddings` give one value per axis. Defaults: stride 1, padding 0.
    """
    x, weight = _operands(x, weight)
    config = ConvConfig.resolve(2, stride=stride, padding=padding, strides=strides, paddings=paddings)
    return _conv(x, weight, 2, config)


def conv_input_adjoint(grad_output, weight, input_shape, n_spatial: int, config: ConvConfig) -> Tensor:
    g, w = _operands(grad_output, weight)
    return _input_adj(g, w, n_spatial, config, input_shape)


def conv_weight_adjoint(x, grad_output, kernel_shape, n_spatial: int, config: ConvConfig) -> Tensor:
    x, g = _operands(x, grad_output)
    return _weight_adj(x, g, n_spatial, config, kernel_shape)
