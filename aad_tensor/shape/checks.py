# shape/checks.py
"""
Shape preconditions for every kernel family.

Each `check_can_*` function validates its operands and returns the resulting
Shape. They work on both representation modes: with concrete shapes they are
plain integer checks, with symbolic shapes the relations are asserted into the
solver scope and a contradiction is reported as an error.

Both the CPU backend and the shape-checking backend call these, so the two
agree on every precondition.
"""

import functools
from typing import List, Sequence, Union

from ..config import ConvConfig, PoolConfig
from ..errors import (InvalidParameterError, ShapeMismatchError,
                      UnsupportedConversionError)
from .dim import Dim
from .shape import Shape, as_shape
from .util import has_duplicates, shape_squeeze


def _same_kind(template: Shape, dims: Sequence[Union[int, Dim]]) -> Shape:
    if template.is_symbolic_mode:
        return Shape([Dim.of(d) for d in dims])
    return Shape([Dim.of(d).value for d in dims])


def _check_axis(shape: Shape, dim: int, what: str, upper: int = None):
    upper = shape.length if upper is None else upper
    if not 0 <= dim < upper:
        raise InvalidParameterError(f"Expecting 0 <= {what} < {upper}, received {dim} for shape {shape}")


def _scope_of(x):
    """The solver scope of the first symbolic dim found in `x`, if any."""
    if isinstance(x, Dim):
        return None if x.symbol is None else x.symbol.scope
    if isinstance(x, Shape):
        return _scope_of(x.dims) if x.is_symbolic_mode else None
    if isinstance(x, (list, tuple)):
        for item in x:
            scope = _scope_of(item)
            if scope is not None:
                return scope
    return None


def _atomic(check):
    """Run a check in a solver transaction, so a rejected check asserts nothing."""
    @functools.wraps(check)
    def wrapper(*args, **kwargs):
        scope = _scope_of(args)
        if scope is None:
            return check(*args, **kwargs)
        with scope.transaction():
            return check(*args, **kwargs)
    return wrapper


# ---------------------------------------------------------------- elementwise
@_atomic
def check_can_elementwise(op_name: str, s1, s2) -> Shape:
    s1, s2 = as_shape(s1), as_shape(s2)
    if not s1.constraint_eq(s2):
        raise ShapeMismatchError(f"Expecting tensors with the same shape for {op_name}, received {s1}, {s2}")
    return s1


def check_scalar(op_name: str, s) -> Shape:
    s = as_shape(s)
    if s.length != 0:
        raise ShapeMismatchError(f"Expecting a scalar (0d) operand for {op_name}, received shape {s}")
    return s


@_atomic
def check_can_add_t2t1(s1, s2) -> Shape:
    s1, s2 = as_shape(s1), as_shape(s2)
    if s1.length != 2 or s2.length != 1 or not s1[1].constraint_eq(s2[0]):
        raise ShapeMismatchError(f"Expecting a 2d tensor and a matching 1d tensor, received {s1}, {s2}")
    return s1


@_atomic
def check_can_add_slice(s1, location: Sequence[int], s2) -> Shape:
    s1, s2 = as_shape(s1), as_shape(s2)
    if s2.length > s1.length:
        raise ShapeMismatchError(f"Expecting t1.shape to contain t2.shape, received {s1}, {s2}")
    if len(location) != s1.length:
        raise InvalidParameterError(f"Expecting a length-{s1.length} location, received {tuple(location)}")
    padded = [Dim(1)] * (s1.length - s2.length) + list(s2.dims)
    for big, small, loc in zip(s1.dims, padded, location):
        if loc < 0 or not (small + loc).constraint_le(big):
            raise ShapeMismatchError(
                f"Expecting t1.shape to contain t2.shape at location {tuple(location)}, received {s1}, {s2}"
            )
    return s1


@_atomic
def check_can_matmul(s1, s2) -> Shape:
    s1, s2 = as_shape(s1), as_shape(s2)
    if s1.length != 2 or s2.length != 2:
        raise ShapeMismatchError(f"Expecting two 2d tensors, received tensors with shapes {s1}, {s2}")
    if not s1[1].constraint_eq(s2[0]):
        raise ShapeMismatchError(f"Cannot multiply tensors with shapes {s1}, {s2}")
    return _same_kind(s1 if s1.is_symbolic_mode else s2, [s1[0], s2[1]])


# ----------------------------------------------------------------- reductions
@_atomic
def check_can_sum_dim0(s) -> Shape:
    s = as_shape(s)
    if s.length != 2:
        raise ShapeMismatchError(f"Expecting a 2d tensor, received shape {s}")
    return s[1:]


@_atomic
def check_can_multinomial(s) -> Shape:
    s = as_shape(s)
    if s.length not in (1, 2):
        raise ShapeMismatchError(f"Expecting 1d or 2d probs, received shape {s}")
    return s


# ----------------------------------------------------------------- structural
@_atomic
def check_can_transpose2d(s) -> Shape:
    s = as_shape(s)
    if s.length != 2:
        raise ShapeMismatchError(f"Expecting a 2d tensor for transpose, received shape {s}")
    return _same_kind(s, [s[1], s[0]])


@_atomic
def check_can_squeeze(s, dim: int) -> Shape:
    s = as_shape(s)
    if dim == -1:
        return _same_kind(s, [d for d in s.dims if d.try_value() != 1] or ([1] if s.length else []))
    _check_axis(s, dim, "dim")
    if s[dim].try_value() == 1:
        return _same_kind(s, list(s.dims[:dim]) + list(s.dims[dim + 1:]))
    return s


@_atomic
def check_can_unsqueeze(s, dim: int) -> Shape:
    s = as_shape(s)
    _check_axis(s, dim, "dim", upper=s.length + 1)
    return _same_kind(s, list(s.dims[:dim]) + [1] + list(s.dims[dim:]))


@_atomic
def check_can_flip(s, dims: Sequence[int]) -> Shape:
    s = as_shape(s)
    dims = tuple(dims)
    if len(dims) > s.length:
        raise InvalidParameterError(
            f"Expecting dims (list of dimension indices to flip) of length less than the tensor's dimensions, "
            f"received {len(dims)}, {s.length}"
        )
    if has_duplicates(dims):
        raise InvalidParameterError(f"Expecting dims (list of dimension indices to flip) without repetition, received {dims}")
    for d in dims:
        _check_axis(s, d, "flip dim")
    return s


def _check_dilations(s: Shape, dilations: Sequence[int]):
    if len(dilations) != s.length:
        raise InvalidParameterError(
            f"Expecting dilations (dilation to use in each dimension) of same length as the tensor's dimensions, "
            f"received {len(dilations)}, {s.length}"
        )
    if dilations and min(dilations) < 1:
        raise InvalidParameterError(
            f"Expecting dilations (dilation to use in each dimension) >= 1 where 1 represents no dilation, "
            f"received {tuple(dilations)}"
        )


@_atomic
def check_can_dilate(s, dilations: Sequence[int]) -> Shape:
    s = as_shape(s)
    _check_dilations(s, dilations)
    return _same_kind(s, [n + (n - 1) * (d - 1) for n, d in zip(s.dims, dilations)])


@_atomic
def check_can_undilate(s, dilations: Sequence[int]) -> Shape:
    s = as_shape(s)
    _check_dilations(s, dilations)
    return _same_kind(s, [(n + d - 1) // d for n, d in zip(s.dims, dilations)])


@_atomic
def check_can_view(s, new_shape) -> Shape:
    """Validate a reshape; at most one entry of `new_shape` may be -1 (inferred)."""
    s = as_shape(s)
    new_dims: List[Dim] = [Dim.of(d) for d in as_shape(new_shape).dims]
    requests = [i for i, d in enumerate(new_dims) if d.is_request]
    if len(requests) > 1:
        raise InvalidParameterError(f"Expecting at most one inferred (-1) dimension, received {as_shape(new_shape)}")
    if any(d.is_invalid for d in new_dims):
        raise InvalidParameterError(f"Expecting dimensions >= -1, received {as_shape(new_shape)}")
    if requests:
        known = Dim(1)
        for i, d in enumerate(new_dims):
            if i != requests[0]:
                known = known * d
        total = s.nelementx
        if known.try_value() == 0 or not (total % known).constraint_eq(0):
            raise ShapeMismatchError(f"Cannot view tensor of shape {s} as shape {as_shape(new_shape)}")
        new_dims[requests[0]] = total // known
    result = _same_kind(s if s.is_symbolic_mode else as_shape(new_shape), new_dims)
    if not s.nelementx.constraint_eq(result.nelementx):
        raise ShapeMismatchError(f"Cannot view tensor of shape {s} as shape {result}")
    return result


@_atomic
def check_can_slice(s, bounds: Sequence[Sequence[int]]) -> Shape:
    """Inclusive per-dimension bounds; size-1 dimensions are squeezed out."""
    s = as_shape(s)
    bounds = [tuple(b) for b in bounds]
    if len(bounds) != s.length:
        raise InvalidParameterError(f"Expecting {s.length}-by-2 bounds, received {len(bounds)}")
    for (lo, hi), n in zip(bounds, s.dims):
        if lo < 0 or hi < lo or not Dim(hi + 1).constraint_le(n):
            raise InvalidParameterError(f"Slice bounds {tuple(bounds)} out of range for shape {s}")
    extents = tuple(hi - lo + 1 for lo, hi in bounds)
    return _same_kind(s, shape_squeeze(-1, extents))


@_atomic
def check_can_get_item(s, index: Sequence[int]) -> Shape:
    s = as_shape(s)
    if len(index) != s.length:
        raise InvalidParameterError(f"Expecting a {s.length}d index, received {tuple(index)}")
    for i, n in zip(index, s.dims):
        if i < 0 or not Dim(i + 1).constraint_le(n):
            raise InvalidParameterError(f"Index {tuple(index)} out of range for shape {s}")
    return Shape(())


@_atomic
def check_can_stack(shapes: Sequence) -> Shape:
    shapes = [as_shape(x) for x in shapes]
    if not shapes:
        raise InvalidParameterError("Expecting a non-empty sequence of tensors to stack")
    for other in shapes[1:]:
        if not shapes[0].constraint_eq(other):
            raise ShapeMismatchError(f"Expecting tensors with same shape, received {shapes[0]}, {other}")
    return _same_kind(shapes[0], [len(shapes)] + list(shapes[0].dims))


@_atomic
def check_can_unstack(s) -> Shape:
    s = as_shape(s)
    if s.length < 1:
        raise ShapeMismatchError("Cannot unstack scalar tensor (dim < 1)")
    return s[1:]


# ---------------------------------------------------------------- conversions
@_atomic
def check_can_to_value(s) -> Shape:
    s = as_shape(s)
    if s.length != 0:
        raise UnsupportedConversionError(f"Cannot convert {s.length}d tensor to scalar")
    return s


@_atomic
def check_can_to_array(s) -> Shape:
    s = as_shape(s)
    if s.length == 0:
        raise UnsupportedConversionError("Cannot convert 0d tensor to array")
    if s.length > 4:
        raise UnsupportedConversionError(
            f"Cannot get array for tensor dimensions > 4. Consider slicing the tensor. Shape: {s}"
        )
    return s


# ---------------------------------------------------------------- convolution
def _conv_out(n: Dim, k: Dim, stride: int, padding: int) -> Dim:
    return (n + 2 * padding - k) // stride + 1


@_atomic
def check_can_conv(n_spatial: int, sx, sw, config: ConvConfig) -> Shape:
    """
    Input (batch, in_channels, spatial...), kernel (out_channels, in_channels,
    kernel_spatial...). Returns (batch, out_channels, out_spatial...).
    """
    sx, sw = as_shape(sx), as_shape(sw)
    rank = n_spatial + 2
    if sx.length != rank or sw.length != rank:
        raise ShapeMismatchError(
            f"Expecting two {rank}d tensors (input: batch x channels x spatial, filters: out_channels x "
            f"in_channels x kernel), received tensors with shapes {sx}, {sw}"
        )
    if config.n_spatial != n_spatial:
        raise InvalidParameterError(f"Expecting {n_spatial} strides and paddings, received {config}")
    if not sx[1].constraint_eq(sw[1]):
        raise ShapeMismatchError(f"Input and filters have different number of channels: {sx}, {sw}")
    out: List[Dim] = [sx[0], sw[0]]
    for i in range(n_spatial):
        n, k = sx[2 + i], sw[2 + i]
        stride, padding = config.strides[i], config.paddings[i]
        if not k.constraint_le(n + 2 * padding):
            raise ShapeMismatchError(
                f"Expecting kernel size <= padded input size along spatial axis {i}, received {sx}, {sw} "
                f"with padding {config.paddings}"
            )
        out.append(_conv_out(n, k, stride, padding))
    return _same_kind(sx if sx.is_symbolic_mode else sw, out)


@_atomic
def check_can_conv1d(sx, sw, stride: int = 1, padding: int = 0) -> Shape:
    return check_can_conv(1, sx, sw, ConvConfig.resolve(1, stride=stride, padding=padding))


@_atomic
def check_can_conv_input_adjoint(n_spatial: int, sg, sw, input_shape, config: ConvConfig) -> Shape:
    """The adjoint w.r.t. the input has the input's shape."""
    expected = check_can_conv(n_spatial, input_shape, sw, config)
    if not expected.constraint_eq(sg):
        raise ShapeMismatchError(
            f"Expecting output adjoint of shape {expected} for input {as_shape(input_shape)} and filters "
            f"{as_shape(sw)}, received {as_shape(sg)}"
        )
    return as_shape(input_shape)


@_atomic
def check_can_conv_weight_adjoint(n_spatial: int, sx, sg, kernel_shape, config: ConvConfig) -> Shape:
    """The adjoint w.r.t. the filters has the filters' shape."""
    expected = check_can_conv(n_spatial, sx, kernel_shape, config)
    if not expected.constraint_eq(sg):
        raise ShapeMismatchError(
            f"Expecting output adjoint of shape {expected} for input {as_shape(sx)} and filters "
            f"{as_shape(kernel_shape)}, received {as_shape(sg)}"
        )
    return as_shape(kernel_shape)


# -------------------------------------------------------------------- pooling
def _pool_out(n: Dim, k: int, stride: int, padding: int, ceil_mode: bool) -> Dim:
    if not ceil_mode:
        return (n + 2 * padding - k) // stride + 1
    out = (n + 2 * padding - k + stride - 1) // stride + 1
    # the last window has to start inside the input or the left padding
    if out.try_value() is not None and n.try_value() is not None:
        if (out.value - 1) * stride >= n.value + padding:
            out = out - 1
    return out


@_atomic
def check_can_avgpool(n_spatial: int, s, config: PoolConfig) -> Shape:
    """Input (batch, channels, spatial...) -> (batch, channels, pooled...)."""
    s = as_shape(s)
    rank = n_spatial + 2
    if s.length != rank:
        raise ShapeMismatchError(
            f"Expecting a {rank}d tensor (batch x channels x {n_spatial} spatial), received shape {s}"
        )
    if config.n_spatial != n_spatial:
        raise InvalidParameterError(f"Expecting {n_spatial}d pooling sizes, received {config}")
    config.validate()
    out: List[Dim] = [s[0], s[1]]
    for i in range(n_spatial):
        n = s[2 + i]
        k, stride, padding = config.kernel_sizes[i], config.strides[i], config.paddings[i]
        if not Dim(k).constraint_le(n + 2 * padding):
            raise ShapeMismatchError(
                f"Expecting kernel size {config.kernel_sizes} <= padded input size along spatial axis {i}, "
                f"received shape {s} with paddings {config.paddings}"
            )
        out.append(_pool_out(n, k, stride, padding, config.ceil_mode))
    return _same_kind(s, out)


@_atomic
def check_can_avgpool1d(s, config: PoolConfig) -> Shape:
    return check_can_avgpool(1, s, config)


@_atomic
def check_can_avgpool_reverse(n_spatial: int, sg, original_shape, config: PoolConfig) -> Shape:
    """The reverse maps a pooled-shape tensor back to the original input shape."""
    expected = check_can_avgpool(n_spatial, original_shape, config)
    if not expected.constraint_eq(sg):
        raise ShapeMismatchError(
            f"Expecting a tensor of shape {expected} (avgpool of {as_shape(original_shape)}), received {as_shape(sg)}"
        )
    return as_shape(original_shape)


def pool_output_extent(n: int, k: int, stride: int, padding: int, ceil_mode: bool) -> int:
    return _pool_out(Dim(n), k, stride, padding, ceil_mode).value
