# aad/ops/structural.py
"""
Shape-manipulating primitives. Each reverse rule undoes the forward movement
of elements: view <-> view back, unsqueeze <-> squeeze, dilate <-> undilate,
slice <-> add into zeros, stack <-> select.
"""

from typing import Sequence

from ...errors import InvalidParameterError
from ...shape.checks import check_can_view
from ...shape.shape import Shape, as_shape
from ..core.op import BinaryRule, NaryRule, Op, UnaryRule, register
from ..core.tensor import Tensor, _as_tensor, apply_op


def _block_bounds(location, shape: Shape):
    """Inclusive bounds of a `shape` block at `location` (shape left-padded with ones)."""
    extents = [1] * (len(location) - shape.length) + list(shape.values)
    return [(loc, loc + e - 1) for loc, e in zip(location, extents)]


def _select0(t: Tensor, i: int) -> Tensor:
    """t[i] along the leading axis, keeping the remaining axes."""
    bounds = [(i, i)] + [(0, n - 1) for n in t.shape.values[1:]]
    return t.slice(bounds).view(t.shape[1:])


register("transpose", UnaryRule(
    compute=lambda op, a: a.transpose_t2(),
    forward=lambda op, fab, a, ad: ad.transpose(),
    reverse=lambda op, a, td: td.transpose(),
))
register("view", UnaryRule(
    compute=lambda op, a: a.view_t(op.params[0]),
    forward=lambda op, fab, a, ad: ad.view(fab.shape),
    reverse=lambda op, a, td: td.view(a.shape),
))
register("squeeze", UnaryRule(
    compute=lambda op, a: a.squeeze_t(op.params[0]),
    forward=lambda op, fab, a, ad: ad.squeeze(op.params[0]),
    reverse=lambda op, a, td: td.view(a.shape),
))
register("unsqueeze", UnaryRule(
    compute=lambda op, a: a.unsqueeze_t(op.params[0]),
    forward=lambda op, fab, a, ad: ad.unsqueeze(op.params[0]),
    reverse=lambda op, a, td: td.squeeze(op.params[0]),
))
register("flip", UnaryRule(
    compute=lambda op, a: a.flip_t(op.params[0]),
    forward=lambda op, fab, a, ad: ad.flip(op.params[0]),
    reverse=lambda op, a, td: td.flip(op.params[0]),
))
register("dilate", UnaryRule(
    compute=lambda op, a: a.dilate_t(op.params[0]),
    forward=lambda op, fab, a, ad: ad.dilate(op.params[0]),
    reverse=lambda op, a, td: td.undilate(op.params[0]),
))
register("undilate", UnaryRule(
    compute=lambda op, a: a.undilate_t(op.params[0]),
    forward=lambda op, fab, a, ad: ad.undilate(op.params[0]),
    reverse=lambda op, a, td: a.zeros_like().add_slice([0] * a.dim, td.dilate(op.params[0])),
))
register("slice", UnaryRule(
    compute=lambda op, a: a.get_slice(op.params[0]),
    forward=lambda op, fab, a, ad: ad.slice(op.params[0]),
    reverse=lambda op, a, td: a.zeros_like().add_slice(
        [lo for lo, _ in op.params[0]], td.view([hi - lo + 1 for lo, hi in op.params[0]])),
))
register("add_slice", BinaryRule(
    compute=lambda op, a, b: a.add_tt_slice(op.params[0], b),
    forward_a=lambda op, fab, a, ad, b: ad,
    forward_b=lambda op, fab, a, b, bd: fab.zeros_like().add_slice(op.params[0], bd),
    reverse_a=lambda op, a, b, td: td,
    reverse_b=lambda op, a, b, td: td.slice(_block_bounds(op.params[0], b.shape)).view(b.shape),
))
register("stack", NaryRule(
    compute=lambda op, raws: type(raws[0]).stack_ts(raws),
    forward=lambda op, fab, primals, tangents: stack(tangents),
    reverse=lambda op, primals, td, i: _select0(td, i),
))


# ---------------------------------------------------------------------- #
# public functions
# ---------------------------------------------------------------------- #
def transpose(x) -> Tensor:
    return apply_op(Op("transpose"), _as_tensor(x))


def view(x, shape) -> Tensor:
    x = _as_tensor(x)
    # resolve an inferred (-1) dimension once, so the op carries the final shape
    target = check_can_view(x.shape, as_shape(shape))
    return apply_op(Op("view", (target,)), x)


def squeeze(x, dim: int = -1) -> Tensor:
    return apply_op(Op("squeeze", (int(dim),)), _as_tensor(x))


def unsqueeze(x, dim: int) -> Tensor:
    return apply_op(Op("unsqueeze", (int(dim),)), _as_tensor(x))


def flip(x, dims: Sequence[int]) -> Tensor:
    return apply_op(Op("flip", (tuple(int(d) for d in dims),)), _as_tensor(x))


def dilate(x, dilations: Sequence[int]) -> Tensor:
    return apply_op(Op("dilate", (tuple(int(d) for d in dilations),)), _as_tensor(x))


def undilate(x, dilations: Sequence[int]) -> Tensor:
    return apply_op(Op("undilate", (tuple(int(d) for d in dilations),)), _as_tensor(x))


def slice_t(x, bounds: Sequence[Sequence[int]]) -> Tensor:
    """Region addressed by inclusive per-dimension bounds, size-1 axes squeezed."""
    bounds = tuple((int(lo), int(hi)) for lo, hi in bounds)
    return apply_op(Op("slice", (bounds,)), _as_tensor(x))


def add_slice(x, location: Sequence[int], y) -> Tensor:
    """x with y added into the block starting at `location`."""
    x = _as_tensor(x)
    y = _as_tensor(y, like=x)
    return apply_op(Op("add_slice", (tuple(int(v) for v in location),)), x, y)


def stack(tensors: Sequence) -> Tensor:
    """Stack equal-shape tensors along a new leading axis."""
    tensors = list(tensors)
    if not tensors:
        raise InvalidParameterError("Expecting a non-empty sequence of tensors to stack")
    first = _as_tensor(tensors[0])
    tensors = [first] + [_as_tensor(t, like=first) for t in tensors[1:]]
    return apply_op(Op("stack"), *tensors)


def unstack(x) -> list:
    return _as_tensor(x).unstack()
