# aad/ops/arithmetic.py
"""
Arithmetic primitives and reductions.

Operand-rank dispatch:
    same rank        -> *_tt   (elementwise, shapes must match)
    tensor, scalar   -> *_tt0
    scalar, tensor   -> *_t0t  (add/mul reuse *_tt0 by symmetry)
    matrix, vector   -> add_t2t1 (add/sub only)
"""

from ...errors import ShapeMismatchError
from ..core.op import BinaryRule, Op, UnaryRule, register
from ..core.tensor import Tensor, _as_tensor, apply_op


def _expand(like: Tensor, t: Tensor) -> Tensor:
    """Broadcast a scalar (or row vector) tangent to `like`'s shape."""
    return like.zeros_like() + t


# ----------------------------------------------------------------- add
register("add_tt", BinaryRule(
    compute=lambda op, a, b: a.add_tt(b),
    forward_a=lambda op, fab, a, ad, b: ad,
    forward_b=lambda op, fab, a, b, bd: bd,
    reverse_a=lambda op, a, b, td: td,
    reverse_b=lambda op, a, b, td: td,
))
register("add_tt0", BinaryRule(
    compute=lambda op, a, b: a.add_tt0(b),
    forward_a=lambda op, fab, a, ad, b: ad,
    forward_b=lambda op, fab, a, b, bd: _expand(fab, bd),
    reverse_a=lambda op, a, b, td: td,
    reverse_b=lambda op, a, b, td: td.sum(),
))
register("add_t2t1", BinaryRule(
    compute=lambda op, a, b: a.add_t2t1(b),
    forward_a=lambda op, fab, a, ad, b: ad,
    forward_b=lambda op, fab, a, b, bd: _expand(fab, bd),
    reverse_a=lambda op, a, b, td: td,
    reverse_b=lambda op, a, b, td: td.sum_dim0(),
))

# ----------------------------------------------------------------- sub
register("sub_tt", BinaryRule(
    compute=lambda op, a, b: a.sub_tt(b),
    forward_a=lambda op, fab, a, ad, b: ad,
    forward_b=lambda op, fab, a, b, bd: -bd,
    reverse_a=lambda op, a, b, td: td,
    reverse_b=lambda op, a, b, td: -td,
))
register("sub_tt0", BinaryRule(
    compute=lambda op, a, b: a.sub_tt0(b),
    forward_a=lambda op, fab, a, ad, b: ad,
    forward_b=lambda op, fab, a, b, bd: -_expand(fab, bd),
    reverse_a=lambda op, a, b, td: td,
    reverse_b=lambda op, a, b, td: -td.sum(),
))
register("sub_t0t", BinaryRule(
    compute=lambda op, a, b: a.sub_t0t(b),
    forward_a=lambda op, fab, a, ad, b: _expand(fab, ad),
    forward_b=lambda op, fab, a, b, bd: -bd,
    reverse_a=lambda op, a, b, td: td.sum(),
    reverse_b=lambda op, a, b, td: -td,
))

# ----------------------------------------------------------------- mul
register("mul_tt", BinaryRule(
    compute=lambda op, a, b: a.mul_tt(b),
    forward_a=lambda op, fab, a, ad, b: ad * b,
    forward_b=lambda op, fab, a, b, bd: a * bd,
    reverse_a=lambda op, a, b, td: td * b,
    reverse_b=lambda op, a, b, td: td * a,
))
register("mul_tt0", BinaryRule(
    compute=lambda op, a, b: a.mul_tt0(b),
    forward_a=lambda op, fab, a, ad, b: ad * b,
    forward_b=lambda op, fab, a, b, bd: a * bd,
    reverse_a=lambda op, a, b, td: td * b,
    reverse_b=lambda op, a, b, td: (td * a).sum(),
))

# ----------------------------------------------------------------- div
# d(a/b) = da/b - db*a/b^2
register("div_tt", BinaryRule(
    compute=lambda op, a, b: a.div_tt(b),
    forward_a=lambda op, fab, a, ad, b: ad / b,
    forward_b=lambda op, fab, a, b, bd: -bd * fab / b,
    reverse_a=lambda op, a, b, td: td / b,
    reverse_b=lambda op, a, b, td: -td * a / (b * b),
))
register("div_tt0", BinaryRule(
    compute=lambda op, a, b: a.div_tt0(b),
    forward_a=lambda op, fab, a, ad, b: ad / b,
    forward_b=lambda op, fab, a, b, bd: -bd * fab / b,
    reverse_a=lambda op, a, b, td: td / b,
    reverse_b=lambda op, a, b, td: -(td * a).sum() / (b * b),
))
register("div_t0t", BinaryRule(
    compute=lambda op, a, b: a.div_t0t(b),
    forward_a=lambda op, fab, a, ad, b: ad / b,
    forward_b=lambda op, fab, a, b, bd: -bd * fab / b,
    reverse_a=lambda op, a, b, td: (td / b).sum(),
    reverse_b=lambda op, a, b, td: -td * a / (b * b),
))

# ----------------------------------------------------------------- pow
# d(a^b) = da * b * a^(b-1) + db * a^b * log(a)
def _pow_da(a, b): return b * a ** (b - 1.0)
def _pow_db(fab, a): return fab * a.log()


register("pow_tt", BinaryRule(
    compute=lambda op, a, b: a.pow_tt(b),
    forward_a=lambda op, fab, a, ad, b: ad * _pow_da(a, b),
    forward_b=lambda op, fab, a, b, bd: bd * _pow_db(fab, a),
    reverse_a=lambda op, a, b, td: td * _pow_da(a, b),
    reverse_b=lambda op, a, b, td: td * _pow_db(a ** b, a),
))
register("pow_tt0", BinaryRule(
    compute=lambda op, a, b: a.pow_tt0(b),
    forward_a=lambda op, fab, a, ad, b: ad * _pow_da(a, b),
    forward_b=lambda op, fab, a, b, bd: bd * _pow_db(fab, a),
    reverse_a=lambda op, a, b, td: td * _pow_da(a, b),
    reverse_b=lambda op, a, b, td: (td * _pow_db(a ** b, a)).sum(),
))
register("pow_t0t", BinaryRule(
    compute=lambda op, a, b: a.pow_t0t(b),
    forward_a=lambda op, fab, a, ad, b: ad * _pow_da(a, b),
    forward_b=lambda op, fab, a, b, bd: bd * _pow_db(fab, a),
    reverse_a=lambda op, a, b, td: (td * _pow_da(a, b)).sum(),
    reverse_b=lambda op, a, b, td: td * _pow_db(a ** b, a),
))

# ----------------------------------------------------------------- unary
register("neg", UnaryRule(
    compute=lambda op, a: a.neg_t(),
    forward=lambda op, fab, a, ad: -ad,
    reverse=lambda op, a, td: -td,
))
register("sum", UnaryRule(
    compute=lambda op, a: a.sum_t(),
    forward=lambda op, fab, a, ad: ad.sum(),
    reverse=lambda op, a, td: _expand(a, td),
))
register("sum_dim0", UnaryRule(
    compute=lambda op, a: a.sum_t2_dim0(),
    forward=lambda op, fab, a, ad: ad.sum_dim0(),
    reverse=lambda op, a, td: _expand(a, td),
))


# ---------------------------------------------------------------------- #
# public functions
# ---------------------------------------------------------------------- #
def _pair(x, y):
    x = _as_tensor(x, like=y if isinstance(y, Tensor) else None)
    y = _as_tensor(y, like=x)
    return x, y


def _mismatch(name, a, b):
    return ShapeMismatchError(f"Cannot {name} tensors with shapes {a.shape}, {b.shape}")


def add(x, y) -> Tensor:
    a, b = _pair(x, y)
    if a.dim == b.dim:
        return apply_op(Op("add_tt"), a, b)
    if b.dim == 0:
        return apply_op(Op("add_tt0"), a, b)
    if a.dim == 0:
        return apply_op(Op("add_tt0"), b, a)
    if a.dim == 2 and b.dim == 1:
        return apply_op(Op("add_t2t1"), a, b)
    if a.dim == 1 and b.dim == 2:
        return apply_op(Op("add_t2t1"), b, a)
    raise _mismatch("add", a, b)


def sub(x, y) -> Tensor:
    a, b = _pair(x, y)
    if a.dim == b.dim:
        return apply_op(Op("sub_tt"), a, b)
    if b.dim == 0:
        return apply_op(Op("sub_tt0"), a, b)
    if a.dim == 0:
        return apply_op(Op("sub_t0t"), a, b)
    if a.dim == 2 and b.dim == 1:
        return apply_op(Op("add_t2t1"), a, neg(b))
    if a.dim == 1 and b.dim == 2:
        return apply_op(Op("add_t2t1"), neg(b), a)
    raise _mismatch("subtract", a, b)


def mul(x, y) -> Tensor:
    a, b = _pair(x, y)
    if a.dim == b.dim:
        return apply_op(Op("mul_tt"), a, b)
    if b.dim == 0:
        return apply_op(Op("mul_tt0"), a, b)
    if a.dim == 0:
        return apply_op(Op("mul_tt0"), b, a)
    raise _mismatch("multiply", a, b)


def div(x, y) -> Tensor:
    a, b = _pair(x, y)
    if a.dim == b.dim:
        return apply_op(Op("div_tt"), a, b)
    if b.dim == 0:
        return apply_op(Op("div_tt0"), a, b)
    if a.dim == 0:
        return apply_op(Op("div_t0t"), a, b)
    raise _mismatch("divide", a, b)


def pow(x, y) -> Tensor:
    """Power; the exponent adjoint uses log(a) and needs a > 0 where it is used."""
    a, b = _pair(x, y)
    if a.dim == b.dim:
        return apply_op(Op("pow_tt"), a, b)
    if b.dim == 0:
        return apply_op(Op("pow_tt0"), a, b)
    if a.dim == 0:
        return apply_op(Op("pow_t0t"), a, b)
    raise _mismatch("raise", a, b)


def neg(x) -> Tensor:
    return apply_op(Op("neg"), _as_tensor(x))


def sum(x) -> Tensor:
    return apply_op(Op("sum"), _as_tensor(x))


def sum_dim0(x) -> Tensor:
    return apply_op(Op("sum_dim0"), _as_tensor(x))
