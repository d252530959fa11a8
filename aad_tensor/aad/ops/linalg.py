# aad/ops/linalg.py
from ..core.op import BinaryRule, Op, register
from ..core.tensor import Tensor, _as_tensor, apply_op

# d(A @ B) = dA @ B + A @ dB
register("matmul", BinaryRule(
    compute=lambda op, a, b: a.matmul_t2t2(b),
    forward_a=lambda op, fab, a, ad, b: ad @ b,
    forward_b=lambda op, fab, a, b, bd: a @ bd,
    reverse_a=lambda op, a, b, td: td @ b.transpose(),
    reverse_b=lambda op, a, b, td: a.transpose() @ td,
))


def matmul(x, y) -> Tensor:
    """Matrix product of two 2d tensors; inner dimensions must match."""
    a = _as_tensor(x, like=y if isinstance(y, Tensor) else None)
    b = _as_tensor(y, like=a)
    return apply_op(Op("matmul"), a, b)
