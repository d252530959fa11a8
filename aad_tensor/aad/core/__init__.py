# aad/core/__init__.py

"""
Core public API of the differentiable tensor layer.

Exports:
    Tensor        : Differentiable tensor (constant / forward / reverse role).
    Tape          : Arena of recorded nodes plus their adjoint slots.
    global_tape   : The default tape new reverse leaves are recorded on.
    use_tape      : Context manager to temporarily switch the active tape.
    Op            : Tagged primitive with bound parameters.
    apply_op      : Generic node construction through the op table.
    reverse       : Run a single reverse pass to accumulate adjoints.
    zero_adjoints : Reset all adjoints of a tape.
    grad, value   : Convenience helpers, see `seeds`.
"""

from .node import Node
from .tape import Tape, global_tape, use_tape
from .op import Op, OP_TABLE, UnaryRule, BinaryRule, NaryRule, register, rule_for
from .tensor import (
    Tensor, apply_op, tensor, zeros, ones, full, rand, randn, multinomial, symbolic, stack,
)
from .engine import reverse, zero_adjoints
from .seeds import value, grad, grads_list, jvp, vjp, bumping_grad

__all__ = [
    "Node", "Tape", "global_tape", "use_tape",
    "Op", "OP_TABLE", "UnaryRule", "BinaryRule", "NaryRule", "register", "rule_for",
    "Tensor", "apply_op", "tensor", "zeros", "ones", "full", "rand", "randn", "multinomial", "symbolic", "stack",
    "reverse", "zero_adjoints",
    "value", "grad", "grads_list", "jvp", "vjp", "bumping_grad",
]
