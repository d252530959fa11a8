# aad/core/op.py
"""
The differentiation protocol.

An `Op` is a tagged value: the tag names a primitive, `params` carries the
parameters bound at construction (kernel sizes, strides, target shapes...).
The tag selects a rule from `OP_TABLE`; a rule is a triple of plain functions

    compute(op, raw_a[, raw_b])          -> RawTensor      plain kernel
    forward(op, fab, a, ad[, b])         -> Tensor         tangent propagation
    reverse(op, a[, b], td)              -> Tensor         adjoint propagation

where `a`, `b` are the operand primals, `ad`, `bd` their tangents, `fab` the
output primal and `td` the output adjoint. All tensors handed to the rules
are constants, so rules are written with the ordinary Tensor operators.

Binary rules carry one forward and one reverse function per operand; they
are only called for operands that actually carry a derivative.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Sequence, Tuple, Union

from ...errors import InvalidParameterError


@dataclass(frozen=True)
class Op:
    tag: str
    params: Tuple[Any, ...] = ()

    def __str__(self):
        return self.tag if not self.params else f"{self.tag}{self.params}"


@dataclass(frozen=True)
class UnaryRule:
    compute: Callable
    forward: Callable     # (op, fab, a, ad)
    reverse: Callable     # (op, a, td)

    def tangent(self, op: Op, fab, primals: Sequence, tangents: Sequence):
        return self.forward(op, fab, primals[0], tangents[0])

    def adjoint(self, op: Op, primals: Sequence, td, i: int):
        return self.reverse(op, primals[0], td)


@dataclass(frozen=True)
class BinaryRule:
    compute: Callable
    forward_a: Callable   # (op, fab, a, ad, b)
    forward_b: Callable   # (op, fab, a, b, bd)
    reverse_a: Callable   # (op, a, b, td)
    reverse_b: Callable   # (op, a, b, td)

    def tangent(self, op: Op, fab, primals: Sequence, tangents: Sequence):
        a, b = primals
        ad, bd = tangents
        result = None
        if ad is not None:
            result = self.forward_a(op, fab, a, ad, b)
        if bd is not None:
            tb = self.forward_b(op, fab, a, b, bd)
            result = tb if result is None else result + tb
        return result

    def adjoint(self, op: Op, primals: Sequence, td, i: int):
        a, b = primals
        return (self.reverse_a if i == 0 else self.reverse_b)(op, a, b, td)


@dataclass(frozen=True)
class NaryRule:
    compute: Callable     # (op, raws)
    forward: Callable     # (op, fab, primals, tangents), no None tangents
    reverse: Callable     # (op, primals, td, i)

    def tangent(self, op: Op, fab, primals: Sequence, tangents: Sequence):
        filled = [p.zeros_like() if t is None else t for p, t in zip(primals, tangents)]
        return self.forward(op, fab, primals, filled)

    def adjoint(self, op: Op, primals: Sequence, td, i: int):
        return self.reverse(op, primals, td, i)


Rule = Union[UnaryRule, BinaryRule, NaryRule]

OP_TABLE: Dict[str, Rule] = {}


def register(tag: str, rule: Rule) -> Rule:
    if tag in OP_TABLE:
        raise InvalidParameterError(f"Op tag {tag!r} is already registered")
    OP_TABLE[tag] = rule
    return rule


def rule_for(op: Op) -> Rule:
    try:
        return OP_TABLE[op.tag]
    except KeyError:
        raise InvalidParameterError(f"Unknown op tag {op.tag!r}, registered: {sorted(OP_TABLE)}") from None
