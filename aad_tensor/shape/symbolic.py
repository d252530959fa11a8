# shape/symbolic.py
"""
Symbolic integers backed by the z3 SMT solver.

A `SymbolScope` owns one incremental `z3.Solver` plus the constraints that have
been asserted so far. `Symbol` is a thin handle pairing a z3 integer expression
with the scope it belongs to.

Strength of guarantee
---------------------
`SymbolScope.constrain` returns True when asserting the relation did *not*
produce a contradiction. That is weaker than "provably true": the relation is
merely consistent with everything asserted so far (and a solver verdict of
`unknown` is also reported as True). Callers that use the result for safety
decisions must treat it as "not refuted", never as a proof.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Optional, Sequence

import z3

logger = logging.getLogger(__name__)

_RELATIONS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<=": lambda a, b: a <= b,
    "<": lambda a, b: a < b,
    ">=": lambda a, b: a >= b,
    ">": lambda a, b: a > b,
}

_BINOPS = {
    "add": lambda a, b: a + b,
    "sub": lambda a, b: a - b,
    "mul": lambda a, b: a * b,
    "div": lambda a, b: a / b,   # z3 integer division
    "mod": lambda a, b: a % b,
}


class SymbolScope:
    """
    A solver context in which symbolic dimensions live.

    Not thread-safe: the underlying z3 solver is mutated by every constraint.
    """

    def __init__(self, timeout_ms: int = 10000):
        self.solver = z3.Solver()
        self.solver.set("timeout", timeout_ms)
        self.variables: Dict[str, Symbol] = {}

    def create_var(self, name: str) -> "Symbol":
        """New non-negative integer variable (a dimension size)."""
        if name in self.variables:
            return self.variables[name]
        expr = z3.Int(name)
        self.solver.add(expr >= 0)
        sym = Symbol(self, expr)
        self.variables[name] = sym
        return sym

    @contextmanager
    def transaction(self):
        """
        Group the constraints asserted inside the block: they are kept if the
        block completes and all withdrawn if it raises.

            with scope.transaction():
                ... several constraint_eq / constraint_le calls ...
        """
        depth = self.solver.num_scopes()
        known = set(self.variables)
        self.solver.push()
        try:
            yield self
        except Exception:
            self.solver.pop(self.solver.num_scopes() - depth)
            for name in set(self.variables) - known:
                del self.variables[name]
            logger.debug("rolled back constraints to solver depth %d", depth)
            raise

    def create_const(self, value: int) -> "Symbol":
        return Symbol(self, z3.IntVal(int(value)))

    def constrain(self, relation: str, args: Sequence["Symbol"]) -> bool:
        """
        Assert `args[0] <relation> args[1]`.

        Returns False (and asserts nothing) if the relation contradicts the
        constraints already in scope; otherwise asserts it and returns True.
        """
        if relation not in _RELATIONS:
            raise ValueError(f"Unknown relation {relation!r}, expecting one of {sorted(_RELATIONS)}")
        a, b = args
        expr = _RELATIONS[relation](a.expr, b.expr)
        verdict = self._check_with(expr)
        if verdict == z3.unsat:
            logger.debug("constraint %s %s %s contradicts scope", a, relation, b)
            return False
        if verdict == z3.unknown:
            logger.debug("solver returned unknown for %s %s %s; treating as consistent", a, relation, b)
        self.solver.add(expr)
        return True

    def known_to_be_equal(self, a: "Symbol", b: "Symbol") -> bool:
        """True only if the constraints force a == b."""
        return self._check_with(a.expr != b.expr) == z3.unsat

    def _check_with(self, extra: z3.BoolRef):
        self.solver.push()
        try:
            self.solver.add(extra)
            return self.solver.check()
        finally:
            self.solver.pop()

    def try_evaluate(self, expr: z3.ArithRef) -> Optional[int]:
        """Return the unique value the constraints allow for `expr`, if any."""
        simplified = z3.simplify(expr)
        if z3.is_int_value(simplified):
            return simplified.as_long()
        if self.solver.check() != z3.sat:
            return None
        candidate = self.solver.model().eval(expr, model_completion=True)
        if not z3.is_int_value(candidate):
            return None
        if self._check_with(expr != candidate) == z3.unsat:
            return candidate.as_long()
        return None


class Symbol:
    """An integer expression bound to a `SymbolScope`."""

    __slots__ = ("scope", "expr")

    def __init__(self, scope: SymbolScope, expr: z3.ArithRef):
        self.scope = scope
        self.expr = expr

    def binop(self, name: str, other: "Symbol") -> "Symbol":
        if other.scope is not self.scope:
            raise ValueError("Cannot combine symbols from different scopes")
        return Symbol(self.scope, _BINOPS[name](self.expr, other.expr))

    def neg(self) -> "Symbol":
        return Symbol(self.scope, -self.expr)

    def solve(self, other: "Symbol") -> bool:
        """Constraint equality: assert self == other unless it is contradictory."""
        return self.scope.constrain("==", [self, other])

    def known_to_be_equal(self, other: "Symbol") -> bool:
        return self.scope.known_to_be_equal(self, other)

    def try_evaluate(self) -> Optional[int]:
        return self.scope.try_evaluate(self.expr)

    def __str__(self):
        return str(z3.simplify(self.expr))

    def __repr__(self):
        return f"Symbol({self})"
