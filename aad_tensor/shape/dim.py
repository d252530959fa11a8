# shape/dim.py
"""
Dimension values.

A `Dim` is a tagged value: either Concrete(int) or Symbolic(Symbol). Arithmetic
pattern-matches on the pair of tags: two resolvable operands give plain integer
arithmetic, otherwise a new symbolic expression node is built in the scope of
the symbolic operand.
"""

from __future__ import annotations

from typing import Callable, Optional, Union

import numpy as np

from ..errors import UnresolvedDimensionError
from .symbolic import Symbol

DimLike = Union["Dim", int]


class Dim:
    """
    An integer that may be symbolic (the size of one tensor axis, or an index).

    Symbolic dims only appear when the shape-checking backend is used; with
    the CPU backend every Dim is concrete.
    """

    __slots__ = ("_n", "_sym")

    def __init__(self, n: int = 0, sym: Optional[Symbol] = None):
        self._n = int(n)
        self._sym = sym

    @classmethod
    def symbolic(cls, sym: Symbol) -> "Dim":
        return cls(0, sym)

    @staticmethod
    def of(x: DimLike) -> "Dim":
        if isinstance(x, Dim):
            return x
        if isinstance(x, (int, np.integer)):
            return Dim(int(x))
        raise TypeError(f"Cannot interpret {x!r} of type {type(x)} as a dimension")

    # ------------------------------------------------------------------ #
    @property
    def symbol(self) -> Optional[Symbol]:
        return self._sym

    @property
    def is_symbolic(self) -> bool:
        return self._sym is not None and self.try_value() is None

    @property
    def name(self) -> Optional[str]:
        return None if self._sym is None else str(self._sym)

    def try_value(self) -> Optional[int]:
        if self._sym is None:
            return self._n
        return self._sym.try_evaluate()

    @property
    def value(self) -> int:
        v = self.try_value()
        if v is None:
            raise UnresolvedDimensionError(
                f"Cannot get a concrete value for symbolic dimension {self._sym}"
            )
        return v

    @property
    def value_or_one(self) -> int:
        """The value, or 1 when unresolved (a representative size)."""
        v = self.try_value()
        return 1 if v is None else v

    @property
    def is_request(self) -> bool:
        return self._sym is None and self._n == -1

    @property
    def is_invalid(self) -> bool:
        return self._sym is None and self._n < -1

    def as_symbol(self, scope) -> Symbol:
        return scope.create_const(self._n) if self._sym is None else self._sym

    # ------------------------------------------------------------------ #
    def _binop(self, other: DimLike, f: Callable[[int, int], int], name: str) -> "Dim":
        other = Dim.of(other)
        xv, yv = self.try_value(), other.try_value()
        if xv is not None and yv is not None:
            return Dim(f(xv, yv))
        if xv is None and yv is None:
            return Dim.symbolic(self._sym.binop(name, other._sym))
        if xv is None:
            return Dim.symbolic(self._sym.binop(name, other.as_symbol(self._sym.scope)))
        return Dim.symbolic(self.as_symbol(other._sym.scope).binop(name, other._sym))

    def __add__(self, other):
        return self._binop(other, lambda a, b: a + b, "add")

    def __radd__(self, other):
        return Dim.of(other) + self

    def __sub__(self, other):
        return self._binop(other, lambda a, b: a - b, "sub")

    def __rsub__(self, other):
        return Dim.of(other) - self

    def __mul__(self, other):
        return self._binop(other, lambda a, b: a * b, "mul")

    def __rmul__(self, other):
        return Dim.of(other) * self

    def __floordiv__(self, other):
        return self._binop(other, lambda a, b: a // b, "div")

    def __rfloordiv__(self, other):
        return Dim.of(other) // self

    def __mod__(self, other):
        return self._binop(other, lambda a, b: a % b, "mod")

    def __rmod__(self, other):
        return Dim.of(other) % self

    def __neg__(self):
        v = self.try_value()
        if v is not None:
            return Dim(-v)
        return Dim.symbolic(self._sym.neg())

    def __abs__(self):
        return Dim(abs(self.value))

    # ------------------------------------------------------------------ #
    def constraint_eq(self, other: DimLike) -> bool:
        """
        Constraint equality. For concrete dims this is plain `==`; for symbolic
        dims the equality is asserted and True means "no contradiction detected".
        """
        other = Dim.of(other)
        xv, yv = self.try_value(), other.try_value()
        if xv is not None and yv is not None:
            return xv == yv
        a, b = self._pair_symbols(other)
        return a.solve(b)

    def constraint_le(self, other: DimLike) -> bool:
        """Constraint less-or-equal, same strength of guarantee as `constraint_eq`."""
        other = Dim.of(other)
        xv, yv = self.try_value(), other.try_value()
        if xv is not None and yv is not None:
            return xv <= yv
        a, b = self._pair_symbols(other)
        return a.scope.constrain("<=", [a, b])

    def _pair_symbols(self, other: "Dim"):
        scope = (self._sym or other._sym).scope
        return self.as_symbol(scope), other.as_symbol(scope)

    # ------------------------------------------------------------------ #
    def __eq__(self, other):
        if isinstance(other, (int, np.integer)):
            other = Dim(int(other))
        if not isinstance(other, Dim):
            return NotImplemented
        xv, yv = self.try_value(), other.try_value()
        if xv is not None and yv is not None:
            return xv == yv
        a, b = self._pair_symbols(other)
        return a.known_to_be_equal(b)

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def __hash__(self):
        v = self.try_value()
        return hash(0 if v is None else v)

    def __lt__(self, other):
        return self.value < Dim.of(other).value

    def __le__(self, other):
        return self.value <= Dim.of(other).value

    def __gt__(self, other):
        return self.value > Dim.of(other).value

    def __ge__(self, other):
        return self.value >= Dim.of(other).value

    def __int__(self):
        return self.value

    def __index__(self):
        return self.value

    def __str__(self):
        v = self.try_value()
        return str(self._sym) if v is None else str(v)

    def __repr__(self):
        return f"Dim({self})"
