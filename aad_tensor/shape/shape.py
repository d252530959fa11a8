# shape/shape.py
from __future__ import annotations

from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import UnresolvedDimensionError
from .dim import Dim


class _Rejected(Exception):
    pass


class Shape:
    """
    Immutable shape of a tensor.

    Two representation modes with identical observable behaviour when every
    dimension is concrete:
      - integer mode  : built from plain ints (used by the CPU backend)
      - symbolic mode : built from `Dim` values (used by shape checking)

    Equality is structural, hashing is derived from the dimension sequence.
    """

    __slots__ = ("_values", "_dims")

    def __init__(self, dims: Union["Shape", Iterable[Union[int, Dim]]] = ()):
        if isinstance(dims, Shape):
            self._values, self._dims = dims._values, dims._dims
            return
        items = tuple(dims)
        if all(isinstance(d, (int, np.integer)) for d in items):
            self._values: Optional[Tuple[int, ...]] = tuple(int(d) for d in items)
            self._dims: Optional[Tuple[Dim, ...]] = None
        else:
            self._values = None
            self._dims = tuple(Dim.of(d) for d in items)

    # ------------------------------------------------------------------ #
    @property
    def length(self) -> int:
        return len(self._values) if self._values is not None else len(self._dims)

    def __len__(self):
        return self.length

    @property
    def is_symbolic_mode(self) -> bool:
        return self._values is None

    @property
    def dims(self) -> Tuple[Dim, ...]:
        if self._values is not None:
            return tuple(Dim(v) for v in self._values)
        return self._dims

    def try_values(self) -> Optional[Tuple[int, ...]]:
        if self._values is not None:
            return self._values
        vs = [d.try_value() for d in self._dims]
        if any(v is None for v in vs):
            return None
        return tuple(vs)

    @property
    def values(self) -> Tuple[int, ...]:
        vs = self.try_values()
        if vs is None:
            raise UnresolvedDimensionError(f"The shape {self} is symbolic")
        return vs

    @property
    def nelement(self) -> int:
        """Total number of elements. Raises if any dimension is unresolved."""
        vs = self.try_values()
        if vs is None:
            raise UnresolvedDimensionError(
                f"Cannot count elements of shape {self}: it has unresolved symbolic dimensions"
            )
        return int(np.prod(vs, dtype=np.int64)) if vs else 1

    @property
    def nelementx(self) -> Dim:
        """Total number of elements, possibly symbolic."""
        total = Dim(1)
        for d in self.dims:
            total = total * d
        return total

    def flatten(self) -> "Shape":
        if self._values is not None:
            return Shape([self.nelement])
        return Shape([self.nelementx])

    def sliced(self, bounds: Sequence[Sequence[Union[int, Dim]]]) -> "Shape":
        """
        Shape addressed by inclusive per-dimension `(low, high)` bounds,
        in the same representation kind as this shape.
        """
        extents: List[Union[int, Dim]] = [hi - lo + 1 for lo, hi in bounds]
        if self._values is not None:
            return Shape([int(e) for e in extents])
        return Shape([Dim.of(e) for e in extents])

    # ------------------------------------------------------------------ #
    def __getitem__(self, key):
        if isinstance(key, slice):
            if self._values is not None:
                return Shape(self._values[key])
            sub = Shape(())
            sub._values, sub._dims = None, self._dims[key]
            return sub
        if self._values is not None:
            return Dim(self._values[key])
        return self._dims[key]

    def __iter__(self) -> Iterator[Dim]:
        return iter(self.dims)

    def constraint_eq(self, other: "Shape") -> bool:
        """Constraint equality (see `Dim.constraint_eq` for the guarantee)."""
        other = as_shape(other)
        xv, yv = self.try_values(), other.try_values()
        if xv is not None and yv is not None:
            return xv == yv
        if self.length != other.length:
            return False
        pairs = list(zip(self.dims, other.dims))
        scope = next((d.symbol.scope for pair in pairs for d in pair if d.symbol is not None), None)
        if scope is None:
            return all(a.constraint_eq(b) for a, b in pairs)
        # all dims or none: a contradiction withdraws the equalities already asserted
        try:
            with scope.transaction():
                if not all(a.constraint_eq(b) for a, b in pairs):
                    raise _Rejected
        except _Rejected:
            return False
        return True

    def __eq__(self, other):
        if isinstance(other, (tuple, list)):
            other = Shape(other)
        if not isinstance(other, Shape):
            return NotImplemented
        if self._values is not None and other._values is not None:
            return self._values == other._values
        return self.length == other.length and all(a == b for a, b in zip(self.dims, other.dims))

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def __hash__(self):
        return hash(self.dims)

    def __str__(self):
        return "[" + ",".join(str(d) for d in self.dims) + "]"

    def __repr__(self):
        return f"Shape({self})"


def as_shape(x) -> Shape:
    return x if isinstance(x, Shape) else Shape(x)
