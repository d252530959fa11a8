# shape/util.py
"""
Integer-level shape helpers used by the dense kernels.

All functions take and return plain tuples of ints (row-major layout).
"""

from typing import List, Sequence, Tuple

import numpy as np


def shape_length(shape: Sequence[int]) -> int:
    return int(np.prod(shape, dtype=np.int64)) if len(shape) else 1


def strides_of(shape: Sequence[int]) -> Tuple[int, ...]:
    """Row-major element strides, e.g. (2, 3, 4) -> (12, 4, 1)."""
    strides = []
    acc = 1
    for n in reversed(shape):
        strides.append(acc)
        acc *= n
    return tuple(reversed(strides))


def index_to_flat_index(shape: Sequence[int], index: Sequence[int]) -> int:
    if len(index) != len(shape):
        raise ValueError(f"Expecting a {len(shape)}d index, received {tuple(index)}")
    return sum(i * s for i, s in zip(index, strides_of(shape)))


def flat_index_to_index(shape: Sequence[int], flat_index: int) -> Tuple[int, ...]:
    index: List[int] = []
    fi = flat_index
    for s in strides_of(shape):
        index.append(fi // s)
        fi -= index[-1] * s
    return tuple(index)


def shape_squeeze(dim: int, shape: Sequence[int]) -> Tuple[int, ...]:
    """
    Remove axis `dim` if it has size 1; `dim == -1` removes every size-1 axis,
    keeping a single axis when all of them would go.
    """
    if dim == -1:
        squeezed = tuple(n for n in shape if n != 1)
        if not squeezed and len(shape) > 0:
            return (1,)
        return squeezed
    if shape[dim] == 1:
        return tuple(shape[:dim]) + tuple(shape[dim + 1:])
    return tuple(shape)


def shape_unsqueeze(dim: int, shape: Sequence[int]) -> Tuple[int, ...]:
    return tuple(shape[:dim]) + (1,) + tuple(shape[dim:])


def shape_unsqueeze_as(shape1: Sequence[int], shape2: Sequence[int]) -> Tuple[int, ...]:
    """Left-pad shape1 with ones up to the rank of shape2."""
    if len(shape1) > len(shape2):
        raise ValueError(f"Expecting shape1.length <= shape2.length, received {tuple(shape1)}, {tuple(shape2)}")
    return (1,) * (len(shape2) - len(shape1)) + tuple(shape1)


def shape_contains(bigger: Sequence[int], smaller: Sequence[int]) -> bool:
    if len(bigger) != len(smaller):
        smaller = shape_unsqueeze_as(smaller, bigger)
    return all(s <= b for b, s in zip(bigger, smaller))


def dilated_shape(shape: Sequence[int], dilations: Sequence[int]) -> Tuple[int, ...]:
    return tuple(n + (n - 1) * (d - 1) for n, d in zip(shape, dilations))


def undilated_shape(shape: Sequence[int], dilations: Sequence[int]) -> Tuple[int, ...]:
    return tuple((n + d - 1) // d for n, d in zip(shape, dilations))


def dilated_coordinates(coords: Sequence[int], dilations: Sequence[int]) -> Tuple[int, ...]:
    return tuple(c * d for c, d in zip(coords, dilations))


def mirror_coordinates(coords: Sequence[int], shape: Sequence[int], dims: Sequence[int]) -> Tuple[int, ...]:
    out = list(coords)
    for d in dims:
        out[d] = shape[d] - coords[d] - 1
    return tuple(out)


def has_duplicates(items: Sequence[int]) -> bool:
    return len(set(items)) != len(items)
