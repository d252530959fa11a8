# aad/forward_n.py
# Lazy higher-order forward engine (independent from tensors/tape)

import math
from typing import Callable, List, Sequence, Tuple

import numpy as np

from ..errors import InvalidParameterError


class DualN:
    """
    Lazy chain of derivatives:
        DualN(p, t) with t itself a DualN, computed on first access.

    The tangent is held as a thunk and memoized, so reading the n-th
    derivative only realises n links of the chain. A DualN created without a
    tangent has tangent zero (and so on, all the way down).
    """
    __slots__ = ("p", "_thunk", "_t")

    def __init__(self, p, tangent: Callable[[], "DualN"] = None):
        self.p = float(p)
        self._thunk = tangent
        self._t = None

    @property
    def t(self) -> "DualN":
        if self._t is None:
            self._t = DualN(0.0) if self._thunk is None else self._thunk()
            self._thunk = None   # drop the closure once evaluated
        return self._t

    def __float__(self):
        return self.p

    def __repr__(self):
        return f"DualN({self.p}, {self.t.p})"

    # ----- DualN with DualN / float -----
    def __add__(a, b):
        if isinstance(b, DualN):
            return DualN(a.p + b.p, lambda: a.t + b.t)
        return DualN(a.p + b, lambda: a.t)
    __radd__ = __add__

    def __sub__(a, b):
        if isinstance(b, DualN):
            return DualN(a.p - b.p, lambda: a.t - b.t)
        return DualN(a.p - b, lambda: a.t)

    def __rsub__(b, a):
        return DualN(a - b.p, lambda: -b.t)

    def __mul__(a, b):
        if isinstance(b, DualN):
            return DualN(a.p * b.p, lambda: a.t * b + a * b.t)
        return DualN(a.p * b, lambda: a.t * b)
    __rmul__ = __mul__

    def __truediv__(a, b):
        if isinstance(b, DualN):
            return DualN(a.p / b.p, lambda: (a.t * b - a * b.t) / (b * b))
        return DualN(a.p / b, lambda: a.t / b)

    def __rtruediv__(b, a):
        return DualN(a / b.p, lambda: -a * b.t / (b * b))

    def __pow__(a, b):
        if isinstance(b, DualN):
            return DualN(a.p ** b.p, lambda: (a ** b) * ((b * a.t / a) + (log(a) * b.t)))
        b = float(b)
        if b == 0.0:
            # constant 1: the chain ends here instead of reaching a ** -1
            return DualN(1.0)
        return DualN(a.p ** b, lambda: b * (a ** (b - 1.0)) * a.t)

    def __rpow__(b, a):
        a = float(a)
        return DualN(a ** b.p, lambda: (a ** b) * math.log(a) * b.t)

    def __neg__(a):
        return DualN(-a.p, lambda: -a.t)

    def __pos__(a):
        return a


# ----- Elementary functions (DualN or plain float) -----
def log(a):
    if not isinstance(a, DualN):
        return math.log(a)
    return DualN(math.log(a.p), lambda: a.t / a)


def exp(a):
    if not isinstance(a, DualN):
        return math.exp(a)
    return DualN(math.exp(a.p), lambda: a.t * exp(a))


def sin(a):
    if not isinstance(a, DualN):
        return math.sin(a)
    return DualN(math.sin(a.p), lambda: a.t * cos(a))


def cos(a):
    if not isinstance(a, DualN):
        return math.cos(a)
    return DualN(math.cos(a.p), lambda: -a.t * sin(a))


def tan(a):
    if not isinstance(a, DualN):
        return math.tan(a)
    return DualN(math.tan(a.p), lambda: a.t / (cos(a) * cos(a)))


def sqrt(a):
    if not isinstance(a, DualN):
        return math.sqrt(a)
    return DualN(math.sqrt(a.p), lambda: a.t / (2.0 * sqrt(a)))


def sinh(a):
    if not isinstance(a, DualN):
        return math.sinh(a)
    return DualN(math.sinh(a.p), lambda: a.t * cosh(a))


def cosh(a):
    if not isinstance(a, DualN):
        return math.cosh(a)
    return DualN(math.cosh(a.p), lambda: a.t * sinh(a))


def tanh(a):
    if not isinstance(a, DualN):
        return math.tanh(a)
    return DualN(math.tanh(a.p), lambda: a.t / (cosh(a) * cosh(a)))


def asin(a):
    if not isinstance(a, DualN):
        return math.asin(a)
    return DualN(math.asin(a.p), lambda: a.t / sqrt(1.0 - a * a))


def acos(a):
    if not isinstance(a, DualN):
        return math.acos(a)
    return DualN(math.acos(a.p), lambda: -a.t / sqrt(1.0 - a * a))


def atan(a):
    if not isinstance(a, DualN):
        return math.atan(a)
    return DualN(math.atan(a.p), lambda: a.t / (1.0 + a * a))


# ----- construction and access -----
def dual_n(p) -> DualN:
    """DualN with primal `p` and tangent 0 (a constant)."""
    return DualN(p)


def dual_n_set(p, t) -> DualN:
    """DualN with primal `p` and tangent `t` (whose own tangent is 0)."""
    t = float(t)
    return DualN(p, lambda: DualN(t))


def dual_n_act(p) -> DualN:
    """Active DualN (the variable of differentiation): tangent 1."""
    return dual_n_set(p, 1.0)


def _act_rows(x: Sequence[float]) -> List[List[DualN]]:
    """One input vector per coordinate, that coordinate active, the others constant."""
    x = [float(v) for v in x]
    return [[dual_n_act(xj) if i == j else dual_n(xj) for j, xj in enumerate(x)] for i in range(len(x))]


def primal(d) -> float:
    return d.p if isinstance(d, DualN) else float(d)


def tangent(d) -> float:
    return d.t.p if isinstance(d, DualN) else 0.0


def tangent2(d) -> float:
    return d.t.t.p if isinstance(d, DualN) else 0.0


def diff_lazy(n: int, d: DualN) -> DualN:
    """The n-th link of the derivative chain of `d` (n = 0 gives `d`)."""
    if n < 0:
        raise InvalidParameterError(f"Order of derivative cannot be negative, received {n}")
    for _ in range(n):
        d = d.t
    return d


def nth_derivative(d: DualN, n: int) -> float:
    """Value of the n-th order derivative carried by `d`."""
    return primal(diff_lazy(n, d))


# ----- scalar-to-scalar -----
def diff_value(f: Callable, x: float) -> Tuple[float, float]:
    """Original value and first derivative of f at x."""
    y = f(dual_n_act(x))
    return primal(y), tangent(y)


def diff(f: Callable, x: float) -> float:
    return diff_value(f, x)[1]


def diff2_value(f: Callable, x: float) -> Tuple[float, float]:
    """Original value and second derivative of f at x."""
    y = f(dual_n_act(x))
    return primal(y), tangent2(y)


def diff2(f: Callable, x: float) -> float:
    return diff2_value(f, x)[1]


def diff2_all(f: Callable, x: float) -> Tuple[float, float, float]:
    """Original value, first and second derivative of f at x."""
    y = f(dual_n_act(x))
    return primal(y), tangent(y), tangent2(y)


def diffn_value(n: int, f: Callable, x: float) -> Tuple[float, float]:
    """Original value and n-th derivative of f at x."""
    y = f(dual_n_act(x))
    if not isinstance(y, DualN):
        return float(y), (float(y) if n == 0 else 0.0)
    return primal(y), nth_derivative(y, n)


def diffn(n: int, f: Callable, x: float) -> float:
    return diffn_value(n, f, x)[1]


# ----- vector-to-scalar -----
def gradv_value(f: Callable, x: Sequence[float], v: Sequence[float]) -> Tuple[float, float]:
    """Original value and directional derivative of f at x along v (one evaluation)."""
    y = f([dual_n_set(xi, vi) for xi, vi in zip(x, v)])
    return primal(y), tangent(y)


def gradv(f: Callable, x: Sequence[float], v: Sequence[float]) -> float:
    return gradv_value(f, x, v)[1]


def grad_value(f: Callable, x: Sequence[float]) -> Tuple[float, np.ndarray]:
    """Original value and gradient of f at x (one evaluation per coordinate)."""
    ys = [f(row) for row in _act_rows(x)]
    return primal(ys[0]), np.array([tangent(y) for y in ys])


def grad(f: Callable, x: Sequence[float]) -> np.ndarray:
    return grad_value(f, x)[1]


def laplacian_value(f: Callable, x: Sequence[float]) -> Tuple[float, float]:
    """Original value and Laplacian (sum of second derivatives along each axis) of f at x."""
    ys = [f(row) for row in _act_rows(x)]
    return primal(ys[0]), float(sum(tangent2(y) for y in ys))


def laplacian(f: Callable, x: Sequence[float]) -> float:
    return laplacian_value(f, x)[1]


# ----- vector-to-vector -----
def jacobian_t_value(f: Callable, x: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    """Original value and transposed Jacobian J^T[i, j] = d f_j / d x_i."""
    ys = [f(row) for row in _act_rows(x)]
    value = np.array([primal(y) for y in ys[0]])
    return value, np.array([[tangent(yj) for yj in y] for y in ys])


def jacobian_t(f: Callable, x: Sequence[float]) -> np.ndarray:
    return jacobian_t_value(f, x)[1]


def jacobian_value(f: Callable, x: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    value, jt = jacobian_t_value(f, x)
    return value, jt.T


def jacobian(f: Callable, x: Sequence[float]) -> np.ndarray:
    return jacobian_value(f, x)[1]


def jacobianv_value(f: Callable, x: Sequence[float], v: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    """Original value and Jacobian-vector product J(x) @ v (one evaluation)."""
    ys = f([dual_n_set(xi, vi) for xi, vi in zip(x, v)])
    return np.array([primal(y) for y in ys]), np.array([tangent(y) for y in ys])


def jacobianv(f: Callable, x: Sequence[float], v: Sequence[float]) -> np.ndarray:
    return jacobianv_value(f, x, v)[1]
