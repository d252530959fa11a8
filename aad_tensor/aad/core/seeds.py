# aad/core/seeds.py

#-----------------------------------------------------------------------------
# We "plant" a seed (dy/dy = 1) at the scalar output and let gradients grow
# backwards through the tape, or a tangent at the inputs and let it flow
# forward through the ops.
#-----------------------------------------------------------------------------
from __future__ import annotations

from typing import Any, Callable, Iterable, List, Tuple

import numpy as np

from ...errors import DifferentiationError
from .engine import reverse, zero_adjoints
from .tape import use_tape
from .tensor import Tensor, tensor


def _to_numpy(x: Tensor) -> np.ndarray:
    """Values of `x` in its own shape, whatever the rank (to_array stops at 4 axes)."""
    x = x.primal
    if x.dim <= 4:
        return x.to_array()
    return x.view([-1]).to_array().reshape(x.shape.values)


def value(x: Any) -> Any:
    """Return the numeric value of a Tensor (float for 0d, ndarray otherwise); pass through plain numbers."""
    if not isinstance(x, Tensor):
        return x
    return x.to_scalar() if x.dim == 0 else _to_numpy(x)


def _leaf(x0) -> Tensor:
    return tensor(x0).primal


def _expect_scalar(y, name: str) -> Tensor:
    if not isinstance(y, Tensor) or y.dim != 0:
        shape = y.shape if isinstance(y, Tensor) else type(y).__name__
        raise DifferentiationError(f"{name} expects f to return a scalar (0d) tensor, got {shape}")
    return y


# ----------------------------- single-input grad ----------------------------- #
def grad(f: Callable[[Tensor], Tensor], x0) -> Tensor:
    """
    Gradient of a scalar-output function y=f(x) at x0 (single tensor input).
    Runs one reverse pass within a fresh, isolated tape.
    """
    with use_tape():
        x = _leaf(x0).reverse_diff()
        y = _expect_scalar(f(x), "grad(f, x0)")
        if not y.is_reverse:
            return x.zeros_like()
        zero_adjoints(y.tape)
        reverse(y)
        return x.adjoint


def grads_list(f: Callable[[List[Tensor]], Tensor], x0_list: Iterable) -> List[Tensor]:
    """
    Same as grad(), but with several inputs given as a list; the result is the
    list of partial gradients in the same order.

    Example
    -------
    f = lambda xs: (xs[0] * xs[0]).sum() + (3 * xs[1]).sum()
    grads_list(f, [[2.0], [4.0]]) -> [tensor([4.0]), tensor([3.0])]
    """
    with use_tape():
        xs = [_leaf(v).reverse_diff() for v in x0_list]
        y = _expect_scalar(f(xs), "grads_list(f, x0_list)")
        if not y.is_reverse:
            return [x.zeros_like() for x in xs]
        zero_adjoints(y.tape)
        reverse(y)
        return [x.adjoint for x in xs]


def jvp(f: Callable[[Tensor], Tensor], x0, v) -> Tuple[Tensor, Tensor]:
    """Forward mode: (f(x0), J(x0) @ v) from a single evaluation."""
    x = _leaf(x0).forward_diff(v)
    y = f(x)
    if not y.is_forward:
        return y.primal, y.zeros_like()
    return y.primal, y.tangent


def vjp(f: Callable[[Tensor], Tensor], x0, v) -> Tuple[Tensor, Tensor]:
    """Reverse mode: (f(x0), v @ J(x0)) from one forward and one reverse pass."""
    with use_tape():
        x = _leaf(x0).reverse_diff()
        y = f(x)
        if not y.is_reverse:
            return y.primal, x.zeros_like()
        zero_adjoints(y.tape)
        reverse(y, seed=v)
        return y.primal, x.adjoint


def bumping_grad(f: Callable[[Tensor], Tensor], x0, eps: float = 1e-5) -> Tensor:
    """
    Centered finite-difference gradient of a scalar function:
        df/dx_i ~ [f(x + eps e_i) - f(x - eps e_i)] / (2 eps)
    Two evaluations of f per input element, no AD involved.
    """
    x = _leaf(x0)
    base = _to_numpy(x) if x.dim > 0 else np.array(x.to_scalar())
    flat = base.reshape(-1)
    out = np.zeros_like(flat)
    for i in range(flat.size):
        bumped = flat.copy()
        bumped[i] += eps
        f_up = _expect_scalar(f(tensor(bumped.reshape(base.shape))), "bumping_grad").to_scalar()
        bumped[i] -= 2 * eps
        f_dn = _expect_scalar(f(tensor(bumped.reshape(base.shape))), "bumping_grad").to_scalar()
        out[i] = (f_up - f_dn) / (2 * eps)
    return tensor(out.reshape(base.shape))
