# aad/core/tensor.py
from __future__ import annotations

from numbers import Number
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np

from ...backend import RawTensor, backend_class, default_random
from ...backend.raw import DType
from ...config import DEFAULT_BACKEND, DEFAULT_DTYPE
from ...errors import DifferentiationError, InvalidParameterError
from ...shape import checks
from ...shape.shape import Shape, as_shape
from . import tape as tape_mod  # Use module access for use_tape() compatibility
from .op import NaryRule, Op, rule_for


class Tensor:
    """
    Differentiable tensor: a RawTensor primal plus one differentiation role.

    Roles
    -----
    constant : no derivative is tracked.
    forward  : carries `tangent`, a constant Tensor of the same shape holding
               the directional derivative (forward mode / JVP).
    reverse  : a node of a tape arena (`tape`, `node_index`); after
               `engine.reverse` its adjoint can be read from `adjoint`.

    Every operation is dispatched through `apply_op`, which runs the op's
    kernel and then, depending on the operands' roles, computes the output
    tangent or records a new tape node.
    """

    __array_priority__ = 1000  # numpy defers to Tensor's reflected operators

    def __init__(self, raw: RawTensor, *, tangent: Optional["Tensor"] = None,
                 tape: Optional[tape_mod.Tape] = None, node_index: Optional[int] = None):
        if not isinstance(raw, RawTensor):
            raise TypeError(f"Tensor expects a RawTensor primal, got {type(raw)}")
        if tangent is not None and tape is not None:
            raise DifferentiationError("A tensor cannot be both forward and reverse")
        self._raw = raw
        self._tangent = tangent
        self._tape = tape
        self._index = node_index

    # ------------------------------------------------------------------ #
    # metadata
    # ------------------------------------------------------------------ #
    @property
    def raw(self) -> RawTensor:
        return self._raw

    @property
    def shape(self) -> Shape:
        return self._raw.shape

    @property
    def dim(self) -> int:
        return self._raw.dim

    @property
    def nelement(self) -> int:
        return self._raw.nelement

    @property
    def dtype(self) -> DType:
        return self._raw.dtype

    @property
    def backend(self):
        return self._raw.backend

    @property
    def is_constant(self) -> bool:
        return self._tangent is None and self._tape is None

    @property
    def is_forward(self) -> bool:
        return self._tangent is not None

    @property
    def is_reverse(self) -> bool:
        return self._tape is not None

    @property
    def tape(self) -> Optional[tape_mod.Tape]:
        return self._tape

    @property
    def node_index(self) -> Optional[int]:
        return self._index

    # ------------------------------------------------------------------ #
    # differentiation roles
    # ------------------------------------------------------------------ #
    @property
    def primal(self) -> "Tensor":
        """The value without derivative information."""
        return self if self.is_constant else Tensor(self._raw)

    def no_diff(self) -> "Tensor":
        return Tensor(self._raw)

    def forward_diff(self, tangent) -> "Tensor":
        """Forward-mode tensor seeded with `tangent` (same shape)."""
        tangent = _as_tensor(tangent, like=self).primal
        checks.check_can_elementwise("forward_diff", self.shape, tangent.shape)
        return Tensor(self._raw, tangent=tangent)

    def reverse_diff(self, tape: Optional[tape_mod.Tape] = None) -> "Tensor":
        """Reverse-mode leaf recorded on `tape` (default: the active global tape)."""
        tape = tape_mod.global_tape if tape is None else tape
        index = tape.push_node(op=None, operands=(), inputs=(), shape=self.shape)
        return Tensor(self._raw, tape=tape, node_index=index)

    @property
    def tangent(self) -> "Tensor":
        if not self.is_forward:
            raise DifferentiationError("Tensor does not carry a tangent; use forward_diff()")
        return self._tangent

    @property
    def adjoint(self) -> "Tensor":
        if not self.is_reverse:
            raise DifferentiationError("Tensor is not on a tape; use reverse_diff()")
        adj = self._tape.adjoints[self._index]
        return self.zeros_like() if adj is None else adj

    @property
    def derivative(self) -> "Tensor":
        """Tangent in forward mode, adjoint in reverse mode."""
        if self.is_forward:
            return self._tangent
        if self.is_reverse:
            return self.adjoint
        raise DifferentiationError("Cannot get the derivative of a constant tensor")

    # ------------------------------------------------------------------ #
    # constructors of the same backend and dtype
    # ------------------------------------------------------------------ #
    def zeros_like(self, shape=None) -> "Tensor":
        return Tensor(self._raw.zeros_like(shape))

    def ones_like(self, shape=None) -> "Tensor":
        return Tensor(self._raw.ones_like(shape))

    def full_like(self, value: float, shape=None) -> "Tensor":
        return Tensor(self._raw.full_like(value, shape))

    # ------------------------------------------------------------------ #
    # value access
    # ------------------------------------------------------------------ #
    def to_scalar(self) -> float:
        return self._raw.to_value()

    def __float__(self):
        return self.to_scalar()

    def to_array(self) -> np.ndarray:
        return self._raw.to_array()

    def allclose(self, other, tolerance: float = 0.01) -> bool:
        other = _as_tensor(other, like=self)
        return self._raw.approximately_equals(other._raw, tolerance)

    def max_index(self) -> Tuple[int, ...]:
        return self._raw.max_index()

    def min_index(self) -> Tuple[int, ...]:
        return self._raw.min_index()

    def __len__(self):
        if self.dim == 0:
            raise TypeError("len() of a 0d tensor")
        return self.shape[0].value

    def __repr__(self):
        role = "const" if self.is_constant else ("fwd" if self.is_forward else f"rev#{self._index}")
        return f"Tensor({self._raw}, shape={self.shape}, {role})"

    # ------------------------------------------------------------------ #
    # comparisons (constant results, 1.0 where true)
    # ------------------------------------------------------------------ #
    def _compare(self, name: str, mirrored: str, other) -> "Tensor":
        a, b = self._raw, _as_tensor(other, like=self)._raw
        if b.dim == 0 and a.dim != 0:
            return Tensor(getattr(a, name + "_tt0")(b))
        if a.dim == 0 and b.dim != 0:
            # s < x is x > s
            return Tensor(getattr(b, mirrored + "_tt0")(a))
        return Tensor(getattr(a, name + "_tt")(b))

    def lt(self, other): return self._compare("lt", "gt", other)
    def gt(self, other): return self._compare("gt", "lt", other)
    def le(self, other): return self._compare("le", "ge", other)
    def ge(self, other): return self._compare("ge", "le", other)

    __lt__ = lt
    __gt__ = gt
    __le__ = le
    __ge__ = ge

    # ------------------------------------------------------------------ #
    # operator overloading
    # ------------------------------------------------------------------ #
    def __add__(self, other):
        from ..ops.arithmetic import add
        return add(self, other)

    def __radd__(self, other):
        from ..ops.arithmetic import add
        return add(other, self)

    def __sub__(self, other):
        from ..ops.arithmetic import sub
        return sub(self, other)

    def __rsub__(self, other):
        from ..ops.arithmetic import sub
        return sub(other, self)

    def __mul__(self, other):
        from ..ops.arithmetic import mul
        return mul(self, other)

    def __rmul__(self, other):
        from ..ops.arithmetic import mul
        return mul(other, self)

    def __truediv__(self, other):
        from ..ops.arithmetic import div
        return div(self, other)

    def __rtruediv__(self, other):
        from ..ops.arithmetic import div
        return div(other, self)

    def __pow__(self, other):
        from ..ops.arithmetic import pow
        return pow(self, other)

    def __rpow__(self, other):
        from ..ops.arithmetic import pow
        return pow(other, self)

    def __neg__(self):
        from ..ops.arithmetic import neg
        return neg(self)

    def __matmul__(self, other):
        from ..ops.linalg import matmul
        return matmul(self, other)

    def __rmatmul__(self, other):
        from ..ops.linalg import matmul
        return matmul(other, self)

    # ------------------------------------------------------------------ #
    # reductions and linear algebra
    # ------------------------------------------------------------------ #
    def sum(self) -> "Tensor":
        from ..ops.arithmetic import sum
        return sum(self)

    def sum_dim0(self) -> "Tensor":
        from ..ops.arithmetic import sum_dim0
        return sum_dim0(self)

    def matmul(self, other) -> "Tensor":
        from ..ops.linalg import matmul
        return matmul(self, other)

    # ------------------------------------------------------------------ #
    # elementwise functions
    # ------------------------------------------------------------------ #
    def _unary(self, name):
        from ..ops import transcendental
        return getattr(transcendental, name)(self)

    def abs(self): return self._unary("abs")
    def sign(self): return self._unary("sign")
    def floor(self): return self._unary("floor")
    def ceil(self): return self._unary("ceil")
    def round(self): return self._unary("round")
    def relu(self): return self._unary("relu")
    def sigmoid(self): return self._unary("sigmoid")
    def exp(self): return self._unary("exp")
    def log(self): return self._unary("log")
    def log10(self): return self._unary("log10")
    def sqrt(self): return self._unary("sqrt")
    def sin(self): return self._unary("sin")
    def cos(self): return self._unary("cos")
    def tan(self): return self._unary("tan")
    def sinh(self): return self._unary("sinh")
    def cosh(self): return self._unary("cosh")
    def tanh(self): return self._unary("tanh")
    def asin(self): return self._unary("asin")
    def acos(self): return self._unary("acos")
    def atan(self): return self._unary("atan")
    def erf(self): return self._unary("erf")

    def __abs__(self):
        return self.abs()

    # ------------------------------------------------------------------ #
    # shape manipulation
    # ------------------------------------------------------------------ #
    def transpose(self) -> "Tensor":
        from ..ops.structural import transpose
        return transpose(self)

    @property
    def T(self) -> "Tensor":
        return self.transpose()

    def squeeze(self, dim: int = -1) -> "Tensor":
        from ..ops.structural import squeeze
        return squeeze(self, dim)

    def unsqueeze(self, dim: int) -> "Tensor":
        from ..ops.structural import unsqueeze
        return unsqueeze(self, dim)

    def flip(self, dims: Sequence[int]) -> "Tensor":
        from ..ops.structural import flip
        return flip(self, dims)

    def dilate(self, dilations: Sequence[int]) -> "Tensor":
        from ..ops.structural import dilate
        return dilate(self, dilations)

    def undilate(self, dilations: Sequence[int]) -> "Tensor":
        from ..ops.structural import undilate
        return undilate(self, dilations)

    def view(self, shape) -> "Tensor":
        from ..ops.structural import view
        return view(self, shape)

    reshape = view

    def slice(self, bounds: Sequence[Sequence[int]]) -> "Tensor":
        from ..ops.structural import slice_t
        return slice_t(self, bounds)

    def add_slice(self, location: Sequence[int], other) -> "Tensor":
        from ..ops.structural import add_slice
        return add_slice(self, location, other)

    def unstack(self) -> List["Tensor"]:
        checks.check_can_unstack(self.shape)
        return [self[i] for i in range(self.shape[0].value)]

    def __getitem__(self, key) -> "Tensor":
        """Integer and unit-step slice indexing; integer axes are dropped."""
        if not isinstance(key, tuple):
            key = (key,)
        if len(key) > self.dim:
            raise InvalidParameterError(f"Too many indices ({len(key)}) for a {self.dim}d tensor")
        bounds, kept = [], []
        for axis in range(self.dim):
            n = self.shape[axis].value
            k = key[axis] if axis < len(key) else slice(None)
            if isinstance(k, slice):
                start, stop, step = k.indices(n)
                if step != 1:
                    raise InvalidParameterError(f"Only unit-step slices are supported, received step {k.step}")
                if stop <= start:
                    raise InvalidParameterError(f"Empty slice {k} along axis {axis} of length {n}")
                bounds.append((start, stop - 1))
                kept.append(stop - start)
            elif isinstance(k, (int, np.integer)):
                i = int(k) + n if k < 0 else int(k)
                if not 0 <= i < n:
                    raise InvalidParameterError(f"Index {k} out of range for axis {axis} of length {n}")
                bounds.append((i, i))
            else:
                raise InvalidParameterError(f"Unsupported index {k!r}")
        return self.slice(bounds).view(kept)

    # ------------------------------------------------------------------ #
    # convolution and pooling
    # ------------------------------------------------------------------ #
    def conv1d(self, weight, stride: int = 1, padding: int = 0) -> "Tensor":
        from ..ops.conv import conv1d
        return conv1d(self, weight, stride=stride, padding=padding)

    def conv2d(self, weight, stride=None, padding=None, strides=None, paddings=None) -> "Tensor":
        from ..ops.conv import conv2d
        return conv2d(self, weight, stride=stride, padding=padding, strides=strides, paddings=paddings)

    def avgpool1d(self, kernel_size, stride=None, padding=None, ceil_mode=False, count_include_pad=True):
        from ..ops.pooling import avgpool1d
        return avgpool1d(self, kernel_size, stride, padding, ceil_mode=ceil_mode, count_include_pad=count_include_pad)

    def avgpool2d(self, kernel_size=None, stride=None, padding=None, kernel_sizes=None, strides=None,
                  paddings=None, ceil_mode=False, count_include_pad=True):
        from ..ops.pooling import avgpool2d
        return avgpool2d(self, kernel_size, stride, padding, kernel_sizes, strides, paddings,
                         ceil_mode=ceil_mode, count_include_pad=count_include_pad)

    def avgpool3d(self, kernel_size=None, stride=None, padding=None, kernel_sizes=None, strides=None,
                  paddings=None, ceil_mode=False, count_include_pad=True):
        from ..ops.pooling import avgpool3d
        return avgpool3d(self, kernel_size, stride, padding, kernel_sizes, strides, paddings,
                         ceil_mode=ceil_mode, count_include_pad=count_include_pad)

    def avgpool_reverse1d(self, original_input, kernel_size, stride=None, padding=None,
                          ceil_mode=False, count_include_pad=True):
        from ..ops.pooling import avgpool_reverse1d
        return avgpool_reverse1d(self, original_input, kernel_size, stride, padding,
                                 ceil_mode=ceil_mode, count_include_pad=count_include_pad)

    def avgpool_reverse2d(self, original_input, kernel_size=None, stride=None, padding=None,
                          kernel_sizes=None, strides=None, paddings=None, ceil_mode=False, count_include_pad=True):
        from ..ops.pooling import avgpool_reverse2d
        return avgpool_reverse2d(self, original_input, kernel_size, stride, padding, kernel_sizes, strides,
                                 paddings, ceil_mode=ceil_mode, count_include_pad=count_include_pad)

    def avgpool_reverse3d(self, original_input, kernel_size=None, stride=None, padding=None,
                          kernel_sizes=None, strides=None, paddings=None, ceil_mode=False, count_include_pad=True):
        from ..ops.pooling import avgpool_reverse3d
        return avgpool_reverse3d(self, original_input, kernel_size, stride, padding, kernel_sizes, strides,
                                 paddings, ceil_mode=ceil_mode, count_include_pad=count_include_pad)


# ---------------------------------------------------------------------- #
# generic node construction
# ---------------------------------------------------------------------- #
def apply_op(op: Op, *operands: Tensor) -> Tensor:
    """
    Run primitive `op` on `operands`.

    - all constants        -> constant result
    - any forward operand  -> forward result, tangent from the op's forward rule
    - any reverse operand  -> new node on the operands' tape
    Mixing forward and reverse operands is an error.
    """
    rule = rule_for(op)
    raws = [t._raw for t in operands]
    raw = rule.compute(op, raws) if isinstance(rule, NaryRule) else rule.compute(op, *raws)

    forward = any(t.is_forward for t in operands)
    reverse = any(t.is_reverse for t in operands)
    if forward and reverse:
        raise DifferentiationError(f"Cannot mix forward and reverse tensors in {op.tag}")

    if forward:
        primals = [t.primal for t in operands]
        tangents = [t._tangent for t in operands]
        tangent = rule.tangent(op, Tensor(raw), primals, tangents)
        return Tensor(raw, tangent=tangent.primal)

    if reverse:
        tapes = {id(t._tape): t._tape for t in operands if t.is_reverse}
        if len(tapes) > 1:
            raise DifferentiationError(f"Operands of {op.tag} are recorded on different tapes")
        tape = next(iter(tapes.values()))
        index = tape.push_node(
            op=op,
            operands=tuple(t._index if t.is_reverse else None for t in operands),
            inputs=tuple(t.primal for t in operands),
            shape=raw.shape,
        )
        return Tensor(raw, tape=tape, node_index=index)

    return Tensor(raw)


def _as_tensor(x, like: Optional[Tensor] = None) -> Tensor:
    """Ensure x is a Tensor; otherwise wrap it as a constant of `like`'s backend and dtype."""
    if isinstance(x, Tensor):
        return x
    if isinstance(x, RawTensor):
        return Tensor(x)
    if isinstance(like, Tensor):
        cls, dtype = type(like._raw), like.dtype
    else:
        cls, dtype = backend_class(DEFAULT_BACKEND), DType(DEFAULT_DTYPE)
    if isinstance(x, (Number, np.number)):
        return Tensor(cls.full(Shape(()), float(x), dtype))
    if isinstance(x, (list, tuple, np.ndarray)):
        return Tensor(cls.create(x, dtype))
    raise TypeError(f"Cannot interpret {type(x)} as a tensor")


# ---------------------------------------------------------------------- #
# module-level constructors
# ---------------------------------------------------------------------- #
def tensor(values, dtype=DEFAULT_DTYPE, backend=DEFAULT_BACKEND) -> Tensor:
    if isinstance(values, Tensor):
        return values
    if isinstance(values, RawTensor):
        return Tensor(values)
    return Tensor(backend_class(backend).create(values, DType(dtype)))


def zeros(shape, dtype=DEFAULT_DTYPE, backend=DEFAULT_BACKEND) -> Tensor:
    return Tensor(backend_class(backend).zeros(as_shape(shape), DType(dtype)))


def ones(shape, dtype=DEFAULT_DTYPE, backend=DEFAULT_BACKEND) -> Tensor:
    return Tensor(backend_class(backend).ones(as_shape(shape), DType(dtype)))


def full(shape, value: float, dtype=DEFAULT_DTYPE, backend=DEFAULT_BACKEND) -> Tensor:
    return Tensor(backend_class(backend).full(as_shape(shape), value, DType(dtype)))


def rand(shape, rng=None, dtype=DEFAULT_DTYPE, backend=DEFAULT_BACKEND) -> Tensor:
    """Uniform [0, 1) samples drawn from `rng` (default: the module random source)."""
    return Tensor(backend_class(backend).random(as_shape(shape), rng or default_random, DType(dtype)))


def randn(shape, rng=None, dtype=DEFAULT_DTYPE, backend=DEFAULT_BACKEND) -> Tensor:
    return Tensor(backend_class(backend).random_normal(as_shape(shape), rng or default_random, DType(dtype)))


def multinomial(probs, num_samples: int, rng=None) -> Tensor:
    """Sampled indices (as floats) from 1d or 2d unnormalised probabilities."""
    probs = _as_tensor(probs)
    return Tensor(probs._raw.random_multinomial(num_samples, rng or default_random))


def symbolic(scope, names: Sequence[Union[str, int]], dtype=DEFAULT_DTYPE) -> Tensor:
    """Shape-checking tensor with symbolic dims, e.g. `symbolic(scope, ["N", 3, "L"])`."""
    return Tensor(backend_class("shape_checking").symbolic(scope, names, DType(dtype)))


def stack(tensors: Sequence[Any]) -> Tensor:
    from ..ops.structural import stack as _stack
    return _stack(tensors)
