# backend/raw.py
"""
The backend contract.

`RawTensor` is the dense, non-differentiable tensor: backend tag, dtype tag,
Shape and an exclusively owned flat buffer. Every public kernel below
validates its shape preconditions (through `shape.checks`) and then hands the
validated request to the concrete backend via `_run(kernel, out_shape, ...)`.
A backend therefore only implements the numeric part of each kernel, and all
backends agree on every precondition and every error message.

Kernels never mutate `self`; each returns a fresh RawTensor.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import Any, List, Sequence, Tuple

from ..config import ConvConfig, PoolConfig
from ..errors import BackendMismatchError, InvalidParameterError
from ..shape import checks
from ..shape.shape import Shape, as_shape


class DType(enum.Enum):
    float32 = "float32"
    float64 = "float64"


class Device(enum.Enum):
    cpu = "cpu"


class BackendKind(enum.Enum):
    cpu = "cpu"
    shape_checking = "shape_checking"


UNARY_KERNELS = (
    "neg", "sign", "floor", "ceil", "round", "abs", "relu", "sigmoid",
    "exp", "log", "log10", "sqrt", "sin", "cos", "tan", "sinh", "cosh",
    "tanh", "asin", "acos", "atan", "erf",
)
BINARY_KERNELS = ("add", "sub", "mul", "div", "pow", "lt", "gt", "le", "ge")


class RawTensor(ABC):
    """Abstract dense tensor. Subclasses provide storage and `_run`."""

    backend: BackendKind
    device: Device = Device.cpu

    def __init__(self, shape, dtype: DType):
        self._shape = as_shape(shape)
        self._dtype = DType(dtype)

    # ------------------------------------------------------------------ #
    # backend hooks
    # ------------------------------------------------------------------ #
    @abstractmethod
    def _run(self, kernel: str, out_shape: Shape, *args) -> Any:
        """Execute an already-validated kernel and return its result."""

    @classmethod
    @abstractmethod
    def zeros(cls, shape, dtype: DType = DType.float64) -> "RawTensor": ...

    @classmethod
    @abstractmethod
    def ones(cls, shape, dtype: DType = DType.float64) -> "RawTensor": ...

    @classmethod
    @abstractmethod
    def full(cls, shape, value: float, dtype: DType = DType.float64) -> "RawTensor": ...

    @classmethod
    @abstractmethod
    def create(cls, values, dtype: DType = DType.float64) -> "RawTensor": ...

    @classmethod
    @abstractmethod
    def random(cls, shape, rng=None, dtype: DType = DType.float64) -> "RawTensor": ...

    @classmethod
    @abstractmethod
    def random_normal(cls, shape, rng=None, dtype: DType = DType.float64) -> "RawTensor": ...

    @classmethod
    @abstractmethod
    def _stack(cls, tensors: Sequence["RawTensor"], out_shape: Shape) -> "RawTensor": ...

    @abstractmethod
    def clone(self) -> "RawTensor": ...

    @abstractmethod
    def to_value(self) -> float: ...

    @abstractmethod
    def to_array(self): ...

    # ------------------------------------------------------------------ #
    # metadata
    # ------------------------------------------------------------------ #
    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def dtype(self) -> DType:
        return self._dtype

    @property
    def dim(self) -> int:
        return self._shape.length

    @property
    def nelement(self) -> int:
        return self._shape.nelement

    def zeros_like(self, shape=None) -> "RawTensor":
        return type(self).zeros(self._shape if shape is None else shape, self._dtype)

    def ones_like(self, shape=None) -> "RawTensor":
        return type(self).ones(self._shape if shape is None else shape, self._dtype)

    def full_like(self, value: float, shape=None) -> "RawTensor":
        return type(self).full(self._shape if shape is None else shape, value, self._dtype)

    def _check_compatible(self, other: "RawTensor"):
        if type(other) is not type(self):
            raise BackendMismatchError(
                f"Cannot combine tensors from different backends: {type(self).__name__}, {type(other).__name__}"
            )
        if other._dtype != self._dtype:
            raise BackendMismatchError(
                f"Cannot combine tensors of different dtypes: {self._dtype.value}, {other._dtype.value}"
            )

    # ------------------------------------------------------------------ #
    # elementwise
    # ------------------------------------------------------------------ #
    def _binary(self, name: str, other: "RawTensor") -> "RawTensor":
        self._check_compatible(other)
        out_shape = checks.check_can_elementwise(name, self._shape, other._shape)
        return self._run("binary", out_shape, name, other)

    def _binary_scalar(self, name: str, scalar: "RawTensor", scalar_first: bool) -> "RawTensor":
        self._check_compatible(scalar)
        checks.check_scalar(name, scalar._shape)
        return self._run("binary_scalar", self._shape, name, scalar, scalar_first)

    def add_tt(self, t2): return self._binary("add", t2)
    def add_tt0(self, t2): return self._binary_scalar("add", t2, False)
    def sub_tt(self, t2): return self._binary("sub", t2)
    def sub_tt0(self, t2): return self._binary_scalar("sub", t2, False)
    def sub_t0t(self, t2): return t2._binary_scalar("sub", self, True)
    def mul_tt(self, t2): return self._binary("mul", t2)
    def mul_tt0(self, t2): return self._binary_scalar("mul", t2, False)
    def div_tt(self, t2): return self._binary("div", t2)
    def div_tt0(self, t2): return self._binary_scalar("div", t2, False)
    def div_t0t(self, t2): return t2._binary_scalar("div", self, True)
    def pow_tt(self, t2): return self._binary("pow", t2)
    def pow_tt0(self, t2): return self._binary_scalar("pow", t2, False)
    def pow_t0t(self, t2): return t2._binary_scalar("pow", self, True)

    # comparisons give 1.0 / 0.0 in the same dtype
    def lt_tt(self, t2): return self._binary("lt", t2)
    def lt_tt0(self, t2): return self._binary_scalar("lt", t2, False)
    def gt_tt(self, t2): return self._binary("gt", t2)
    def gt_tt0(self, t2): return self._binary_scalar("gt", t2, False)
    def le_tt(self, t2): return self._binary("le", t2)
    def le_tt0(self, t2): return self._binary_scalar("le", t2, False)
    def ge_tt(self, t2): return self._binary("ge", t2)
    def ge_tt0(self, t2): return self._binary_scalar("ge", t2, False)

    def add_t2t1(self, t2: "RawTensor") -> "RawTensor":
        """Matrix plus row vector: result[i, j] = self[i, j] + t2[j]."""
        self._check_compatible(t2)
        out_shape = checks.check_can_add_t2t1(self._shape, t2._shape)
        return self._run("add_t2t1", out_shape, t2)

    def add_tt_slice(self, location: Sequence[int], t2: "RawTensor") -> "RawTensor":
        """Copy of self with t2 added into the block starting at `location`."""
        self._check_compatible(t2)
        location = tuple(int(v) for v in location)
        out_shape = checks.check_can_add_slice(self._shape, location, t2._shape)
        return self._run("add_tt_slice", out_shape, location, t2)

    def unary(self, name: str) -> "RawTensor":
        if name not in UNARY_KERNELS:
            raise InvalidParameterError(f"Unknown unary kernel {name!r}")
        return self._run("unary", self._shape, name)

    def neg_t(self): return self.unary("neg")
    def sign_t(self): return self.unary("sign")
    def floor_t(self): return self.unary("floor")
    def ceil_t(self): return self.unary("ceil")
    def round_t(self): return self.unary("round")
    def abs_t(self): return self.unary("abs")
    def relu_t(self): return self.unary("relu")
    def sigmoid_t(self): return self.unary("sigmoid")
    def exp_t(self): return self.unary("exp")
    def log_t(self): return self.unary("log")
    def log10_t(self): return self.unary("log10")
    def sqrt_t(self): return self.unary("sqrt")
    def sin_t(self): return self.unary("sin")
    def cos_t(self): return self.unary("cos")
    def tan_t(self): return self.unary("tan")
    def sinh_t(self): return self.unary("sinh")
    def cosh_t(self): return self.unary("cosh")
    def tanh_t(self): return self.unary("tanh")
    def asin_t(self): return self.unary("asin")
    def acos_t(self): return self.unary("acos")
    def atan_t(self): return self.unary("atan")
    def erf_t(self): return self.unary("erf")

    # ------------------------------------------------------------------ #
    # reductions
    # ------------------------------------------------------------------ #
    def sum_t(self) -> "RawTensor":
        return self._run("sum", Shape(()))

    def sum_t2_dim0(self) -> "RawTensor":
        return self._run("sum_t2_dim0", checks.check_can_sum_dim0(self._shape))

    def max_index(self) -> Tuple[int, ...]:
        return self._run("arg_extreme", self._shape, "max")

    def min_index(self) -> Tuple[int, ...]:
        return self._run("arg_extreme", self._shape, "min")

    # ------------------------------------------------------------------ #
    # linear algebra
    # ------------------------------------------------------------------ #
    def matmul_t2t2(self, t2: "RawTensor") -> "RawTensor":
        self._check_compatible(t2)
        out_shape = checks.check_can_matmul(self._shape, t2._shape)
        return self._run("matmul", out_shape, t2)

    # ------------------------------------------------------------------ #
    # convolution
    # ------------------------------------------------------------------ #
    def conv(self, n_spatial: int, weight: "RawTensor", config: ConvConfig) -> "RawTensor":
        """n-d cross-correlation of self (batch, in_channels, ...) with weight (out, in, ...)."""
        self._check_compatible(weight)
        out_shape = checks.check_can_conv(n_spatial, self._shape, weight._shape, config)
        return self._run("conv", out_shape, n_spatial, weight, config)

    def conv1d(self, weight: "RawTensor", stride: int = 1, padding: int = 0) -> "RawTensor":
        return self.conv(1, weight, ConvConfig.resolve(1, stride=stride, padding=padding))

    def conv2d(self, weight: "RawTensor", strides: Sequence[int] = (1, 1),
               paddings: Sequence[int] = (0, 0)) -> "RawTensor":
        return self.conv(2, weight, ConvConfig.resolve(2, strides=strides, paddings=paddings))

    def conv_input_adjoint(self, n_spatial: int, weight: "RawTensor", input_shape,
                           config: ConvConfig) -> "RawTensor":
        """self is the output adjoint; returns the adjoint w.r.t. the conv input."""
        self._check_compatible(weight)
        out_shape = checks.check_can_conv_input_adjoint(n_spatial, self._shape, weight._shape, input_shape, config)
        return self._run("conv_input_adjoint", out_shape, n_spatial, weight, config)

    def conv_weight_adjoint(self, n_spatial: int, grad_output: "RawTensor", kernel_shape,
                            config: ConvConfig) -> "RawTensor":
        """self is the conv input; returns the adjoint w.r.t. the filters."""
        self._check_compatible(grad_output)
        out_shape = checks.check_can_conv_weight_adjoint(n_spatial, self._shape, grad_output._shape,
                                                         kernel_shape, config)
        return self._run("conv_weight_adjoint", out_shape, n_spatial, grad_output, config)

    # ------------------------------------------------------------------ #
    # pooling
    # ------------------------------------------------------------------ #
    def avgpool(self, n_spatial: int, config: PoolConfig) -> "RawTensor":
        out_shape = checks.check_can_avgpool(n_spatial, self._shape, config)
        return self._run("avgpool", out_shape, n_spatial, config)

    def avgpool_reverse(self, n_spatial: int, original_shape, config: PoolConfig) -> "RawTensor":
        out_shape = checks.check_can_avgpool_reverse(n_spatial, self._shape, original_shape, config)
        return self._run("avgpool_reverse", out_shape, n_spatial, config)

    def avgpool1d(self, config: PoolConfig) -> "RawTensor":
        # through the 2d kernel with a singleton height axis
        checks.check_can_avgpool1d(self._shape, config)
        pooled = self.unsqueeze_t(2).avgpool2d(_lift_1d(config))
        return pooled.squeeze_t(2)

    def avgpool2d(self, config: PoolConfig) -> "RawTensor":
        return self.avgpool(2, config)

    def avgpool3d(self, config: PoolConfig) -> "RawTensor":
        return self.avgpool(3, config)

    def avgpool_reverse1d(self, original_shape, config: PoolConfig) -> "RawTensor":
        original_shape = as_shape(original_shape)
        checks.check_can_avgpool_reverse(1, self._shape, original_shape, config)
        lifted = Shape(list(original_shape.dims[:2]) + [1] + list(original_shape.dims[2:]))
        return self.unsqueeze_t(2).avgpool_reverse2d(lifted, _lift_1d(config)).squeeze_t(2)

    def avgpool_reverse2d(self, original_shape, config: PoolConfig) -> "RawTensor":
        return self.avgpool_reverse(2, original_shape, config)

    def avgpool_reverse3d(self, original_shape, config: PoolConfig) -> "RawTensor":
        return self.avgpool_reverse(3, original_shape, config)

    # ------------------------------------------------------------------ #
    # structural
    # ------------------------------------------------------------------ #
    def transpose_t2(self) -> "RawTensor":
        return self._run("transpose_t2", checks.check_can_transpose2d(self._shape))

    def squeeze_t(self, dim: int = -1) -> "RawTensor":
        return self._run("view", checks.check_can_squeeze(self._shape, dim))

    def unsqueeze_t(self, dim: int) -> "RawTensor":
        return self._run("view", checks.check_can_unsqueeze(self._shape, dim))

    def view_t(self, shape) -> "RawTensor":
        return self._run("view", checks.check_can_view(self._shape, shape))

    def flip_t(self, dims: Sequence[int]) -> "RawTensor":
        dims = tuple(int(d) for d in dims)
        return self._run("flip", checks.check_can_flip(self._shape, dims), dims)

    def dilate_t(self, dilations: Sequence[int]) -> "RawTensor":
        dilations = tuple(int(d) for d in dilations)
        return self._run("dilate", checks.check_can_dilate(self._shape, dilations), dilations)

    def undilate_t(self, dilations: Sequence[int]) -> "RawTensor":
        dilations = tuple(int(d) for d in dilations)
        return self._run("undilate", checks.check_can_undilate(self._shape, dilations), dilations)

    def get_slice(self, bounds: Sequence[Sequence[int]]) -> "RawTensor":
        """Copy of the region addressed by inclusive `bounds`, size-1 axes squeezed."""
        bounds = tuple((int(lo), int(hi)) for lo, hi in bounds)
        return self._run("get_slice", checks.check_can_slice(self._shape, bounds), bounds)

    def get_item(self, index: Sequence[int]) -> float:
        index = tuple(int(i) for i in index)
        checks.check_can_get_item(self._shape, index)
        return self._run("get_item", Shape(()), index)

    def __getitem__(self, index):
        if not isinstance(index, tuple):
            index = (index,)
        return self.get_item(index)

    @classmethod
    def stack_ts(cls, tensors: Sequence["RawTensor"]) -> "RawTensor":
        tensors = list(tensors)
        out_shape = checks.check_can_stack([t._shape for t in tensors])
        for t in tensors[1:]:
            tensors[0]._check_compatible(t)
        return type(tensors[0])._stack(tensors, out_shape)

    def unstack_t(self) -> List["RawTensor"]:
        return self._run("unstack", checks.check_can_unstack(self._shape))

    # ------------------------------------------------------------------ #
    # sampling
    # ------------------------------------------------------------------ #
    def random_multinomial(self, num_samples: int, rng=None) -> "RawTensor":
        """Sample indices (with replacement) from 1d or 2d unnormalised probs."""
        if num_samples < 1:
            raise InvalidParameterError(f"Expecting num_samples >= 1, received {num_samples}")
        in_shape = checks.check_can_multinomial(self._shape)
        if in_shape.length == 1:
            out_shape = Shape([num_samples])
        else:
            out_shape = Shape([in_shape[0], num_samples])
        return self._run("multinomial", out_shape, num_samples, rng)

    # ------------------------------------------------------------------ #
    # comparison of whole tensors
    # ------------------------------------------------------------------ #
    def equals(self, other: "RawTensor") -> bool:
        self._check_compatible(other)
        return self._shape == other._shape and self._run("equals", self._shape, other, 0.0)

    def approximately_equals(self, other: "RawTensor", tolerance: float = 0.01) -> bool:
        self._check_compatible(other)
        return self._shape == other._shape and self._run("equals", self._shape, other, tolerance)

    def __repr__(self):
        return f"{type(self).__name__}(shape={self._shape}, dtype={self._dtype.value})"


def _lift_1d(config: PoolConfig) -> PoolConfig:
    return PoolConfig((1,) + config.kernel_sizes, (1,) + config.strides, (0,) + config.paddings,
                      config.ceil_mode, config.count_include_pad)
