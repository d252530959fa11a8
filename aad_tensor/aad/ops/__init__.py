# aad/ops/__init__.py

# Importing the modules fills the op table
from . import arithmetic
from . import transcendental
from . import structural
from . import linalg
from . import conv
from . import pooling

# Convenience re-exports so users can do: from aad_tensor.aad.ops import mul, exp, ...
from .arithmetic import add, sub, mul, div, neg, pow, sum, sum_dim0
from .transcendental import (
    abs, sign, floor, ceil, round, relu, sigmoid, exp, log, log10, sqrt,
    sin, cos, tan, sinh, cosh, tanh, asin, acos, atan, erf,
)
from .structural import (
    transpose, view, squeeze, unsqueeze, flip, dilate, undilate, slice_t, add_slice, stack, unstack,
)
from .linalg import matmul
from .conv import conv1d, conv2d, conv_input_adjoint, conv_weight_adjoint
from .pooling import (
    avgpool1d, avgpool2d, avgpool3d, avgpool_reverse1d, avgpool_reverse2d, avgpool_reverse3d,
)

__all__ = [
    "add", "sub", "mul", "div", "neg", "pow", "sum", "sum_dim0",
    "abs", "sign", "floor", "ceil", "round", "relu", "sigmoid", "exp", "log", "log10", "sqrt",
    "sin", "cos", "tan", "sinh", "cosh", "tanh", "asin", "acos", "atan", "erf",
    "transpose", "view", "squeeze", "unsqueeze", "flip", "dilate", "undilate", "slice_t", "add_slice",
    "stack", "unstack",
    "matmul",
    "conv1d", "conv2d", "conv_input_adjoint", "conv_weight_adjoint",
    "avgpool1d", "avgpool2d", "avgpool3d", "avgpool_reverse1d", "avgpool_reverse2d", "avgpool_reverse3d",
]
