# aad/ops/transcendental.py
"""
Elementwise unary primitives.

Each one is defined by its kernel name and a local partial f'(a); the rules
are then
    forward : ad * f'(a)
    reverse : td * f'(a)
"""

import math

from ..core.op import Op, UnaryRule, register
from ..core.tensor import Tensor, _as_tensor, apply_op

_LN10 = math.log(10.0)
_TWO_OVER_SQRT_PI = 2.0 / math.sqrt(math.pi)


def _zero(a: Tensor) -> Tensor:
    return a.zeros_like()


def _sigmoid_partial(a: Tensor) -> Tensor:
    s = a.sigmoid()
    return s * (1.0 - s)


LOCAL_PARTIALS = {
    "abs": lambda a: a.sign(),
    "sign": _zero,
    "floor": _zero,
    "ceil": _zero,
    "round": _zero,
    "relu": lambda a: a.relu().sign(),
    "sigmoid": _sigmoid_partial,
    "exp": lambda a: a.exp(),
    "log": lambda a: 1.0 / a,
    "log10": lambda a: 1.0 / (a * _LN10),
    "sqrt": lambda a: 0.5 / a.sqrt(),
    "sin": lambda a: a.cos(),
    "cos": lambda a: -a.sin(),
    "tan": lambda a: 1.0 + a.tan() * a.tan(),
    "sinh": lambda a: a.cosh(),
    "cosh": lambda a: a.sinh(),
    "tanh": lambda a: 1.0 - a.tanh() * a.tanh(),
    "asin": lambda a: 1.0 / (1.0 - a * a).sqrt(),
    "acos": lambda a: -1.0 / (1.0 - a * a).sqrt(),
    "atan": lambda a: 1.0 / (1.0 + a * a),
    "erf": lambda a: _TWO_OVER_SQRT_PI * (-(a * a)).exp(),
}


def _elementwise_rule(name: str, local_partial) -> UnaryRule:
    return UnaryRule(
        compute=lambda op, a: a.unary(name),
        forward=lambda op, fab, a, ad: ad * local_partial(a),
        reverse=lambda op, a, td: td * local_partial(a),
    )


for _name, _partial in LOCAL_PARTIALS.items():
    register(_name, _elementwise_rule(_name, _partial))


def _unary(name):
    def f(x) -> Tensor:
        return apply_op(Op(name), _as_tensor(x))
    f.__name__ = name
    f.__doc__ = f"Elementwise {name}."
    return f


abs = _unary("abs")
sign = _unary("sign")
floor = _unary("floor")
ceil = _unary("ceil")
round = _unary("round")
relu = _unary("relu")
sigmoid = _unary("sigmoid")
exp = _unary("exp")
log = _unary("log")
log10 = _unary("log10")
sqrt = _unary("sqrt")
sin = _unary("sin")
cos = _unary("cos")
tan = _unary("tan")
sinh = _unary("sinh")
cosh = _unary("cosh")
tanh = _unary("tanh")
asin = _unary("asin")
acos = _unary("acos")
atan = _unary("atan")
erf = _unary("erf")
