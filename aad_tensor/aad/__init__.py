# aad/__init__.py
# Automatic differentiation over tensors

from .core.tensor import Tensor
from .core.tape import Tape, global_tape, use_tape
from .core.engine import reverse, zero_adjoints
from .core.seeds import value, grad, grads_list, jvp, vjp, bumping_grad

# Primitive ops (importing fills the op table)
from . import ops

# Lazy higher-order forward module
from . import forward_n
from .forward_n import DualN, dual_n, dual_n_act, dual_n_set, diffn

__all__ = [
    # Core
    'Tensor',
    'Tape',
    'global_tape',
    'use_tape',
    # Engine
    'reverse',
    'zero_adjoints',
    'value',
    'grad',
    'grads_list',
    'jvp',
    'vjp',
    'bumping_grad',
    # Ops
    'ops',
    # Higher-order forward
    'forward_n',
    'DualN',
    'dual_n',
    'dual_n_act',
    'dual_n_set',
    'diffn',
]
