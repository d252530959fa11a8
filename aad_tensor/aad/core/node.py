# aad/core/node.py
from dataclasses import dataclass
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class Node:
    """
    One entry of the tape arena, produced by a primitive operation.

    Attributes
    ----------
    op       : Op | None
        The operation that produced this node (tag + bound parameters).
        None for a leaf created by `Tensor.reverse_diff()`.
    operands : tuple of (int | None)
        Arena index of each operand; None for an operand that is a constant
        (it receives no adjoint).
    inputs   : tuple of Tensor
        Primal values of the operands (constant tensors), which is all the
        reverse rule needs to compute operand adjoints.
    shape    : Shape
        Shape of the node's value; the adjoint has the same shape.
    """
    op: Optional[Any]
    operands: Tuple[Optional[int], ...]
    inputs: Tuple[Any, ...]
    shape: Any

    @property
    def is_leaf(self) -> bool:
        return self.op is None
