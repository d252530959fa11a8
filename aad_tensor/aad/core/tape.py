# aad/core/tape.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import List, Optional, Tuple

from .node import Node

logger = logging.getLogger(__name__)


class Tape:
    """
    Arena of Nodes recorded in forward (creation) order, plus one adjoint
    slot per node.

    A node only refers to earlier nodes, so walking the arena by decreasing
    index is a reverse topological order. `reset()` ends the life of the
    graph recorded so far.
    """

    def __init__(self):
        self.nodes: List[Node] = []
        self.adjoints: List = []

    def __len__(self):
        return len(self.nodes)

    def reset(self):
        self.nodes.clear()
        self.adjoints.clear()

    def push_node(self, *, op, operands: Tuple[Optional[int], ...], inputs: Tuple, shape) -> int:
        """Append a Node and its (empty) adjoint slot; return the arena index."""
        self.nodes.append(Node(op=op, operands=tuple(operands), inputs=tuple(inputs), shape=shape))
        self.adjoints.append(None)
        index = len(self.nodes) - 1
        if op is None:
            logger.debug("tape %x: leaf %d of shape %s", id(self), index, shape)
        return index


# Global tape used when no other tape is selected
global_tape = Tape()


@contextmanager
def use_tape(tape: Optional[Tape] = None):
    """
    Context manager to temporarily use a fresh tape:
        with use_tape():
            x = tensor([1.0, 2.0]).reverse_diff()
            ... build computation ...
            reverse(y)
    """
    from . import tape as _tape_mod  # local import to avoid cycles
    prev = _tape_mod.global_tape
    try:
        _tape_mod.global_tape = Tape() if tape is None else tape
        yield _tape_mod.global_tape
    finally:
        _tape_mod.global_tape = prev
