# aad/core/engine.py
from __future__ import annotations

import logging
from typing import Optional

from ...errors import DifferentiationError
from ...shape import checks
from . import tape as tape_mod
from .op import rule_for
from .tensor import Tensor, _as_tensor

logger = logging.getLogger(__name__)


def zero_adjoints(tape: Optional[tape_mod.Tape] = None):
    """
    Clear every adjoint slot of `tape` (default: the active global tape).
    """
    tape = tape_mod.global_tape if tape is None else tape
    tape.adjoints = [None] * len(tape.nodes)


def reverse(output: Tensor, seed=None):
    """
    Run a single reverse pass from `output`.

    Args:
        output: a reverse-mode Tensor (recorded on a tape).
        seed: adjoint of `output`, a Tensor/array of the same shape or a
              scalar; defaults to ones. Adds to any adjoint already present,
              so consecutive passes accumulate unless `zero_adjoints()` is
              called in between.

    Notes:
        - Nodes are visited by decreasing arena index, a reverse topological
          order, so every node's adjoint is complete before it is propagated.
        - An operand used by several nodes receives the sum of all their
          contributions.
    """
    if not output.is_reverse:
        raise DifferentiationError("reverse() expects a tensor recorded on a tape (use reverse_diff())")
    tape = output.tape
    if len(tape.adjoints) != len(tape.nodes):
        tape.adjoints.extend([None] * (len(tape.nodes) - len(tape.adjoints)))

    if seed is None:
        seed = output.ones_like()
    else:
        seed = _as_tensor(seed, like=output).primal
        if seed.dim == 0 and output.dim != 0:
            seed = output.zeros_like() + seed
        checks.check_can_elementwise("reverse seed", output.shape, seed.shape)
    _accumulate(tape, output.node_index, seed)

    visited = 0
    for i in range(output.node_index, -1, -1):
        node = tape.nodes[i]
        adj = tape.adjoints[i]
        if adj is None or node.is_leaf:
            continue
        visited += 1
        rule = rule_for(node.op)
        for k, j in enumerate(node.operands):
            if j is None:
                continue
            _accumulate(tape, j, rule.adjoint(node.op, node.inputs, adj, k))
    logger.debug("reverse sweep from node %d: %d of %d nodes propagated", output.node_index, visited, len(tape))


def _accumulate(tape: tape_mod.Tape, index: int, contribution: Tensor):
    contribution = contribution.primal
    current = tape.adjoints[index]
    tape.adjoints[index] = contribution if current is None else current + contribution
