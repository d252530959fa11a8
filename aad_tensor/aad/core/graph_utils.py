"""
Graph utilities: print and analyse the structure of a tape arena.
"""

from collections import Counter
from typing import Dict, List

import numpy as np


def _fan_counts(tape):
    n_nodes = len(tape.nodes)
    fan_ins = [sum(1 for j in node.operands if j is not None) for node in tape.nodes]
    fan_outs = [0] * n_nodes
    for node in tape.nodes:
        for j in node.operands:
            if j is not None and j < n_nodes:
                fan_outs[j] += 1
    return fan_ins, fan_outs


def _op_name(node) -> str:
    return "leaf" if node.op is None else node.op.tag


def get_graph_stats(tape) -> Dict:
    """
    Graph statistics (nothing printed).

    Returns:
        dict with node/edge counts, fan-in/fan-out extremes and averages and
        a per-op-tag count
    """
    if not tape.nodes:
        return {
            'nodes': 0,
            'edges': 0,
            'leaves': 0,
            'max_fan_in': 0,
            'avg_fan_in': 0.0,
            'max_fan_out': 0,
            'avg_fan_out': 0.0,
            'operations': {}
        }

    n_nodes = len(tape.nodes)
    fan_ins, fan_outs = _fan_counts(tape)
    op_counter = Counter(_op_name(node) for node in tape.nodes)

    return {
        'nodes': n_nodes,
        'edges': sum(fan_ins),
        'leaves': op_counter.get('leaf', 0),
        'max_fan_in': max(fan_ins),
        'avg_fan_in': float(np.mean(fan_ins)),
        'max_fan_out': max(fan_outs),
        'avg_fan_out': float(np.mean(fan_outs)),
        'operations': dict(op_counter)
    }


def print_graph_summary(tape, detailed: bool = False) -> Dict:
    """
    Print a summary of the computation graph.

    Args:
        tape: a Tape (e.g. the active global tape)
        detailed: also list the first 100 nodes

    Returns:
        the statistics dict of `get_graph_stats`
    """
    stats = get_graph_stats(tape)
    if stats['nodes'] == 0:
        print("Empty computation graph")
        return stats

    print("\n" + "=" * 70)
    print("COMPUTATION GRAPH SUMMARY")
    print("=" * 70)
    print(f"Total nodes:        {stats['nodes']:,}")
    print(f"Total edges:        {stats['edges']:,}")
    print(f"Leaves:             {stats['leaves']:,}")
    print(f"Max fan-in:         {stats['max_fan_in']}")
    print(f"Avg fan-in:         {stats['avg_fan_in']:.2f}")
    print(f"Max fan-out:        {stats['max_fan_out']}")
    print(f"Avg fan-out:        {stats['avg_fan_out']:.2f}")
    print()
    print("Operation breakdown:")
    for op_type, count in Counter(stats['operations']).most_common(10):
        pct = 100.0 * count / stats['nodes']
        print(f"  {op_type:20s}: {count:6,} ({pct:5.1f}%)")

    if detailed:
        print()
        print("=" * 70)
        print("DETAILED NODE LIST (first 100 nodes)")
        print("=" * 70)
        for line in describe_nodes(tape, max_nodes=100):
            print(line)

    print("=" * 70 + "\n")
    return stats


def describe_nodes(tape, max_nodes: int = 20) -> List[str]:
    """One line per node: index, op, shape and operand indices."""
    lines = []
    for i, node in enumerate(tape.nodes[:max_nodes]):
        if node.is_leaf:
            lines.append(f"Node {i:4d}: {'leaf':20s} {str(node.shape):12s} [leaf/input]")
            continue
        parents = ", ".join("const" if j is None else f"Node{j}" for j in node.operands)
        lines.append(f"Node {i:4d}: {_op_name(node):20s} {str(node.shape):12s} <- [{parents}]")
    if len(tape.nodes) > max_nodes:
        lines.append(f"... ({len(tape.nodes) - max_nodes} more nodes)")
    return lines
