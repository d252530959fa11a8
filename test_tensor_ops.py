"""
Tensor facade, op table and tape protocol (forward and reverse mode).
"""

import numpy as np
import pytest

from aad_tensor.aad import Tape, reverse, use_tape, zero_adjoints
from aad_tensor.aad.core import OP_TABLE, Op, rule_for, stack, tensor, zeros
from aad_tensor.aad.core.graph_utils import describe_nodes, get_graph_stats
from aad_tensor.aad.core.seeds import grad, grads_list, jvp, value, vjp
from aad_tensor.errors import DifferentiationError, InvalidParameterError, ShapeMismatchError


def test_constant_arithmetic():
    x = tensor([1.0, 2.0, 3.0])
    y = (x * 2.0 + 1.0) / 2.0 - x
    assert y.is_constant
    np.testing.assert_allclose(y.to_array(), [0.5, 0.5, 0.5])
    np.testing.assert_allclose((1.0 - x).to_array(), [0.0, -1.0, -2.0])
    np.testing.assert_allclose((2.0 ** x).to_array(), [2.0, 4.0, 8.0])
    assert (x.sum()).to_scalar() == 6.0


def test_matrix_plus_row_vector():
    m = tensor([[1.0, 2.0], [3.0, 4.0]])
    v = tensor([10.0, 20.0])
    np.testing.assert_allclose((m + v).to_array(), [[11.0, 22.0], [13.0, 24.0]])
    np.testing.assert_allclose((m - v).to_array(), [[-9.0, -18.0], [-7.0, -16.0]])
    with pytest.raises(ShapeMismatchError):
        m * v


def test_unknown_op_tag():
    with pytest.raises(InvalidParameterError):
        rule_for(Op("no_such_op"))
    for tag in ("add_tt", "matmul", "conv", "avgpool", "avgpool_reverse", "stack", "exp"):
        assert tag in OP_TABLE


def test_reverse_records_nodes_in_order():
    with use_tape() as tape:
        x = tensor([1.0, 2.0]).reverse_diff()
        y = (x * x).sum()
        assert len(tape) == 3
        assert tape.nodes[0].is_leaf
        assert tape.nodes[1].op.tag == "mul_tt"
        assert tape.nodes[1].operands == (0, 0)
        assert tape.nodes[2].operands == (1,)
        reverse(y)
        np.testing.assert_allclose(x.adjoint.to_array(), [2.0, 4.0])


def test_fan_out_accumulates_both_contributions():
    # y = sin(x) + x * 3 : dy/dx = cos(x) + 3
    with use_tape():
        x = tensor([0.5, 1.0]).reverse_diff()
        a = x.sin()
        b = x * 3.0
        y = (a + b).sum()
        reverse(y)
        np.testing.assert_allclose(x.adjoint.to_array(), np.cos([0.5, 1.0]) + 3.0)

    # same graph, branches created in the other order
    with use_tape():
        x = tensor([0.5, 1.0]).reverse_diff()
        b = x * 3.0
        a = x.sin()
        y = (b + a).sum()
        reverse(y)
        np.testing.assert_allclose(x.adjoint.to_array(), np.cos([0.5, 1.0]) + 3.0)


def test_zero_adjoints_between_passes():
    with use_tape() as tape:
        x = tensor(3.0).reverse_diff()
        y = x * x
        reverse(y)
        assert x.adjoint.to_scalar() == pytest.approx(6.0)
        zero_adjoints(tape)
        assert tape.adjoints == [None, None]
        reverse(y, seed=0.5)
        assert x.adjoint.to_scalar() == pytest.approx(3.0)


def test_seed_must_match_output_shape():
    with use_tape():
        x = tensor([1.0, 2.0, 3.0]).reverse_diff()
        with pytest.raises(ShapeMismatchError):
            reverse(x, seed=[1.0, 2.0])
        y = x * 2.0
        with pytest.raises(ShapeMismatchError):
            reverse(y, seed=[1.0, 2.0])
        reverse(y, seed=0.5)
        np.testing.assert_allclose(x.adjoint.to_array(), [1.0, 1.0, 1.0])


def test_explicit_tape_argument():
    tape = Tape()
    x = tensor([1.0, 2.0]).reverse_diff(tape)
    y = (x * x).sum()
    assert y.tape is tape
    reverse(y)
    np.testing.assert_allclose(x.adjoint.to_array(), [2.0, 4.0])


def test_constant_operand_gets_no_node():
    with use_tape() as tape:
        x = tensor([1.0, 2.0]).reverse_diff()
        c = tensor([5.0, 7.0])
        y = (x * c).sum()
        assert tape.nodes[1].operands == (0, None)
        reverse(y)
        np.testing.assert_allclose(x.adjoint.to_array(), [5.0, 7.0])


def test_forward_mode_tangent():
    x = tensor([1.0, 2.0]).forward_diff([1.0, 0.0])
    y = x * x * x
    assert y.is_forward
    np.testing.assert_allclose(y.tangent.to_array(), [3.0, 0.0])
    np.testing.assert_allclose(y.derivative.to_array(), [3.0, 0.0])


def test_mixing_forward_and_reverse_is_an_error():
    with use_tape():
        r = tensor([1.0]).reverse_diff()
        f = tensor([1.0]).forward_diff([1.0])
        with pytest.raises(DifferentiationError):
            r + f


def test_operands_from_different_tapes():
    a = tensor([1.0]).reverse_diff(Tape())
    b = tensor([1.0]).reverse_diff(Tape())
    with pytest.raises(DifferentiationError):
        a * b


def test_reverse_requires_a_tape():
    with pytest.raises(DifferentiationError):
        reverse(tensor([1.0]))
    with pytest.raises(DifferentiationError):
        tensor([1.0]).derivative


def test_grad_helpers():
    g = grad(lambda x: (x * x).sum(), [1.0, -2.0])
    np.testing.assert_allclose(value(g), [2.0, -4.0])
    gs = grads_list(lambda xs: (xs[0] * xs[0]).sum() + (3.0 * xs[1]).sum(), [[2.0], [4.0]])
    np.testing.assert_allclose(value(gs[0]), [4.0])
    np.testing.assert_allclose(value(gs[1]), [3.0])
    with pytest.raises(DifferentiationError):
        grad(lambda x: x * 2.0, [1.0, 2.0])


def test_jvp_and_vjp_agree_with_jacobian():
    a = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
    f = lambda x: (tensor(a) @ x.view([2, 1])).view([3]).exp()
    x0 = np.array([0.1, -0.2])
    jac = np.exp(a @ x0)[:, None] * a

    _, tangent = jvp(f, x0, [1.0, 2.0])
    np.testing.assert_allclose(value(tangent), jac @ np.array([1.0, 2.0]))

    _, adjoint = vjp(f, x0, [1.0, 0.0, -1.0])
    np.testing.assert_allclose(value(adjoint), np.array([1.0, 0.0, -1.0]) @ jac)


def test_indexing_and_unstack():
    m = tensor([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    np.testing.assert_array_equal(m[1].to_array(), [4.0, 5.0, 6.0])
    assert m[1, 2].to_scalar() == 6.0
    assert m[-1, 0].to_scalar() == 4.0
    np.testing.assert_array_equal(m[:, 1:].to_array(), [[2.0, 3.0], [5.0, 6.0]])
    np.testing.assert_array_equal(m[:, 0:1].to_array(), [[1.0], [4.0]])
    rows = m.unstack()
    assert len(rows) == 2 and rows[0].shape == (3,)
    with pytest.raises(InvalidParameterError):
        m[::2]


def test_indexing_gradient_scatters_back():
    with use_tape():
        m = tensor([[1.0, 2.0], [3.0, 4.0]]).reverse_diff()
        y = m[0, 1] * 2.0 + m[1].sum()
        reverse(y)
        np.testing.assert_allclose(m.adjoint.to_array(), [[0.0, 2.0], [1.0, 1.0]])


def test_structural_gradients():
    def f(x):
        y = x.view([2, 3]).transpose().flip([0]).unsqueeze(0).squeeze(0)
        return (y * tensor([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])).sum()

    g = grad(f, np.arange(6.0))
    # y[i, j] = x[j, 2 - i] in view coordinates
    weights = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
    expected = np.zeros((2, 3))
    for i in range(3):
        for j in range(2):
            expected[j, 2 - i] = weights[i, j]
    np.testing.assert_allclose(value(g), expected.reshape(-1))


def test_dilate_and_stack_gradients():
    g = grad(lambda x: (x.dilate([2]) * tensor([1.0, 9.0, 2.0, 9.0, 3.0])).sum(), [1.0, 1.0, 1.0])
    np.testing.assert_allclose(value(g), [1.0, 2.0, 3.0])

    gs = grads_list(lambda xs: (stack(xs) * tensor([[1.0, 2.0], [3.0, 4.0]])).sum(), [[0.0, 0.0], [0.0, 0.0]])
    np.testing.assert_allclose(value(gs[0]), [1.0, 2.0])
    np.testing.assert_allclose(value(gs[1]), [3.0, 4.0])


def test_comparisons_are_constants():
    with use_tape():
        x = tensor([1.0, 3.0]).reverse_diff()
        mask = x > tensor([2.0, 2.0])
        assert mask.is_constant
        np.testing.assert_array_equal(mask.to_array(), [0.0, 1.0])


def test_comparisons_with_scalars():
    x = tensor([1.0, 2.0, 3.0])
    np.testing.assert_array_equal((x < 2.0).to_array(), [1.0, 0.0, 0.0])
    np.testing.assert_array_equal((x >= 2.0).to_array(), [0.0, 1.0, 1.0])
    # scalar on the left goes through the mirrored operator
    np.testing.assert_array_equal((2.0 < x).to_array(), [0.0, 0.0, 1.0])
    np.testing.assert_array_equal((2.0 >= x).to_array(), [1.0, 1.0, 0.0])
    np.testing.assert_array_equal(tensor(2.0).le(x).to_array(), [0.0, 1.0, 1.0])
    np.testing.assert_array_equal(x.gt(tensor(1.0)).to_array(), [0.0, 1.0, 1.0])
    assert (tensor(1.0) < tensor(2.0)).to_scalar() == 1.0
    with pytest.raises(ShapeMismatchError):
        x < tensor([1.0, 2.0])


def test_graph_stats():
    with use_tape() as tape:
        x = tensor([1.0, 2.0]).reverse_diff()
        y = (x * x + x).sum()
        stats = get_graph_stats(tape)
        assert stats["nodes"] == 4
        assert stats["leaves"] == 1
        assert stats["edges"] == 5
        assert stats["max_fan_out"] == 3
        assert stats["operations"]["mul_tt"] == 1
        lines = describe_nodes(tape)
        assert len(lines) == 4
        assert "leaf" in lines[0]
    assert get_graph_stats(Tape())["nodes"] == 0
    assert y.node_index == 3


def test_zeros_constructor_and_repr():
    z = zeros([2, 2])
    assert z.shape == (2, 2)
    assert "const" in repr(z)
    assert len(z) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
