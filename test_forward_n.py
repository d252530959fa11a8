"""
Lazy higher-order forward mode (DualN) on scalar and small vector functions.
"""

import math

import numpy as np
import pytest

from aad_tensor.aad import forward_n as fn
from aad_tensor.aad.forward_n import DualN, dual_n, dual_n_act, dual_n_set
from aad_tensor.errors import InvalidParameterError


def test_cube_derivative_chain():
    y = dual_n_act(2.0) ** 3.0
    assert [fn.nth_derivative(y, n) for n in range(5)] == pytest.approx([8.0, 12.0, 12.0, 6.0, 0.0])
    assert fn.diffn(3, lambda x: x * x * x, 2.0) == pytest.approx(6.0)
    assert fn.diffn_value(0, lambda x: x * x * x, 2.0) == pytest.approx((8.0, 8.0))


def test_polynomial_derivatives_past_degree_at_zero():
    assert fn.diffn(3, lambda x: x ** 2, 0.0) == 0.0
    assert fn.diffn(4, lambda x: x ** 3, 0.0) == 0.0
    assert fn.diffn(3, lambda x: x ** 3, 0.0) == pytest.approx(6.0)
    assert fn.diffn(1, lambda x: x ** 0, 0.0) == 0.0


def test_tangent_is_evaluated_once():
    calls = []

    def thunk():
        calls.append(1)
        return DualN(4.0)

    d = DualN(1.0, thunk)
    assert d.t.p == 4.0
    assert d.t.p == 4.0
    assert len(calls) == 1


def test_constants_have_zero_derivatives():
    c = dual_n(5.0)
    assert fn.primal(c) == 5.0
    assert fn.tangent(c) == 0.0
    assert fn.tangent2(c) == 0.0
    assert fn.tangent(3.0) == 0.0
    d = dual_n_set(1.0, 2.5)
    assert fn.tangent(d) == 2.5 and fn.tangent2(d) == 0.0


def test_negative_order_is_rejected():
    with pytest.raises(InvalidParameterError):
        fn.diff_lazy(-1, dual_n_act(1.0))
    d = dual_n_act(1.0)
    assert fn.diff_lazy(0, d) is d


def test_diff_and_diff2():
    f = lambda x: fn.exp(x) * fn.sin(x)
    x = 0.7
    assert fn.diff(f, x) == pytest.approx(math.exp(x) * (math.sin(x) + math.cos(x)))
    assert fn.diff2(f, x) == pytest.approx(2.0 * math.exp(x) * math.cos(x))
    v, d1, d2 = fn.diff2_all(lambda x: 1.0 / x, 2.0)
    assert (v, d1, d2) == pytest.approx((0.5, -0.25, 0.25))


def test_arithmetic_with_plain_numbers():
    f = lambda x: (3.0 - x) * 2.0 + 1.0 / (x + 1.0) - x / 4.0 + 2.0 ** x
    x = 1.5
    expected = -2.0 - 1.0 / (x + 1.0) ** 2 - 0.25 + math.log(2.0) * 2.0 ** x
    assert fn.diff(f, x) == pytest.approx(expected)
    assert fn.diff(lambda x: -(+x), 1.0) == -1.0


def test_power_with_dual_exponent():
    # d/dx x^x = x^x (log x + 1)
    x = 1.3
    assert fn.diff(lambda x: x ** x, x) == pytest.approx(x ** x * (math.log(x) + 1.0))


@pytest.mark.parametrize("name,derivative,x", [
    ("log", lambda x: 1.0 / x, 0.8),
    ("exp", math.exp, 0.3),
    ("sin", math.cos, 0.4),
    ("cos", lambda x: -math.sin(x), 0.4),
    ("tan", lambda x: 1.0 / math.cos(x) ** 2, 0.4),
    ("sqrt", lambda x: 0.5 / math.sqrt(x), 2.0),
    ("sinh", math.cosh, 0.5),
    ("cosh", math.sinh, 0.5),
    ("tanh", lambda x: 1.0 - math.tanh(x) ** 2, 0.5),
    ("asin", lambda x: 1.0 / math.sqrt(1.0 - x * x), 0.3),
    ("acos", lambda x: -1.0 / math.sqrt(1.0 - x * x), 0.3),
    ("atan", lambda x: 1.0 / (1.0 + x * x), 0.3),
])
def test_elementary_functions(name, derivative, x):
    f = getattr(fn, name)
    value, d = fn.diff_value(f, x)
    assert value == pytest.approx(getattr(math, name)(x))
    assert d == pytest.approx(derivative(x))
    # plain floats go straight to math
    assert f(x) == pytest.approx(getattr(math, name)(x))


def test_second_derivative_against_finite_differences():
    f = lambda x: fn.tanh(x) * fn.sqrt(x) + fn.atan(x * x)
    x, h = 0.9, 1e-4
    g = lambda x: fn.diff(f, x)
    assert fn.diff2(f, x) == pytest.approx((g(x + h) - g(x - h)) / (2.0 * h), rel=1e-6)


def test_gradient_directional_and_laplacian():
    f = lambda x: x[0] * x[0] * x[1] + fn.sin(x[1])
    x = [1.5, 0.5]
    expected = np.array([2.0 * x[0] * x[1], x[0] ** 2 + math.cos(x[1])])
    value, g = fn.grad_value(f, x)
    assert value == pytest.approx(x[0] ** 2 * x[1] + math.sin(x[1]))
    np.testing.assert_allclose(g, expected)
    assert fn.gradv(f, x, [1.0, -2.0]) == pytest.approx(expected @ np.array([1.0, -2.0]))
    assert fn.laplacian(f, x) == pytest.approx(2.0 * x[1] - math.sin(x[1]))


def test_jacobians():
    f = lambda x: [x[0] * x[1], fn.exp(x[0]), x[1] * 3.0]
    x = [0.5, 2.0]
    jac = np.array([[x[1], x[0]], [math.exp(x[0]), 0.0], [0.0, 3.0]])
    value, j = fn.jacobian_value(f, x)
    np.testing.assert_allclose(value, [1.0, math.exp(0.5), 6.0])
    np.testing.assert_allclose(j, jac)
    np.testing.assert_allclose(fn.jacobian_t(f, x), jac.T)
    np.testing.assert_allclose(fn.jacobianv(f, x, [1.0, 1.0]), jac @ np.ones(2))


def test_repr_and_float():
    d = dual_n_act(2.0)
    assert float(d) == 2.0
    assert repr(d) == "DualN(2.0, 1.0)"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
