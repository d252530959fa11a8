"""
Reverse-mode gradients vs centered finite differences (bumping).
"""

import numpy as np
import pytest

from aad_tensor.aad import ops
from aad_tensor.aad.core import tensor
from aad_tensor.aad.core.seeds import bumping_grad, grad, jvp, value
from aad_tensor.backend import RandomSource

RTOL = 1e-3
ATOL = 1e-6


def _random(shape, seed, low=-1.0, high=1.0):
    rng = np.random.default_rng(seed)
    return rng.uniform(low, high, size=shape)


def _check(f, x0):
    g_aad = value(grad(f, x0))
    g_bump = value(bumping_grad(f, x0))
    np.testing.assert_allclose(g_aad, g_bump, rtol=RTOL, atol=ATOL)


def test_add():
    c = tensor(_random((3, 4), 1))
    _check(lambda x: ((x + c) * (x + 2.0)).sum(), _random((3, 4), 2))


def test_mul():
    c = tensor(_random((5,), 3))
    _check(lambda x: (x * c * x).sum(), _random((5,), 4))


def test_pow():
    # positive base so that the exponent partial (log) is defined
    c = tensor(_random((4,), 5, 0.5, 2.0))
    _check(lambda x: (x ** c).sum() + (x ** 3.0).sum() + (2.0 ** x).sum(), _random((4,), 6, 0.5, 2.0))
    _check(lambda x: (c ** x).sum(), _random((4,), 7))


def test_matmul():
    a = tensor(_random((2, 3), 8))
    b = tensor(_random((4, 2), 9))
    _check(lambda x: (a @ x.view([3, 4]) @ b).tanh().sum(), _random((12,), 10))


def test_conv1d():
    x = tensor(_random((2, 3, 7), 11))
    _check(lambda w: ops.conv1d(x, w, stride=2, padding=1).sin().sum(), _random((4, 3, 3), 12))
    w = tensor(_random((4, 3, 3), 13))
    _check(lambda x: (ops.conv1d(x, w, stride=2, padding=1) ** 2.0).sum(), _random((2, 3, 7), 14))


def test_conv2d():
    w = tensor(_random((2, 1, 2, 3), 15))
    _check(lambda x: ops.conv2d(x, w, strides=[1, 2], paddings=[1, 0]).exp().sum(), _random((1, 1, 4, 5), 16))


def test_avgpool2d():
    _check(lambda x: (x.avgpool2d(kernel_size=2, stride=1, padding=1) ** 2.0).sum(), _random((1, 2, 4, 4), 17))
    _check(lambda x: x.avgpool2d(kernel_sizes=[2, 3], count_include_pad=False, paddings=[1, 1],
                                 ceil_mode=True).sigmoid().sum(),
           _random((2, 1, 5, 6), 18))


def test_avgpool3d():
    # 5d input: values are read without the 4-axis array conversion limit
    _check(lambda x: (x.avgpool3d(kernel_size=2, stride=1, padding=1) ** 2.0).sum(), _random((1, 2, 3, 4, 5), 27))
    _check(lambda x: x.avgpool3d(kernel_sizes=[2, 2, 3], strides=[2, 1, 2], paddings=[1, 0, 1], ceil_mode=True,
                                 count_include_pad=False).tanh().sum(),
           _random((2, 1, 4, 3, 5), 28))


def test_value_of_5d_tensor():
    x0 = _random((1, 2, 2, 2, 3), 29)
    np.testing.assert_array_equal(value(tensor(x0)), x0)
    g = grad(lambda x: (x * x).sum(), x0)
    np.testing.assert_allclose(value(g), 2.0 * x0)


@pytest.mark.parametrize("name", ["exp", "sin", "cos", "tanh", "sigmoid", "atan", "erf", "sinh", "cosh"])
def test_elementwise_any_input(name):
    _check(lambda x: getattr(x, name)().sum(), _random((6,), 19))


@pytest.mark.parametrize("name", ["log", "log10", "sqrt", "asin", "acos", "tan"])
def test_elementwise_restricted_domain(name):
    _check(lambda x: getattr(x, name)().sum(), _random((6,), 20, 0.1, 0.9))


def test_division_and_sub():
    c = tensor(_random((4,), 21, 1.0, 2.0))
    _check(lambda x: (c / (x + 3.0) - x / c + 1.0 / (x + 3.0) - 2.0).sum(), _random((4,), 22))


def test_sum_dim0_and_row_vector():
    v = tensor(_random((3,), 23))
    _check(lambda x: ((x.view([2, 3]) + v).sum_dim0() ** 2.0).sum(), _random((6,), 24))


def test_forward_mode_matches_reverse_mode():
    c = tensor(_random((3,), 25))
    f = lambda x: ((x * c).exp() + x.sin()).sum()
    x0 = _random((3,), 26)
    g = value(grad(f, x0))
    for i in range(3):
        e = np.zeros(3)
        e[i] = 1.0
        _, t = jvp(f, x0, e)
        assert value(t) == pytest.approx(g[i], rel=1e-9)


def test_random_point_from_random_source():
    rng = RandomSource(123)
    x0 = rng.normal(5)
    _check(lambda x: (x * x * x - x.cos()).sum(), x0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
