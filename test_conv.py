"""
Convolution (cross-correlation) and its input/weight adjoints.
"""

import numpy as np
import pytest

from aad_tensor.aad import ops
from aad_tensor.aad.core import tensor
from aad_tensor.aad.core.seeds import grad, grads_list, jvp, value
from aad_tensor.config import ConvConfig
from aad_tensor.errors import InvalidParameterError, ShapeMismatchError


def _random(shape, seed):
    return np.random.default_rng(seed).normal(size=shape)


def _reference_conv1d(x, w, stride, padding):
    """Direct loop over output positions."""
    xp = np.pad(x, ((0, 0), (0, 0), (padding, padding)))
    k = w.shape[2]
    n_out = (xp.shape[2] - k) // stride + 1
    out = np.zeros((x.shape[0], w.shape[0], n_out))
    for b in range(x.shape[0]):
        for o in range(w.shape[0]):
            for t in range(n_out):
                out[b, o, t] = np.sum(xp[b, :, t * stride:t * stride + k] * w[o])
    return out


def test_conv1d_is_not_flipped():
    x = tensor([[[1.0, 2.0, 3.0, 4.0]]])
    w = tensor([[[1.0, 0.0]]])
    y = ops.conv1d(x, w)
    assert y.shape == (1, 1, 3)
    np.testing.assert_allclose(y.to_array(), [[[1.0, 2.0, 3.0]]])


@pytest.mark.parametrize("stride,padding", [(1, 0), (2, 0), (1, 2), (3, 1)])
def test_conv1d_matches_direct_loop(stride, padding):
    x = _random((2, 3, 9), 1)
    w = _random((4, 3, 3), 2)
    y = tensor(x).conv1d(tensor(w), stride=stride, padding=padding)
    np.testing.assert_allclose(y.to_array(), _reference_conv1d(x, w, stride, padding), atol=1e-12)


def test_conv2d_known_values():
    x = tensor(np.arange(9.0).reshape(1, 1, 3, 3))
    w = tensor(np.array([[[[1.0, 0.0], [0.0, -1.0]]]]))
    y = ops.conv2d(x, w)
    # x[i, j] - x[i + 1, j + 1] = -4 everywhere
    np.testing.assert_allclose(y.to_array(), np.full((1, 1, 2, 2), -4.0))
    padded = ops.conv2d(x, w, padding=1)
    assert padded.shape == (1, 1, 4, 4)
    strided = ops.conv2d(x, w, strides=[2, 1], paddings=[1, 0])
    assert strided.shape == (1, 1, 2, 2)


def test_conv2d_channels():
    x = _random((2, 3, 5, 4), 3)
    w = _random((2, 3, 2, 2), 4)
    y = tensor(x).conv2d(tensor(w), stride=1).to_array()
    expected = np.zeros((2, 2, 4, 3))
    for i in range(4):
        for j in range(3):
            expected[:, :, i, j] = np.einsum("bcuv,ocuv->bo", x[:, :, i:i + 2, j:j + 2], w)
    np.testing.assert_allclose(y, expected, atol=1e-12)


def _dot(a, b):
    return float(np.sum(a.to_array() * b.to_array()))


@pytest.mark.parametrize("n,x_shape,w_shape,stride,padding", [
    (1, (2, 3, 10), (4, 3, 3), (2,), (1,)),
    (1, (1, 2, 7), (3, 2, 4), (3,), (2,)),
    (2, (2, 2, 6, 7), (3, 2, 3, 2), (2, 3), (1, 0)),
])
def test_adjoint_duality(n, x_shape, w_shape, stride, padding):
    config = ConvConfig.resolve(n, strides=stride, paddings=padding)
    x, w = tensor(_random(x_shape, 5)), tensor(_random(w_shape, 6))
    out = x.raw.conv(n, w.raw, config)
    g = tensor(_random(out.shape.values, 7))
    # <conv(x, w), g> = <x, input_adjoint(g, w)> = <w, weight_adjoint(x, g)>
    lhs = _dot(tensor(out), g)
    assert lhs == pytest.approx(_dot(x, ops.conv_input_adjoint(g, w, x.shape, n, config)), rel=1e-10)
    assert lhs == pytest.approx(_dot(w, ops.conv_weight_adjoint(x, g, w.shape, n, config)), rel=1e-10)


def test_gradients_of_both_operands():
    x0, w0 = _random((1, 2, 6), 8), _random((2, 2, 3), 9)
    gx, gw = grads_list(lambda xs: ops.conv1d(xs[0], xs[1], stride=2, padding=1).sum(), [x0, w0])
    # d/dx of sum(conv) is the input adjoint of a ones output adjoint
    config = ConvConfig.resolve(1, stride=2, padding=1)
    ones = tensor(np.ones((1, 2, 3)))
    np.testing.assert_allclose(value(gx), ops.conv_input_adjoint(ones, w0, x0.shape, 1, config).to_array())
    np.testing.assert_allclose(value(gw), ops.conv_weight_adjoint(x0, ones, w0.shape, 1, config).to_array())


def test_forward_mode_conv():
    x0, w = _random((1, 1, 5), 10), tensor(_random((1, 1, 2), 11))
    v = _random((1, 1, 5), 12)
    y, t = jvp(lambda x: ops.conv1d(x, w), x0, v)
    np.testing.assert_allclose(t.to_array(), ops.conv1d(tensor(v), w).to_array())


def test_gradient_of_input_adjoint_is_conv():
    # the adjoints are primitives themselves, so they are differentiable
    x = tensor(_random((1, 2, 7), 13))
    w = tensor(_random((3, 2, 3), 14))
    config = ConvConfig.resolve(1, stride=2)
    g0 = _random((1, 3, 3), 15)
    d = grad(lambda g: (ops.conv_input_adjoint(g, w, x.shape, 1, config) * x).sum(), g0)
    np.testing.assert_allclose(value(d), ops.conv1d(x, w, stride=2).to_array(), atol=1e-12)


def test_conv_errors():
    x = tensor(np.zeros((1, 2, 5)))
    with pytest.raises(ShapeMismatchError):
        ops.conv1d(x, tensor(np.zeros((1, 3, 2))))
    with pytest.raises(ShapeMismatchError):
        ops.conv1d(x, tensor(np.zeros((1, 2, 6))))
    with pytest.raises(ShapeMismatchError):
        ops.conv1d(tensor(np.zeros((2, 5))), tensor(np.zeros((1, 2, 2))))
    with pytest.raises(InvalidParameterError):
        ops.conv1d(x, tensor(np.zeros((1, 2, 2))), stride=0)
    with pytest.raises(InvalidParameterError):
        ops.conv1d(x, tensor(np.zeros((1, 2, 2))), padding=-1)
    with pytest.raises(InvalidParameterError):
        ops.conv2d(tensor(np.zeros((1, 1, 3, 3))), tensor(np.zeros((1, 1, 2, 2))), stride=1, strides=[1, 1])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
