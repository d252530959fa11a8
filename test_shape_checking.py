"""
Shape-only backend: whole computations over symbolic sizes, no values.
"""

import logging

import pytest

from aad_tensor.aad import reverse, use_tape
from aad_tensor.aad.core import symbolic, tensor, zeros
from aad_tensor.backend import RawTensorShapeChecking
from aad_tensor.errors import ShapeMismatchError, UnsupportedConversionError
from aad_tensor.shape import SymbolScope


@pytest.fixture
def scope():
    return SymbolScope()


def _filters(shape):
    return zeros(shape, backend="shape_checking")


def test_symbolic_tensor_has_symbolic_dims(scope):
    x = symbolic(scope, ["N", 3, "L"])
    assert isinstance(x.raw, RawTensorShapeChecking)
    assert x.shape.is_symbolic_mode
    assert x.shape[0].name == "N"
    assert x.shape[1] == 3
    assert x.shape.try_values() is None


def test_conv1d_over_symbolic_length(scope):
    x = symbolic(scope, ["N", 3, "L"])
    y = x.conv1d(_filters([4, 3, 2]))
    assert y.shape.length == 3
    assert y.shape[0] == x.shape[0]
    assert y.shape[1] == 4
    assert y.shape[2].try_value() is None
    # fixing the input length fixes the output length
    assert x.shape[2].constraint_eq(10)
    assert y.shape[2].try_value() == 9


def test_conv1d_channel_mismatch(scope):
    x = symbolic(scope, ["N", 3, "L"])
    with pytest.raises(ShapeMismatchError):
        x.conv1d(_filters([4, 5, 2]))


def test_avgpool_over_symbolic_length(scope):
    x = symbolic(scope, ["N", 2, "L"])
    y = x.avgpool1d(2)
    assert y.shape[1] == 2
    assert x.shape[2].constraint_eq(8)
    assert y.shape[2].try_value() == 4

    z = symbolic(scope, [1, 1, "H", "W"]).avgpool2d(kernel_sizes=[2, 3], strides=[2, 1])
    assert z.shape.length == 4


def test_matmul_unifies_inner_dims(scope):
    a = symbolic(scope, ["M", "K"])
    b = symbolic(scope, [5, "P"])
    c = a @ b
    assert c.shape[0] == a.shape[0]
    assert c.shape[1] == b.shape[1]
    assert a.shape[1].try_value() == 5
    with pytest.raises(ShapeMismatchError):
        a @ _filters([6, 2])


def test_view_keeps_element_count(scope):
    x = symbolic(scope, ["N", 3, "L"])
    assert x.shape[0].constraint_eq(2)
    assert x.shape[2].constraint_eq(10)
    flat = x.view([-1])
    assert flat.shape.length == 1
    assert flat.shape[0].try_value() == 60
    with pytest.raises(ShapeMismatchError):
        x.view([7, -1])


def test_values_are_unavailable(scope):
    x = symbolic(scope, [2, 3])
    with pytest.raises(UnsupportedConversionError):
        x.to_array()
    with pytest.raises(UnsupportedConversionError):
        x.sum().to_scalar()
    with pytest.raises(UnsupportedConversionError):
        x.max_index()
    with pytest.raises(UnsupportedConversionError):
        tensor([1.0, 2.0], backend="shape_checking")


def test_reverse_pass_propagates_shapes(scope):
    with use_tape():
        x = symbolic(scope, ["N", 3, "L"]).reverse_diff()
        y = x.conv1d(_filters([4, 3, 2])).avgpool1d(2).tanh().sum()
        reverse(y)
        adj = x.adjoint
    assert isinstance(adj.raw, RawTensorShapeChecking)
    assert adj.shape == x.shape


def test_forward_mode_propagates_shapes(scope):
    x = symbolic(scope, ["N", 3, "L"])
    xd = x.forward_diff(x.zeros_like())
    y = (xd.conv1d(_filters([2, 3, 3]), padding=1) * 2.0).exp()
    assert y.tangent.shape == y.shape
    assert y.shape[2] == x.shape[2]


def test_kernels_are_logged(scope, caplog):
    x = symbolic(scope, ["N", 3, "L"])
    with caplog.at_level(logging.DEBUG, logger="aad_tensor.backend.shape_checking"):
        x.conv1d(_filters([4, 3, 2]))
    assert any("shape check conv" in r.getMessage() for r in caplog.records)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
