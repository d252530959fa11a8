"""
Shape model: concrete dims, shapes, integer index helpers and shape checks.
"""

import itertools

import numpy as np
import pytest

from aad_tensor.config import ConvConfig, PoolConfig
from aad_tensor.errors import (InvalidParameterError, ShapeMismatchError,
                               UnsupportedConversionError)
from aad_tensor.shape import Dim, Shape, checks, util


SHAPES = [(), (1,), (5,), (2, 3), (3, 1, 4), (2, 2, 2, 2)]


@pytest.mark.parametrize("dims", SHAPES)
def test_element_count_is_product_of_dims(dims):
    s = Shape(dims)
    assert s.nelement == int(np.prod(dims, dtype=np.int64))
    assert s.nelementx.value == s.nelement
    assert s.length == len(dims)
    assert s.flatten() == Shape([s.nelement])


@pytest.mark.parametrize("dims", [(4,), (2, 3), (3, 1, 4), (2, 3, 2, 2)])
def test_flat_index_round_trip(dims):
    seen = set()
    for index in itertools.product(*[range(n) for n in dims]):
        flat = util.index_to_flat_index(dims, index)
        assert util.flat_index_to_index(dims, flat) == index
        seen.add(flat)
    # row-major layout covers 0..n-1 exactly once
    assert seen == set(range(util.shape_length(dims)))


def test_strides_are_row_major():
    assert util.strides_of((2, 3, 4)) == (12, 4, 1)
    assert util.index_to_flat_index((2, 3, 4), (1, 2, 3)) == 23


def test_dim_arithmetic_with_ints_on_either_side():
    d = Dim(7)
    assert (d + 1).value == 8
    assert (1 + d).value == 8
    assert (d - 2).value == 5
    assert (10 - d).value == 3
    assert (d * 2).value == 14
    assert (d // 2).value == 3
    assert (d % 4).value == 3
    assert (-d).value == -7
    assert abs(Dim(-3)).value == 3
    assert Dim(2) < Dim(3) and Dim(3) >= 3
    assert Dim(-1).is_request and not Dim(-1).is_invalid
    assert Dim(-2).is_invalid
    assert Dim(4) == 4
    assert [10, 20, 30][Dim(1)] == 20


def test_shape_equality_and_hash_across_modes():
    a = Shape([2, 3])
    b = Shape([Dim(2), Dim(3)])
    assert a == b
    assert hash(a) == hash(b)
    assert a == (2, 3)
    assert a != Shape([3, 2])
    assert str(a) == "[2,3]"


def test_sub_shape_and_sliced():
    s = Shape([2, 3, 4])
    assert s[1:] == Shape([3, 4])
    assert s[0] == Dim(2)
    assert s.sliced([(0, 0), (1, 2), (0, 3)]) == Shape([1, 2, 4])


def test_squeeze_helpers():
    assert util.shape_squeeze(-1, (1, 3, 1)) == (3,)
    assert util.shape_squeeze(-1, (1, 1)) == (1,)
    assert util.shape_squeeze(0, (1, 3)) == (3,)
    assert util.shape_squeeze(1, (1, 3)) == (1, 3)
    assert util.shape_unsqueeze(1, (2, 3)) == (2, 1, 3)
    assert util.shape_unsqueeze_as((3,), (2, 2, 3)) == (1, 1, 3)
    assert util.shape_contains((4, 4), (2,))
    assert not util.shape_contains((4, 4), (5, 1))


def test_dilation_helpers():
    assert util.dilated_shape((3, 2), (2, 3)) == (5, 4)
    assert util.undilated_shape((5, 4), (2, 3)) == (3, 2)
    assert util.dilated_coordinates((1, 1), (2, 3)) == (2, 3)
    assert util.mirror_coordinates((0, 1), (3, 4), [0]) == (2, 1)
    assert util.has_duplicates([0, 1, 0])


def test_elementwise_check_reports_both_shapes():
    with pytest.raises(ShapeMismatchError, match=r"\[2,3\].*\[3,2\]"):
        checks.check_can_elementwise("add", (2, 3), (3, 2))


def test_matmul_check():
    assert checks.check_can_matmul((2, 3), (3, 5)) == Shape([2, 5])
    with pytest.raises(ShapeMismatchError):
        checks.check_can_matmul((2, 3), (2, 3))
    with pytest.raises(ShapeMismatchError):
        checks.check_can_matmul((2, 3, 1), (3, 2))


def test_flip_check_rejects_duplicates_and_out_of_range():
    with pytest.raises(InvalidParameterError):
        checks.check_can_flip((2, 3), [0, 0])
    with pytest.raises(InvalidParameterError):
        checks.check_can_flip((2, 3), [2])


def test_dilate_check():
    assert checks.check_can_dilate((3, 2), (2, 1)) == Shape([5, 2])
    with pytest.raises(InvalidParameterError):
        checks.check_can_dilate((3, 2), (0, 1))
    with pytest.raises(InvalidParameterError):
        checks.check_can_dilate((3, 2), (2,))


def test_view_check_infers_one_dimension():
    assert checks.check_can_view((2, 6), (3, -1)) == Shape([3, 4])
    with pytest.raises(InvalidParameterError):
        checks.check_can_view((2, 6), (-1, -1))
    with pytest.raises(ShapeMismatchError):
        checks.check_can_view((2, 6), (5, -1))
    with pytest.raises(ShapeMismatchError):
        checks.check_can_view((2, 6), (5, 2))


def test_slice_check_squeezes_unit_dims():
    assert checks.check_can_slice((4, 5), [(1, 1), (0, 2)]) == Shape([3])
    assert checks.check_can_slice((4, 5), [(1, 1), (2, 2)]) == Shape([1])
    with pytest.raises(InvalidParameterError):
        checks.check_can_slice((4, 5), [(0, 4), (0, 0)])


def test_conversion_checks():
    with pytest.raises(UnsupportedConversionError):
        checks.check_can_to_value((2,))
    with pytest.raises(UnsupportedConversionError):
        checks.check_can_to_array((1, 1, 1, 1, 1))
    assert checks.check_can_to_array((1, 1, 1, 1)) == Shape([1, 1, 1, 1])


def test_conv_check_output_length():
    config = ConvConfig.resolve(1, stride=2, padding=1)
    # (7 + 2 - 3) // 2 + 1 = 4
    assert checks.check_can_conv(1, (2, 3, 7), (4, 3, 3), config) == Shape([2, 4, 4])
    with pytest.raises(ShapeMismatchError):
        checks.check_can_conv(1, (2, 3, 7), (4, 2, 3), config)
    with pytest.raises(ShapeMismatchError):
        checks.check_can_conv1d((1, 1, 2), (1, 1, 3))


def test_pool_check_floor_and_ceil():
    floor = PoolConfig.resolve(1, kernel_size=2, stride=2)
    ceil = PoolConfig.resolve(1, kernel_size=2, stride=2, ceil_mode=True)
    assert checks.check_can_avgpool1d((1, 1, 5), floor) == Shape([1, 1, 2])
    assert checks.check_can_avgpool1d((1, 1, 5), ceil) == Shape([1, 1, 3])
    assert checks.pool_output_extent(4, 2, 2, 0, True) == 2


def test_pool_config_defaults_and_validation():
    config = PoolConfig.resolve(2, kernel_size=3)
    assert config.strides == (3, 3)
    assert config.paddings == (0, 0)
    assert not config.ceil_mode and config.count_include_pad
    with pytest.raises(InvalidParameterError):
        PoolConfig.resolve(2, kernel_size=3, kernel_sizes=[3, 3])
    with pytest.raises(InvalidParameterError):
        PoolConfig.resolve(2, kernel_sizes=[3])
    with pytest.raises(InvalidParameterError):
        PoolConfig.resolve(1, kernel_size=2, padding=2)
    with pytest.raises(InvalidParameterError):
        ConvConfig.resolve(1, stride=0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
