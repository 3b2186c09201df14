"""Tests for zero padding and cropping."""

import pytest
import torch
from radrecon.utils import zero_pad_or_crop

from tests import RandomGenerator


def test_zero_pad_or_crop_pad_even():
    """Test padding from an even to an even size."""
    data = RandomGenerator(seed=0).float32_tensor((3, 4))
    padded = zero_pad_or_crop(data, (8,))
    assert padded.shape == (3, 8)
    torch.testing.assert_close(padded[:, 2:6], data)
    assert (padded[:, :2] == 0).all()
    assert (padded[:, 6:] == 0).all()


def test_zero_pad_or_crop_keeps_center():
    """Test that the center index n//2 is moved to the new center for all parities."""
    for old, new in [(8, 5), (9, 4), (5, 8), (4, 9), (7, 7)]:
        data = torch.arange(old, dtype=torch.float32) + 1
        result = zero_pad_or_crop(data, (new,))
        assert result.shape == (new,)
        assert result[new // 2] == data[old // 2]


def test_zero_pad_or_crop_dim():
    """Test padding along selected dimensions only."""
    data = RandomGenerator(seed=1).complex64_tensor((2, 4, 6, 3))
    result = zero_pad_or_crop(data, (8, 2), dim=(1, -2))
    assert result.shape == (2, 8, 2, 3)
    torch.testing.assert_close(result[:, 2:6], data[:, :, 2:4])


@pytest.mark.parametrize(
    ('new_shape', 'dim'),
    [((4, 4, 4, 4), None), ((4, 4), (0,)), ((4, 4), (2, -1))],
)
def test_zero_pad_or_crop_invalid(new_shape, dim):
    """Test rejection of invalid shapes and dimensions."""
    with pytest.raises(ValueError):
        zero_pad_or_crop(torch.zeros(2, 3, 4), new_shape, dim)
