"""Tensor padding, cropping and filtering."""

from radrecon.utils.filters import box_sum, filter_separable
from radrecon.utils.zero_pad_or_crop import zero_pad_or_crop

__all__ = ["box_sum", "filter_separable", "zero_pad_or_crop"]
