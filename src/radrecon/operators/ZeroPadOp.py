"""Class for Zero Pad Operator."""

from collections.abc import Sequence

import torch

from radrecon.operators.LinearOperator import LinearOperator
from radrecon.utils.zero_pad_or_crop import zero_pad_or_crop


class ZeroPadOp(LinearOperator):
    """Zero Pad operator class.

    Embeds the image in the center of the oversampled grid (pad) and extracts it again (crop, the adjoint).
    """

    def __init__(self, dim: Sequence[int], original_shape: Sequence[int], padded_shape: Sequence[int]) -> None:
        """Zero Pad Operator class.

        The operator carries out zero-padding if the `padded_shape` is larger than `original_shape` and cropping
        if the `padded_shape` is smaller.

        Parameters
        ----------
        dim
            dimensions along which padding should be applied
        original_shape
            shape of original data along dim, same length as `dim`
        padded_shape
            shape of padded data along dim, same length as `dim`
        """
        if len(dim) != len(original_shape) or len(dim) != len(padded_shape):
            raise ValueError('Dim, original_shape and padded_shape have to be of same length')
        super().__init__()
        self.dim = tuple(dim)
        self.original_shape = tuple(original_shape)
        self.padded_shape = tuple(padded_shape)

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Pad (or crop) from `original_shape` to `padded_shape`."""
        return (zero_pad_or_crop(x, self.padded_shape, self.dim),)

    def adjoint(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Crop (or pad) from `padded_shape` to `original_shape`."""
        return (zero_pad_or_crop(x, self.original_shape, self.dim),)
