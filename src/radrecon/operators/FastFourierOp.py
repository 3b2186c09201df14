"""Centered Fast Fourier Operator and quadrant shift."""

from collections.abc import Sequence

import torch

from radrecon.operators.LinearOperator import LinearOperator


class FastFourierOp(LinearOperator):
    """Centered FFT between grid (k-space) and image.

    The transform runs over the dimensions `dim` and is batched over all others. With 'ortho'
    normalization the forward and the adjoint are inverses of each other.

    Both spaces hold the zero-frequency (or the image center) at index `n//2`. As the torch FFT
    expects it at index zero, the data is shifted before and after the transform:
    `fftshift(fftn(ifftshift(x)))`. For even sizes both shifts swap diagonally opposite quadrants.
    """

    def __init__(self, dim: Sequence[int] = (-2, -1)) -> None:
        """Initialize the operator.

        Parameters
        ----------
        dim
            dimensions to transform, by default the last two, `(y, x)`
        """
        super().__init__()
        self._dim = tuple(dim)

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Transform images to k-space."""
        y = torch.fft.fftshift(
            torch.fft.fftn(torch.fft.ifftshift(x, dim=self._dim), dim=self._dim, norm='ortho'),
            dim=self._dim,
        )
        return (y,)

    def adjoint(self, y: torch.Tensor) -> tuple[torch.Tensor,]:
        """Transform k-space to images."""
        x = torch.fft.fftshift(
            torch.fft.ifftn(torch.fft.ifftshift(y, dim=self._dim), dim=self._dim, norm='ortho'),
            dim=self._dim,
        )
        return (x,)


class FFTShiftOp(LinearOperator):
    """Quadrant swap moving the zero-frequency between the first entry and the center."""

    def __init__(self, dim: Sequence[int] = (-2, -1)) -> None:
        """Initialize the shift along the dimensions dim."""
        super().__init__()
        self._dim = tuple(dim)

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Move the zero-frequency to the center."""
        return (torch.fft.fftshift(x, dim=self._dim),)

    def adjoint(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Move the zero-frequency back to the first entry."""
        return (torch.fft.ifftshift(x, dim=self._dim),)
