"""Resampling kernel shared by regridding and degridding."""

import math
from typing import Literal

import torch

GAUSSIAN_SIGMA = 0.8
"""Standard deviation of the Gaussian kernel in grid units."""


def kaiser_bessel_beta(kernwidth: float, grid_oversamp: float) -> float:
    """Shape parameter of the Kaiser-Bessel kernel [BEA2005]_.

    Parameters
    ----------
    kernwidth
        support radius of the kernel in grid units
    grid_oversamp
        oversampling ratio of the grid

    References
    ----------
    .. [BEA2005] Beatty PJ, Nishimura DG, Pauly JM (2005) Rapid gridding reconstruction with a minimal
       oversampling ratio. IEEE TMI 24
    """
    full_width = 2 * kernwidth
    argument = (full_width / grid_oversamp) ** 2 * (grid_oversamp - 0.5) ** 2 - 0.8
    return math.pi * math.sqrt(max(argument, 0.0))


def kernel_weight(
    r2: torch.Tensor,
    kernwidth: float,
    grid_oversamp: float = 2.0,
    profile: Literal['gaussian', 'kaiser_bessel'] = 'gaussian',
) -> torch.Tensor:
    """Evaluate the radially symmetric kernel at squared distances.

    The kernel has compact support: the weight is zero for `r2 > kernwidth**2`.
    A kernel width of zero degenerates to nearest neighbor sampling, i.e. weight one for `r2 == 0`.

    Parameters
    ----------
    r2
        squared distances in grid units
    kernwidth
        support radius of the kernel in grid units
    grid_oversamp
        oversampling ratio of the grid, only used by the Kaiser-Bessel profile
    profile
        kernel profile

    Returns
    -------
        weights, same shape and real dtype as `r2`
    """
    if kernwidth == 0:
        return (r2 == 0).to(r2.dtype)
    inside = r2 <= kernwidth**2
    if profile == 'gaussian':
        weight = torch.exp(-r2 / (2 * GAUSSIAN_SIGMA**2))
    elif profile == 'kaiser_bessel':
        beta = kaiser_bessel_beta(kernwidth, grid_oversamp)
        argument = torch.sqrt(torch.clamp(1 - r2 / kernwidth**2, min=0.0))
        normalization = float(torch.special.i0(torch.tensor(beta, dtype=torch.float64)))
        weight = torch.special.i0(beta * argument) / normalization
    else:
        raise ValueError(f'Unknown kernel profile {profile}')
    return torch.where(inside, weight, torch.zeros_like(weight))
