"""Combination of multi-channel images."""

import torch

from radrecon.utils.filters import box_sum


def sum_of_squares(images: torch.Tensor) -> torch.Tensor:
    """Combine channel images by their root sum of squares.

    Parameters
    ----------
    images
        channel images `(channels, ...)`

    Returns
    -------
        combined image `(1, ...)` with zero phase, same dtype as `images`
    """
    magnitude = torch.sqrt((images.abs() ** 2).sum(dim=0, keepdim=True))
    return magnitude.to(images.dtype)


def dominant_eigenvector(covariance: torch.Tensor, n_power_iterations: int) -> tuple[torch.Tensor, torch.Tensor]:
    """Find the dominant eigenvector of Hermitian matrices at each voxel by power iteration.

    The iteration starts with the all-ones vector and normalizes each iterate to unit Euclidean norm.

    Parameters
    ----------
    covariance
        matrices `(channels, channels, ...)`
    n_power_iterations
        number of iterations

    Returns
    -------
        eigenvectors `(channels, ...)` and the Rayleigh quotient eigenvalue estimate `(...)`.
        Voxels with a vanishing matrix get a zero eigenvector.
    """
    v = torch.ones(covariance.shape[1:], dtype=covariance.dtype, device=covariance.device)
    v = v / v.norm(dim=0)
    for _ in range(n_power_iterations):
        v = torch.einsum('ab...,b...->a...', covariance, v)
        v = v / v.norm(dim=0)
    # make sure there are no nan values where the covariance vanishes
    v = torch.where(torch.isfinite(v), v, 0.0)
    eigenvalue = torch.einsum('a...,ab...,b...->...', v.conj(), covariance, v).real
    return v, eigenvalue


def adaptive_combine(images: torch.Tensor, patch_radius: int, n_power_iterations: int = 5) -> torch.Tensor:
    """Combine channel images with locally estimated coil sensitivities [WAL2000]_.

    At each voxel, the channel covariance `sum v v^H` is accumulated over a patch of
    `2*patch_radius+1` voxels along each spatial axis, clamped at the image borders. Its dominant
    eigenvector `e` is found by power iteration and the channels are combined as `sum conj(e_c) x_c`.

    Parameters
    ----------
    images
        channel images `(channels, ...)`
    patch_radius
        half width of the patch
    n_power_iterations
        number of power iterations

    Returns
    -------
        combined image `(1, ...)`

    References
    ----------
    .. [WAL2000] Walsh DO, Gmitro AF, Marcellin MW (2000) Adaptive reconstruction of phased array MR imagery. MRM 43
    """
    spatial_dims = tuple(range(2, images.ndim + 1))
    covariance = torch.einsum('a...,b...->ab...', images, images.conj())
    covariance = box_sum(covariance, patch_radius, spatial_dims)
    eigenvector, _ = dominant_eigenvector(covariance, n_power_iterations)
    return (eigenvector.conj() * images).sum(dim=0, keepdim=True)


def combine_channels(
    images: torch.Tensor, method: str, patch_radius: int = 2, n_power_iterations: int = 5
) -> torch.Tensor:
    """Combine channel images with sum of squares (`'sos'`) or adaptively (`'adaptive'`).

    A single channel is returned unchanged by both methods.
    """
    if images.shape[0] == 1:
        return images.clone()
    if method == 'sos':
        return sum_of_squares(images)
    if method == 'adaptive':
        return adaptive_combine(images, patch_radius, n_power_iterations)
    raise ValueError(f'Unknown combination method {method}')
