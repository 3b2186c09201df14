"""Roll-off correction of the gridding kernel."""

import itertools
import math

import torch

from radrecon.algorithms.kernel import kernel_weight
from radrecon.data.ReconPlan import ReconPlan
from radrecon.utils.zero_pad_or_crop import zero_pad_or_crop

APODIZATION_THRESHOLD = 0.01
"""Normalized roll-off values at or below this threshold are not corrected."""


def kernel_footprint(plan: ReconPlan, device: torch.device | None = None) -> torch.Tensor:
    """Kernel weights on the grid, centered at index zero.

    The kernel is symmetric, so only the `ceil(kernwidth)` rows and columns next to each edge
    of the grid are non-zero, wrapping around from negative to positive indices.

    Returns
    -------
        footprint of shape `grid_shape`
    """
    half_width = math.ceil(plan.kernwidth)
    steps = range(-half_width, half_width + 1)
    offsets = torch.tensor(list(itertools.product(steps, repeat=plan.ndim)), device=device)
    weight = kernel_weight((offsets**2).sum(-1).float(), plan.kernwidth, plan.grid_oversamp, plan.kernel)
    footprint = torch.zeros(plan.grid_shape, dtype=torch.float32, device=device)
    index = tuple(torch.remainder(offsets, plan.ngrid).unbind(-1))
    footprint.index_put_(index, weight, accumulate=True)
    return footprint


def apodization_image(plan: ReconPlan, device: torch.device | None = None) -> torch.Tensor:
    """Calculate the apodization correction image.

    The kernel footprint is transformed to image space and centered. Its magnitude is normalized to a
    peak of one and inverted where it exceeds `APODIZATION_THRESHOLD`; elsewhere the correction is one.
    The result is cropped to the image size. All values are at least one.

    Parameters
    ----------
    plan
        reconstruction plan
    device
        device used for the computation and of the returned tensor

    Returns
    -------
        correction of shape `image_shape`, float32
    """
    dim = tuple(range(-plan.ndim, 0))
    rolloff = torch.fft.fftshift(torch.fft.ifftn(kernel_footprint(plan, device), dim=dim), dim=dim).abs()
    rolloff = rolloff / rolloff.max()
    correction = torch.where(rolloff > APODIZATION_THRESHOLD, 1 / rolloff.clamp(min=APODIZATION_THRESHOLD), 1.0)
    return zero_pad_or_crop(correction, plan.image_shape)
