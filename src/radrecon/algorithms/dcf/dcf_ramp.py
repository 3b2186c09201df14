"""Analytic density compensation for radial trajectories."""

import torch

from radrecon.data.ReconPlan import ReconPlan


def dcf_ramp(plan: ReconPlan, device: torch.device | None = None) -> torch.Tensor:
    """Calculate the density compensation ramp of a radial readout.

    Sample `r` of a readout line is weighted by `a*|r - nro/2| + b` with
    `a = (2 - 2/npe)/nro` and `b = 1/npe`, where `npe` is the number of lines of a frame.
    This approximates the inverse sampling density of uniformly spaced 2D radial lines.
    The weight of the center sample, `b`, accounts for the area of the center not covered by the ramp.

    For 3D (koosh) trajectories, the density decays with the squared radius and the ramp is
    `a*|r - nro/2|**2 * 2/nro + b`, which has the same value at the edge of k-space.

    Parameters
    ----------
    plan
        reconstruction plan
    device
        device of the returned tensor

    Returns
    -------
        weights of shape `(nro, 1)`, broadcastable to radial data `(..., nro, npe_per_frame)`
    """
    npe = plan.npe_per_frame
    a = (2 - 2 / npe) / plan.nro
    b = 1 / npe
    distance = torch.abs(torch.arange(plan.nro, dtype=torch.float32, device=device) - plan.nro // 2)
    if plan.koosh:
        distance = distance**2 * (2 / plan.nro)
    return (a * distance + b)[:, None]
