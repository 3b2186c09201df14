"""Directions of the radial lines of a frame."""

import math

import torch

from radrecon.data.ReconPlan import ReconPlan

GOLDEN_ANGLE = 1.9416089796736116
"""Golden angle increment in rad, pi times the golden ratio conjugate."""

GOLDEN_MEANS_3D = (0.4656, 0.6823)
"""Two dimensional golden means of the 3D (koosh ball) golden angle ordering [CHA2009]_.

References
----------
.. [CHA2009] Chan RW, Ramsay EA, Cunningham CH, Plewes DB (2009) Temporal stability of adaptive 3D radial MRI
   using multidimensional golden means. MRM 61
"""


def line_indices(plan: ReconPlan, repetition: int) -> torch.Tensor:
    """Global indices of the lines of a repetition, including the initial skip."""
    start = repetition * plan.dpe + plan.peskip
    return torch.arange(start, start + plan.npe_per_frame, dtype=torch.float64)


def line_angles(plan: ReconPlan, repetition: int) -> torch.Tensor:
    """Angles of the 2D radial lines of one repetition.

    Golden angle ordering continues over repetitions: line `j` of repetition `t` has the angle
    `GOLDEN_ANGLE * (t*dpe + j + peskip) mod 2pi`. Uniform ordering spreads the lines of each frame
    evenly over half a turn, `j*pi/npe_per_frame`.

    Returns
    -------
        angles in rad, shape `(npe_per_frame,)`, float64
    """
    if plan.golden_angle:
        return torch.remainder(GOLDEN_ANGLE * line_indices(plan, repetition), 2 * math.pi)
    return torch.arange(plan.npe_per_frame, dtype=torch.float64) * (math.pi / plan.npe_per_frame)


def line_directions(plan: ReconPlan, repetition: int, device: torch.device | None = None) -> torch.Tensor:
    """Unit direction vectors of the lines of one repetition.

    The components are ordered like the grid axes, i.e. `(y, x)` or `(z, y, x)` for koosh trajectories.
    Lines are bidirectional, so 3D directions are restricted to the upper hemisphere.

    Parameters
    ----------
    plan
        reconstruction plan
    repetition
        index of the repetition
    device
        device of the returned tensor

    Returns
    -------
        directions of shape `(npe_per_frame, ndim)`, float32
    """
    if not plan.koosh:
        angles = line_angles(plan, repetition)
        directions = torch.stack((torch.sin(angles), torch.cos(angles)), dim=-1)
    else:
        if plan.golden_angle:
            indices = line_indices(plan, repetition)
            kz = torch.remainder(indices * GOLDEN_MEANS_3D[0], 1.0)
            azimuth = 2 * math.pi * torch.remainder(indices * GOLDEN_MEANS_3D[1], 1.0)
        else:
            # Fibonacci lattice on the hemisphere
            j = torch.arange(plan.npe_per_frame, dtype=torch.float64)
            kz = (j + 0.5) / plan.npe_per_frame
            azimuth = torch.remainder(j * math.pi * (3 - math.sqrt(5)), 2 * math.pi)
        in_plane = torch.sqrt(1 - kz**2)
        directions = torch.stack((kz, in_plane * torch.sin(azimuth), in_plane * torch.cos(azimuth)), dim=-1)
    return directions.to(device=device, dtype=torch.float32)
