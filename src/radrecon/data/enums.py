"""Enums describing the reconstruction direction."""

import enum


class Direction(enum.Enum):
    """Direction of the non-uniform transform.

    ``ADJOINT`` reconstructs Cartesian images from radially sampled data (regridding),
    ``FORWARD`` synthesizes radial samples from Cartesian images (degridding).
    """

    ADJOINT = 'adjoint'
    FORWARD = 'forward'
