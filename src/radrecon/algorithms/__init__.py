"""Gridding, density compensation, apodization and coil combination algorithms."""

from radrecon.algorithms import dcf
from radrecon.algorithms.apodization import APODIZATION_THRESHOLD, apodization_image, kernel_footprint
from radrecon.algorithms.combine import adaptive_combine, combine_channels, dominant_eigenvector, sum_of_squares
from radrecon.algorithms.gridding import (
    DegridTable,
    RegridTable,
    apply_degrid_table,
    apply_regrid_table,
    degrid,
    degrid_table,
    grid_coordinates,
    readout_positions,
    regrid,
    regrid_table,
)
from radrecon.algorithms.kernel import GAUSSIAN_SIGMA, kaiser_bessel_beta, kernel_weight

__all__ = [
    "APODIZATION_THRESHOLD",
    "DegridTable",
    "GAUSSIAN_SIGMA",
    "RegridTable",
    "adaptive_combine",
    "apodization_image",
    "apply_degrid_table",
    "apply_regrid_table",
    "combine_channels",
    "dcf",
    "degrid",
    "degrid_table",
    "dominant_eigenvector",
    "grid_coordinates",
    "kaiser_bessel_beta",
    "kernel_footprint",
    "kernel_weight",
    "readout_positions",
    "regrid",
    "regrid_table",
    "sum_of_squares"
]
