"""Reconstruction plan: sizes, geometry and flags of one run."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from typing_extensions import Self

from radrecon.data.enums import Direction
from radrecon.exceptions import ConfigurationError

MAX_CHANNELS = 64
"""Largest supported number of receiver channels.

Bounds the per-pixel channel covariance of the adaptive combiner."""


@dataclass(frozen=True, slots=True)
class ReconPlan:
    """Immutable configuration of a reconstruction run.

    All components receive the plan explicitly; there is no module level state.
    Use `from_nonuniform_shape` or `from_image_shape` to derive the geometry
    from the dimensions of the input data.
    """

    nchan: int
    """number of receiver channels, even or exactly one"""

    nrep: int
    """number of repetitions (frames) to process"""

    nro: int
    """number of samples per readout line"""

    npe: int
    """total number of phase encodes (radial lines) in the input"""

    npe_per_frame: int
    """number of radial lines that make up one frame"""

    dpe: int
    """stride in lines between the first lines of two consecutive frames"""

    ngrid: int
    """side length of the oversampled Cartesian grid"""

    nimg: int
    """side length of the final image"""

    kernwidth: float = 2.0
    """support radius of the resampling kernel in grid units"""

    grid_oversamp: float = 2.0
    """oversampling ratio of the Cartesian grid"""

    peskip: int = 0
    """number of lines skipped at the start of the acquisition (golden angle offset)"""

    direction: Direction = Direction.ADJOINT
    golden_angle: bool = False
    postcomp: bool = False
    koosh: bool = False

    kernel: Literal['gaussian', 'kaiser_bessel'] = 'gaussian'
    """profile of the resampling kernel"""

    degrid_normalize: bool = False
    """scale degridded samples by 1/(nro*npe_per_frame*kernwidth**2)"""

    patch_radius: int = 2
    """radius of the local patch used by the adaptive coil combination"""

    n_power_iterations: int = 5
    """number of power iterations of the adaptive coil combination"""

    def __post_init__(self) -> None:
        """Check the invariants of the plan."""
        if self.nchan < 1 or (self.nchan != 1 and self.nchan % 2):
            raise ConfigurationError(f'Number of channels must be even or exactly 1, got {self.nchan}')
        if self.nchan > MAX_CHANNELS:
            raise ConfigurationError(f'At most {MAX_CHANNELS} channels are supported, got {self.nchan}')
        sizes = {
            'nrep': self.nrep,
            'nro': self.nro,
            'npe': self.npe,
            'npe_per_frame': self.npe_per_frame,
            'dpe': self.dpe,
            'ngrid': self.ngrid,
            'nimg': self.nimg,
        }
        if non_positive := [name for name, size in sizes.items() if size < 1]:
            details = ', '.join(f'{name}={sizes[name]}' for name in non_positive)
            raise ConfigurationError(f'Sizes must be positive, got {details}')
        if self.ngrid < self.nimg:
            raise ConfigurationError(f'Grid size {self.ngrid} must not be smaller than image size {self.nimg}')
        if self.kernwidth < 0:
            raise ConfigurationError(f'Kernel width must be non-negative, got {self.kernwidth}')
        if self.grid_oversamp <= 0:
            raise ConfigurationError(f'Grid oversampling must be positive, got {self.grid_oversamp}')
        if self.peskip < 0:
            raise ConfigurationError(f'peskip must be non-negative, got {self.peskip}')
        if (self.nrep - 1) * self.dpe + self.npe_per_frame > self.npe:
            raise ConfigurationError(
                f'{self.nrep} frames of {self.npe_per_frame} lines with stride {self.dpe} '
                f'do not fit into {self.npe} lines'
            )
        if self.kernel not in ('gaussian', 'kaiser_bessel'):
            raise ConfigurationError(f'Unknown kernel profile {self.kernel}')
        if self.patch_radius < 0 or self.n_power_iterations < 1:
            raise ConfigurationError('patch_radius must be non-negative and n_power_iterations positive')

    @classmethod
    def from_nonuniform_shape(
        cls,
        shape: Sequence[int],
        npe_per_frame: int,
        dpe: int,
        grid_oversamp: float = 2.0,
        kernwidth: float = 2.0,
        **kwargs,
    ) -> Self:
        """Derive the plan of a regridding (adjoint) run.

        Parameters
        ----------
        shape
            shape of the radial data `(channels, acquisitions, readout, lines)`.
            Acquisitions are consecutive, i.e. the data contains `acquisitions*lines` lines in total.
        npe_per_frame
            lines per reconstructed frame
        dpe
            stride in lines between frames
        grid_oversamp
            oversampling ratio of the Cartesian grid
        kernwidth
            support radius of the kernel in grid units
        kwargs
            remaining flags of `ReconPlan`

        Raises
        ------
        ConfigurationError
            if the shape is not 4D or the derived sizes are invalid
        """
        if len(shape) != 4:
            raise ConfigurationError(
                f'Radial data must have shape (channels, acquisitions, readout, lines), got {shape}'
            )
        nchan, n_acquisitions, nro, npe_per_acquisition = (int(s) for s in shape)
        npe = n_acquisitions * npe_per_acquisition
        if dpe < 1:
            raise ConfigurationError(f'dpe must be positive, got {dpe}')
        nrep = (npe - npe_per_frame) // dpe
        if nrep < 1:
            raise ConfigurationError(
                f'No complete repetition: {npe} lines, {npe_per_frame} lines per frame and stride {dpe}'
            )
        return cls(
            nchan=nchan,
            nrep=nrep,
            nro=nro,
            npe=npe,
            npe_per_frame=npe_per_frame,
            dpe=dpe,
            ngrid=int(nro * grid_oversamp),
            nimg=nro // 2,
            kernwidth=kernwidth,
            grid_oversamp=grid_oversamp,
            direction=Direction.ADJOINT,
            **kwargs,
        )

    @classmethod
    def from_image_shape(
        cls,
        shape: Sequence[int],
        npe_per_frame: int,
        dpe: int | None = None,
        kernwidth: float = 2.0,
        **kwargs,
    ) -> Self:
        """Derive the plan of a degridding (forward) run.

        Parameters
        ----------
        shape
            shape of the images `(channels, repetitions, x, y)` or, for koosh
            trajectories, `(channels, repetitions, x, y, z)`
        npe_per_frame
            lines to synthesize per repetition
        dpe
            stride in lines between repetitions, defaults to `npe_per_frame`
        kernwidth
            support radius of the kernel in grid units
        kwargs
            remaining flags of `ReconPlan`

        Raises
        ------
        ConfigurationError
            if the images are not square or the derived sizes are invalid
        """
        koosh = kwargs.get('koosh', False)
        ndim = 3 if koosh else 2
        if len(shape) != 2 + ndim:
            raise ConfigurationError(f'Images must have {2 + ndim} dimensions, got shape {shape}')
        nchan, nrep, *spatial = (int(s) for s in shape)
        if len(set(spatial)) != 1:
            raise ConfigurationError(f'Images must be square, got spatial shape {spatial}')
        nimg = spatial[0]
        dpe = npe_per_frame if dpe is None else dpe
        return cls(
            nchan=nchan,
            nrep=nrep,
            nro=2 * nimg,
            npe=npe_per_frame + (nrep - 1) * dpe,
            npe_per_frame=npe_per_frame,
            dpe=dpe,
            ngrid=nimg,
            nimg=nimg,
            kernwidth=kernwidth,
            grid_oversamp=1.0,
            direction=Direction.FORWARD,
            **kwargs,
        )

    @property
    def ndim(self) -> int:
        """Number of spatial dimensions of grid and image."""
        return 3 if self.koosh else 2

    @property
    def readout_spacing(self) -> float:
        """Distance of two readout samples in grid units.

        The readout spans the full width of the grid.
        """
        return self.ngrid / self.nro

    @property
    def grid_shape(self) -> tuple[int, ...]:
        """Spatial shape of the oversampled grid."""
        return (self.ngrid,) * self.ndim

    @property
    def image_shape(self) -> tuple[int, ...]:
        """Spatial shape of the final image."""
        return (self.nimg,) * self.ndim

    @property
    def nonuniform_shape(self) -> tuple[int, int]:
        """Shape `(readout, lines)` of the radial data of one frame."""
        return (self.nro, self.npe_per_frame)

    def frame_lines(self, repetition: int) -> slice:
        """Lines of the radial data belonging to a repetition."""
        start = repetition * self.dpe
        return slice(start, start + self.npe_per_frame)
