"""Class for the radial gridding operator."""

import torch

from radrecon.algorithms.gridding import (
    DegridTable,
    RegridTable,
    apply_degrid_table,
    apply_regrid_table,
    degrid_table,
    regrid_table,
)
from radrecon.data.ReconPlan import ReconPlan
from radrecon.data.trajectory import line_directions
from radrecon.operators.LinearOperator import LinearOperator


class RadialGriddingOp(LinearOperator):
    """Convolution gridding between the Cartesian grid and radial samples.

    The forward interpolates the radial samples of a frame from the oversampled grid (degridding),
    the adjoint resamples radial data onto the grid (regridding).
    The line directions and kernel geometry of all repetitions are computed at initialization and
    kept as buffers, so applying the operator on a device never waits for it. Select the repetition
    to process with `repetition`.

    If post-compensation is enabled in the plan, the regridding divides by the local kernel weight sum
    and is no longer the exact adjoint of the degridding.
    """

    def __init__(self, plan: ReconPlan, repetition: int = 0) -> None:
        """Initialize the gridding operator.

        Parameters
        ----------
        plan
            reconstruction plan
        repetition
            repetition whose lines are used
        """
        super().__init__()
        self.plan = plan
        directions = torch.stack([line_directions(plan, t) for t in range(plan.nrep)])
        self.register_buffer('directions', directions)

        regrid_tables = [regrid_table(d, plan) for d in directions]
        # frames differ in their number of pairs, padding pairs have zero weight
        n_pairs = max(table.point_idx.shape[0] for table in regrid_tables)
        n_offsets = regrid_tables[0].weight.shape[1]
        point_idx = torch.zeros(plan.nrep, n_pairs, dtype=torch.long)
        sample_idx = torch.zeros(plan.nrep, n_pairs, n_offsets, dtype=torch.long)
        weight = torch.zeros(plan.nrep, n_pairs, n_offsets)
        for t, table in enumerate(regrid_tables):
            point_idx[t, : table.point_idx.shape[0]] = table.point_idx
            sample_idx[t, : table.point_idx.shape[0]] = table.sample_idx
            weight[t, : table.point_idx.shape[0]] = table.weight
        self.register_buffer('regrid_point_idx', point_idx)
        self.register_buffer('regrid_sample_idx', sample_idx)
        self.register_buffer('regrid_weight', weight)
        self.register_buffer('regrid_normalization', torch.stack([table.normalization for table in regrid_tables]))

        degrid_tables = [degrid_table(d, plan) for d in directions]
        self.register_buffer('degrid_grid_idx', torch.stack([table.grid_idx for table in degrid_tables]))
        self.register_buffer('degrid_weight', torch.stack([table.weight for table in degrid_tables]))
        self.repetition = repetition

    @property
    def repetition(self) -> int:
        """Repetition whose line directions are used."""
        return self._repetition

    @repetition.setter
    def repetition(self, repetition: int) -> None:
        if not 0 <= repetition < self.plan.nrep:
            raise IndexError(f'Repetition {repetition} out of range for {self.plan.nrep} repetitions')
        self._repetition = repetition

    @property
    def regrid_table(self) -> RegridTable:
        """Regridding geometry of the current repetition."""
        t = self.repetition
        return RegridTable(
            self.regrid_point_idx[t], self.regrid_sample_idx[t], self.regrid_weight[t], self.regrid_normalization[t]
        )

    @property
    def degrid_table(self) -> DegridTable:
        """Degridding geometry of the current repetition."""
        return DegridTable(self.degrid_grid_idx[self.repetition], self.degrid_weight[self.repetition])

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Degrid.

        Parameters
        ----------
        x
            grid data `(channels, *grid_shape)`

        Returns
        -------
            radial data `(channels, nro, npe_per_frame)`
        """
        return (apply_degrid_table(x, self.degrid_table, self.plan),)

    def adjoint(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Regrid.

        Parameters
        ----------
        x
            radial data `(channels, nro, npe_per_frame)`

        Returns
        -------
            grid data `(channels, *grid_shape)`
        """
        return (apply_regrid_table(x, self.regrid_table, self.plan),)
