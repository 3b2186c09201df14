"""Convolution based regridding and degridding of radial data."""

import itertools
import math
from typing import NamedTuple

import torch

from radrecon.algorithms.kernel import kernel_weight
from radrecon.data.ReconPlan import ReconPlan

_MAX_PAIRS_PER_CHUNK = 2**22


class RegridTable(NamedTuple):
    """Kernel geometry of the regridding of one frame.

    Pairs of grid point and line are stored with the visited readout samples of the line.
    """

    point_idx: torch.Tensor
    """flat grid index of each pair `(pairs,)`"""
    sample_idx: torch.Tensor
    """flat `(readout, line)` index of the samples of each pair `(pairs, offsets)`"""
    weight: torch.Tensor
    """kernel weight of each sample, zero for samples outside the support or the readout `(pairs, offsets)`"""
    normalization: torch.Tensor
    """divisor of each grid point `(points,)`, the kernel weight sum with post-compensation, else one"""


class DegridTable(NamedTuple):
    """Kernel geometry of the degridding of one frame."""

    grid_idx: torch.Tensor
    """flat grid index of the neighbors of each sample `(nro, lines, neighbors)`"""
    weight: torch.Tensor
    """kernel weight of each neighbor, zero outside the support or the grid `(nro, lines, neighbors)`"""


def grid_coordinates(plan: ReconPlan, device: torch.device | None = None) -> torch.Tensor:
    """Coordinates of all grid points relative to the grid center.

    Returns
    -------
        coordinates of shape `(ngrid**ndim, ndim)` in grid units, axis order `(y, x)` or `(z, y, x)`
    """
    axis = torch.arange(plan.ngrid, dtype=torch.float32, device=device) - plan.ngrid // 2
    mesh = torch.meshgrid(*([axis] * plan.ndim), indexing='ij')
    return torch.stack(mesh, dim=-1).reshape(-1, plan.ndim)


def readout_positions(plan: ReconPlan, device: torch.device | None = None) -> torch.Tensor:
    """Signed distance of the readout samples from the k-space center in grid units."""
    return (torch.arange(plan.nro, dtype=torch.float32, device=device) - plan.nro // 2) * plan.readout_spacing


def regrid_table(directions: torch.Tensor, plan: ReconPlan, device: torch.device | None = None) -> RegridTable:
    """Find the samples each grid point gathers.

    1. Points whose nearest possible sample index lies outside the readout get no pairs.
    2. Per line, the angle between the point and the (bidirectional) line is compared to the tolerance
       `atan2(kernwidth, radius)`, corrected for the point lying on the circle of that radius. This
       rejects all lines whose perpendicular distance to the point exceeds the kernel width.
    3. For the remaining pairs of point and line, the readout samples between `rmin` and `rmax` around the
       projection of the point onto the line are visited.

    The number of pairs depends on the geometry, so building the table waits for the device.
    It only depends on the plan and the line directions and is computed once per frame.

    Parameters
    ----------
    directions
        unit direction of each line `(lines, ndim)`, see `~radrecon.data.line_directions`
    plan
        reconstruction plan
    device
        device of the table
    """
    n_lines = directions.shape[0]
    if directions.shape != (n_lines, plan.ndim):
        raise ValueError(f'Directions {tuple(directions.shape)} do not match the plan')
    kernwidth = plan.kernwidth
    spacing = plan.readout_spacing
    center = plan.nro // 2
    directions = directions.to(device=device, dtype=torch.float32)

    coordinates = grid_coordinates(plan, device)
    n_points = coordinates.shape[0]
    n_offsets = math.floor(2 * kernwidth / spacing) + 1
    offsets = torch.arange(n_offsets, device=device)
    chunk_size = max(1, _MAX_PAIRS_PER_CHUNK // (n_lines * n_offsets))

    point_chunks, sample_chunks, weight_chunks = [], [], []
    for start in range(0, n_points, chunk_size):
        points = coordinates[start : start + chunk_size]
        radius2 = (points**2).sum(-1)
        radius = torch.sqrt(radius2)
        # minimum contributing readout index beyond the end of the readout
        inside = (radius - kernwidth) <= center * spacing

        projection = points @ directions.T
        perpendicular2 = torch.clamp(radius2[:, None] - projection**2, min=0.0)
        angle = torch.atan2(torch.sqrt(perpendicular2), projection.abs())
        tolerance = torch.atan2(
            torch.full_like(radius, kernwidth), torch.sqrt(torch.clamp(radius2 - kernwidth**2, min=0.0))
        )
        point_idx, line_idx = torch.nonzero(inside[:, None] & (angle <= tolerance[:, None]), as_tuple=True)

        u = projection[point_idx, line_idx]
        rmin = torch.ceil((u - kernwidth) / spacing + center).long()
        rmax = torch.floor((u + kernwidth) / spacing + center).long()
        readout_idx = rmin[:, None] + offsets
        valid = (readout_idx <= rmax[:, None]) & (readout_idx >= 0) & (readout_idx < plan.nro)
        distance2 = ((readout_idx - center) * spacing - u[:, None]) ** 2 + perpendicular2[point_idx, line_idx][:, None]

        point_chunks.append(point_idx + start)
        sample_chunks.append(readout_idx.clamp(0, plan.nro - 1) * n_lines + line_idx[:, None])
        weight_chunks.append(kernel_weight(distance2, kernwidth, plan.grid_oversamp, plan.kernel) * valid)

    point_idx = torch.cat(point_chunks)
    weight = torch.cat(weight_chunks)
    if plan.postcomp:
        weight_sum = torch.zeros(n_points, dtype=torch.float32, device=device).index_add_(0, point_idx, weight.sum(-1))
        normalization = torch.where(weight_sum > 0, weight_sum, 1.0)
    else:
        normalization = torch.ones(n_points, dtype=torch.float32, device=device)
    return RegridTable(point_idx, torch.cat(sample_chunks), weight, normalization)


def apply_regrid_table(data: torch.Tensor, table: RegridTable, plan: ReconPlan) -> torch.Tensor:
    """Accumulate the kernel weighted samples of a frame on the grid.

    Only gathers and scatter-adds with shapes fixed by the table, so the host never waits for the device.

    Parameters
    ----------
    data
        radial data of one frame `(channels, nro, lines)`
    table
        kernel geometry of the frame, see `regrid_table`
    plan
        reconstruction plan

    Returns
    -------
        gridded data `(channels, ngrid, ngrid[, ngrid])`
    """
    n_channels = data.shape[0]
    if data.ndim != 3 or data.shape[1] != plan.nro:
        raise ValueError(f'Data {tuple(data.shape)} does not match the plan')
    samples = data.reshape(n_channels, -1)
    n_pairs, n_offsets = table.weight.shape
    accumulated = torch.zeros(n_channels, table.normalization.shape[0], dtype=data.dtype, device=data.device)
    chunk_size = max(1, _MAX_PAIRS_PER_CHUNK // (n_offsets * n_channels))
    for start in range(0, n_pairs, chunk_size):
        stop = start + chunk_size
        contribution = (samples[:, table.sample_idx[start:stop]] * table.weight[start:stop]).sum(-1)
        accumulated.index_add_(1, table.point_idx[start:stop], contribution)
    accumulated = accumulated / table.normalization
    return accumulated.reshape(n_channels, *plan.grid_shape)


def regrid(data: torch.Tensor, directions: torch.Tensor, plan: ReconPlan) -> torch.Tensor:
    """Resample radial data onto the Cartesian grid.

    Each grid point gathers the kernel weighted samples of all lines within the kernel support,
    see `regrid_table`. With post-compensation enabled in the plan, each grid point is divided by
    the sum of the kernel weights of its contributing samples. Points without contributing samples
    keep the raw accumulation.

    Parameters
    ----------
    data
        radial data of one frame `(channels, nro, lines)`
    directions
        unit direction of each line `(lines, ndim)`, see `~radrecon.data.line_directions`
    plan
        reconstruction plan

    Returns
    -------
        gridded data `(channels, ngrid, ngrid[, ngrid])`
    """
    if data.ndim != 3 or data.shape[1] != plan.nro or directions.shape != (data.shape[2], plan.ndim):
        raise ValueError(f'Data {tuple(data.shape)} and directions {tuple(directions.shape)} do not match the plan')
    return apply_regrid_table(data, regrid_table(directions, plan, data.device), plan)


def degrid_table(directions: torch.Tensor, plan: ReconPlan, device: torch.device | None = None) -> DegridTable:
    """Find the grid points within the kernel support around the samples of a frame.

    Parameters
    ----------
    directions
        unit direction of each line `(lines, ndim)`
    plan
        reconstruction plan
    device
        device of the table
    """
    n_lines = directions.shape[0]
    directions = directions.to(device=device, dtype=torch.float32)
    half_width = math.ceil(plan.kernwidth)
    steps = range(-half_width, half_width + 2)
    offsets = torch.tensor(list(itertools.product(steps, repeat=plan.ndim)), device=device)
    strides = torch.tensor([plan.ngrid**d for d in reversed(range(plan.ndim))], device=device)
    readout = readout_positions(plan, device)

    grid_idx = torch.empty(plan.nro, n_lines, len(offsets), dtype=torch.long, device=device)
    weight = torch.empty(plan.nro, n_lines, len(offsets), dtype=torch.float32, device=device)
    chunk_size = max(1, _MAX_PAIRS_PER_CHUNK // (plan.nro * len(offsets)))
    for start in range(0, n_lines, chunk_size):
        stop = min(start + chunk_size, n_lines)
        # fractional grid index of each sample (nro, lines, ndim)
        position = readout[:, None, None] * directions[None, start:stop] + plan.ngrid // 2
        neighbor = torch.floor(position).long()[..., None, :] + offsets
        valid = ((neighbor >= 0) & (neighbor < plan.ngrid)).all(-1)
        distance2 = ((neighbor - position[..., None, :]) ** 2).sum(-1)
        weight[:, start:stop] = kernel_weight(distance2, plan.kernwidth, plan.grid_oversamp, plan.kernel) * valid
        grid_idx[:, start:stop] = (neighbor.clamp(0, plan.ngrid - 1) * strides).sum(-1)
    if plan.degrid_normalize:
        weight = weight / (plan.nro * plan.npe_per_frame * (plan.kernwidth**2 if plan.kernwidth > 0 else 1.0))
    return DegridTable(grid_idx, weight)


def apply_degrid_table(grid: torch.Tensor, table: DegridTable, plan: ReconPlan) -> torch.Tensor:
    """Interpolate the samples of a frame from the grid with a precomputed kernel geometry.

    Parameters
    ----------
    grid
        gridded data `(channels, ngrid, ngrid[, ngrid])`
    table
        kernel geometry of the frame, see `degrid_table`
    plan
        reconstruction plan

    Returns
    -------
        radial data `(channels, nro, lines)`
    """
    n_channels = grid.shape[0]
    if tuple(grid.shape[1:]) != plan.grid_shape:
        raise ValueError(f'Grid shape {tuple(grid.shape)} does not match the plan grid {plan.grid_shape}')
    values = grid.reshape(n_channels, -1)
    n_readout, n_lines, n_neighbors = table.weight.shape
    samples = torch.empty(n_channels, n_readout, n_lines, dtype=grid.dtype, device=grid.device)
    chunk_size = max(1, _MAX_PAIRS_PER_CHUNK // (n_readout * n_neighbors * n_channels))
    for start in range(0, n_lines, chunk_size):
        stop = start + chunk_size
        samples[:, :, start:stop] = (values[:, table.grid_idx[:, start:stop]] * table.weight[:, start:stop]).sum(-1)
    return samples


def degrid(grid: torch.Tensor, directions: torch.Tensor, plan: ReconPlan) -> torch.Tensor:
    """Interpolate radial samples from the Cartesian grid.

    Every sample gathers the kernel weighted grid points within the kernel support around its
    fractional grid position. Grid points outside the grid do not contribute.
    Without post-compensation, this is the adjoint of `regrid`.

    Parameters
    ----------
    grid
        gridded data `(channels, ngrid, ngrid[, ngrid])`
    directions
        unit direction of each line `(lines, ndim)`
    plan
        reconstruction plan

    Returns
    -------
        radial data `(channels, nro, lines)`
    """
    if tuple(grid.shape[1:]) != plan.grid_shape:
        raise ValueError(f'Grid shape {tuple(grid.shape)} does not match the plan grid {plan.grid_shape}')
    return apply_degrid_table(grid, degrid_table(directions, plan, grid.device), plan)
