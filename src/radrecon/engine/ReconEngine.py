"""Execution engine pipelining repetitions over lanes and devices."""

from __future__ import annotations

import copy
import enum
import logging
import warnings
from collections.abc import Sequence
from types import TracebackType

import torch
from einops import rearrange
from typing_extensions import Self

from radrecon.data.enums import Direction
from radrecon.data.ReconPlan import ReconPlan
from radrecon.engine.Lane import Lane
from radrecon.engine.pipeline import Domain, Stage, default_pipeline, parse_pipeline, validate_pipeline
from radrecon.exceptions import ConfigurationError, DeviceResourceError, StageExecutionError
from radrecon.operators import DeapodizationOp, RadialGriddingOp

logger = logging.getLogger(__name__)


class EngineState(enum.Enum):
    """Lifecycle of a `ReconEngine`."""

    UNINITIALIZED = 'uninitialized'
    READY = 'ready'
    RUNNING = 'running'
    SHUTDOWN = 'shutdown'


def select_devices(devices: Sequence[torch.device | str] | None, multi_device: bool) -> list[torch.device]:
    """Choose the devices to spread the lanes over.

    Parameters
    ----------
    devices
        explicit devices. If None, the current CUDA device is used, or all CUDA devices if `multi_device`
        is set. Without CUDA, the CPU is used.
    multi_device
        use all visible CUDA devices
    """
    if devices is not None:
        selected = [torch.device(d) for d in devices]
        if not selected:
            raise ConfigurationError('At least one device is required')
        if any(d.type == 'cuda' for d in selected) and not torch.cuda.is_available():
            raise ConfigurationError('CUDA devices were requested, but CUDA is not available')
        return selected
    if not torch.cuda.is_available():
        if multi_device:
            warnings.warn('Multiple devices requested, but CUDA is not available. Using the CPU.', stacklevel=3)
        return [torch.device('cpu')]
    if multi_device:
        if torch.cuda.device_count() == 1:
            warnings.warn('Multiple devices requested, but only one CUDA device is visible.', stacklevel=3)
        return [torch.device('cuda', i) for i in range(torch.cuda.device_count())]
    return [torch.device('cuda', torch.cuda.current_device())]


class ReconEngine:
    """Run a pipeline of stages for all repetitions of a plan.

    The engine moves through the states `UNINITIALIZED`, `READY`, `RUNNING` and `SHUTDOWN`:
    `start` allocates the lanes and computes the kernel geometry and apodization correction once,
    `run` processes all repetitions and shuts the engine down afterwards. Repetition `t` is processed
    on lane `t % n_lanes`, and lane `l` lives on device `l % n_devices`. Within a repetition, the input is
    copied to the device, all stages run on the lane's stream, and the result is copied back into
    its place in the output without blocking the host. The host waits for all lanes only at the end.

    The pipeline is validated against the plan at construction, before any device resource is allocated.

    Example::

        plan = ReconPlan.from_nonuniform_shape(data.shape, npe_per_frame=64, dpe=21)
        with ReconEngine(plan) as engine:
            images = engine.run(data)
    """

    def __init__(
        self,
        plan: ReconPlan,
        pipeline: str | Sequence[str | Stage] | None = None,
        n_lanes: int = 2,
        devices: Sequence[torch.device | str] | None = None,
        multi_device: bool = False,
    ) -> None:
        """Initialize the engine.

        Parameters
        ----------
        plan
            reconstruction plan
        pipeline
            stages to run for each repetition, see `~radrecon.engine.parse_pipeline`.
            Defaults to the built-in pipeline of the plan's direction.
        n_lanes
            number of concurrent lanes
        devices
            devices to use, see `select_devices`
        multi_device
            spread the lanes over all visible CUDA devices

        Raises
        ------
        ConfigurationError
            if the pipeline is invalid for the plan or the lane count is not positive
        """
        if n_lanes < 1:
            raise ConfigurationError(f'Number of lanes must be positive, got {n_lanes}')
        self.plan = plan
        self.stages = default_pipeline(plan.direction) if pipeline is None else parse_pipeline(pipeline)
        self.output_domain, self.output_shape = validate_pipeline(self.stages, plan)
        self.n_lanes = n_lanes
        self.devices = select_devices(devices, multi_device)
        self.lanes: list[Lane] = []
        self.state = EngineState.UNINITIALIZED

    def __enter__(self) -> Self:
        """Start the engine."""
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Shut the engine down."""
        self.shutdown()

    def start(self) -> None:
        """Allocate all lane resources and precompute the kernel geometry and apodization correction.

        Each lane runs its pipeline once on zeros, so that the memory of all stages is reserved
        before the first repetition.

        Raises
        ------
        ConfigurationError
            if the engine was already started
        DeviceResourceError
            if a device resource cannot be allocated. Resources allocated so far are released.
        """
        if self.state != EngineState.UNINITIALIZED:
            raise ConfigurationError(f'Engine can only be started once, it is {self.state.value}')
        try:
            # one-off synchronous work, outside of the lanes
            deapodization = DeapodizationOp.from_plan(self.plan, self.devices[0])
            gridding = RadialGriddingOp(self.plan)
            shared = {
                device: (DeapodizationOp(deapodization.correction.to(device)), copy.deepcopy(gridding).to(device))
                for device in self.devices
            }
            for index in range(self.n_lanes):
                device = self.devices[index % len(self.devices)]
                lane = Lane.allocate(index, device, self.plan, *shared[device])
                self.lanes.append(lane)
                lane.reserve(self.stages)
                logger.debug('Allocated lane %d on %s', index, device)
            for device in self.devices:
                if device.type == 'cuda':
                    torch.cuda.synchronize(device)
        except RuntimeError as error:
            self._release_lanes()
            raise DeviceResourceError(f'Could not allocate lane resources: {error}') from error
        self.state = EngineState.READY
        logger.info('Engine ready with %d lanes on %s', self.n_lanes, ', '.join(str(d) for d in self.devices))

    def run(self, data: torch.Tensor) -> torch.Tensor:
        """Process all repetitions and shut the engine down.

        Parameters
        ----------
        data
            radial data `(channels, acquisitions, nro, lines)` for the adjoint direction,
            images `(channels, repetitions, *image_shape)` for the forward direction

        Returns
        -------
            Cartesian output `(channels, *spatial, repetitions)` or
            radial output `(channels, repetitions, nro, npe_per_frame)`, complex64 on the CPU

        Raises
        ------
        ConfigurationError
            if the engine is not ready or the data does not match the plan
        StageExecutionError
            if a stage fails. The engine is shut down and the output is lost.
        """
        if self.state != EngineState.READY:
            raise ConfigurationError(f'Engine must be ready to run, it is {self.state.value}')
        host_input = self._host_input(torch.as_tensor(data))
        pin = any(lane.device.type == 'cuda' for lane in self.lanes)
        host_output = torch.empty((self.plan.nrep, *self.output_shape), dtype=torch.complex64, pin_memory=pin)

        self.state = EngineState.RUNNING
        try:
            for repetition in range(self.plan.nrep):
                lane = self.lanes[repetition % self.n_lanes]
                logger.debug('Repetition %d on lane %d', repetition, lane.index)
                if self.plan.direction == Direction.ADJOINT:
                    host_slice = host_input[self.plan.frame_lines(repetition)]
                else:
                    host_slice = host_input[repetition]
                with lane.activate():
                    x = lane.stage_input(host_slice)
                    for stage in self.stages:
                        try:
                            x = lane.apply(stage, x, repetition)
                        except ConfigurationError:
                            raise
                        except RuntimeError as error:
                            raise StageExecutionError(stage, repetition, lane.index) from error
                    host_output[repetition].copy_(x, non_blocking=True)
            for lane in self.lanes:
                lane.synchronize()
        finally:
            self.shutdown()

        if self.output_domain == Domain.NONUNIFORM:
            return rearrange(host_output, 'repetitions channels readout lines -> channels repetitions readout lines')
        return host_output.movedim(0, -1)

    def shutdown(self) -> None:
        """Drain all lanes and release their resources. Does nothing if already shut down."""
        if self.state == EngineState.SHUTDOWN:
            return
        self._release_lanes()
        self.state = EngineState.SHUTDOWN
        logger.info('Engine shut down')

    def _release_lanes(self) -> None:
        for lane in self.lanes:
            lane.release()
        self.lanes = []

    def _host_input(self, data: torch.Tensor) -> torch.Tensor:
        """Check the input and bring it into the layout the lanes copy from."""
        plan = self.plan
        if plan.direction == Direction.ADJOINT:
            if data.ndim != 4 or data.shape[0] != plan.nchan or data.shape[2] != plan.nro:
                raise ConfigurationError(
                    f'Expected radial data (channels={plan.nchan}, acquisitions, nro={plan.nro}, lines), '
                    f'got {tuple(data.shape)}'
                )
            if data.shape[1] * data.shape[3] != plan.npe:
                raise ConfigurationError(f'Expected {plan.npe} lines in total, got {data.shape[1] * data.shape[3]}')
            host = rearrange(data, 'channels acquisitions readout lines -> (acquisitions lines) channels readout')
        else:
            expected = (plan.nchan, plan.nrep, *plan.image_shape)
            if tuple(data.shape) != expected:
                raise ConfigurationError(f'Expected images of shape {expected}, got {tuple(data.shape)}')
            host = rearrange(data, 'channels repetitions ... -> repetitions channels ...')
        host = host.to(torch.complex64).contiguous()
        if any(lane.device.type == 'cuda' for lane in self.lanes):
            host = host.pin_memory()
        return host


def reconstruct(
    data: torch.Tensor,
    plan: ReconPlan,
    pipeline: str | Sequence[str | Stage] | None = None,
    n_lanes: int = 2,
    devices: Sequence[torch.device | str] | None = None,
    multi_device: bool = False,
) -> torch.Tensor:
    """Run a pipeline over all repetitions in a single call.

    See `ReconEngine` for the parameters and the output layout.
    """
    engine = ReconEngine(plan, pipeline, n_lanes=n_lanes, devices=devices, multi_device=multi_device)
    with engine:
        return engine.run(data)
