"""Per-lane device resources."""

from __future__ import annotations

import contextlib
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import torch

from radrecon.data.enums import Direction
from radrecon.data.ReconPlan import ReconPlan
from radrecon.engine.pipeline import Stage
from radrecon.exceptions import ConfigurationError
from radrecon.operators import (
    CoilCombinationOp,
    DeapodizationOp,
    DensityCompensationOp,
    FastFourierOp,
    FFTShiftOp,
    RadialGriddingOp,
    ZeroPadOp,
)


@dataclass
class Lane:
    """Resources of one execution lane.

    A lane is an ordered work queue, i.e. a CUDA stream, on one device. All work of the
    repetitions assigned to a lane is enqueued on its stream, so no locking is needed.
    On the CPU the stream is None and work runs synchronously.
    """

    index: int
    device: torch.device
    stream: torch.cuda.Stream | None
    plan: ReconPlan
    input_buffer: torch.Tensor
    """staging buffer for the input of one repetition"""
    operators: torch.nn.ModuleDict

    @classmethod
    def allocate(
        cls,
        index: int,
        device: torch.device,
        plan: ReconPlan,
        deapodization: DeapodizationOp,
        gridding: RadialGriddingOp,
    ) -> Lane:
        """Allocate the buffers, stream and operators of a lane.

        Parameters
        ----------
        index
            index of the lane
        device
            device of the lane
        plan
            reconstruction plan
        deapodization
            roll-off correction shared read-only by all lanes of a device
        gridding
            gridding operator with the kernel geometry of all repetitions, shared by all lanes of a device
        """
        stream = torch.cuda.Stream(device=device) if device.type == 'cuda' else None
        context = torch.cuda.stream(stream) if stream is not None else contextlib.nullcontext()
        spatial_dims = tuple(range(-plan.ndim, 0))
        with context:
            if plan.direction == Direction.ADJOINT:
                # lines first, so that the lines of a frame are contiguous on the host
                buffer_shape: tuple[int, ...] = (plan.npe_per_frame, plan.nchan, plan.nro)
            else:
                buffer_shape = (plan.nchan, *plan.image_shape)
            input_buffer = torch.empty(buffer_shape, dtype=torch.complex64, device=device)
            operators = torch.nn.ModuleDict(
                {
                    'dcf': DensityCompensationOp.from_plan(plan),
                    'gridding': gridding,
                    'fft': FastFourierOp(dim=spatial_dims),
                    'shift': FFTShiftOp(dim=spatial_dims),
                    'pad': ZeroPadOp(dim=spatial_dims, original_shape=plan.image_shape, padded_shape=plan.grid_shape),
                    'sos': CoilCombinationOp('sos'),
                    'adaptive': CoilCombinationOp('adaptive', plan.patch_radius, plan.n_power_iterations),
                    'deapodization': deapodization,
                }
            ).to(device)
        return cls(index, device, stream, plan, input_buffer, operators)

    def reserve(self, stages: Sequence[Stage]) -> None:
        """Run the stages once on zeros.

        The intermediate results of all stages are allocated on the lane's stream and their memory
        stays with the caching allocator of the device, where the stages of every repetition reuse it.
        The transform plans of the FFT stages are created as well.
        """
        with self.activate():
            self.input_buffer.zero_()
            x = self.input_buffer.permute(1, 2, 0) if self.plan.direction == Direction.ADJOINT else self.input_buffer
            for stage in stages:
                x = self.apply(stage, x, 0)

    @contextlib.contextmanager
    def activate(self) -> Iterator[None]:
        """Enqueue all work issued inside the context on the lane."""
        if self.stream is None:
            yield
        else:
            with torch.cuda.stream(self.stream):
                yield

    def stage_input(self, host: torch.Tensor) -> torch.Tensor:
        """Copy the input of a repetition to the device without blocking the host.

        Returns
        -------
            the input in the layout of the first stage, `(channels, nro, lines)` or `(channels, *image_shape)`
        """
        self.input_buffer.copy_(host, non_blocking=True)
        if self.plan.direction == Direction.ADJOINT:
            return self.input_buffer.permute(1, 2, 0)
        return self.input_buffer

    def apply(self, stage: Stage, x: torch.Tensor, repetition: int) -> torch.Tensor:
        """Run one stage on the lane."""
        operators = self.operators
        match stage:
            case Stage.PRECOMPENSATE:
                (x,) = operators['dcf'](x)
            case Stage.REGRID:
                operators['gridding'].repetition = repetition
                (x,) = operators['gridding'].adjoint(x)
            case Stage.DEGRID:
                operators['gridding'].repetition = repetition
                (x,) = operators['gridding'](x)
            case Stage.INVERSE_FFT:
                (x,) = operators['fft'].adjoint(x)
            case Stage.FORWARD_FFT:
                (x,) = operators['fft'](x)
            case Stage.SHIFT:
                (x,) = operators['shift'](x)
            case Stage.CROP:
                (x,) = operators['pad'].adjoint(x)
            case Stage.PAD:
                (x,) = operators['pad'](x)
            case Stage.COMBINE_SOS:
                (x,) = operators['sos'](x)
            case Stage.COMBINE_ADAPTIVE:
                (x,) = operators['adaptive'](x)
            case Stage.DEAPODIZE:
                (x,) = operators['deapodization'](x)
            case _:
                raise ConfigurationError(f'Unknown pipeline stage {stage!r}')
        return x

    def synchronize(self) -> None:
        """Wait for all work enqueued on the lane."""
        if self.stream is not None:
            self.stream.synchronize()

    def release(self) -> None:
        """Wait for the lane and free its device memory."""
        self.synchronize()
        self.operators = torch.nn.ModuleDict()
        self.input_buffer = torch.empty(0)
        self.stream = None
