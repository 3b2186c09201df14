"""Tests for the reconstruction engine."""

import pytest
import torch
from radrecon import ConfigurationError, DeviceResourceError, ReconPlan, StageExecutionError, reconstruct
from radrecon.engine import EngineState, Lane, ReconEngine, Stage, select_devices

from tests import RandomGenerator, gaussian_blob, normalized_mse, relative_image_difference


@pytest.fixture
def small_data():
    """Radial data with 48 lines of 16 samples in two acquisitions."""
    return RandomGenerator(seed=5).complex64_tensor((2, 2, 16, 24))


@pytest.fixture
def small_plan(small_data):
    """Plan with four repetitions of 16 lines with a stride of 8 lines."""
    return ReconPlan.from_nonuniform_shape(small_data.shape, npe_per_frame=16, dpe=8, golden_angle=True)


def test_recon_engine_scenario(scenario_data):
    """Test the default regridding of a two channel acquisition into six frames."""
    plan = ReconPlan.from_nonuniform_shape(scenario_data.shape, npe_per_frame=64, dpe=21, grid_oversamp=2.0)
    images = reconstruct(scenario_data, plan, n_lanes=2, devices=['cpu'])
    assert images.shape == (1, 64, 64, 6)
    assert images.numel() == 64 * 64 * 6
    assert images.dtype == torch.complex64
    assert torch.isfinite(images).all()
    assert (images.abs() > 0).any()


def test_recon_engine_lane_count_invariant(small_data, small_plan):
    """Test that the assignment of repetitions to lanes does not change the output."""
    single_lane = reconstruct(small_data, small_plan, n_lanes=1, devices=['cpu'])
    three_lanes = reconstruct(small_data, small_plan, n_lanes=3, devices=['cpu'])
    torch.testing.assert_close(single_lane, three_lanes)


def test_recon_engine_repetitions_use_own_lines(small_data, small_plan):
    """Test that each repetition regrids the lines of its own frame."""
    images = reconstruct(small_data, small_plan, pipeline='cgixz', devices=['cpu'])
    assert images.shape == (2, 8, 8, 4)
    changed = small_data.clone()
    # lines 32 to 39 only belong to the last repetition
    changed[:, 1, :, 8:16] = 0
    changed_images = reconstruct(changed, small_plan, pipeline='cgixz', devices=['cpu'])
    torch.testing.assert_close(images[..., :3], changed_images[..., :3])
    assert not torch.allclose(images[..., 3], changed_images[..., 3])


def test_recon_engine_grid_output(small_data, small_plan):
    """Test a pipeline ending on the grid."""
    grids = reconstruct(small_data, small_plan, pipeline=['precompensate', 'regrid'], devices=['cpu'])
    assert grids.shape == (2, 32, 32, 4)


def test_recon_engine_adaptive_combination(small_data, small_plan):
    """Test the adaptive combination in a pipeline."""
    images = reconstruct(small_data, small_plan, pipeline='cgixaz', devices=['cpu'])
    sos = reconstruct(small_data, small_plan, pipeline='cgixsz', devices=['cpu'])
    assert images.shape == sos.shape == (1, 8, 8, 4)
    assert (images.abs() <= sos.abs() * (1 + 1e-4) + 1e-6).all()


def test_recon_engine_forward():
    """Test the degridding of images into radial data."""
    images = RandomGenerator(seed=6).complex64_tensor((2, 3, 16, 16))
    plan = ReconPlan.from_image_shape(images.shape, npe_per_frame=10, golden_angle=True)
    data = reconstruct(images, plan, devices=['cpu'])
    assert data.shape == (2, 3, 32, 10)
    assert torch.isfinite(data).all()


def test_recon_engine_round_trip():
    """Test that regridding of degridded data recovers a smooth image."""
    image = gaussian_blob((32, 32), sigma=3.0)
    images = image.expand(1, 2, 32, 32)
    forward_plan = ReconPlan.from_image_shape(images.shape, npe_per_frame=128)
    # two repetitions of 128 lines each are two acquisitions of the same lines
    data = reconstruct(images, forward_plan, devices=['cpu'])
    assert data.shape == (1, 2, 64, 128)

    adjoint_plan = ReconPlan.from_nonuniform_shape(data.shape, npe_per_frame=128, dpe=128)
    assert adjoint_plan.nrep == 1
    assert adjoint_plan.nimg == 32
    reconstruction = reconstruct(data, adjoint_plan, devices=['cpu'])
    assert reconstruction.shape == (1, 32, 32, 1)
    assert normalized_mse(reconstruction[0, ..., 0].abs(), image.abs()) < 0.1


def test_recon_engine_state_machine(small_data, small_plan):
    """Test the lifecycle of the engine."""
    engine = ReconEngine(small_plan, devices=['cpu'])
    assert engine.state == EngineState.UNINITIALIZED
    with pytest.raises(ConfigurationError):
        engine.run(small_data)
    engine.start()
    assert engine.state == EngineState.READY
    assert len(engine.lanes) == 2
    with pytest.raises(ConfigurationError):
        engine.start()
    engine.run(small_data)
    assert engine.state == EngineState.SHUTDOWN
    assert engine.lanes == []
    with pytest.raises(ConfigurationError):
        engine.run(small_data)
    engine.shutdown()
    assert engine.state == EngineState.SHUTDOWN


def test_recon_engine_invalid_input(small_data, small_plan):
    """Test rejection of data not matching the plan."""
    with ReconEngine(small_plan, devices=['cpu']) as engine:
        with pytest.raises(ConfigurationError):
            engine.run(small_data[:, :1])
        with pytest.raises(ConfigurationError):
            engine.run(small_data[:1])
        assert engine.state == EngineState.READY
    assert engine.state == EngineState.SHUTDOWN


@pytest.mark.parametrize(('pipeline', 'n_lanes'), [('cgxd', 2), ('cgixsz', 0)])
def test_recon_engine_invalid_configuration(small_plan, pipeline, n_lanes):
    """Test that invalid configurations are rejected before any allocation."""
    with pytest.raises(ConfigurationError):
        ReconEngine(small_plan, pipeline, n_lanes=n_lanes, devices=['cpu'])


def test_recon_engine_stage_failure(small_data, small_plan, monkeypatch):
    """Test that a failing stage is reported with its repetition and lane and shuts the engine down."""

    def failing_apply(self, stage, x, repetition):
        raise RuntimeError('out of memory')

    engine = ReconEngine(small_plan, devices=['cpu'])
    engine.start()
    monkeypatch.setattr(Lane, 'apply', failing_apply)
    with pytest.raises(StageExecutionError) as error:
        engine.run(small_data)
    assert error.value.stage == Stage.PRECOMPENSATE
    assert error.value.repetition == 0
    assert error.value.lane == 0
    assert isinstance(error.value.__cause__, RuntimeError)
    assert engine.state == EngineState.SHUTDOWN


def test_recon_engine_allocation_failure(small_plan, monkeypatch):
    """Test that allocation failures release the lanes allocated so far."""
    allocate = Lane.allocate

    def failing_allocate(index, device, plan, deapodization, gridding):
        if index == 1:
            raise RuntimeError('out of memory')
        return allocate(index, device, plan, deapodization, gridding)

    monkeypatch.setattr(Lane, 'allocate', failing_allocate)
    engine = ReconEngine(small_plan, devices=['cpu'])
    with pytest.raises(DeviceResourceError):
        engine.start()
    assert engine.lanes == []
    assert engine.state == EngineState.UNINITIALIZED


def test_recon_engine_stage_memory_reserved_at_start(small_plan, monkeypatch):
    """Test that a stage running out of memory fails the start instead of the run."""
    apply = Lane.apply

    def failing_apply(self, stage, x, repetition):
        if stage == Stage.REGRID:
            raise RuntimeError('out of memory')
        return apply(self, stage, x, repetition)

    monkeypatch.setattr(Lane, 'apply', failing_apply)
    engine = ReconEngine(small_plan, devices=['cpu'])
    with pytest.raises(DeviceResourceError):
        engine.start()
    assert engine.lanes == []
    assert engine.state == EngineState.UNINITIALIZED


def test_recon_engine_run_uses_precomputed_geometry(small_data, small_plan, monkeypatch):
    """Test that no data dependent shapes are computed while running."""
    expected = reconstruct(small_data, small_plan, devices=['cpu'])
    engine = ReconEngine(small_plan, devices=['cpu'])
    engine.start()

    def nonzero(*args, **kwargs):
        raise AssertionError('nonzero called while running')

    monkeypatch.setattr(torch, 'nonzero', nonzero)
    images = engine.run(small_data)
    monkeypatch.undo()
    torch.testing.assert_close(images, expected)


def test_recon_engine_lane_devices(small_plan):
    """Test that lane l is allocated on device l % n_devices."""
    engine = ReconEngine(small_plan, n_lanes=3, devices=['cpu', 'cpu'])
    engine.start()
    assert [lane.index for lane in engine.lanes] == [0, 1, 2]
    assert [lane.device for lane in engine.lanes] == [torch.device('cpu')] * 3
    engine.shutdown()


def test_recon_engine_lane_devices_round_robin(small_plan, monkeypatch):
    """Test the assignment of lanes to two devices."""
    allocated = []

    def allocate(index, device, plan, deapodization, gridding):
        allocated.append((index, device, deapodization.correction.device, gridding.directions.device))
        return Lane(index, device, None, plan, torch.empty(0), torch.nn.ModuleDict())

    monkeypatch.setattr(Lane, 'allocate', allocate)
    monkeypatch.setattr(Lane, 'reserve', lambda self, stages: None)
    engine = ReconEngine(small_plan, n_lanes=5, devices=['cpu', 'meta'])
    engine.start()
    cpu, meta = torch.device('cpu'), torch.device('meta')
    assert [lane.device for lane in engine.lanes] == [cpu, meta, cpu, meta, cpu]
    # the shared operators of a lane live on its device
    assert all(device.type == correction.type == directions.type for _, device, correction, directions in allocated)
    engine.shutdown()


def test_select_devices(monkeypatch):
    """Test the device selection and its fallbacks."""
    assert select_devices(['cpu', 'cpu'], multi_device=False) == [torch.device('cpu')] * 2
    with pytest.raises(ConfigurationError):
        select_devices([], multi_device=False)
    monkeypatch.setattr(torch.cuda, 'is_available', lambda: False)
    with pytest.raises(ConfigurationError):
        select_devices(['cuda:0'], multi_device=False)
    with pytest.warns(UserWarning, match='CUDA is not available'):
        assert select_devices(None, multi_device=True) == [torch.device('cpu')]


@pytest.mark.cuda
def test_recon_engine_cuda(scenario_data):
    """Test that lanes on CUDA streams reproduce the CPU reconstruction."""
    plan = ReconPlan.from_nonuniform_shape(scenario_data.shape, npe_per_frame=64, dpe=21)
    images_cpu = reconstruct(scenario_data, plan, devices=['cpu'])
    images_cuda = reconstruct(scenario_data, plan, n_lanes=3)
    assert images_cuda.is_cpu
    assert images_cuda.shape == (1, 64, 64, 6)
    assert relative_image_difference(images_cuda, images_cpu) < 1e-3


@pytest.mark.cuda
def test_recon_engine_cuda_lanes_do_not_block(scenario_data, monkeypatch):
    """Test that staging and stages enqueue work without waiting for the device."""
    plan = ReconPlan.from_nonuniform_shape(scenario_data.shape, npe_per_frame=64, dpe=21)
    stage_input, apply = Lane.stage_input, Lane.apply

    def strict(function):
        def wrapper(*args, **kwargs):
            torch.cuda.set_sync_debug_mode('error')
            try:
                return function(*args, **kwargs)
            finally:
                torch.cuda.set_sync_debug_mode('default')

        return wrapper

    engine = ReconEngine(plan, n_lanes=2)
    engine.start()
    monkeypatch.setattr(Lane, 'stage_input', strict(stage_input))
    monkeypatch.setattr(Lane, 'apply', strict(apply))
    images = engine.run(scenario_data)
    assert images.shape == (1, 64, 64, 6)
    assert torch.isfinite(images).all()
