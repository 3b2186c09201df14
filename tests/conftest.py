"""PyTest fixtures for the radrecon package."""

import pytest
import torch
from radrecon.data import ReconPlan

from tests import RandomGenerator


def pytest_collection_modifyitems(config, items):
    """Skip tests marked with cuda if no cuda device is available."""
    if torch.cuda.is_available():
        return
    skip_cuda = pytest.mark.skip(reason='cuda is not available')
    for item in items:
        if 'cuda' in item.keywords:
            item.add_marker(skip_cuda)


@pytest.fixture
def small_adjoint_plan():
    """Small 2D regridding plan with two channels and three repetitions."""
    return ReconPlan(
        nchan=2, nrep=3, nro=16, npe=48, npe_per_frame=16, dpe=16, ngrid=32, nimg=8, golden_angle=True, peskip=3
    )


@pytest.fixture
def small_koosh_plan():
    """Small 3D koosh ball regridding plan."""
    return ReconPlan(
        nchan=1, nrep=1, nro=8, npe=24, npe_per_frame=24, dpe=24, ngrid=12, nimg=6, koosh=True, golden_angle=True
    )


@pytest.fixture
def scenario_data():
    """Random radial data of the two channel acquisition with 200 lines of 128 samples."""
    return RandomGenerator(seed=0).complex64_tensor((2, 1, 128, 200))
