"""Tests for parsing and validation of pipelines."""

import dataclasses

import pytest
from radrecon import ConfigurationError
from radrecon.data import Direction, ReconPlan
from radrecon.engine import Domain, Stage, default_pipeline, parse_pipeline, validate_pipeline


def test_parse_pipeline_tokens():
    """Test parsing a string of stage tokens."""
    assert parse_pipeline('cgixsz') == (
        Stage.PRECOMPENSATE,
        Stage.REGRID,
        Stage.INVERSE_FFT,
        Stage.CROP,
        Stage.COMBINE_SOS,
        Stage.DEAPODIZE,
    )


def test_parse_pipeline_names():
    """Test parsing stages, tokens and case insensitive names."""
    assert parse_pipeline([Stage.SHIFT, 'g', 'Inverse_FFT']) == (Stage.SHIFT, Stage.REGRID, Stage.INVERSE_FFT)


def test_stage_tokens_unique():
    """Test that every stage has its own one character token."""
    tokens = [stage.token for stage in Stage]
    assert all(len(token) == 1 for token in tokens)
    assert len(set(tokens)) == len(tokens)


@pytest.mark.parametrize('pipeline', ['', 'cgq', ['regrid', 'unknown'], []])
def test_parse_pipeline_invalid(pipeline):
    """Test rejection of empty pipelines and unknown identifiers."""
    with pytest.raises(ConfigurationError):
        parse_pipeline(pipeline)


def test_default_pipelines():
    """Test the built-in pipelines of both directions."""
    assert default_pipeline(Direction.ADJOINT) == parse_pipeline('cgixsz')
    assert default_pipeline(Direction.FORWARD) == parse_pipeline('zpfd')


def test_validate_pipeline_adjoint(small_adjoint_plan):
    """Test the output of the default regridding pipeline."""
    domain, shape = validate_pipeline(parse_pipeline('cgixsz'), small_adjoint_plan)
    assert domain == Domain.IMAGE
    assert shape == (1, 8, 8)


def test_validate_pipeline_without_combination(small_adjoint_plan):
    """Test that the channels are kept without combination stage."""
    domain, shape = validate_pipeline(parse_pipeline('cgi'), small_adjoint_plan)
    assert domain == Domain.GRID
    assert shape == (2, 32, 32)


def test_validate_pipeline_forward():
    """Test the output of the default degridding pipeline."""
    plan = ReconPlan.from_image_shape((2, 3, 16, 16), npe_per_frame=10)
    domain, shape = validate_pipeline(default_pipeline(plan.direction), plan)
    assert domain == Domain.NONUNIFORM
    assert shape == (2, 32, 10)


@pytest.mark.parametrize(
    ('pipeline', 'direction'),
    [
        ('gc', Direction.ADJOINT),
        ('i', Direction.ADJOINT),
        ('cgz', Direction.ADJOINT),
        ('cgixx', Direction.ADJOINT),
        ('d', Direction.FORWARD),
        ('pp', Direction.FORWARD),
        ('g', Direction.FORWARD),
    ],
)
def test_validate_pipeline_invalid(small_adjoint_plan, pipeline, direction):
    """Test rejection of stages that cannot follow each other."""
    plan = dataclasses.replace(small_adjoint_plan, direction=direction)
    with pytest.raises(ConfigurationError):
        validate_pipeline(parse_pipeline(pipeline), plan)
