"""Execution engine running reconstruction pipelines on concurrent lanes."""

from radrecon.engine.pipeline import (
    DEFAULT_ADJOINT_PIPELINE,
    DEFAULT_FORWARD_PIPELINE,
    Domain,
    Stage,
    default_pipeline,
    parse_pipeline,
    validate_pipeline,
)
from radrecon.engine.Lane import Lane
from radrecon.engine.ReconEngine import EngineState, ReconEngine, reconstruct, select_devices

__all__ = [
    "DEFAULT_ADJOINT_PIPELINE",
    "DEFAULT_FORWARD_PIPELINE",
    "Domain",
    "EngineState",
    "Lane",
    "ReconEngine",
    "Stage",
    "default_pipeline",
    "parse_pipeline",
    "reconstruct",
    "select_devices",
    "validate_pipeline"
]
