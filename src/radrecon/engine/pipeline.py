"""Pipeline stages and their validation."""

import enum
from collections.abc import Sequence

from radrecon.data.enums import Direction
from radrecon.data.ReconPlan import ReconPlan
from radrecon.exceptions import ConfigurationError


class Domain(enum.Enum):
    """Layout of the data flowing between stages."""

    NONUNIFORM = 'nonuniform'
    GRID = 'grid'
    IMAGE = 'image'


class Stage(enum.Enum):
    """Stages of a reconstruction pipeline, identified by a one character token."""

    PRECOMPENSATE = 'c'
    REGRID = 'g'
    DEGRID = 'd'
    INVERSE_FFT = 'i'
    FORWARD_FFT = 'f'
    SHIFT = 'h'
    CROP = 'x'
    PAD = 'p'
    COMBINE_SOS = 's'
    COMBINE_ADAPTIVE = 'a'
    DEAPODIZE = 'z'

    @property
    def token(self) -> str:
        """One character identifier of the stage."""
        return self.value


# accepted input domains and output domain (None: unchanged) of each stage
_STAGE_DOMAINS: dict[Stage, tuple[frozenset[Domain], Domain | None]] = {
    Stage.PRECOMPENSATE: (frozenset({Domain.NONUNIFORM}), None),
    Stage.REGRID: (frozenset({Domain.NONUNIFORM}), Domain.GRID),
    Stage.DEGRID: (frozenset({Domain.GRID}), Domain.NONUNIFORM),
    Stage.INVERSE_FFT: (frozenset({Domain.GRID, Domain.IMAGE}), None),
    Stage.FORWARD_FFT: (frozenset({Domain.GRID, Domain.IMAGE}), None),
    Stage.SHIFT: (frozenset({Domain.GRID, Domain.IMAGE}), None),
    Stage.CROP: (frozenset({Domain.GRID}), Domain.IMAGE),
    Stage.PAD: (frozenset({Domain.IMAGE}), Domain.GRID),
    Stage.COMBINE_SOS: (frozenset({Domain.GRID, Domain.IMAGE}), None),
    Stage.COMBINE_ADAPTIVE: (frozenset({Domain.GRID, Domain.IMAGE}), None),
    Stage.DEAPODIZE: (frozenset({Domain.IMAGE}), None),
}

COMBINE_STAGES = frozenset({Stage.COMBINE_SOS, Stage.COMBINE_ADAPTIVE})

DEFAULT_ADJOINT_PIPELINE = 'cgixsz'
"""density compensate, regrid, inverse FFT, crop, combine, deapodize"""

DEFAULT_FORWARD_PIPELINE = 'zpfd'
"""apodize, pad, forward FFT, degrid"""


def parse_pipeline(pipeline: str | Sequence[str | Stage]) -> tuple[Stage, ...]:
    """Parse a pipeline description into stages.

    Parameters
    ----------
    pipeline
        either a string of stage tokens, e.g. ``'cgixsz'``, or a sequence of stages,
        tokens or stage names (case insensitive), e.g. ``['precompensate', 'regrid']``

    Raises
    ------
    ConfigurationError
        if the pipeline is empty or contains an unknown identifier
    """
    items: Sequence[str | Stage] = list(pipeline) if isinstance(pipeline, str) else pipeline
    if not items:
        raise ConfigurationError('The pipeline must contain at least one stage')
    stages = []
    for item in items:
        if isinstance(item, Stage):
            stages.append(item)
            continue
        try:
            stages.append(Stage(item) if len(item) == 1 else Stage[item.upper()])
        except (KeyError, ValueError):
            raise ConfigurationError(f'Unknown pipeline stage {item!r}') from None
    return tuple(stages)


def default_pipeline(direction: Direction) -> tuple[Stage, ...]:
    """Built-in pipeline of a direction."""
    if direction == Direction.ADJOINT:
        return parse_pipeline(DEFAULT_ADJOINT_PIPELINE)
    return parse_pipeline(DEFAULT_FORWARD_PIPELINE)


def input_domain(plan: ReconPlan) -> Domain:
    """Domain of the data entering the pipeline."""
    return Domain.NONUNIFORM if plan.direction == Direction.ADJOINT else Domain.IMAGE


def domain_shape(domain: Domain, plan: ReconPlan) -> tuple[int, ...]:
    """Shape of one channel of a repetition in a domain."""
    if domain == Domain.NONUNIFORM:
        return plan.nonuniform_shape
    if domain == Domain.GRID:
        return plan.grid_shape
    return plan.image_shape


def validate_pipeline(stages: Sequence[Stage], plan: ReconPlan) -> tuple[Domain, tuple[int, ...]]:
    """Check that the stages can be chained for the plan.

    Parameters
    ----------
    stages
        parsed pipeline
    plan
        reconstruction plan

    Returns
    -------
        domain and shape `(channels, ...)` of the output of one repetition

    Raises
    ------
    ConfigurationError
        if a stage does not accept the output of the previous stage
    """
    domain = input_domain(plan)
    channels = plan.nchan
    for position, stage in enumerate(stages):
        accepted, output = _STAGE_DOMAINS[stage]
        if domain not in accepted:
            raise ConfigurationError(
                f'Stage {stage.name} at position {position} cannot be applied to {domain.value} data'
            )
        domain = output or domain
        if stage in COMBINE_STAGES:
            channels = 1
    return domain, (channels, *domain_shape(domain, plan))
