"""Errors raised by the reconstruction pipeline."""


class ConfigurationError(ValueError):
    """Invalid or contradictory plan, pipeline or input.

    Always raised before any device resource is allocated.
    """


class DeviceResourceError(RuntimeError):
    """Allocation of device buffers, streams or transform plans failed."""


class StageExecutionError(RuntimeError):
    """A pipeline stage failed while executing on a lane."""

    def __init__(self, stage: object, repetition: int, lane: int) -> None:
        """Initialize the error.

        Parameters
        ----------
        stage
            the stage that failed
        repetition
            index of the repetition being processed
        lane
            index of the lane the repetition was assigned to
        """
        super().__init__(f'Stage {stage} failed for repetition {repetition} on lane {lane}')
        self.stage = stage
        self.repetition = repetition
        self.lane = lane
