from radrecon._version import __version__
from radrecon import algorithms, data, engine, operators, utils
from radrecon.data import Direction, ReconPlan
from radrecon.engine import ReconEngine, reconstruct
from radrecon.exceptions import ConfigurationError, DeviceResourceError, StageExecutionError

__all__ = [
    "ConfigurationError",
    "DeviceResourceError",
    "Direction",
    "ReconEngine",
    "ReconPlan",
    "StageExecutionError",
    "__version__",
    "algorithms",
    "data",
    "engine",
    "operators",
    "reconstruct",
    "utils"
]
