from radrecon.data.enums import Direction
from radrecon.data.ReconPlan import ReconPlan, MAX_CHANNELS
from radrecon.data.trajectory import GOLDEN_ANGLE, line_angles, line_directions

__all__ = [
    "Direction",
    "GOLDEN_ANGLE",
    "MAX_CHANNELS",
    "ReconPlan",
    "line_angles",
    "line_directions"
]
