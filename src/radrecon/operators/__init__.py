from radrecon.operators.Operator import Operator
from radrecon.operators.LinearOperator import LinearOperator
from radrecon.operators.CoilCombinationOp import CoilCombinationOp
from radrecon.operators.DeapodizationOp import DeapodizationOp
from radrecon.operators.DensityCompensationOp import DensityCompensationOp
from radrecon.operators.FastFourierOp import FastFourierOp, FFTShiftOp
from radrecon.operators.RadialGriddingOp import RadialGriddingOp
from radrecon.operators.ZeroPadOp import ZeroPadOp

__all__ = [
    "CoilCombinationOp",
    "DeapodizationOp",
    "DensityCompensationOp",
    "FFTShiftOp",
    "FastFourierOp",
    "LinearOperator",
    "Operator",
    "RadialGriddingOp",
    "ZeroPadOp"
]
