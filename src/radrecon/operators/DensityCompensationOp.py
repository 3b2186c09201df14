"""Class for Density Compensation Operator."""

import torch
from typing_extensions import Self

from radrecon.algorithms.dcf import dcf_ramp
from radrecon.data.ReconPlan import ReconPlan
from radrecon.operators.LinearOperator import LinearOperator


class DensityCompensationOp(LinearOperator):
    """Density Compensation Operator.

    Element-wise multiplication of radial data with real density compensation weights.
    The operator is self-adjoint.
    """

    def __init__(self, dcf: torch.Tensor) -> None:
        """Initialize a Density Compensation Operator.

        Parameters
        ----------
        dcf
           Density compensation weights, broadcastable to the data
        """
        super().__init__()
        self.register_buffer('dcf', dcf)

    @classmethod
    def from_plan(cls, plan: ReconPlan) -> Self:
        """Create the analytic ramp pre-compensation of a radial readout."""
        return cls(dcf_ramp(plan))

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Apply density compensation to radial data.

        Parameters
        ----------
        x
            radial data `(..., nro, lines)`

        Returns
        -------
            Density compensated data.
        """
        return (x * self.dcf,)

    def adjoint(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Apply the adjoint, which equals the forward for real weights."""
        return self.forward(x)
