"""Class for Deapodization Operator."""

import torch
from typing_extensions import Self

from radrecon.algorithms.apodization import apodization_image
from radrecon.data.ReconPlan import ReconPlan
from radrecon.operators.LinearOperator import LinearOperator


class DeapodizationOp(LinearOperator):
    """Roll-off correction in image space.

    Multiplies images point-wise with the magnitude of the apodization correction image.
    The correction is computed once and only read afterwards.
    """

    def __init__(self, correction: torch.Tensor) -> None:
        """Initialize the operator.

        Parameters
        ----------
        correction
            apodization correction, broadcastable to the images
        """
        super().__init__()
        self.register_buffer('correction', correction.abs())

    @classmethod
    def from_plan(cls, plan: ReconPlan, device: torch.device | None = None) -> Self:
        """Compute the apodization correction of the plan's kernel and grid."""
        return cls(apodization_image(plan, device))

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Multiply images `(..., *image_shape)` by the correction."""
        return (x * self.correction,)

    def adjoint(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Apply the adjoint, which equals the forward for a real correction."""
        return self.forward(x)
