"""Class for Coil Combination Operator."""

from typing import Literal

import torch

from radrecon.algorithms.combine import combine_channels
from radrecon.operators.Operator import Operator


class CoilCombinationOp(Operator[torch.Tensor, tuple[torch.Tensor,]]):
    """Reduce channel images `(channels, ...)` to a single image `(1, ...)`."""

    def __init__(
        self, method: Literal['sos', 'adaptive'] = 'sos', patch_radius: int = 2, n_power_iterations: int = 5
    ) -> None:
        """Initialize the coil combination.

        Parameters
        ----------
        method
            sum of squares (`'sos'`) or adaptive eigenvector combination (`'adaptive'`)
        patch_radius
            half width of the local patch of the adaptive combination
        n_power_iterations
            number of power iterations of the adaptive combination
        """
        super().__init__()
        if method not in ('sos', 'adaptive'):
            raise ValueError(f'Unknown combination method {method}')
        self.method = method
        self.patch_radius = patch_radius
        self.n_power_iterations = n_power_iterations

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Combine the channels of x."""
        return (combine_channels(x, self.method, self.patch_radius, self.n_power_iterations),)
