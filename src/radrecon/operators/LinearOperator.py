"""Linear Operators."""

from __future__ import annotations

from abc import abstractmethod
from typing import overload

import torch
from typing_extensions import Unpack

from radrecon.operators.Operator import Operator, OperatorComposition, Tin2


class LinearOperator(Operator[torch.Tensor, tuple[torch.Tensor]]):
    """Linear map between two tensor spaces.

    A linear operator takes a single tensor and returns a 1-tuple. Besides the forward,
    each subclass implements the adjoint, which is also available as the operator `H`.
    Two linear operators compose to a linear operator with `@`.
    """

    @abstractmethod
    def adjoint(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Apply the adjoint."""
        ...

    @property
    def H(self) -> LinearOperator:  # noqa: N802
        """The adjoint as an operator; `op.H.H` is `op`."""
        return AdjointLinearOperator(self)

    @overload
    def __matmul__(self, other: LinearOperator) -> LinearOperator: ...

    @overload
    def __matmul__(
        self, other: Operator[Unpack[Tin2], tuple[torch.Tensor,]]
    ) -> Operator[Unpack[Tin2], tuple[torch.Tensor,]]: ...

    def __matmul__(
        self, other: Operator[Unpack[Tin2], tuple[torch.Tensor,]] | LinearOperator
    ) -> Operator[Unpack[Tin2], tuple[torch.Tensor,]] | LinearOperator:
        """Compose, i.e. apply `other` first and `self` to its result."""
        if isinstance(other, LinearOperator):
            return LinearOperatorComposition(self, other)
        return OperatorComposition(self, other)


class LinearOperatorComposition(LinearOperator):
    """Chain of two linear operators, `outer(inner(x))`."""

    def __init__(self, outer: LinearOperator, inner: LinearOperator) -> None:
        """Chain two linear operators.

        Parameters
        ----------
        outer
            operator applied last
        inner
            operator applied first
        """
        super().__init__()
        self._outer = outer
        self._inner = inner

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor]:
        """Apply inner, then outer."""
        return self._outer(*self._inner(x))

    def adjoint(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Apply the adjoints in reverse order."""
        return self._inner.adjoint(*self._outer.adjoint(x))


class AdjointLinearOperator(LinearOperator):
    """Swaps forward and adjoint of a linear operator."""

    def __init__(self, operator: LinearOperator) -> None:
        super().__init__()
        self._operator = operator

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Adjoint of the wrapped operator."""
        return self._operator.adjoint(x)

    def adjoint(self, x: torch.Tensor) -> tuple[torch.Tensor,]:
        """Forward of the wrapped operator."""
        return self._operator.forward(x)

    @property
    def H(self) -> LinearOperator:  # noqa: N802
        """The wrapped operator."""
        return self._operator
