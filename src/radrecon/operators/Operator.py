"""Base class of all operators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic

import torch
from typing_extensions import TypeVar, TypeVarTuple, Unpack

Tin = TypeVarTuple('Tin')
Tin2 = TypeVarTuple('Tin2')
Tout = TypeVar('Tout', bound=tuple, covariant=True)


class Operator(Generic[Unpack[Tin], Tout], ABC, torch.nn.Module):
    """Map from input tensors to a tuple of output tensors.

    Operators are torch modules, so constant tensors registered as buffers follow
    the operator to the device of its lane.
    """

    @abstractmethod
    def forward(self, *args: Unpack[Tin]) -> Tout:
        """Apply the operator."""
        ...

    def __call__(self, *args: Unpack[Tin]) -> Tout:
        """Apply the operator."""
        return super().__call__(*args)

    def __matmul__(
        self: Operator[Unpack[Tin], Tout], other: Operator[Unpack[Tin2], tuple[Unpack[Tin]]]
    ) -> Operator[Unpack[Tin2], Tout]:
        """Compose, i.e. apply `other` first and `self` to its result."""
        return OperatorComposition(self, other)


class OperatorComposition(Operator[Unpack[Tin2], Tout]):
    """Chain of two operators, `outer(inner(*args))`."""

    def __init__(self, outer: Operator[Unpack[Tin], Tout], inner: Operator[Unpack[Tin2], tuple[Unpack[Tin]]]):
        """Chain two operators.

        Parameters
        ----------
        outer
            operator applied last
        inner
            operator applied first, its outputs are the inputs of `outer`
        """
        super().__init__()
        self._outer = outer
        self._inner = inner

    def forward(self, *args: Unpack[Tin2]) -> Tout:
        """Apply inner, then outer."""
        return self._outer(*self._inner(*args))
