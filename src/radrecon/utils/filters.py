"""Separable spatial filters."""

from collections.abc import Sequence
from functools import reduce

import torch
from einops import repeat


def filter_separable(x: torch.Tensor, kernels: Sequence[torch.Tensor], dim: Sequence[int]) -> torch.Tensor:
    """Apply the separable filter kernels to the tensor x along the axes dim.

    Zero padding keeps the output the same size as the input, i.e. the filter
    is clamped at the borders.

    Parameters
    ----------
    x
        Tensor to filter
    kernels
        List of odd length 1D kernels to apply to the tensor x
    dim
        Axes to filter over. Must have the same length as kernels.

    Returns
    -------
    The filtered tensor with the promoted dtype of the input and the kernels.
    """
    if len(dim) != len(kernels):
        raise ValueError('Must provide matching length kernels and dim arguments.')

    # normalize dim to allow negative indexing in input
    dim = tuple([a % x.ndim for a in dim])
    if len(dim) != len(set(dim)):
        raise ValueError(f'Dim must be unique. Normalized dims are {dim}')

    target_dtype = reduce(torch.promote_types, [k.dtype for k in kernels], x.dtype)
    x = x.to(target_dtype)

    for kernel, d in zip(kernels, dim, strict=True):
        kernel = kernel.to(device=x.device, dtype=target_dtype)
        x = x.movedim(d, -1)
        shape = x.shape
        x = torch.nn.functional.conv1d(
            repeat(x.reshape(-1, shape[-1]), 'batch x -> batch channels x', channels=1),
            repeat(kernel, 'x -> batch channels x', batch=1, channels=1),
            padding='same',
        ).reshape(shape)
        x = x.movedim(-1, d)
    return x


def box_sum(x: torch.Tensor, radius: int, dim: Sequence[int]) -> torch.Tensor:
    """Sum over a box of `2*radius+1` elements along each axis in dim, clamped at the borders.

    Parameters
    ----------
    x
        Tensor to filter
    radius
        half width of the box
    dim
        Axes to sum over
    """
    if radius < 0:
        raise ValueError('radius must be non-negative')
    if radius == 0:
        return x
    if x.is_complex():
        return torch.complex(box_sum(x.real, radius, dim), box_sum(x.imag, radius, dim))
    kernels = [torch.ones(2 * min(radius, x.shape[d] - 1) + 1, device=x.device) for d in dim]
    return filter_separable(x, kernels, dim)
