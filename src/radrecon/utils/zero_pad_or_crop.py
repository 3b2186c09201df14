"""Centered zero padding and cropping."""

from collections.abc import Sequence

import torch
import torch.nn.functional as F  # noqa: N812


def zero_pad_or_crop(
    data: torch.Tensor,
    new_shape: Sequence[int] | torch.Size,
    dim: None | Sequence[int] = None,
) -> torch.Tensor:
    """Change shape of data by center cropping or symmetric zero-padding.

    The center index `n//2`, which holds the zero frequency of centered (shifted) data,
    is moved to the center index `new//2` of the new shape. Newly introduced border regions are zero.

    Parameters
    ----------
    data
        data
    new_shape
        desired shape of data along `dim`
    dim
        dimensions the new_shape corresponds to. None (default) is interpreted as last len(new_shape) dimensions.

    Returns
    -------
        data zero padded or cropped to shape
    """
    if len(new_shape) > data.ndim:
        raise ValueError('length of new shape should not exceed dimensions of data')
    if dim is None:
        dim = tuple(range(-len(new_shape), 0))
    if len(new_shape) != len(dim):
        raise ValueError('length of shape should match length of dim')
    dim = tuple(d % data.ndim for d in dim)
    if len(dim) != len(set(dim)):
        raise ValueError('repeated values are not allowed in dims')

    npad = [0] * (2 * data.ndim)
    for d, new in zip(dim, new_shape, strict=True):
        old = data.shape[d]
        before = new // 2 - old // 2
        # F.pad expects paddings starting from the last dimension
        npad[2 * (data.ndim - 1 - d)] = before
        npad[2 * (data.ndim - 1 - d) + 1] = new - old - before

    if any(npad):
        data = F.pad(data, npad)
    return data
