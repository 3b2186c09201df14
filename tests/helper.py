"""Helper/Utilities for test functions."""

import torch
from radrecon.operators import LinearOperator


def relative_image_difference(img1: torch.Tensor, img2: torch.Tensor) -> torch.Tensor:
    """Calculate mean absolute relative difference between two images.

    Parameters
    ----------
    img1
        first image
    img2
        second image

    Returns
    -------
        mean absolute relative difference between images
    """
    image_difference = torch.mean(torch.abs(img1 - img2))
    image_mean = 0.5 * torch.mean(torch.abs(img1) + torch.abs(img2))
    if image_mean == 0:
        raise ValueError('average of images should be larger than 0')
    return image_difference / image_mean


def normalized_mse(img1: torch.Tensor, img2: torch.Tensor) -> torch.Tensor:
    """Squared difference of two images after scaling both to unit norm."""
    img1 = img1 / torch.linalg.vector_norm(img1)
    img2 = img2 / torch.linalg.vector_norm(img2)
    return torch.sum(torch.abs(img1 - img2) ** 2)


def dotproduct_adjointness_test(
    operator: LinearOperator,
    u: torch.Tensor,
    v: torch.Tensor,
    relative_tolerance: float = 1e-3,
    absolute_tolerance=1e-5,
):
    """Test the adjointness of linear operator and operator.H.

    Test if
         <Operator(u),v> == <u, Operator^H(v)>
         for one u ∈ domain and one v ∈ range of Operator.
    and if the shapes match.

    Note: This property should hold for all u and v.
    Commonly, this function is called with two random vectors u and v.

    Parameters
    ----------
    operator
        linear operator
    u
        element of the domain of the operator
    v
        element of the range of the operator
    relative_tolerance
        default is pytorch's default for float16
    absolute_tolerance
        default is pytorch's default for float16

    Raises
    ------
    AssertionError
        if the adjointness property does not hold
    AssertionError
        if the shape of operator(u) and v does not match
        if the shape of u and operator.H(v) does not match
    """
    (forward_u,) = operator(u)
    (adjoint_v,) = operator.adjoint(v)

    # explicitly check the shapes, as flatten makes the dot product insensitive to wrong shapes
    assert forward_u.shape == v.shape
    assert adjoint_v.shape == u.shape

    dotproduct_range = torch.vdot(forward_u.flatten(), v.flatten())
    dotproduct_domain = torch.vdot(u.flatten(), adjoint_v.flatten())
    torch.testing.assert_close(dotproduct_range, dotproduct_domain, rtol=relative_tolerance, atol=absolute_tolerance)


def gaussian_blob(shape: tuple[int, ...], sigma: float) -> torch.Tensor:
    """Real valued Gaussian blob centered at index `n//2` of each axis, complex64."""
    axes = [torch.arange(n, dtype=torch.float32) - n // 2 for n in shape]
    r2 = sum(a**2 for a in torch.meshgrid(*axes, indexing='ij'))
    return torch.exp(-r2 / (2 * sigma**2)).to(torch.complex64)
