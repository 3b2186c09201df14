from ._RandomGenerator import RandomGenerator
from .helper import relative_image_difference, dotproduct_adjointness_test, gaussian_blob, normalized_mse
