"""
Image gradient kernel.

Spatial derivatives are computed with a 1-D finite-difference stencil
applied independently along x and along y. The stencil used at a pixel
depends on its margin to the nearest edge along the differentiation axis:

    margin >= 2   5-point central   c1*(I[+1]-I[-1]) + c2*(I[+2]-I[-2])
    margin == 1   3-point central   (I[+1]-I[-1]) / 2
    margin == 0   one-sided         I[1]-I[0]  or  I[n-1]-I[n-2]

With unit pixel spacing the 5-point stencil is exact for polynomials up
to degree four when c1 = 2/3 and c2 = -1/12. The SECOND_ORDER method uses
the 3-point stencil for every pixel with a margin of at least one.
"""

import logging
from collections.abc import Callable

import numpy as np

from ..config import SCALAR_DTYPE, ExecutionMode, GradientMethod
from .launch import launch

logger = logging.getLogger(__name__)

GRAD_C1 = 2.0 / 3.0
"""Weight of the +/-1 neighbors in the 5-point stencil."""

GRAD_C2 = -1.0 / 12.0
"""Weight of the +/-2 neighbors in the 5-point stencil."""

# Neighborhood radius read by the widest stencil
GRADIENT_HALO = 2


def stencil_derivative(
    sample: Callable[[int], np.ndarray],
    pos: np.ndarray,
    length: int,
    method: GradientMethod,
) -> np.ndarray:
    """
    Derivative along one axis for a batch of pixels.

    Args:
        sample: sample(k) returns the intensities at pos + k, with positions
            clamped into [0, length)
        pos: Positions of the pixels along the axis
        length: Image extent along the axis
        method: Stencil selection

    Returns:
        Derivative values (float64), one per pixel
    """
    if length == 1:
        return np.zeros(pos.shape, dtype=SCALAR_DTYPE)

    margin = np.minimum(pos, length - 1 - pos)
    center = sample(0)
    plus1 = sample(1)
    minus1 = sample(-1)

    choices = []
    conditions = []
    if method is GradientMethod.FOURTH_ORDER:
        plus2 = sample(2)
        minus2 = sample(-2)
        conditions.append(margin >= 2)
        choices.append(GRAD_C1 * (plus1 - minus1) + GRAD_C2 * (plus2 - minus2))
    conditions.append(margin >= 1)
    choices.append(0.5 * (plus1 - minus1))
    conditions.append(pos == 0)
    choices.append(plus1 - center)

    # Remaining pixels sit on the trailing edge: backward difference
    return np.select(conditions, choices, default=center - minus1)


def gradient_formula(width: int, height: int, method: GradientMethod):
    """
    Build the per-pixel gradient formula for a width x height image.

    The returned callable samples the array it is given, whose first element
    sits at global coordinate origin, and returns (grad_x, grad_y).
    """

    def formula(source, xs, ys, origin):
        ox, oy = origin
        rows = ys - oy
        cols = xs - ox

        def sample_x(k):
            return source[rows, np.clip(xs + k, 0, width - 1) - ox].astype(SCALAR_DTYPE)

        def sample_y(k):
            return source[np.clip(ys + k, 0, height - 1) - oy, cols].astype(SCALAR_DTYPE)

        grad_x = stencil_derivative(sample_x, xs, width, method)
        grad_y = stencil_derivative(sample_y, ys, height, method)
        return grad_x, grad_y

    return formula


class GradientKernel:
    """
    Computes grad_x and grad_y of an intensity buffer.

    Example:
        >>> kernel = GradientKernel(GradientMethod.FOURTH_ORDER)
        >>> kernel(intensities, grad_x, grad_y, ExecutionMode.FLAT)
    """

    def __init__(self, method: GradientMethod = GradientMethod.FOURTH_ORDER, num_workers: int = 1):
        self.method = method
        self.num_workers = num_workers

    def __call__(
        self,
        intensities: np.ndarray,
        grad_x: np.ndarray,
        grad_y: np.ndarray,
        mode: ExecutionMode,
        team_size: int = 256,
    ) -> None:
        """
        Fill grad_x and grad_y from intensities.

        All three arrays are (height, width); the destinations must not
        alias the source.
        """
        height, width = intensities.shape
        logger.debug(
            "computing %s gradients of %dx%d image (%s)",
            self.method.name,
            width,
            height,
            mode.name,
        )
        launch(
            gradient_formula(width, height, self.method),
            intensities,
            (grad_x, grad_y),
            mode,
            team_size=team_size,
            halo=GRADIENT_HALO,
            num_workers=self.num_workers,
        )
