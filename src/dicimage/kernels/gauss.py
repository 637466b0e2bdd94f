"""
Gauss filter kernel.

Each output pixel is the weighted sum of the mask_size x mask_size window
centered on it:

    out[y][x] = Σ_i Σ_j mask[i][j] * I[clamp(y+i-h)][clamp(x+j-h)]

where h = (mask_size - 1) / 2 and clamp() maps out-of-range rows/columns
onto the nearest edge pixel (clamp-to-edge). The mask is the outer product
of a sampled 1-D Gaussian, normalized to sum to one so that a constant
image is left unchanged.
"""

import logging

import numpy as np

from ..config import INTENSITY_DTYPE, SCALAR_DTYPE, ExecutionMode, validate_mask_size
from ..errors import ConfigurationError
from .launch import launch

logger = logging.getLogger(__name__)


def default_sigma(mask_size: int) -> float:
    """Standard deviation used when none is configured: a quarter of the window."""
    return max((mask_size - 1) / 4.0, 0.5)


def gaussian_coefficients(mask_size: int, sigma: float | None = None) -> np.ndarray:
    """
    Build a normalized 2-D Gauss mask.

    Args:
        mask_size: Window width (odd, 1 to 13)
        sigma: Standard deviation in pixels (None uses default_sigma)

    Returns:
        (mask_size, mask_size) float64 array summing to 1

    Raises:
        ConfigurationError: if mask_size or sigma is invalid
    """
    mask_size = validate_mask_size(mask_size)
    if sigma is None:
        sigma = default_sigma(mask_size)
    if not sigma > 0:
        raise ConfigurationError(f"gauss sigma must be positive, got {sigma}")

    half = (mask_size - 1) // 2
    offsets = np.arange(-half, half + 1, dtype=SCALAR_DTYPE)
    weights = np.exp(-(offsets**2) / (2.0 * sigma * sigma))
    weights /= weights.sum()
    mask = np.outer(weights, weights)
    return mask / mask.sum()


def convolution_formula(width: int, height: int, coefficients: np.ndarray):
    """Build the per-pixel convolution formula for a width x height image."""
    mask_size = coefficients.shape[0]
    half = (mask_size - 1) // 2

    def formula(source, xs, ys, origin):
        ox, oy = origin
        acc = np.zeros(xs.shape, dtype=SCALAR_DTYPE)
        # Fixed (i, j) summation order in both execution modes
        for i in range(mask_size):
            rows = np.clip(ys + i - half, 0, height - 1) - oy
            for j in range(mask_size):
                cols = np.clip(xs + j - half, 0, width - 1) - ox
                acc += coefficients[i, j] * source[rows, cols].astype(SCALAR_DTYPE)
        return (acc.astype(INTENSITY_DTYPE),)

    return formula


class GaussFilterKernel:
    """
    Smooths an intensity buffer into a separate destination buffer.

    Example:
        >>> kernel = GaussFilterKernel(mask_size=7)
        >>> kernel(intensities, smoothed, ExecutionMode.HIERARCHICAL, team_size=64)
    """

    def __init__(self, mask_size: int = 7, sigma: float | None = None, num_workers: int = 1):
        self.coefficients = gaussian_coefficients(mask_size, sigma)
        self.num_workers = num_workers

    @property
    def mask_size(self) -> int:
        return self.coefficients.shape[0]

    @property
    def half_mask(self) -> int:
        return (self.mask_size - 1) // 2

    def __call__(
        self,
        intensities: np.ndarray,
        output: np.ndarray,
        mode: ExecutionMode,
        team_size: int = 256,
    ) -> None:
        """Filter intensities into output (same shape, not aliased)."""
        if output is intensities or np.may_share_memory(output, intensities):
            raise ConfigurationError("gauss filter output must not alias its input")
        height, width = intensities.shape
        logger.debug(
            "gauss filtering %dx%d image with %dx%d mask (%s)",
            width,
            height,
            self.mask_size,
            self.mask_size,
            mode.name,
        )
        launch(
            convolution_formula(width, height, self.coefficients),
            intensities,
            (output,),
            mode,
            team_size=team_size,
            halo=self.half_mask,
            num_workers=self.num_workers,
        )
