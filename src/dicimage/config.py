"""
dicimage Configuration Module

This module defines the configuration dataclass for the image container.
Filter, gradient and kernel-launch parameters are specified here and
propagate through the construction and kernel calls of an Image.

Note: values are validated at use time (when an Image is built with the
config or a kernel is launched), not when the dataclass is created, so a
config can be assembled piecewise from a parameter mapping.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any

import numpy as np

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

INTENSITY_DTYPE = np.float32
"""Storage type of pixel intensities (and of Gauss-filtered output)."""

SCALAR_DTYPE = np.float64
"""Storage type of gradients and filter coefficients."""

MAX_GAUSS_MASK_SIZE = 13
"""Largest supported Gauss filter window (13 x 13)."""

MAX_TEAM_SIZE = 1024
"""Largest number of pixels handled by one team in hierarchical launches."""


class GradientMethod(Enum):
    """
    Finite-difference stencils for image gradients.

    - FOURTH_ORDER: 5-point central stencil in the interior, 3-point central
      one pixel from an edge, one-sided on the edge itself
    - SECOND_ORDER: 3-point central stencil everywhere except the edge
    """

    FOURTH_ORDER = 0
    SECOND_ORDER = 1


class ExecutionMode(Enum):
    """Kernel execution strategies."""

    FLAT = 0  # One independent work unit per pixel
    HIERARCHICAL = 1  # Pixels grouped into teams sharing a cached tile


@dataclass
class ImageConfig:
    """
    Configuration for an Image and the kernels it launches.

    Example:
        >>> config = ImageConfig(gauss_filter_mask_size=5, num_workers=4)
        >>> print(config.half_mask)  # 2
    """

    # =========================================================================
    # Gauss Filter
    # =========================================================================
    gauss_filter_mask_size: int = 7
    """Width of the square Gauss window (odd, 1 to 13)."""

    gauss_filter_sigma: float | None = None
    """Standard deviation of the Gauss mask in pixels (None derives it from the size)."""

    gauss_filter_image: bool = False
    """If True, the intensities are Gauss filtered in place during construction."""

    # =========================================================================
    # Gradients
    # =========================================================================
    gradient_method: GradientMethod = GradientMethod.FOURTH_ORDER
    """Finite-difference stencil used by compute_gradients()."""

    compute_image_gradients: bool = False
    """If True, gradients are computed during construction."""

    # =========================================================================
    # Kernel Launch
    # =========================================================================
    use_hierarchical_parallelism: bool = False
    """Default strategy: team/tile execution instead of one unit per pixel."""

    team_size: int = 256
    """Pixels per team for hierarchical execution."""

    num_workers: int = 1
    """Number of worker threads kernels are spread over."""

    # =========================================================================
    # Memory
    # =========================================================================
    shared_host_device: bool = False
    """If True, host and device views are one array and sync is a no-op."""

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def half_mask(self) -> int:
        """Half width of the Gauss window, (mask_size - 1) / 2."""
        return (self.gauss_filter_mask_size - 1) // 2

    @property
    def execution_mode(self) -> ExecutionMode:
        """Default execution mode derived from use_hierarchical_parallelism."""
        if self.use_hierarchical_parallelism:
            return ExecutionMode.HIERARCHICAL
        return ExecutionMode.FLAT

    def __post_init__(self):
        """Normalize enum fields given by name."""
        if isinstance(self.gradient_method, str):
            try:
                self.gradient_method = GradientMethod[self.gradient_method.upper()]
            except KeyError:
                raise ConfigurationError(
                    f"unknown gradient_method {self.gradient_method!r}"
                ) from None

    def validate(self) -> "ImageConfig":
        """
        Validate configuration parameters.

        Returns:
            self, so the call can be chained

        Raises:
            ConfigurationError: if any parameter is out of range
        """
        validate_mask_size(self.gauss_filter_mask_size)
        if self.gauss_filter_sigma is not None and not self.gauss_filter_sigma > 0:
            raise ConfigurationError("gauss_filter_sigma must be positive")
        if not isinstance(self.gradient_method, GradientMethod):
            raise ConfigurationError(f"invalid gradient_method {self.gradient_method!r}")
        validate_team_size(self.team_size)
        if not isinstance(self.num_workers, int) or self.num_workers < 1:
            raise ConfigurationError("num_workers must be a positive integer")
        return self

    @classmethod
    def from_dict(cls, params: Mapping[str, Any] | None) -> "ImageConfig":
        """
        Build a config from a parameter mapping.

        Unrecognized keys are ignored.

        Args:
            params: Mapping of field name to value (None gives defaults)
        """
        if not params:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in params.items():
            if key in known:
                kwargs[key] = value
            else:
                logger.debug("ignoring unrecognized image parameter %r", key)
        return cls(**kwargs)

    def with_overrides(self, **changes: Any) -> "ImageConfig":
        """Return a copy with the given fields replaced (None values are skipped)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def validate_mask_size(mask_size: int) -> int:
    """
    Check a Gauss mask size.

    Raises:
        ConfigurationError: if the size is not an odd integer in [1, 13]
    """
    if not isinstance(mask_size, (int, np.integer)) or isinstance(mask_size, bool):
        raise ConfigurationError(f"gauss mask size must be an integer, got {mask_size!r}")
    if mask_size <= 0 or mask_size > MAX_GAUSS_MASK_SIZE:
        raise ConfigurationError(
            f"gauss mask size must be in [1, {MAX_GAUSS_MASK_SIZE}], got {mask_size}"
        )
    if mask_size % 2 == 0:
        raise ConfigurationError(f"gauss mask size must be odd, got {mask_size}")
    return int(mask_size)


def validate_team_size(team_size: int) -> int:
    """
    Check a hierarchical team size.

    Raises:
        ConfigurationError: if the size is not an integer in [1, MAX_TEAM_SIZE]
    """
    if not isinstance(team_size, (int, np.integer)) or isinstance(team_size, bool):
        raise ConfigurationError(f"team_size must be an integer, got {team_size!r}")
    if team_size < 1 or team_size > MAX_TEAM_SIZE:
        raise ConfigurationError(f"team_size must be in [1, {MAX_TEAM_SIZE}], got {team_size}")
    return int(team_size)


# Pre-defined configurations
DEFAULT_CONFIG = ImageConfig()
"""Default configuration."""

HIERARCHICAL_CONFIG = ImageConfig(
    use_hierarchical_parallelism=True,
    team_size=256,
    num_workers=4,
)
"""Team-tiled kernels spread over four workers."""

SMOOTHING_CONFIG = ImageConfig(
    gauss_filter_image=True,
    gauss_filter_mask_size=7,
    compute_image_gradients=True,
)
"""Filter on load, then differentiate the smoothed intensities."""
