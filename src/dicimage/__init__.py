"""
dicimage - pixel container for digital image correlation.

This package holds single-channel intensity images and computes their
spatial gradients and Gauss-filtered copies with data-parallel kernels
that run either flat (one work unit per pixel) or hierarchically (teams
sharing cached tiles).
"""

from .config import ExecutionMode, GradientMethod, ImageConfig
from .errors import ConfigurationError, ImageError, ImageFormatError, PreconditionViolation
from .image import Image

__version__ = "0.1.0"
__all__ = [
    "Image",
    "ImageConfig",
    "ExecutionMode",
    "GradientMethod",
    "ImageError",
    "ConfigurationError",
    "PreconditionViolation",
    "ImageFormatError",
    "__version__",
]
