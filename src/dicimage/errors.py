"""
Error types raised by dicimage.

Every error derives from ImageError so callers can catch the package's
failures in one place, while each kind also derives from the builtin it
refines (ValueError, RuntimeError, OSError).
"""


class ImageError(Exception):
    """Base class for dicimage errors."""


class ConfigurationError(ImageError, ValueError):
    """
    Invalid configuration or construction arguments.

    Raised for array/dimension mismatches, unsupported Gauss mask sizes,
    invalid team sizes and sub-regions that exceed the source image.
    """


class PreconditionViolation(ImageError, RuntimeError):
    """
    A call was made in a state that does not allow it.

    Examples: reading gradients before compute_gradients(), indexing
    outside [0, width) x [0, height), or reading a stale mirror view.
    """


class ImageFormatError(ImageError, OSError):
    """A file exists but is not a readable image in a supported format."""


__all__ = [
    "ImageError",
    "ConfigurationError",
    "PreconditionViolation",
    "ImageFormatError",
]
