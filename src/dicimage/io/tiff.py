"""
TIFF (and other Pillow-readable) image files.

Reading keeps 16-bit and floating-point grayscale data at full precision;
color images are converted to single-channel luminance. Writing always
produces an 8-bit grayscale file, so intensities are clipped to [0, 255]
and truncated.
"""

import logging
from pathlib import Path

import numpy as np
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from ..config import INTENSITY_DTYPE
from ..errors import ImageFormatError

logger = logging.getLogger(__name__)

# Pillow modes that hold a single channel at more than 8 bits
_WIDE_GRAY_MODES = {"I", "F", "I;16", "I;16B", "I;16L", "I;16N"}


def read_tiff(path: str | Path) -> np.ndarray:
    """
    Decode an image file into a (height, width) intensity array.

    Raises:
        FileNotFoundError: if the file does not exist
        ImageFormatError: if Pillow cannot decode the file
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Image not found: {path}")
    try:
        with PILImage.open(path) as img:
            if img.mode not in _WIDE_GRAY_MODES and img.mode != "L":
                img = img.convert("L")
            pixels = np.asarray(img)
    except (UnidentifiedImageError, OSError) as err:
        raise ImageFormatError(f"{path}: unreadable image ({err})") from err

    if pixels.ndim != 2:
        raise ImageFormatError(f"{path}: expected a single-channel image, got {pixels.shape}")
    logger.debug("read %dx%d %s image from %s", pixels.shape[1], pixels.shape[0], path.suffix, path)
    return pixels.astype(INTENSITY_DTYPE)


def write_tiff(path: str | Path, intensities: np.ndarray) -> None:
    """Write intensities as an 8-bit grayscale image (format from the extension)."""
    path = Path(path)
    pixels = np.clip(intensities, 0, 255).astype(np.uint8)
    PILImage.fromarray(pixels).save(path)
    logger.debug("wrote %dx%d 8-bit image to %s", pixels.shape[1], pixels.shape[0], path)
