"""
RAWI (raw intensity) file format.

Unlike 8-bit TIFF, RAWI keeps the full precision of the stored intensities.

Layout (little-endian):
    ┌──────────────┬──────────────┬──────────────────────────────────────┐
    │ uint32 width │ uint32 height│ width*height float32, row-major       │
    └──────────────┴──────────────┴──────────────────────────────────────┘
"""

import logging
from pathlib import Path

import numpy as np

from ..config import INTENSITY_DTYPE
from ..errors import ImageFormatError

logger = logging.getLogger(__name__)

RAWI_HEADER_DTYPE = np.dtype("<u4")
RAWI_VALUE_DTYPE = np.dtype("<f4")
RAWI_HEADER_BYTES = 2 * RAWI_HEADER_DTYPE.itemsize


def write_rawi(path: str | Path, intensities: np.ndarray) -> None:
    """
    Write a (height, width) intensity array to a RAWI file.

    Args:
        path: Destination file
        intensities: 2-D array of intensity values
    """
    path = Path(path)
    height, width = intensities.shape
    header = np.array([width, height], dtype=RAWI_HEADER_DTYPE)
    values = np.ascontiguousarray(intensities, dtype=RAWI_VALUE_DTYPE)
    with open(path, "wb") as f:
        f.write(header.tobytes())
        f.write(values.tobytes())
    logger.debug("wrote %dx%d rawi image to %s", width, height, path)


def read_rawi(path: str | Path) -> np.ndarray:
    """
    Read a RAWI file.

    Returns:
        (height, width) array of INTENSITY_DTYPE

    Raises:
        FileNotFoundError: if the file does not exist
        ImageFormatError: if the header or payload size is inconsistent
    """
    path = Path(path)
    data = path.read_bytes()
    if len(data) < RAWI_HEADER_BYTES:
        raise ImageFormatError(f"{path}: truncated rawi header")

    width, height = (int(v) for v in np.frombuffer(data, RAWI_HEADER_DTYPE, count=2))
    if width == 0 or height == 0:
        raise ImageFormatError(f"{path}: rawi image has zero size ({width}x{height})")

    expected = RAWI_HEADER_BYTES + width * height * RAWI_VALUE_DTYPE.itemsize
    if len(data) != expected:
        raise ImageFormatError(
            f"{path}: rawi payload is {len(data)} bytes, expected {expected} for {width}x{height}"
        )

    values = np.frombuffer(data, RAWI_VALUE_DTYPE, offset=RAWI_HEADER_BYTES)
    logger.debug("read %dx%d rawi image from %s", width, height, path)
    return values.reshape(height, width).astype(INTENSITY_DTYPE)
