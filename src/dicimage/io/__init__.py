"""
Image file input/output.

- RAWI: full-precision raw intensities (``.rawi``)
- TIFF and any other Pillow-readable format: 8-bit on write

read_image/write_image pick the format from the file extension.
"""

from pathlib import Path

import numpy as np

from .rawi import read_rawi, write_rawi
from .tiff import read_tiff, write_tiff

RAWI_SUFFIX = ".rawi"


def read_image(path: str | Path) -> np.ndarray:
    """Read a (height, width) intensity array, dispatching on the extension."""
    if Path(path).suffix.lower() == RAWI_SUFFIX:
        return read_rawi(path)
    return read_tiff(path)


def write_image(path: str | Path, intensities: np.ndarray) -> None:
    """Write intensities, dispatching on the extension."""
    if Path(path).suffix.lower() == RAWI_SUFFIX:
        write_rawi(path, intensities)
    else:
        write_tiff(path, intensities)


__all__ = [
    "read_image",
    "write_image",
    "read_rawi",
    "write_rawi",
    "read_tiff",
    "write_tiff",
]
