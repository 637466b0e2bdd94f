"""
Memory components.

This module contains the pixel storage components:
- DualView: Host buffer with an explicitly synchronized device mirror
- CoordinateMap: Local/global coordinate translation for sub-images
"""

from .coords import CoordinateMap
from .dual_view import DualView

__all__ = [
    "CoordinateMap",
    "DualView",
]
