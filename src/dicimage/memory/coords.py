"""
Local/global coordinate mapping.

An Image may hold only a rectangle of a larger global image. Pixel access
is always in local coordinates (the first stored pixel is (0, 0)); the
offset of the rectangle is kept here to translate to and from global
coordinates.

Layout:
    global image
    ┌──────────────────────────────────┐
    │        offset_y                  │
    │  offset_x ┌──────────┐           │
    │           │ (0,0)    │ height    │
    │           │  local   │           │
    │           └──────────┘           │
    │              width               │
    └──────────────────────────────────┘

x grows to the right, y grows downward.
"""

from dataclasses import dataclass

from ..errors import PreconditionViolation


@dataclass(frozen=True)
class CoordinateMap:
    """
    Offset and extent of a local pixel buffer within a global image.

    Example:
        >>> cmap = CoordinateMap(offset_x=10, offset_y=20, width=4, height=3)
        >>> cmap.to_global(1, 2)
        (11, 22)
    """

    offset_x: int
    offset_y: int
    width: int
    height: int

    def __post_init__(self):
        assert self.offset_x >= 0, "offset_x must be non-negative"
        assert self.offset_y >= 0, "offset_y must be non-negative"
        assert self.width > 0, "width must be positive"
        assert self.height > 0, "height must be positive"

    @property
    def num_pixels(self) -> int:
        return self.width * self.height

    def contains_local(self, x: int, y: int) -> bool:
        """True if (x, y) is inside [0, width) x [0, height)."""
        return 0 <= x < self.width and 0 <= y < self.height

    def contains_global(self, gx: int, gy: int) -> bool:
        """True if the global point falls inside this buffer."""
        return self.contains_local(gx - self.offset_x, gy - self.offset_y)

    def to_global(self, x: int, y: int) -> tuple[int, int]:
        """Convert local coordinates to global coordinates."""
        return x + self.offset_x, y + self.offset_y

    def to_local(self, gx: int, gy: int) -> tuple[int, int]:
        """
        Convert global coordinates to local coordinates.

        Raises:
            PreconditionViolation: if the point is outside this buffer
        """
        if not self.contains_global(gx, gy):
            raise PreconditionViolation(
                f"global point ({gx}, {gy}) is outside region "
                f"[{self.offset_x}, {self.offset_x + self.width}) x "
                f"[{self.offset_y}, {self.offset_y + self.height})"
            )
        return gx - self.offset_x, gy - self.offset_y
