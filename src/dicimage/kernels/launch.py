"""
Kernel launch policies.

Both image kernels are written as a single per-pixel formula that is
evaluated over a batch of pixel coordinates. This module decides how the
pixels are grouped into work units and runs the units on a worker pool:

    FLAT:
        pixel index space 0..N-1 is cut into independent ranges, one per
        worker; every pixel reads the device buffer directly.

    HIERARCHICAL:
        ┌──────┬──────┬──────┐   pixels grouped into tiles of team_size
        │ T0   │ T1   │ T2   │   pixels; each team first copies its tile
        ├──────┼──────┼──────┤   plus a halo (clamped to the image) into a
        │ T3   │ T4   │ T5   │   team-local scratch array, then evaluates
        └──────┴──────┴──────┘   the formula against the scratch

The formula receives the array it samples from together with the global
coordinate of that array's first element, so it computes identical values
in both modes.

Results are collected from every unit and only then written to the
destination buffers: a unit that raises leaves the destinations untouched.
"""

import logging
import math
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from ..config import ExecutionMode, validate_team_size

logger = logging.getLogger(__name__)

PixelFormula = Callable[
    [np.ndarray, np.ndarray, np.ndarray, tuple[int, int]], tuple[np.ndarray, ...]
]
"""formula(source, xs, ys, (origin_x, origin_y)) -> one value array per output."""


@dataclass(frozen=True)
class Tile:
    """Rectangle [x0, x1) x [y0, y1) handled by one team."""

    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0

    def coordinates(self) -> tuple[np.ndarray, np.ndarray]:
        """Global (xs, ys) of every pixel in the tile, row-major."""
        ys, xs = np.mgrid[self.y0 : self.y1, self.x0 : self.x1]
        return xs.ravel(), ys.ravel()


@dataclass(frozen=True)
class TeamPolicy:
    """
    Tiling of a width x height image into teams of team_size pixels.

    Tiles are as wide as the team (up to the image width) and as tall as
    needed to hold team_size pixels. Edge tiles are clipped to the image.
    """

    width: int
    height: int
    team_size: int

    def __post_init__(self):
        validate_team_size(self.team_size)

    @property
    def tile_width(self) -> int:
        return min(self.team_size, self.width)

    @property
    def tile_height(self) -> int:
        return max(1, self.team_size // self.tile_width)

    @property
    def league_size(self) -> int:
        """Number of teams."""
        return math.ceil(self.width / self.tile_width) * math.ceil(self.height / self.tile_height)

    def tiles(self) -> list[Tile]:
        tw, th = self.tile_width, self.tile_height
        return [
            Tile(x0, y0, min(x0 + tw, self.width), min(y0 + th, self.height))
            for y0 in range(0, self.height, th)
            for x0 in range(0, self.width, tw)
        ]


def flat_ranges(num_pixels: int, num_workers: int) -> list[range]:
    """Split the pixel index space into at most num_workers contiguous ranges."""
    chunk = max(1, math.ceil(num_pixels / num_workers))
    return [range(start, min(start + chunk, num_pixels)) for start in range(0, num_pixels, chunk)]


def _run_units(units: Sequence, fn: Callable, num_workers: int) -> list:
    """Run fn over every unit and block until all have finished."""
    if num_workers <= 1 or len(units) <= 1:
        return [fn(unit) for unit in units]
    with ThreadPoolExecutor(max_workers=num_workers) as executor:
        return list(executor.map(fn, units))


def launch(
    formula: PixelFormula,
    source: np.ndarray,
    outputs: Sequence[np.ndarray],
    mode: ExecutionMode,
    *,
    team_size: int = 256,
    halo: int = 0,
    num_workers: int = 1,
) -> None:
    """
    Evaluate a per-pixel formula over the whole image.

    Args:
        formula: Per-pixel formula shared by both execution modes
        source: (height, width) array the formula reads from
        outputs: (height, width) destination arrays, one per formula result
        mode: FLAT or HIERARCHICAL
        team_size: Pixels per team (HIERARCHICAL only)
        halo: Neighborhood radius cached around each tile (HIERARCHICAL only)
        num_workers: Worker threads

    Raises:
        ConfigurationError: if team_size is invalid
    """
    height, width = source.shape
    for out in outputs:
        assert out.shape == source.shape, "outputs must match the source shape"

    if mode is ExecutionMode.HIERARCHICAL:
        policy = TeamPolicy(width, height, team_size)

        def run_team(tile: Tile):
            # Team-local scratch: the tile plus its halo, clamped to the image
            sx0, sy0 = max(0, tile.x0 - halo), max(0, tile.y0 - halo)
            sx1, sy1 = min(width, tile.x1 + halo), min(height, tile.y1 + halo)
            scratch = source[sy0:sy1, sx0:sx1].copy()
            xs, ys = tile.coordinates()
            return tile, formula(scratch, xs, ys, (sx0, sy0))

        units = policy.tiles()
        logger.debug(
            "hierarchical launch: %d teams of %dx%d, halo %d, %d workers",
            len(units),
            policy.tile_width,
            policy.tile_height,
            halo,
            num_workers,
        )
        results = _run_units(units, run_team, num_workers)
        for tile, values in results:
            for out, vals in zip(outputs, values, strict=True):
                out[tile.y0 : tile.y1, tile.x0 : tile.x1] = vals.reshape(tile.height, tile.width)

    elif mode is ExecutionMode.FLAT:

        def run_range(pixels: range):
            index = np.arange(pixels.start, pixels.stop)
            xs, ys = index % width, index // width
            return (xs, ys), formula(source, xs, ys, (0, 0))

        units = flat_ranges(width * height, num_workers)
        logger.debug("flat launch: %d pixels over %d work ranges", width * height, len(units))
        results = _run_units(units, run_range, num_workers)
        for (xs, ys), values in results:
            for out, vals in zip(outputs, values, strict=True):
                out[ys, xs] = vals

    else:
        raise ValueError(f"unknown execution mode {mode!r}")
