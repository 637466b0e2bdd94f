"""
Image pixel container.

An Image holds the intensity values of a single-channel image (or of a
rectangle cut from a larger image) and derives two artifacts from them:
the spatial gradients and a Gauss-filtered copy.

Coordinates are measured from the top-left corner, x to the right and y
downward. Pixel access always uses local coordinates: if only a portion
of a file is loaded, the first stored pixel is (0, 0) even though it is
not the top-left pixel of the global image. The offset of the portion is
kept for translation to global coordinates.

Internally arrays are stored (row, column), i.e. indexed [y, x]; the
public accessors take (x, y).

Memory:
    intensities ─── DualView ──► kernels read the device copy
    grad_x/grad_y ─ DualView ◄── gradient kernel writes the device copy
    filtered ────── DualView ◄── Gauss kernel writes the device copy

Every kernel call pushes pending host writes before launching and pulls
its results before returning, so host reads after a call are never stale.
"""

import logging
from pathlib import Path
from typing import Any

import numpy as np

from .config import (
    INTENSITY_DTYPE,
    SCALAR_DTYPE,
    ExecutionMode,
    ImageConfig,
    validate_team_size,
)
from .errors import ConfigurationError, PreconditionViolation
from .io import read_image
from .io.rawi import write_rawi
from .io.tiff import write_tiff
from .kernels.gauss import GaussFilterKernel
from .kernels.gradient import GRAD_C1, GRAD_C2, GradientKernel
from .memory import CoordinateMap, DualView

logger = logging.getLogger(__name__)


def _check_adoptable(array: np.ndarray) -> None:
    if (
        array.dtype != INTENSITY_DTYPE
        or not array.flags.c_contiguous
        or not array.flags.writeable
    ):
        raise ConfigurationError(
            f"adopted arrays must be writeable C-contiguous {np.dtype(INTENSITY_DTYPE).name}"
        )


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


class Image:
    """
    Container for pixel intensities, gradients and filtered intensities.

    Use one of the classmethod constructors:

    Example:
        >>> img = Image.from_array(np.arange(25.0), width=5, height=5)
        >>> img.compute_gradients()
        >>> img.grad_x(2, 2)
        1.0
    """

    def __init__(
        self,
        intensities: np.ndarray,
        offset_x: int = 0,
        offset_y: int = 0,
        config: ImageConfig | None = None,
        *,
        adopt: bool = False,
    ):
        """
        Initialize an image from a (height, width) array.

        Args:
            intensities: 2-D row-major intensity values
            offset_x: x-coordinate of the top-left pixel in the global image
            offset_y: y-coordinate of the top-left pixel in the global image
            config: Image configuration (defaults if None)
            adopt: Share the given array instead of copying it; the array
                must be writeable C-contiguous INTENSITY_DTYPE

        Raises:
            ConfigurationError: on invalid dimensions, offsets or config
        """
        config = (config if config is not None else ImageConfig()).validate()

        array = np.asarray(intensities)
        if array.ndim != 2 or array.size == 0:
            raise ConfigurationError(
                f"intensities must be a non-empty 2-D array, got shape {array.shape}"
            )
        if offset_x < 0 or offset_y < 0:
            raise ConfigurationError(f"offsets must be non-negative, got ({offset_x}, {offset_y})")
        if adopt:
            _check_adoptable(array)
        else:
            array = np.array(array, dtype=INTENSITY_DTYPE, order="C", copy=True)

        height, width = array.shape
        self._config = config
        self._coords = CoordinateMap(offset_x, offset_y, width, height)
        self._intensities = DualView.adopt(array, shared=config.shared_host_device)

        # Derived buffers, allocated on first computation
        self._grad_x: DualView | None = None
        self._grad_y: DualView | None = None
        self._filtered: DualView | None = None
        self._has_gradients = False

        self._gradient_kernel = GradientKernel(config.gradient_method, config.num_workers)
        self._gauss_kernel = GaussFilterKernel(
            config.gauss_filter_mask_size, config.gauss_filter_sigma, config.num_workers
        )

        logger.debug(
            "created %dx%d image at offset (%d, %d)%s",
            width,
            height,
            offset_x,
            offset_y,
            " (adopted buffer)" if adopt else "",
        )

        if config.gauss_filter_image:
            self.gauss_filter()
        if config.compute_image_gradients:
            self.compute_gradients()

    # =========================================================================
    # Construction Variants
    # =========================================================================

    @classmethod
    def from_file(cls, path: str | Path, config: ImageConfig | None = None) -> "Image":
        """
        Read a whole image file (TIFF or any Pillow format, or RAWI).

        Raises:
            FileNotFoundError: if the file does not exist
            ImageFormatError: if the file cannot be decoded
        """
        pixels = read_image(path)
        return cls(pixels, config=config, adopt=True)

    @classmethod
    def from_file_region(
        cls,
        path: str | Path,
        offset_x: int,
        offset_y: int,
        width: int,
        height: int,
        config: ImageConfig | None = None,
    ) -> "Image":
        """
        Read only a rectangle of an image file.

        Args:
            path: Image file
            offset_x: Upper-left x-coordinate of the rectangle
            offset_y: Upper-left y-coordinate of the rectangle
            width: Rectangle width (offset_x + width <= file width)
            height: Rectangle height (offset_y + height <= file height)
            config: Image configuration

        Raises:
            ConfigurationError: if the rectangle does not fit in the file
        """
        pixels = read_image(path)
        src_height, src_width = pixels.shape
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"region size must be positive, got {width}x{height}")
        if offset_x < 0 or offset_y < 0:
            raise ConfigurationError(f"offsets must be non-negative, got ({offset_x}, {offset_y})")
        if offset_x + width > src_width or offset_y + height > src_height:
            raise ConfigurationError(
                f"region ({offset_x}, {offset_y}) {width}x{height} exceeds "
                f"source image {src_width}x{src_height}"
            )
        region = pixels[offset_y : offset_y + height, offset_x : offset_x + width]
        return cls(region, offset_x=offset_x, offset_y=offset_y, config=config)

    @classmethod
    def from_array(
        cls,
        intensities: Any,
        width: int,
        height: int,
        config: ImageConfig | None = None,
        copy: bool = True,
    ) -> "Image":
        """
        Build an image from row-major intensity data.

        Args:
            intensities: Flat (or already 2-D) array-like of width*height values
            width: Image width
            height: Image height
            config: Image configuration
            copy: If False, the image shares the caller's array (which must be
                writeable C-contiguous INTENSITY_DTYPE); writes through the
                image, such as an in-place Gauss filter, are then visible to
                the caller

        Raises:
            ConfigurationError: if the length does not equal width*height
        """
        if width <= 0 or height <= 0:
            raise ConfigurationError(f"width and height must be positive, got {width}x{height}")
        array = np.asarray(intensities)
        if array.size != width * height:
            raise ConfigurationError(
                f"array holds {array.size} values, expected {width}*{height}={width * height}"
            )
        if not copy:
            _check_adoptable(array)
        return cls(array.reshape(height, width), config=config, adopt=not copy)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def config(self) -> ImageConfig:
        return self._config

    @property
    def width(self) -> int:
        return self._coords.width

    @property
    def height(self) -> int:
        return self._coords.height

    @property
    def num_pixels(self) -> int:
        return self._coords.num_pixels

    @property
    def offset_x(self) -> int:
        """Offset used to convert to global image coordinates."""
        return self._coords.offset_x

    @property
    def offset_y(self) -> int:
        """Offset used to convert to global image coordinates."""
        return self._coords.offset_y

    @property
    def coordinates(self) -> CoordinateMap:
        return self._coords

    @property
    def grad_c1(self) -> float:
        return GRAD_C1

    @property
    def grad_c2(self) -> float:
        return GRAD_C2

    @property
    def gauss_coefficients(self) -> np.ndarray:
        return self._gauss_kernel.coefficients.copy()

    @property
    def gauss_mask_size(self) -> int:
        return self._gauss_kernel.mask_size

    def _check_coords(self, x: int, y: int) -> None:
        if not all(isinstance(v, (int, np.integer)) and not isinstance(v, bool) for v in (x, y)):
            raise PreconditionViolation(f"pixel coordinates must be integers, got ({x!r}, {y!r})")
        if not self._coords.contains_local(x, y):
            raise PreconditionViolation(
                f"pixel ({x}, {y}) is outside [0, {self.width}) x [0, {self.height})"
            )

    def __call__(self, x: int, y: int) -> float:
        """Intensity at local coordinates (x, y)."""
        self._check_coords(x, y)
        return float(self._intensities.host_view()[y, x])

    def intensities(self) -> np.ndarray:
        """Read-only (height, width) view of the host intensities."""
        return _read_only(self._intensities.host_view())

    def update_intensities(self, values: Any) -> None:
        """
        Overwrite the host intensities.

        The change is pushed to the device copy by the next kernel call.
        """
        values = np.asarray(values, dtype=INTENSITY_DTYPE)
        if values.size != self.num_pixels:
            raise ConfigurationError(
                f"got {values.size} values for a {self.width}x{self.height} image"
            )
        np.copyto(self._intensities.host_view(), values.reshape(self.height, self.width))
        self._intensities.modify_host()

    def has_gradients(self) -> bool:
        """True once compute_gradients() has completed."""
        return self._has_gradients

    def _require_gradients(self) -> None:
        if not self._has_gradients:
            raise PreconditionViolation("gradients have not been computed")

    def grad_x(self, x: int, y: int) -> float:
        """x-gradient at local coordinates (x, y)."""
        self._require_gradients()
        self._check_coords(x, y)
        return float(self._grad_x.host_view()[y, x])

    def grad_y(self, x: int, y: int) -> float:
        """y-gradient at local coordinates (x, y)."""
        self._require_gradients()
        self._check_coords(x, y)
        return float(self._grad_y.host_view()[y, x])

    def grad_x_array(self) -> np.ndarray:
        self._require_gradients()
        return _read_only(self._grad_x.host_view())

    def grad_y_array(self) -> np.ndarray:
        self._require_gradients()
        return _read_only(self._grad_y.host_view())

    def filtered_intensities(self) -> np.ndarray:
        """Read-only view of the output of the last gauss_filter() call."""
        if self._filtered is None:
            raise PreconditionViolation("gauss_filter() has not been run")
        return _read_only(self._filtered.host_view())

    # =========================================================================
    # Kernels
    # =========================================================================

    def _launch_params(
        self, use_hierarchical_parallelism: bool | None, team_size: int | None
    ) -> tuple[ExecutionMode, int]:
        if use_hierarchical_parallelism is None:
            mode = self._config.execution_mode
        elif use_hierarchical_parallelism:
            mode = ExecutionMode.HIERARCHICAL
        else:
            mode = ExecutionMode.FLAT
        team_size = validate_team_size(self._config.team_size if team_size is None else team_size)
        return mode, team_size

    def _allocate(self, view: DualView | None, dtype) -> DualView:
        if view is not None:
            return view
        return DualView.allocate(
            (self.height, self.width), dtype, shared=self._config.shared_host_device
        )

    def compute_gradients(
        self,
        use_hierarchical_parallelism: bool | None = None,
        team_size: int | None = None,
    ) -> None:
        """
        Compute the image gradients.

        Args:
            use_hierarchical_parallelism: Team/tile execution instead of one
                work unit per pixel (None uses the config)
            team_size: Pixels per team (None uses the config)

        Raises:
            ConfigurationError: if team_size is invalid; the previous
                gradients and has_gradients() are left unchanged
        """
        mode, team_size = self._launch_params(use_hierarchical_parallelism, team_size)

        self._intensities.sync_device()
        grad_x = self._allocate(self._grad_x, SCALAR_DTYPE)
        grad_y = self._allocate(self._grad_y, SCALAR_DTYPE)

        self._gradient_kernel(
            self._intensities.device_view(),
            grad_x.device_view(),
            grad_y.device_view(),
            mode,
            team_size=team_size,
        )

        for view in (grad_x, grad_y):
            view.modify_device()
            view.sync_host()
        self._grad_x, self._grad_y = grad_x, grad_y
        self._has_gradients = True

    def gauss_filter(
        self,
        use_hierarchical_parallelism: bool | None = None,
        team_size: int | None = None,
        in_place: bool = True,
    ) -> np.ndarray:
        """
        Gauss filter the image.

        The result is always computed into a separate buffer; with in_place
        it then replaces the intensities.

        Args:
            use_hierarchical_parallelism: Team/tile execution instead of one
                work unit per pixel (None uses the config)
            team_size: Pixels per team (None uses the config)
            in_place: Replace the intensities with the filtered values

        Returns:
            Read-only view of the filtered intensities
        """
        mode, team_size = self._launch_params(use_hierarchical_parallelism, team_size)

        self._intensities.sync_device()
        filtered = self._allocate(self._filtered, INTENSITY_DTYPE)

        self._gauss_kernel(
            self._intensities.device_view(),
            filtered.device_view(),
            mode,
            team_size=team_size,
        )

        filtered.modify_device()
        filtered.sync_host()

        if in_place:
            np.copyto(self._intensities.host_view(), filtered.host_view())
            self._intensities.modify_host()
            self._intensities.sync_device()
        self._filtered = filtered
        return self.filtered_intensities()

    # =========================================================================
    # Output
    # =========================================================================

    def write_tiff(self, path: str | Path) -> None:
        """Write the intensities as an 8-bit image (values truncated)."""
        write_tiff(path, self._intensities.host_view())

    def write_rawi(self, path: str | Path) -> None:
        """Write the intensities at full precision in RAWI format."""
        write_rawi(path, self._intensities.host_view())

    def get_statistics(self) -> dict[str, Any]:
        """Host/device transfer statistics of the intensity buffer."""
        return self._intensities.get_statistics()

    def __repr__(self) -> str:
        return (
            f"Image(width={self.width}, height={self.height}, "
            f"offset=({self.offset_x}, {self.offset_y}), "
            f"has_gradients={self._has_gradients})"
        )
