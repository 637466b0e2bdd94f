"""
Tests for image file input/output (RAWI and TIFF).
"""

import numpy as np
import pytest
from PIL import Image as PILImage

from dicimage import Image, ImageFormatError
from dicimage.io import read_image, read_rawi, read_tiff, write_image, write_rawi
from dicimage.io.rawi import RAWI_HEADER_BYTES


@pytest.fixture
def fractional():
    """Intensities that an 8-bit format cannot represent."""
    return np.array([[0.25, 100.5, 254.75], [-3.0, 300.125, 17.0]], dtype=np.float32)


class TestRawi:
    """Tests for the full-precision RAWI format."""

    def test_round_trip_exact(self, tmp_path, fractional):
        path = tmp_path / "img.rawi"
        write_rawi(path, fractional)
        restored = read_rawi(path)
        assert restored.shape == (2, 3)
        np.testing.assert_array_equal(restored, fractional)

    def test_layout(self, tmp_path, fractional):
        """Test the header (width, height) and row-major payload."""
        path = tmp_path / "img.rawi"
        write_rawi(path, fractional)
        data = path.read_bytes()
        assert len(data) == RAWI_HEADER_BYTES + 6 * 4
        assert np.frombuffer(data[:8], "<u4").tolist() == [3, 2]
        assert np.frombuffer(data[8:], "<f4")[3] == pytest.approx(-3.0)

    def test_truncated_payload(self, tmp_path, fractional):
        path = tmp_path / "img.rawi"
        write_rawi(path, fractional)
        path.write_bytes(path.read_bytes()[:-4])
        with pytest.raises(ImageFormatError):
            read_rawi(path)

    def test_truncated_header(self, tmp_path):
        path = tmp_path / "img.rawi"
        path.write_bytes(b"\x01\x00")
        with pytest.raises(ImageFormatError):
            read_rawi(path)

    def test_format_error_is_os_error(self, tmp_path):
        path = tmp_path / "img.rawi"
        path.write_bytes(b"")
        with pytest.raises(OSError):
            read_image(path)


class TestTiff:
    """Tests for the 8-bit TIFF path."""

    def test_write_truncates(self, tmp_path, fractional):
        """Test that writing clips to [0, 255] and drops fractions."""
        path = tmp_path / "img.tif"
        Image(fractional).write_tiff(path)
        restored = read_tiff(path)
        np.testing.assert_array_equal(
            restored, np.array([[0, 100, 254], [0, 255, 17]], dtype=np.float32)
        )

    def test_rawi_preserves_what_tiff_loses(self, tmp_path, fractional):
        img = Image(fractional)
        img.write_tiff(tmp_path / "img.tif")
        img.write_rawi(tmp_path / "img.rawi")
        assert not np.array_equal(Image.from_file(tmp_path / "img.tif").intensities(), fractional)
        np.testing.assert_array_equal(Image.from_file(tmp_path / "img.rawi").intensities(), fractional)

    def test_read_16_bit(self, tmp_path):
        """Test that 16-bit grayscale keeps its full range."""
        pixels = np.array([[0, 1000], [40000, 65535]], dtype=np.uint16)
        path = tmp_path / "wide.tif"
        PILImage.fromarray(pixels).save(path)
        np.testing.assert_array_equal(read_tiff(path), pixels.astype(np.float32))

    def test_read_color_converts_to_gray(self, tmp_path):
        rgb = np.zeros((3, 4, 3), dtype=np.uint8)
        rgb[..., 1] = 200
        path = tmp_path / "color.png"
        PILImage.fromarray(rgb).save(path)
        gray = read_image(path)
        assert gray.shape == (3, 4)
        assert np.all(gray > 0)

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "bad.tif"
        path.write_bytes(b"not an image at all")
        with pytest.raises(ImageFormatError):
            read_tiff(path)

    def test_write_image_dispatch(self, tmp_path, fractional):
        write_image(tmp_path / "a.rawi", fractional)
        write_image(tmp_path / "a.png", fractional)
        np.testing.assert_array_equal(read_image(tmp_path / "a.rawi"), fractional)
        assert read_image(tmp_path / "a.png")[0, 1] == 100.0
