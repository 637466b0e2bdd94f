"""
Tests for the image kernels.

Tests team tiling, flat work ranges, the finite-difference stencil,
Gauss coefficient generation, and agreement between execution modes.
"""

import numpy as np
import pytest

from dicimage.config import ExecutionMode, GradientMethod
from dicimage.errors import ConfigurationError
from dicimage.kernels import (
    GRAD_C1,
    GRAD_C2,
    GaussFilterKernel,
    GradientKernel,
    TeamPolicy,
    flat_ranges,
    gaussian_coefficients,
    launch,
)


def speckle(width, height, seed=0):
    """Random speckle-like test image."""
    rng = np.random.default_rng(seed)
    return (rng.random((height, width)) * 255.0).astype(np.float32)


# =============================================================================
# Launch Policy Tests
# =============================================================================


class TestLaunch:
    """Tests for tiling and work distribution."""

    def test_team_policy_tiles_cover_image(self):
        """Test that tiles cover every pixel exactly once."""
        policy = TeamPolicy(width=10, height=7, team_size=8)
        coverage = np.zeros((7, 10), dtype=int)
        for tile in policy.tiles():
            coverage[tile.y0 : tile.y1, tile.x0 : tile.x1] += 1
        assert np.all(coverage == 1)
        assert policy.league_size == len(policy.tiles())

    def test_team_policy_wide_team(self):
        """Test that a team wider than the image spans several rows."""
        policy = TeamPolicy(width=5, height=5, team_size=256)
        assert policy.tile_width == 5
        assert policy.tile_height == 51
        assert policy.league_size == 1

    def test_team_policy_invalid_size(self):
        with pytest.raises(ConfigurationError):
            TeamPolicy(width=5, height=5, team_size=0)

    def test_flat_ranges(self):
        """Test that flat ranges partition the pixel index space."""
        ranges = flat_ranges(10, 3)
        assert [list(r) for r in ranges] == [[0, 1, 2, 3], [4, 5, 6, 7], [8, 9]]
        assert flat_ranges(2, 8) == [range(0, 1), range(1, 2)]

    @pytest.mark.parametrize("mode", list(ExecutionMode))
    def test_launch_identity_formula(self, mode):
        """Test that launch writes each pixel's formula value into place."""
        source = speckle(9, 6)
        out = np.zeros_like(source)

        def formula(src, xs, ys, origin):
            return (src[ys - origin[1], xs - origin[0]],)

        launch(formula, source, (out,), mode, team_size=4, halo=1, num_workers=3)
        np.testing.assert_array_equal(out, source)

    def test_failed_unit_commits_nothing(self):
        """Test that an exception in any unit leaves the outputs untouched."""
        source = speckle(8, 8)
        out = np.full_like(source, -1.0)

        def formula(src, xs, ys, origin):
            if np.any(ys == 7):
                raise RuntimeError("boom")
            return (src[ys - origin[1], xs - origin[0]],)

        with pytest.raises(RuntimeError):
            launch(formula, source, (out,), ExecutionMode.HIERARCHICAL, team_size=8, num_workers=2)
        assert np.all(out == -1.0)


# =============================================================================
# Gradient Kernel Tests
# =============================================================================


class TestGradientKernel:
    """Tests for the finite-difference gradient kernel."""

    def run(self, image, mode=ExecutionMode.FLAT, method=GradientMethod.FOURTH_ORDER, **kw):
        gx = np.zeros(image.shape, dtype=np.float64)
        gy = np.zeros(image.shape, dtype=np.float64)
        GradientKernel(method, num_workers=kw.pop("num_workers", 1))(image, gx, gy, mode, **kw)
        return gx, gy

    def test_coefficients_fourth_order(self):
        """Test that the 5-point stencil is exact for a cubic."""
        x = np.arange(-2.0, 3.0)
        f = x**3 - 2 * x**2 + x
        # Derivative at 0 is 1
        deriv = GRAD_C1 * (f[3] - f[1]) + GRAD_C2 * (f[4] - f[0])
        assert deriv == pytest.approx(1.0, abs=1e-12)

    def test_ramp_x(self):
        """Test a linear ramp along x: unit x-gradient, zero y-gradient."""
        image = np.tile(np.arange(5, dtype=np.float32), (5, 1))
        gx, gy = self.run(image)
        np.testing.assert_allclose(gx, 1.0, atol=1e-12)
        np.testing.assert_allclose(gy, 0.0, atol=1e-12)

    def test_ramp_y(self):
        """Test a linear ramp along y with slope 3."""
        image = np.tile(3.0 * np.arange(6, dtype=np.float32)[:, None], (1, 4))
        gx, gy = self.run(image)
        np.testing.assert_allclose(gx, 0.0, atol=1e-12)
        np.testing.assert_allclose(gy, 3.0, atol=1e-12)

    def test_boundary_formulas(self):
        """Test which stencil is used at each margin from the edge."""
        row = np.array([[0.0, 1.0, 4.0, 9.0, 16.0, 25.0, 36.0]], dtype=np.float32)  # x^2
        gx, _ = self.run(row)
        # Edges: one-sided differences
        assert gx[0, 0] == pytest.approx(1.0)
        assert gx[0, 6] == pytest.approx(11.0)
        # One pixel from the edge: 3-point central, exact for x^2
        assert gx[0, 1] == pytest.approx(2.0)
        assert gx[0, 5] == pytest.approx(10.0)
        # Interior: 5-point central
        np.testing.assert_allclose(gx[0, 2:5], [4.0, 6.0, 8.0])

    def test_second_order_method(self):
        """Test that SECOND_ORDER uses the 3-point stencil in the interior."""
        row = np.array([[0.0, 1.0, 8.0, 27.0, 64.0]], dtype=np.float32)  # x^3
        gx_second, _ = self.run(row, method=GradientMethod.SECOND_ORDER)
        gx_fourth, _ = self.run(row)
        assert gx_second[0, 2] == pytest.approx((27.0 - 1.0) / 2)
        assert gx_fourth[0, 2] == pytest.approx(12.0)

    def test_single_pixel_axis(self):
        """Test that an axis of length one has zero derivative."""
        column = np.arange(4, dtype=np.float32).reshape(4, 1)
        gx, gy = self.run(column)
        assert np.all(gx == 0.0)
        np.testing.assert_allclose(gy, 1.0)

    def test_strided_outputs_flat_and_tiled(self):
        """Test that both modes fill column-strided gradient views."""
        image = speckle(9, 5, seed=4)
        expected = self.run(image)
        for mode in ExecutionMode:
            gx = np.zeros((5, 9), dtype=np.float64)
            gy = np.zeros((5, 18), dtype=np.float64)[:, ::2]
            GradientKernel()(image, gx, gy, mode, team_size=8)
            np.testing.assert_array_equal(gx, expected[0])
            np.testing.assert_array_equal(gy, expected[1])

    @pytest.mark.parametrize("team_size", [1, 7, 16, 256])
    def test_flat_matches_hierarchical(self, team_size):
        """Test that both execution modes give identical gradients."""
        image = speckle(23, 17, seed=3)
        flat = self.run(image, ExecutionMode.FLAT, num_workers=3)
        tiled = self.run(image, ExecutionMode.HIERARCHICAL, team_size=team_size, num_workers=2)
        np.testing.assert_array_equal(flat[0], tiled[0])
        np.testing.assert_array_equal(flat[1], tiled[1])


# =============================================================================
# Gauss Filter Kernel Tests
# =============================================================================


class TestGaussFilterKernel:
    """Tests for Gauss coefficients and convolution."""

    @pytest.mark.parametrize("size", [1, 3, 5, 7, 9, 11, 13])
    def test_coefficients_sum_to_one(self, size):
        coeffs = gaussian_coefficients(size)
        assert coeffs.shape == (size, size)
        assert coeffs.sum() == pytest.approx(1.0, abs=1e-12)

    def test_coefficients_symmetric_and_peaked(self):
        coeffs = gaussian_coefficients(7, sigma=1.5)
        np.testing.assert_allclose(coeffs, coeffs.T)
        np.testing.assert_allclose(coeffs, coeffs[::-1, ::-1])
        assert coeffs.argmax() == 3 * 7 + 3

    @pytest.mark.parametrize("size", [15, 14, 0])
    def test_invalid_mask_size(self, size):
        with pytest.raises(ConfigurationError):
            gaussian_coefficients(size)

    def test_mask_size_one_is_identity(self):
        """Test that a 1x1 mask leaves the image unchanged."""
        image = speckle(6, 5)
        out = np.zeros_like(image)
        GaussFilterKernel(mask_size=1)(image, out, ExecutionMode.FLAT)
        np.testing.assert_array_equal(out, image)

    def test_constant_image_invariant(self):
        """Test that filtering a constant image leaves it unchanged."""
        image = np.full((9, 11), 42.5, dtype=np.float32)
        out = np.zeros_like(image)
        GaussFilterKernel(mask_size=13)(image, out, ExecutionMode.HIERARCHICAL, team_size=8)
        np.testing.assert_allclose(out, 42.5, rtol=1e-6)

    def test_clamp_to_edge(self):
        """Test the edge policy against an explicitly edge-padded convolution."""
        image = speckle(7, 6, seed=5)
        kernel = GaussFilterKernel(mask_size=5)
        out = np.zeros_like(image)
        kernel(image, out, ExecutionMode.FLAT)

        padded = np.pad(image.astype(np.float64), 2, mode="edge")
        expected = np.zeros(image.shape)
        for i in range(5):
            for j in range(5):
                expected += kernel.coefficients[i, j] * padded[i : i + 6, j : j + 7]
        np.testing.assert_allclose(out, expected, rtol=1e-6)

    def test_rejects_aliased_output(self):
        image = speckle(4, 4)
        with pytest.raises(ConfigurationError):
            GaussFilterKernel(mask_size=3)(image, image, ExecutionMode.FLAT)

    @pytest.mark.parametrize("size", [3, 7, 13])
    def test_flat_matches_hierarchical(self, size):
        """Test that both execution modes give identical filtered images."""
        image = speckle(21, 18, seed=9)
        kernel = GaussFilterKernel(mask_size=size, num_workers=2)
        flat = np.zeros_like(image)
        tiled = np.zeros_like(image)
        kernel(image, flat, ExecutionMode.FLAT)
        kernel(image, tiled, ExecutionMode.HIERARCHICAL, team_size=10)
        np.testing.assert_array_equal(flat, tiled)

    @pytest.mark.parametrize("mode", list(ExecutionMode))
    def test_strided_output(self, mode):
        """Test that results land in a non-contiguous destination view."""
        image = speckle(6, 6, seed=2)
        expected = np.zeros_like(image)
        GaussFilterKernel(mask_size=3)(image, expected, ExecutionMode.FLAT)

        backing = np.zeros((6, 12), dtype=np.float32)
        out = backing[:, :6]
        GaussFilterKernel(mask_size=3)(image, out, mode, team_size=4)
        np.testing.assert_array_equal(out, expected)
        assert np.all(backing[:, 6:] == 0.0)
