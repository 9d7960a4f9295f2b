"""
Test per-pixel tone and saturation transforms.
"""

import numpy as np
import pytest

from filterstack.filters.color_space import linear_to_srgb, srgb_to_linear
from filterstack.filters.tone import blacks, saturation_linear, smoothstep, vibrance, whites


def _spread(rgb) -> float:
    rgb = np.asarray(rgb)
    return float(rgb.max() - rgb.min())


class TestSmoothstep:
    def test_rising(self):
        assert smoothstep(0.4, 0.8, 0.3) == 0.0
        assert smoothstep(0.4, 0.8, 0.6) == pytest.approx(0.5)
        assert smoothstep(0.4, 0.8, 0.9) == 1.0

    def test_inverted_edges_fall(self):
        assert smoothstep(0.8, 0.2, 0.1) == 1.0
        assert smoothstep(0.8, 0.2, 0.5) == pytest.approx(0.5)
        assert smoothstep(0.8, 0.2, 0.9) == 0.0

    def test_equal_edges_step(self):
        assert smoothstep(0.5, 0.5, 0.4) == 0.0
        assert smoothstep(0.5, 0.5, 0.5) == 1.0

    def test_cubic_shape(self):
        t = 0.25
        assert smoothstep(0.0, 1.0, t) == pytest.approx(t * t * (3 - 2 * t))


class TestWhitesBlacks:
    """Test luma-weighted tone shifts."""

    def test_whites_ignores_shadows(self):
        np.testing.assert_array_equal(whites([20, 20, 20], 50), [20, 20, 20])

    def test_whites_full_weight_on_highlights(self):
        np.testing.assert_allclose(whites([210, 210, 210], 30), [240, 240, 240])

    def test_whites_partial_weight(self):
        rgb = np.array([180.0, 180.0, 180.0])
        t = (180 / 255 - 0.4) / 0.4
        weight = t * t * (3 - 2 * t)
        np.testing.assert_allclose(whites(rgb, 40), rgb + 40 * weight)

    def test_whites_clamped(self):
        np.testing.assert_allclose(whites([250, 250, 250], 100), [255, 255, 255])

    def test_blacks_full_weight_on_shadows(self):
        np.testing.assert_allclose(blacks([20, 20, 20], -20), [0, 0, 0])
        np.testing.assert_allclose(blacks([20, 30, 40], 10), [30, 40, 50])

    def test_blacks_ignores_highlights(self):
        np.testing.assert_array_equal(blacks([240, 240, 240], 50), [240, 240, 240])

    def test_same_adjustment_on_all_channels(self):
        out = whites([200, 180, 160], 25) - np.array([200, 180, 160])
        assert out[0] == pytest.approx(out[1])
        assert out[1] == pytest.approx(out[2])

    def test_image_shape(self, rng):
        img = rng.uniform(0, 255, size=(4, 6, 3))
        assert whites(img, 10).shape == (4, 6, 3)
        assert blacks(img, 10).shape == (4, 6, 3)


class TestVibrance:
    """Test adaptive saturation in gamma and linear mode."""

    @pytest.mark.parametrize("linear", [False, True])
    def test_gray_unchanged(self, linear):
        for value in (0, 1, 77, 128, 255):
            rgb = [value, value, value]
            np.testing.assert_array_equal(vibrance(rgb, 1.0, linear=linear), rgb)

    @pytest.mark.parametrize("linear", [False, True])
    def test_zero_amount_is_identity(self, linear):
        rgb = np.array([200.0, 150.0, 100.0])
        np.testing.assert_allclose(vibrance(rgb, 0.0, linear=linear), rgb, atol=1e-9)

    def test_gamma_formula(self):
        rgb = np.array([200.0, 150.0, 100.0])
        s = (200 - 100) / 200
        f = 1 + 0.5 * (1 - s)
        gray = 0.299 * 200 + 0.587 * 150 + 0.114 * 100
        np.testing.assert_allclose(vibrance(rgb, 0.5), gray + (rgb - gray) * f)

    def test_linear_formula(self):
        rgb = np.array([200.0, 150.0, 100.0])
        lin = srgb_to_linear(rgb)
        s = (lin.max() - lin.min()) / lin.max()
        f = 1 + 0.5 * (1 - s)
        y = lin @ np.array([0.2126, 0.7152, 0.0722])
        np.testing.assert_allclose(vibrance(rgb, 0.5, linear=True), linear_to_srgb(y + (lin - y) * f))

    def test_boosts_muted_colors_more(self):
        muted = np.array([140.0, 128.0, 120.0])
        vivid = np.array([250.0, 40.0, 30.0])
        muted_gain = _spread(vibrance(muted, 0.8)) / _spread(muted)
        vivid_gain = _spread(np.clip(vibrance(vivid, 0.8), 0, 255)) / _spread(vivid)
        assert muted_gain > vivid_gain

    def test_negative_amount_desaturates(self):
        rgb = np.array([180.0, 120.0, 90.0])
        assert _spread(vibrance(rgb, -0.5)) < _spread(rgb)

    def test_black_is_safe(self):
        np.testing.assert_array_equal(vibrance([0, 0, 0], 1.0), [0, 0, 0])
        out = vibrance([0, 0, 10], 1.0)
        assert np.all(np.isfinite(out))


class TestSaturationLinear:
    def test_one_is_identity(self, rng):
        rgb = rng.uniform(0, 255, size=(20, 3))
        np.testing.assert_allclose(saturation_linear(rgb, 1.0), rgb, atol=1e-6)

    def test_zero_is_gray(self):
        out = saturation_linear([200, 150, 100], 0.0)
        assert out[0] == pytest.approx(out[1])
        assert out[1] == pytest.approx(out[2])

    def test_gray_preserved(self):
        np.testing.assert_allclose(saturation_linear([90, 90, 90], 1.8), [90, 90, 90], atol=1e-6)

    def test_increases_spread(self):
        rgb = np.array([160.0, 130.0, 110.0])
        assert _spread(saturation_linear(rgb, 1.5)) > _spread(rgb)
