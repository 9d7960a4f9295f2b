"""
Test the convolution engine.

Tests verify:
- Padding index resolution (zero / edge / reflect)
- Uniform-image invariance for edge and reflect padding
- Stride fill and alpha pass-through
- Median rank filter behaviour
"""

import numpy as np
import pytest

from filterstack.filters.convolution import (
    accumulate_at_pixel,
    convolve_at_pixel,
    convolve_image,
    convolve_image_data,
    median_at_pixel,
    median_filter,
    pad_index,
    pad_indices,
    sample_window,
)
from filterstack.filters.kernels import box_kernel, gaussian_kernel, identity_kernel


class TestPadIndex:
    def test_in_range_unchanged(self):
        for mode in ('zero', 'edge', 'reflect'):
            assert pad_index(3, 5, mode) == 3

    def test_zero(self):
        assert pad_index(-1, 5, 'zero') == -1
        assert pad_index(5, 5, 'zero') == -1

    def test_edge(self):
        assert pad_index(-3, 5, 'edge') == 0
        assert pad_index(7, 5, 'edge') == 4

    def test_reflect_does_not_repeat_border(self):
        assert pad_index(-1, 5, 'reflect') == 1
        assert pad_index(-2, 5, 'reflect') == 2
        assert pad_index(5, 5, 'reflect') == 3
        assert pad_index(6, 5, 'reflect') == 2

    def test_reflect_folds_repeatedly(self):
        # period 8 for limit 5
        assert pad_index(9, 5, 'reflect') == 1
        assert pad_index(-9, 5, 'reflect') == 1

    def test_reflect_single_pixel(self):
        assert pad_index(-2, 1, 'reflect') == 0
        assert pad_index(3, 1, 'reflect') == 0

    def test_vectorized(self):
        np.testing.assert_array_equal(pad_indices([-1, 0, 4, 5], 5, 'edge'), [0, 0, 4, 4])

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            pad_index(0, 5, 'wrap')


class TestUniformInvariance:
    """Blurring a constant image with edge/reflect padding is a no-op."""

    @pytest.mark.parametrize("padding", ['edge', 'reflect'])
    @pytest.mark.parametrize("kernel", [
        box_kernel(3), box_kernel(5), box_kernel(7),
        gaussian_kernel(3), gaussian_kernel(5, 1.0), gaussian_kernel(7),
    ])
    def test_constant_image(self, solid, padding, kernel):
        img = solid(8, 6, (90, 140, 200, 255))
        out = convolve_image_data(img, kernel, padding=padding)
        np.testing.assert_array_equal(out, img)

    def test_scenario_white_box_blur(self, solid):
        img = solid(3, 3, (255, 255, 255, 255))
        out = convolve_image_data(img, box_kernel(3), padding='edge')
        assert out[1, 1].tolist() == [255, 255, 255, 255]

    def test_zero_padding_loses_mass_at_border(self, solid):
        img = solid(3, 3, (255, 255, 255, 255))
        out = convolve_image_data(img, box_kernel(3), padding='zero')
        # Corner sees 4 of 9 cells
        assert out[0, 0, 0] == round(255 * 4 / 9)
        assert out[1, 1, 0] == 255


class TestConvolveImage:
    def test_identity_kernel(self, random_image):
        out = convolve_image_data(random_image, identity_kernel(3))
        np.testing.assert_array_equal(out, random_image)

    def test_result_clamped(self, solid):
        img = solid(4, 4, (200, 10, 0, 255))
        out = convolve_image_data(img, identity_kernel(3) * 2.0)
        assert out[0, 0].tolist() == [255, 20, 0, 255]
        out = convolve_image_data(img, identity_kernel(3) * -1.0)
        assert out[0, 0].tolist() == [0, 0, 0, 255]

    def test_raw_sums_unclamped(self, solid):
        img = solid(4, 4, (200, 10, 0, 255))
        raw = convolve_image(img, identity_kernel(3) * 2.0)
        np.testing.assert_allclose(raw[2, 2], [400, 20, 0])

    def test_alpha_copied_through(self, random_image):
        random_image[:, :, 3] = np.arange(random_image.shape[1], dtype=np.uint8)
        out = convolve_image_data(random_image, box_kernel(3))
        np.testing.assert_array_equal(out[:, :, 3], random_image[:, :, 3])

    def test_transparent_pixels_are_convolved(self, solid):
        img = solid(3, 3, (200, 200, 200, 255))
        img[1, 1] = (0, 0, 0, 0)
        out = convolve_image_data(img, box_kernel(3))
        assert out[1, 1, 3] == 0
        assert out[1, 1, 0] == round(200 * 8 / 9)

    def test_source_not_modified(self, random_image):
        before = random_image.copy()
        convolve_image_data(random_image, box_kernel(5))
        np.testing.assert_array_equal(random_image, before)

    def test_luma_only(self, solid):
        img = solid(2, 2, (200, 150, 100, 255))
        out = convolve_image_data(img, identity_kernel(3), per_channel=False)
        assert out[0, 0].tolist() == [159, 159, 159, 255]

    def test_stride_fills_from_aligned_sample(self, rng):
        img = rng.integers(0, 256, size=(5, 7, 4), dtype=np.uint8)
        out = convolve_image_data(img, box_kernel(3), stride=2)
        full = convolve_image_data(img, box_kernel(3))
        for y in range(5):
            for x in range(7):
                sy, sx = (y // 2) * 2, (x // 2) * 2
                np.testing.assert_array_equal(out[y, x, :3], full[sy, sx, :3])
        np.testing.assert_array_equal(out[:, :, 3], img[:, :, 3])

    def test_dilation(self):
        row = np.zeros((1, 6, 4), dtype=np.uint8)
        row[0, :, 0] = [0, 10, 20, 30, 40, 50]
        row[0, :, 3] = 255
        left = np.zeros((3, 3))
        left[1, 0] = 1.0
        out = convolve_image_data(row, left, padding='edge', dilation=2)
        assert out[0, :, 0].tolist() == [0, 0, 0, 10, 20, 30]

    def test_matches_per_pixel(self, random_image):
        kernel = gaussian_kernel(5, 1.3)
        out = convolve_image_data(random_image, kernel, padding='reflect')
        for x, y in [(0, 0), (5, 4), (11, 8)]:
            expected = np.rint(convolve_at_pixel(random_image, x, y, kernel, padding='reflect'))
            np.testing.assert_array_equal(out[y, x, :3], expected)

    def test_rejects_even_kernel(self, random_image):
        with pytest.raises(ValueError):
            convolve_image(random_image, np.ones((2, 2)))

    def test_rejects_bad_padding(self, random_image):
        with pytest.raises(ValueError):
            convolve_image(random_image, box_kernel(3), padding='mirror')


class TestPerPixel:
    def test_zero_padding_skips_cells(self, solid):
        img = solid(3, 3, (90, 90, 90, 255))
        raw = accumulate_at_pixel(img, 0, 0, np.ones((3, 3)), padding='zero')
        np.testing.assert_allclose(raw, [360, 360, 360])

    def test_clamp(self, solid):
        img = solid(3, 3, (90, 90, 90, 255))
        out = convolve_at_pixel(img, 1, 1, np.ones((3, 3)))
        np.testing.assert_allclose(out, [255, 255, 255])

    def test_sample_window(self, solid):
        img = solid(3, 3, (10, 20, 30, 255))
        window, valid = sample_window(img, 0, 0, 3, padding='zero')
        assert window.shape == (3, 3, 3)
        assert valid.sum() == 4
        assert window[0, 0].tolist() == [0, 0, 0]
        assert window[1, 1].tolist() == [10, 20, 30]


class TestMedian:
    def test_outlier_rejected(self, solid):
        img = solid(5, 5, (50, 60, 70, 255))
        img[2, 2] = (250, 250, 250, 255)
        out = median_filter(img, 3)
        assert out[2, 2].tolist() == [50, 60, 70, 255]

    def test_outlier_rejected_larger_window(self, solid):
        img = solid(7, 7, (50, 60, 70, 255))
        img[3, 3] = (0, 255, 0, 255)
        out = median_filter(img, 5, padding='reflect')
        np.testing.assert_array_equal(out, solid(7, 7, (50, 60, 70, 255)))

    def test_channels_independent(self, solid):
        img = solid(3, 3, (10, 10, 10, 255))
        img[0, 0] = (10, 200, 10, 255)
        img[0, 1] = (200, 10, 10, 255)
        out = median_filter(img, 3)
        assert out[1, 1].tolist() == [10, 10, 10, 255]

    def test_zero_padding_counts_zeros(self, solid):
        img = solid(3, 3, (100, 100, 100, 255))
        out = median_filter(img, 3, padding='zero')
        # Corner window: 4 real samples, 5 zeros -> sorted[4] == 0
        assert out[0, 0, 0] == 0
        assert out[1, 1, 0] == 100

    def test_lower_middle_rule(self):
        img = np.zeros((1, 3, 4), dtype=np.uint8)
        img[0, :, 0] = [10, 20, 30]
        img[0, :, 3] = 255
        # edge padding on a single row: window rows repeat the row three times
        assert median_at_pixel(img, 1, 0, 3)[0] == 20

    def test_alpha_copied(self, random_image):
        random_image[0, 0, 3] = 0
        out = median_filter(random_image, 3)
        np.testing.assert_array_equal(out[:, :, 3], random_image[:, :, 3])

    @pytest.mark.parametrize("padding", ['zero', 'edge', 'reflect'])
    @pytest.mark.parametrize("size", [3, 5])
    def test_matches_window_median(self, random_image, padding, size):
        out = median_filter(random_image, size, padding=padding)
        for y in range(random_image.shape[0]):
            for x in range(random_image.shape[1]):
                expected = median_at_pixel(random_image, x, y, size, padding)
                assert out[y, x, :3].tolist() == expected.astype(int).tolist()

    def test_reflect_on_tiny_image(self):
        img = np.zeros((3, 2, 4), dtype=np.uint8)
        img[:, :, 0] = [[10, 200], [30, 40], [250, 60]]
        img[:, :, 3] = 255
        out = median_filter(img, 5, padding='reflect')
        for y in range(3):
            for x in range(2):
                assert out[y, x, 0] == median_at_pixel(img, x, y, 5, 'reflect')[0]

    def test_stride(self, random_image):
        out = median_filter(random_image, 3, stride=3)
        full = median_filter(random_image, 3)
        np.testing.assert_array_equal(out[4, 5, :3], full[3, 3, :3])
