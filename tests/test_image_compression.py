"""
Tests for PCA image compression.
"""

import numpy as np
import pytest

from masterclass.image_compression import (
    compress_color_image,
    compress_image,
    compression_ratio,
    explained_variance_curve,
    plot_reconstructions,
    reconstruct_image,
    reconstruction_error,
    summarize_compression,
    to_grayscale,
)


@pytest.fixture
def gray_image():
    """Smooth gradient plus noise, values in [0, 1]."""
    rng = np.random.default_rng(0)
    rows, cols = np.mgrid[0:40, 0:60]
    img = 0.5 + 0.3 * np.sin(rows / 6.0) * np.cos(cols / 9.0)
    img += rng.normal(scale=0.02, size=img.shape)
    return np.clip(img, 0, 1)


class TestGrayscale:
    """Tests for image conversion."""

    def test_uint8_rgb(self):
        img = np.full((4, 5, 3), 255, dtype=np.uint8)
        gray = to_grayscale(img)
        assert gray.shape == (4, 5)
        np.testing.assert_allclose(gray, 1.0)

    def test_luma_weights(self):
        img = np.zeros((1, 1, 3))
        img[0, 0] = [1.0, 0.0, 0.0]
        assert to_grayscale(img)[0, 0] == pytest.approx(0.299)

    def test_rgba_drops_alpha(self):
        img = np.zeros((2, 2, 4))
        img[..., 3] = 1.0
        np.testing.assert_allclose(to_grayscale(img), 0.0)

    def test_grayscale_passthrough(self, gray_image):
        np.testing.assert_allclose(to_grayscale(gray_image), gray_image)

    def test_unsupported_shape(self):
        with pytest.raises(ValueError):
            to_grayscale(np.zeros((2, 2, 2)))


class TestCompression:
    """Tests for compress/reconstruct."""

    def test_shapes(self, gray_image):
        compressed = compress_image(gray_image, 5)
        assert compressed.scores.shape == (40, 5)
        assert compressed.components.shape == (5, 60)
        assert compressed.mean.shape == (60,)
        assert compressed.n_components == 5
        assert reconstruct_image(compressed).shape == gray_image.shape

    def test_all_components_is_lossless(self, gray_image):
        compressed = compress_image(gray_image, min(gray_image.shape))
        assert reconstruction_error(gray_image, reconstruct_image(compressed)) < 1e-8

    def test_error_decreases_with_components(self, gray_image):
        errors = [
            reconstruction_error(gray_image, reconstruct_image(compress_image(gray_image, k)))
            for k in (1, 5, 20)
        ]
        assert errors[0] > errors[1] > errors[2]

    def test_reconstruction_in_unit_range(self, gray_image):
        out = reconstruct_image(compress_image(gray_image, 2))
        assert out.min() >= 0 and out.max() <= 1

    def test_invalid_n_components(self, gray_image):
        with pytest.raises(ValueError):
            compress_image(gray_image, 0)
        with pytest.raises(ValueError):
            compress_image(gray_image, 41)

    def test_compression_ratio(self, gray_image):
        compressed = compress_image(gray_image, 4)
        expected = (40 * 4 + 4 * 60 + 60) / (40 * 60)
        assert compression_ratio(compressed) == pytest.approx(expected)

    def test_explained_variance_curve(self, gray_image):
        curve = explained_variance_curve(gray_image)
        assert np.all(np.diff(curve) >= -1e-12)
        assert curve[-1] == pytest.approx(1.0)

    def test_reconstruction_error_shape_mismatch(self):
        with pytest.raises(ValueError):
            reconstruction_error(np.zeros((2, 2)), np.zeros((2, 3)))

    def test_color_image(self):
        rng = np.random.default_rng(1)
        img = rng.integers(0, 256, size=(20, 30, 3), dtype=np.uint8)
        out = compress_color_image(img, 20)
        assert out.shape == (20, 30, 3)
        np.testing.assert_allclose(out, img / 255.0, atol=1e-8)

    def test_summarize_compression(self, gray_image):
        table = summarize_compression(gray_image, [1, 10])
        assert list(table["n_components"]) == [1, 10]
        assert table["rmse"].iloc[0] > table["rmse"].iloc[1]
        assert table["variance_explained"].iloc[1] > table["variance_explained"].iloc[0]

    def test_plot_reconstructions_saves(self, gray_image, tmp_path):
        out = tmp_path / "recon.png"
        plot_reconstructions(gray_image, [1, 5], save_path=out)
        assert out.exists()
