"""
Tests for image normalization module.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestNormalization:
    """Test image normalization functions."""

    @pytest.fixture
    def sample_image(self):
        """Create a sample grayscale image."""
        # Light page with a few dark strokes
        img = np.ones((300, 400), dtype=np.uint8) * 230
        img[50:60, 50:200] = 20
        img[80:90, 50:180] = 20
        img[110:120, 50:220] = 20
        return img

    @pytest.fixture
    def sample_color_image(self):
        """Create a sample color image."""
        img = np.ones((300, 400, 3), dtype=np.uint8) * 230
        img[50:60, 50:200] = [10, 10, 10]
        img[80:90, 50:180] = [10, 10, 10]
        return img

    def test_to_grayscale_already_gray(self, sample_image):
        """Test that grayscale images are returned unchanged."""
        from digitizer.images import to_grayscale

        result = to_grayscale(sample_image)

        assert result.shape == sample_image.shape
        np.testing.assert_array_equal(result, sample_image)

    def test_to_grayscale_from_color(self, sample_color_image):
        """Test conversion from color to grayscale."""
        from digitizer.images import to_grayscale

        result = to_grayscale(sample_color_image)

        assert len(result.shape) == 2
        assert result.shape[:2] == sample_color_image.shape[:2]

    def test_to_grayscale_from_bgra(self):
        """Test conversion from an image with an alpha channel."""
        from digitizer.images import to_grayscale

        img = np.ones((20, 30, 4), dtype=np.uint8) * 200
        result = to_grayscale(img)

        assert result.shape == (20, 30)

    def test_adjust_contrast_formula(self):
        """Test the contrast stretch around mid-gray plus brightness."""
        from digitizer.images import adjust_contrast

        gray = np.array([[128, 120, 100, 200]], dtype=np.uint8)
        result = adjust_contrast(gray, contrast=4.0, brightness=30)

        # (128-128)*4+158 = 158, (120-128)*4+158 = 126, 100 -> 46, 200 -> clipped
        np.testing.assert_array_equal(result, np.array([[158, 126, 46, 255]], dtype=np.uint8))

    def test_binarize_fixed_threshold(self):
        """Test that pixels above the threshold become white and the rest black."""
        from digitizer.images import binarize

        gray = np.array([[0, 150, 151, 255]], dtype=np.uint8)
        result = binarize(gray, threshold=150)

        np.testing.assert_array_equal(result, np.array([[0, 0, 255, 255]], dtype=np.uint8))

    def test_resize_respects_max_dimension(self):
        """Test that the longer edge is bounded and aspect ratio kept."""
        from digitizer.images import resize_to_max_dimension

        img = np.ones((1000, 4000), dtype=np.uint8) * 255
        result, scale = resize_to_max_dimension(img, max_dimension=2000)

        assert max(result.shape[:2]) == 2000
        assert result.shape == (500, 2000)
        assert scale == pytest.approx(0.5)

    def test_resize_never_upscales(self, sample_image):
        """Test that small images are left alone."""
        from digitizer.images import resize_to_max_dimension

        result, scale = resize_to_max_dimension(sample_image, max_dimension=2000)

        assert scale == 1.0
        assert result is sample_image

    def test_normalize_image_is_binary(self, sample_color_image):
        """Test the full normalization output."""
        from digitizer.images import normalize_image

        result = normalize_image(sample_color_image)

        assert result.image.ndim == 2
        assert set(np.unique(result.image)).issubset({0, 255})
        assert result.original_shape == (300, 400)
        assert result.transformations[0] == "grayscale"
        assert result.transformations[-1] == "binarize_fixed_150"

    def test_normalize_keeps_strokes_dark(self, sample_image):
        """Test that ink stays black and paper turns white."""
        from digitizer.images import normalize_image

        result = normalize_image(sample_image)

        assert result.image[55, 100] == 0
        assert result.image[200, 300] == 255

    def test_normalize_is_deterministic(self, sample_color_image):
        """Test that the same input always gives the same output."""
        from digitizer.images import normalize_image

        first = normalize_image(sample_color_image)
        second = normalize_image(sample_color_image)

        np.testing.assert_array_equal(first.image, second.image)

    def test_normalize_large_image(self):
        """Test that oversized images are shrunk first."""
        from digitizer.images import normalize_image

        img = np.ones((3000, 2400, 3), dtype=np.uint8) * 255
        result = normalize_image(img, max_dimension=1500)

        assert max(result.image.shape) == 1500
        assert result.scale == pytest.approx(0.5)
        assert result.transformations[0] == "resize_to_1500px"

    @pytest.mark.parametrize("bad_input", [
        None,
        np.array([], dtype=np.uint8),
        np.zeros((2, 2, 2, 2), dtype=np.uint8),
        np.zeros((20, 20, 2), dtype=np.uint8),
        np.random.rand(20, 20, 3),
        np.ones((20, 20), dtype=bool),
        "not an image",
    ])
    def test_normalize_rejects_unreadable_input(self, bad_input):
        """Test that unreadable inputs raise ValueError."""
        from digitizer.images import normalize_image

        with pytest.raises(ValueError):
            normalize_image(bad_input)


class TestImageStats:
    """Test image statistics."""

    def test_image_stats_dimensions(self):
        """Test basic statistics."""
        from digitizer.images import get_image_stats

        img = np.ones((100, 200, 3), dtype=np.uint8) * 128
        stats = get_image_stats(img)

        assert stats.height == 100
        assert stats.width == 200
        assert stats.channels == 3
        assert stats.mean_intensity == pytest.approx(128.0)

    def test_blank_page_is_poor_quality(self):
        """Test that a blank page is flagged as poor."""
        from digitizer.images import get_image_stats

        img = np.ones((100, 100), dtype=np.uint8) * 255
        stats = get_image_stats(img)

        assert stats.quality == "poor"
        assert stats.dark_ratio == 0.0
        assert stats.recommendations

    def test_high_contrast_pattern_is_excellent(self):
        """Test that dense sharp strokes score as excellent."""
        from digitizer.images import get_image_stats

        img = np.ones((100, 100), dtype=np.uint8) * 255
        img[:, ::2] = 0  # alternating columns
        stats = get_image_stats(img)

        assert stats.edge_ratio > 0.3
        assert stats.quality == "excellent"

    def test_stats_to_dict(self):
        """Test serialization of statistics."""
        from digitizer.images import get_image_stats

        img = np.ones((50, 60), dtype=np.uint8) * 255
        data = get_image_stats(img).to_dict()

        assert data["width"] == 60
        assert data["quality"] in ("excellent", "good", "fair", "poor")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
