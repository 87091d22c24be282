"""
Tests for the image value type and enhancement filters.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def sample_color_image():
    """Light board with dark marker strokes and a colored sticky note."""
    img = np.ones((120, 160, 3), dtype=np.uint8) * 220
    img[20:26, 20:120] = [30, 30, 30]
    img[50:56, 20:100] = [30, 30, 30]
    img[80:110, 110:150] = [0, 200, 255]
    return img


class TestImage:
    """Test the immutable Image wrapper."""

    def test_pixels_are_read_only(self, sample_color_image):
        from boardcap.utils.images import Image

        image = Image(sample_color_image)

        with pytest.raises(ValueError):
            image.pixels[0, 0] = 0

    def test_constructor_copies(self, sample_color_image):
        """Mutating the source array does not affect the Image."""
        from boardcap.utils.images import Image

        image = Image(sample_color_image)
        sample_color_image[:] = 0

        assert image.pixels[0, 0, 0] == 220

    def test_dimensions(self, sample_color_image):
        from boardcap.utils.images import Image

        image = Image(sample_color_image)

        assert image.size == (160, 120)
        assert image.channels == 3
        assert not image.is_grayscale

    def test_single_channel_squeezed(self):
        from boardcap.utils.images import Image

        image = Image(np.zeros((10, 20, 1), dtype=np.uint8))

        assert image.pixels.shape == (10, 20)
        assert image.is_grayscale

    def test_bad_shape_rejected(self):
        from boardcap.utils.images import Image

        with pytest.raises(ValueError):
            Image(np.zeros((10, 20, 2), dtype=np.uint8))

    def test_to_array_is_writable_copy(self, sample_color_image):
        from boardcap.utils.images import Image

        image = Image(sample_color_image)
        array = image.to_array()
        array[0, 0] = 0

        assert image.pixels[0, 0, 0] == 220


class TestEnhancementFilters:
    """Test enhancement filters."""

    def test_to_grayscale_from_color(self, sample_color_image):
        from boardcap.utils.images import to_grayscale

        result = to_grayscale(sample_color_image)

        assert result.shape == sample_color_image.shape[:2]

    def test_auto_adjust_keeps_shape(self, sample_color_image):
        from boardcap.utils.images import Image, auto_adjust

        result = auto_adjust(Image(sample_color_image))

        assert result.pixels.shape == sample_color_image.shape

    def test_color_controls_desaturates(self, sample_color_image):
        """Saturation 0 leaves every pixel gray."""
        from boardcap.utils.images import Image, adjust_color_controls

        result = adjust_color_controls(Image(sample_color_image), contrast=1.1, saturation=0.0)
        pixels = result.pixels.astype(int)

        assert np.array_equal(pixels[:, :, 0], pixels[:, :, 1])
        assert np.array_equal(pixels[:, :, 1], pixels[:, :, 2])

    def test_color_controls_increases_contrast(self):
        from boardcap.utils.images import Image, adjust_color_controls

        gray = np.array([[50, 200]], dtype=np.uint8)
        result = adjust_color_controls(Image(gray), contrast=1.1)

        assert result.pixels[0, 0] < 50
        assert result.pixels[0, 1] > 200

    def test_sharpen_uniform_image_unchanged(self):
        from boardcap.utils.images import Image, sharpen_luminance

        flat = Image(np.full((40, 40), 128, dtype=np.uint8))

        assert sharpen_luminance(flat, strength=0.5).same_pixels(flat)

    def test_sharpen_negative_strength(self, sample_color_image):
        from boardcap.utils.images import Image, sharpen_luminance

        with pytest.raises(ValueError):
            sharpen_luminance(Image(sample_color_image), strength=-1)


class TestTextOptimizationFilters:
    """Test luminance and denoise filters."""

    def test_luminance_is_single_channel(self, sample_color_image):
        from boardcap.utils.images import Image, luminance_matrix

        result = luminance_matrix(Image(sample_color_image))

        assert result.is_grayscale
        assert result.size == (160, 120)

    def test_luminance_weights(self):
        """Pure red, green and blue map to their Rec. 709 weights."""
        from boardcap.utils.images import Image, luminance_matrix

        bgr = np.array([[[0, 0, 255], [0, 255, 0], [255, 0, 0]]], dtype=np.uint8)
        result = luminance_matrix(Image(bgr))

        assert list(result.pixels[0]) == [54, 182, 18]

    def test_luminance_drops_alpha(self):
        from boardcap.utils.images import Image, luminance_matrix

        bgra = np.zeros((4, 4, 4), dtype=np.uint8)
        result = luminance_matrix(Image(bgra))

        assert result.channels == 1

    def test_reduce_noise_keeps_size(self, sample_color_image):
        from boardcap.utils.images import Image, luminance_matrix, reduce_noise

        gray = luminance_matrix(Image(sample_color_image))
        result = reduce_noise(gray, noise_level=0.02, sharpness=0.4)

        assert result.size == gray.size
        assert result.is_grayscale

    def test_reduce_noise_rejects_bad_level(self, sample_color_image):
        from boardcap.utils.images import Image, reduce_noise

        with pytest.raises(ValueError):
            reduce_noise(Image(sample_color_image), noise_level=2.0)


class TestGeometryTransforms:
    """Test cropping and perspective warp."""

    def test_crop_clips_to_bounds(self, sample_color_image):
        from boardcap.utils.geometry import BoundingBox
        from boardcap.utils.images import Image, crop

        result = crop(Image(sample_color_image), BoundingBox(100, 60, 400, 400))

        assert result.size == (60, 60)

    def test_crop_outside_raises(self, sample_color_image):
        from boardcap.utils.geometry import BoundingBox
        from boardcap.utils.images import Image, crop

        with pytest.raises(ValueError):
            crop(Image(sample_color_image), BoundingBox(500, 500, 600, 600))

    def test_warp_keeps_dimensions(self, sample_color_image):
        from boardcap.utils.geometry import Quadrilateral
        from boardcap.utils.images import Image, warp_perspective

        quad = Quadrilateral.from_points([(10, 5), (150, 15), (145, 110), (5, 100)])
        result = warp_perspective(Image(sample_color_image), quad)

        assert result.size == (160, 120)
        assert result.channels == 3


class TestFilterBank:
    """Test named filter application."""

    def test_default_filters(self):
        from boardcap.utils.images import FilterBank

        assert FilterBank().names == [
            "auto_adjust", "color_controls", "luminance_matrix",
            "noise_reduction", "sharpen_luminance",
        ]

    def test_unknown_filter_returns_none(self, sample_color_image):
        from boardcap.utils.images import FilterBank, Image

        assert FilterBank().apply(Image(sample_color_image), "vignette") is None

    def test_failing_filter_returns_none(self, sample_color_image):
        from boardcap.utils.images import FilterBank, Image

        result = FilterBank().apply(Image(sample_color_image), "noise_reduction", noise_level=5.0)

        assert result is None

    def test_registered_filter(self, sample_color_image):
        from boardcap.utils.images import FilterBank, Image

        bank = FilterBank()
        bank.register("invert", lambda img: Image(255 - img.pixels))
        result = bank.apply(Image(sample_color_image), "invert")

        assert result.pixels[0, 0, 0] == 35
