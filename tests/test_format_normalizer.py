"""
Format Normalizer Tests

Run with: pytest tests/test_format_normalizer.py -v
"""
import io

import numpy as np
import pytest
from PIL import Image

from services.format_normalizer import convert_heic_to_jpeg, is_heic, normalize
from utils.exceptions import ImageProcessingError
from utils.image_manager import image_dimensions
from conftest import encode, png_header_only


def make_heic(width: int = 64, height: int = 48) -> bytes:
    """Encode a small HEIC image, or skip if this build has no HEIF encoder."""
    img = Image.fromarray(np.full((height, width, 3), 120, dtype=np.uint8))
    buffer = io.BytesIO()
    try:
        img.save(buffer, format="HEIF", quality=80)
    except (KeyError, OSError, ValueError) as e:
        pytest.skip(f"HEIF encoder not available: {e}")
    return buffer.getvalue()


class TestIsHeic:

    @pytest.mark.parametrize("mime_type,filename", [
        ("image/heic", "photo.bin"),
        ("image/heif", "photo"),
        ("IMAGE/HEIC", "photo"),
        ("application/octet-stream", "IMG_0001.HEIC"),
        ("", "IMG_0001.heif"),
    ])
    def test_detected_by_type_or_extension(self, mime_type, filename):
        assert is_heic(mime_type, filename)

    def test_jpeg_is_not_heic(self):
        assert not is_heic("image/jpeg", "photo.jpg")


class TestNormalize:

    def test_png_passes_through_unchanged(self, small_png):
        result = normalize(small_png, "image/png", "photo.png")

        assert result.data == small_png
        assert result.mime_type == "image/png"
        assert result.filename == "photo.png"
        assert result.converted is False

    def test_jpeg_passes_through_unchanged(self):
        data = encode(np.zeros((10, 10, 3), dtype=np.uint8), ".jpg")
        assert normalize(data, "image/jpeg", "a.jpg").data == data

    def test_garbage_is_rejected(self):
        with pytest.raises(ImageProcessingError) as exc_info:
            normalize(b"definitely not a png", "image/png", "photo.png")
        assert exc_info.value.status_code == 400

    def test_decompression_bomb_is_rejected(self):
        """Header claims 20000x20000; Pillow refuses it before decoding anything."""
        with pytest.raises(ImageProcessingError) as exc_info:
            normalize(png_header_only(20000, 20000), "image/png", "huge.png")
        assert exc_info.value.status_code == 400

    def test_too_many_pixels_is_rejected(self):
        data = png_header_only(9000, 8000)
        with pytest.raises(ImageProcessingError) as exc_info:
            normalize(data, "image/png", "big.png")
        assert exc_info.value.message == "Image dimensions are too large"
        assert exc_info.value.details["width"] == 9000

    def test_pixel_limit_is_configurable(self, small_png):
        with pytest.raises(ImageProcessingError):
            normalize(small_png, "image/png", "photo.png", max_pixels=400 * 300 - 1)
        assert normalize(small_png, "image/png", "photo.png", max_pixels=400 * 300).data == small_png

    def test_heic_pixel_limit(self):
        with pytest.raises(ImageProcessingError) as exc_info:
            normalize(make_heic(64, 48), "image/heic", "IMG_0001.HEIC", max_pixels=1000)
        assert exc_info.value.message == "Image dimensions are too large"

    def test_invalid_heic_fails_conversion(self):
        with pytest.raises(ImageProcessingError) as exc_info:
            normalize(b"\x00\x00\x00\x18ftypheic-garbage", "image/heic", "IMG_0001.HEIC")
        assert exc_info.value.message == "Failed to convert HEIC image to JPEG"

    def test_heic_is_converted_to_jpeg(self):
        heic = make_heic(64, 48)

        result = normalize(heic, "image/heic", "IMG_0001.HEIC")

        assert result.converted is True
        assert result.mime_type == "image/jpeg"
        assert result.filename == "IMG_0001.jpg"
        assert result.data[:2] == b"\xff\xd8"
        assert image_dimensions(result.data) == (64, 48)

    def test_heic_without_filename_gets_jpg_name(self):
        result = normalize(make_heic(), "image/heic", "")
        assert result.filename == "upload.jpg"

    def test_convert_keeps_pixels(self):
        jpeg = convert_heic_to_jpeg(make_heic(32, 32))
        with Image.open(io.BytesIO(jpeg)) as img:
            assert img.format == "JPEG"
            assert img.mode == "RGB"
            assert img.size == (32, 32)
