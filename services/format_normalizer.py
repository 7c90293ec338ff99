"""
Format normalization for phone-native uploads.

HEIC/HEIF photos (the iPhone default) are transcoded to JPEG so that the
OpenCV-based checks can decode them. Everything else passes through
untouched. The resulting bytes must decode to standard pixels; if they
don't, the upload is rejected outright.
"""
import io
import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from models.pipeline import NormalizedImage
from utils.config import (
    HEIC_EXTENSIONS,
    HEIC_JPEG_QUALITY,
    HEIC_MIME_TYPES,
    MAX_IMAGE_PIXELS,
    REASON_UNPROCESSABLE,
)
from utils.exceptions import ImageProcessingError
from utils.image_manager import file_extension

logger = logging.getLogger(__name__)

register_heif_opener()


def is_heic(mime_type: str, filename: str) -> bool:
    """True if the declared type or file extension marks a HEIC/HEIF image."""
    return (mime_type or "").lower() in HEIC_MIME_TYPES or file_extension(filename) in HEIC_EXTENSIONS


def _check_pixel_count(img: Image.Image, max_pixels: int) -> None:
    width, height = img.size
    if width * height > max_pixels:
        raise ImageProcessingError(
            "Image dimensions are too large",
            details={"width": width, "height": height, "max_pixels": max_pixels}
        )


def convert_heic_to_jpeg(
    data: bytes,
    quality: int = HEIC_JPEG_QUALITY,
    max_pixels: int = MAX_IMAGE_PIXELS
) -> bytes:
    """
    Transcode a HEIC/HEIF buffer to JPEG.

    Raises:
        ImageProcessingError: If the buffer is too large, cannot be decoded or encoded
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            _check_pixel_count(img, max_pixels)
            rgb = img.convert("RGB")
            buffer = io.BytesIO()
            rgb.save(buffer, format="JPEG", quality=quality)
    except (Image.DecompressionBombError, UnidentifiedImageError, OSError, ValueError,
            SyntaxError, RuntimeError) as e:
        logger.error(f"Error converting HEIC to JPEG: {e}")
        raise ImageProcessingError(
            "Failed to convert HEIC image to JPEG",
            details={"reason": str(e)}
        ) from e

    result = buffer.getvalue()
    logger.info(f"HEIC conversion successful - output size: {len(result)}")
    return result


def _ensure_decodable(data: bytes, max_pixels: int = MAX_IMAGE_PIXELS) -> None:
    # Image.open only reads the header; verify() checks the stream without decoding pixels
    try:
        with Image.open(io.BytesIO(data)) as img:
            _check_pixel_count(img, max_pixels)
            img.verify()
    except (Image.DecompressionBombError, UnidentifiedImageError, OSError, ValueError,
            SyntaxError) as e:
        raise ImageProcessingError(REASON_UNPROCESSABLE, details={"reason": str(e)}) from e


def normalize(
    data: bytes,
    mime_type: str,
    filename: str,
    max_pixels: int = MAX_IMAGE_PIXELS
) -> NormalizedImage:
    """
    Bring an upload into a standard encoding.

    Args:
        data: Raw upload bytes
        mime_type: Declared MIME type
        filename: Original filename
        max_pixels: Largest width * height accepted for analysis

    Returns:
        NormalizedImage; HEIC input comes back as JPEG with a ``.jpg`` name

    Raises:
        ImageProcessingError: If the image is too large, transcoding fails or
            the bytes are not an image
    """
    if is_heic(mime_type, filename):
        jpeg = convert_heic_to_jpeg(data, max_pixels=max_pixels)
        new_name = str(Path(filename or "upload").with_suffix(".jpg"))
        return NormalizedImage(data=jpeg, mime_type="image/jpeg", filename=new_name, converted=True)

    _ensure_decodable(data, max_pixels)
    return NormalizedImage(data=data, mime_type=mime_type, filename=filename)
