"""
Image decoding and encoding utilities shared by the validation checks.
"""
import cv2
import numpy as np
from pathlib import Path
from typing import Tuple


def load_image(img_bytes: bytes) -> np.ndarray:
    """
    Decode raw bytes into an image.

    Args:
        img_bytes: Encoded image (JPEG, PNG)

    Returns:
        numpy array of the image in BGR format

    Raises:
        ValueError: If image cannot be decoded
    """
    return _decode(img_bytes, cv2.IMREAD_COLOR)


def load_grayscale(img_bytes: bytes) -> np.ndarray:
    """Decode raw bytes straight into a single-channel uint8 image."""
    return _decode(img_bytes, cv2.IMREAD_GRAYSCALE)


def _decode(img_bytes: bytes, flags: int) -> np.ndarray:
    if not img_bytes:
        raise ValueError("Could not decode image from empty bytes")
    nparr = np.frombuffer(img_bytes, np.uint8)
    img = cv2.imdecode(nparr, flags)
    if img is None:
        raise ValueError("Could not decode image from bytes")
    return img


def image_dimensions(img_bytes: bytes) -> Tuple[int, int]:
    """Return (width, height) of an encoded image."""
    img = load_image(img_bytes)
    h, w = img.shape[:2]
    return w, h


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a BGR (or already gray) image to single-channel gray."""
    if len(image.shape) == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


def resize_image(
    image: np.ndarray,
    max_size: Tuple[int, int]
) -> np.ndarray:
    """
    Resize image if it exceeds maximum dimensions.

    Args:
        image: Input image
        max_size: Maximum (width, height)

    Returns:
        Resized image (or original if within limits)
    """
    h, w = image.shape[:2]
    max_w, max_h = max_size

    if w <= max_w and h <= max_h:
        return image

    scale = min(max_w / w, max_h / h)
    new_w, new_h = max(1, int(w * scale)), max(1, int(h * scale))

    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)


def encode_image(image: np.ndarray, format: str = ".jpg", quality: int = 90) -> bytes:
    """Encode an image array to bytes in the given format."""
    params = [cv2.IMWRITE_JPEG_QUALITY, quality] if format in (".jpg", ".jpeg") else []
    ok, buffer = cv2.imencode(format, image, params)
    if not ok:
        raise ValueError(f"Could not encode image as {format}")
    return buffer.tobytes()


def file_extension(filename: str) -> str:
    """Lower-cased extension including the dot, or '' if the name has none."""
    return Path(filename or "").suffix.lower()