"""
Sharpness scoring via the 4-neighbour Laplacian.

The score is the population variance of the absolute Laplacian response
over interior pixels. Blurry photos have weak, uniform edge responses and
therefore a low variance.
"""
import logging

import cv2
import numpy as np

from utils.config import BLUR_THRESHOLD

logger = logging.getLogger(__name__)


def laplacian_variance(gray_image: np.ndarray) -> float:
    """
    Compute the sharpness score of a grayscale image.

    Applies the kernel [0,1,0; 1,-4,1; 0,1,0] to every interior pixel
    (the 1-pixel border is excluded), takes the absolute response and
    returns the population variance of those responses.

    Args:
        gray_image: 2-D grayscale image

    Returns:
        Variance of |Laplacian| (higher = sharper), 0.0 for images smaller than 3x3
    """
    if gray_image is None or gray_image.ndim != 2:
        return 0.0

    height, width = gray_image.shape
    if height < 3 or width < 3:
        return 0.0

    # ksize=1 is exactly the 4-neighbour kernel; border rows/cols are cropped
    laplacian = cv2.Laplacian(gray_image.astype(np.float64), cv2.CV_64F, ksize=1)
    interior = np.abs(laplacian[1:-1, 1:-1])
    if interior.size == 0:
        return 0.0

    return float(interior.var())


def score(pixels: bytes, width: int, height: int) -> float:
    """Sharpness score of a raw row-major 8-bit grayscale buffer."""
    if width <= 0 or height <= 0 or len(pixels) < width * height:
        return 0.0
    gray = np.frombuffer(pixels, dtype=np.uint8, count=width * height).reshape(height, width)
    return laplacian_variance(gray)


def is_blurry(sharpness: float, threshold: float = BLUR_THRESHOLD) -> bool:
    return sharpness < threshold
