"""
Perceptual fingerprinting and near-duplicate lookup.

Fingerprints are average hashes: the image is shrunk to an 8x8 grayscale
thumbnail and each pixel contributes one bit, set when it is brighter
than the thumbnail mean. Similar-looking photos end up a small Hamming
distance apart.
"""
import logging
from typing import Iterable, List

import cv2
import numpy as np

from models.pipeline import FingerprintEntry
from utils.config import FINGERPRINT_SIZE, SIMILARITY_THRESHOLD
from utils.image_manager import load_image, to_grayscale

logger = logging.getLogger(__name__)


def compute_fingerprint(image: np.ndarray, size: int = FINGERPRINT_SIZE) -> str:
    """
    Derive the average-hash fingerprint of a decoded image.

    Args:
        image: BGR or grayscale image
        size: Thumbnail side length (fingerprint has size*size bits)

    Returns:
        String of '0'/'1' characters in row-major order

    Raises:
        ValueError: If the image is empty
    """
    if image is None or image.size == 0:
        raise ValueError("Cannot fingerprint an empty image")

    thumbnail = cv2.resize(image, (size, size), interpolation=cv2.INTER_AREA)
    gray = to_grayscale(thumbnail).astype(np.float64)
    mean = gray.mean()

    return "".join("1" if value > mean else "0" for value in gray.flatten())


def fingerprint_bytes(img_bytes: bytes) -> str:
    """Decode and fingerprint an encoded image."""
    return compute_fingerprint(load_image(img_bytes))


def hamming_distance(hash1: str, hash2: str) -> int:
    """Number of positions at which two equal-length fingerprints differ."""
    if len(hash1) != len(hash2):
        raise ValueError(
            f"Fingerprints differ in length ({len(hash1)} vs {len(hash2)})"
        )
    return sum(1 for a, b in zip(hash1, hash2) if a != b)


def hash_similarity(hash1: str, hash2: str) -> float:
    """
    Similarity of two fingerprints between 0 and 1 (1 = identical).

    Fingerprints of different lengths are never similar; that only happens
    when stored data is corrupt, so it is logged.
    """
    if not hash1 or not hash2:
        logger.warning("Cannot compare an empty fingerprint")
        return 0.0
    if len(hash1) != len(hash2):
        logger.warning(
            f"Comparing fingerprints of different lengths: {len(hash1)} vs {len(hash2)}"
        )
        return 0.0

    return 1 - hamming_distance(hash1, hash2) / len(hash1)


def find_similar(
    fingerprint: str,
    candidates: Iterable[FingerprintEntry],
    threshold: float = SIMILARITY_THRESHOLD
) -> List[FingerprintEntry]:
    """Return the candidates whose similarity to ``fingerprint`` exceeds ``threshold``."""
    return [
        entry for entry in candidates
        if entry.fingerprint and hash_similarity(fingerprint, entry.fingerprint) > threshold
    ]


def is_duplicate(
    fingerprint: str,
    candidates: Iterable[FingerprintEntry],
    threshold: float = SIMILARITY_THRESHOLD
) -> bool:
    """True if any previously accepted image is a near-duplicate."""
    matches = find_similar(fingerprint, candidates, threshold)
    if matches:
        logger.info(f"Fingerprint matches {len(matches)} accepted image(s): {matches[0].id}")
    return bool(matches)
