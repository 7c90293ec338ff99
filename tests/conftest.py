"""
Pytest Configuration and Fixtures

Shared fixtures for the image validation test suite.
Run with: pytest -v
"""
import os
import struct
import sys
import tempfile
import zlib
from pathlib import Path
from typing import Dict, List, Optional

import cv2
import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Keep tests off Postgres and the real data directory
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="image-validation-tests-")
os.environ.setdefault("DATA_DIR", _TEST_DATA_DIR)
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DATA_DIR}/app.db")
os.environ.setdefault("LOG_JSON_FORMAT", "false")
os.environ["API_KEYS"] = ""

from models.pipeline import FaceDetectionResult  # noqa: E402
from services.face_detection_service import FaceDetector  # noqa: E402
from services.storage_service import ObjectStore, StorageWriter  # noqa: E402
from utils.exceptions import FaceDetectionError, StorageError  # noqa: E402


# =============================================================================
# FAKE CAPABILITIES
# =============================================================================

class FakeFaceDetector(FaceDetector):
    """Returns a canned detection result, or raises if ``error`` is set."""

    def __init__(self, face_count: int = 1, area: Optional[float] = 0.2, error: bool = False):
        self.face_count = face_count
        self.area = area
        self.error = error
        self.calls = 0

    def detect(self, image_bytes: bytes) -> FaceDetectionResult:
        self.calls += 1
        if self.error:
            raise FaceDetectionError("Rekognition unreachable")
        return FaceDetectionResult(
            face_count=self.face_count,
            primary_box_area=self.area if self.face_count else None,
        )


class InMemoryObjectStore(ObjectStore):
    name = "memory"

    def __init__(self, base_url: str = "memory://bucket"):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.base_url = base_url

    def put(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = data
        self.content_types[key] = content_type
        return f"{self.base_url}/{key}"

    def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise StorageError(self.name, f"No such key: {key}")
        return self.objects[key]

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)


class FailingObjectStore(ObjectStore):
    """Every write fails, the way a misconfigured bucket does."""

    name = "failing"

    def __init__(self, error: Optional[Exception] = None):
        self.error = error or StorageError("s3", "AccessDenied")
        self.attempted_keys: List[str] = []

    def put(self, key: str, data: bytes, content_type: str) -> str:
        self.attempted_keys.append(key)
        raise self.error

    def get(self, key: str) -> bytes:
        raise self.error

    def delete(self, key: str) -> None:
        raise self.error


# =============================================================================
# SYNTHETIC IMAGES
# =============================================================================

def encode(image: np.ndarray, ext: str = ".png") -> bytes:
    ok, buffer = cv2.imencode(ext, image)
    assert ok
    return buffer.tobytes()


def noise_image(width: int, height: int, seed: int = 0) -> np.ndarray:
    """Random grayscale noise: as sharp as an image gets."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width), dtype=np.uint8)


def gradient_image(width: int, height: int) -> np.ndarray:
    """Smooth horizontal ramp: almost no edge energy."""
    row = np.linspace(0, 255, width).astype(np.uint8)
    return np.tile(row, (height, 1))


def png_header_only(width: int, height: int) -> bytes:
    """A PNG that declares the given dimensions but carries no pixel data."""
    def chunk(kind: bytes, payload: bytes) -> bytes:
        crc = zlib.crc32(kind + payload) & 0xFFFFFFFF
        return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", crc)

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 0, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IEND", b"")


@pytest.fixture(scope="session")
def sharp_png() -> bytes:
    """1600x1200 perfectly sharp image."""
    return encode(noise_image(1600, 1200, seed=1))


@pytest.fixture(scope="session")
def other_sharp_png() -> bytes:
    """A different 1600x1200 sharp image."""
    return encode(noise_image(1600, 1200, seed=2))


@pytest.fixture(scope="session")
def blurry_png() -> bytes:
    """1600x1200 image with no edges."""
    return encode(gradient_image(1600, 1200))


@pytest.fixture(scope="session")
def small_png() -> bytes:
    """Sharp but only 400x300."""
    return encode(noise_image(400, 300, seed=3))


@pytest.fixture
def face_detector():
    return FakeFaceDetector()


@pytest.fixture
def primary_store():
    return InMemoryObjectStore("https://bucket.s3.amazonaws.com")


@pytest.fixture
def fallback_store():
    return InMemoryObjectStore("/uploads")


@pytest.fixture
def storage(primary_store, fallback_store):
    return StorageWriter(primary=primary_store, fallback=fallback_store)
