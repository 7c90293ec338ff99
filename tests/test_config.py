"""
Configuration and Threshold Tests

Tests for configuration settings and threshold validation.
Run with: pytest tests/test_config.py -v
"""
from pathlib import Path

import pytest

from utils.config import (
    ALLOWED_EXTENSIONS,
    ALLOWED_MIME_TYPES,
    BLUR_THRESHOLD,
    CONTENT_TYPES,
    DUPLICATE_WINDOW_SIZE,
    FINGERPRINT_SIZE,
    HEIC_EXTENSIONS,
    HEIC_MIME_TYPES,
    MAX_IMAGE_PIXELS,
    MAX_UPLOAD_SIZE_BYTES,
    MIN_FACE_AREA_RATIO,
    MIN_IMAGE_HEIGHT,
    MIN_IMAGE_WIDTH,
    REASON_DUPLICATE,
    REASON_FACE_ANALYSIS_FAILED,
    REASON_FACE_TOO_SMALL,
    REASON_MULTIPLE_FACES,
    REASON_NO_FACE,
    REASON_TOO_BLURRY,
    REASON_TOO_SMALL,
    REASON_UNPROCESSABLE,
    SIMILARITY_THRESHOLD,
    UPLOADS_DIR,
)


class TestThresholds:
    """Validation thresholds should hold their documented defaults."""

    def test_minimum_resolution(self):
        assert (MIN_IMAGE_WIDTH, MIN_IMAGE_HEIGHT) == (800, 600)

    def test_blur_threshold(self):
        assert BLUR_THRESHOLD == 20

    def test_face_area_ratio_is_fraction(self):
        assert 0 < MIN_FACE_AREA_RATIO < 1

    def test_similarity_threshold_is_fraction(self):
        assert 0 < SIMILARITY_THRESHOLD < 1

    def test_duplicate_window(self):
        assert DUPLICATE_WINDOW_SIZE == 20
        assert FINGERPRINT_SIZE ** 2 == 64

    def test_upload_limit(self):
        assert MAX_UPLOAD_SIZE_BYTES == 10 * 1024 * 1024

    def test_pixel_limit_admits_minimum_resolution(self):
        assert MAX_IMAGE_PIXELS == 64_000_000
        assert MAX_IMAGE_PIXELS > MIN_IMAGE_WIDTH * MIN_IMAGE_HEIGHT


class TestFormats:
    """Upload allow-list and storage content types should agree."""

    def test_heic_is_allowed(self):
        assert HEIC_MIME_TYPES <= ALLOWED_MIME_TYPES
        assert HEIC_EXTENSIONS <= ALLOWED_EXTENSIONS

    def test_every_allowed_extension_has_content_type(self):
        for ext in ALLOWED_EXTENSIONS:
            assert ext.lstrip(".") in CONTENT_TYPES, f"No content type for {ext}"

    def test_extensions_are_lowercase_with_dot(self):
        for ext in ALLOWED_EXTENSIONS:
            assert ext.startswith(".") and ext == ext.lower()


class TestReasons:

    def test_reasons_are_distinct(self):
        reasons = [
            REASON_TOO_SMALL,
            REASON_UNPROCESSABLE,
            REASON_TOO_BLURRY,
            REASON_NO_FACE,
            REASON_MULTIPLE_FACES,
            REASON_FACE_TOO_SMALL,
            REASON_FACE_ANALYSIS_FAILED,
            REASON_DUPLICATE,
        ]
        assert len(set(reasons)) == len(reasons)
        assert all(reasons)


def test_uploads_dir_exists():
    assert UPLOADS_DIR.is_dir()


class TestPackaging:

    def test_readme_exists_if_declared(self):
        tomllib = pytest.importorskip("tomllib")
        root = Path(__file__).resolve().parent.parent
        project = tomllib.loads((root / "pyproject.toml").read_text())["project"]

        readme = project.get("readme")
        if readme is not None:
            assert (root / readme).is_file()
            assert readme != "SPEC_FULL.md"
