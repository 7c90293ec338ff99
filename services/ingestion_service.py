"""
Image Ingestion Service.

Entry point of the pipeline for a single upload:

    allow-list check -> normalize -> validate -> store -> record fields

Every upload that decodes is stored, accepted or not; validation only
decides the status and reasons that get persisted alongside it.
"""
import logging
from typing import Optional, Sequence

from models.pipeline import FingerprintEntry, ImageUpload, IngestionResult
from services import format_normalizer
from services.face_detection_service import FaceDetector, get_face_detector
from services.storage_service import StorageWriter, get_storage_writer
from services.validation_service import ImageValidator
from utils.config import ALLOWED_EXTENSIONS, ALLOWED_MIME_TYPES, MAX_UPLOAD_SIZE_BYTES
from utils.exceptions import PayloadTooLargeError, UnsupportedMediaError
from utils.image_manager import file_extension
from utils.logging_config import log_execution_time

logger = logging.getLogger(__name__)


def ensure_upload_allowed(upload: ImageUpload, max_size: int = MAX_UPLOAD_SIZE_BYTES) -> None:
    """
    Reject uploads outside the size limit or format allow-list.

    Raises:
        PayloadTooLargeError: If the upload exceeds ``max_size``
        UnsupportedMediaError: If the MIME type or extension is not allowed
    """
    size = max(upload.size, len(upload.data))
    if size > max_size:
        raise PayloadTooLargeError(size, max_size)

    mime_type = (upload.mime_type or "").lower()
    extension = file_extension(upload.filename)
    if mime_type not in ALLOWED_MIME_TYPES or (extension and extension not in ALLOWED_EXTENSIONS):
        raise UnsupportedMediaError(
            "Invalid file type. Only JPEG, PNG, and HEIC formats are allowed.",
            details={"mime_type": upload.mime_type, "extension": extension}
        )


class IngestionCoordinator:
    """Drives one upload through normalization, validation and storage."""

    def __init__(self, validator: ImageValidator, storage: StorageWriter):
        self.validator = validator
        self.storage = storage

    @log_execution_time
    def ingest(
        self,
        upload: ImageUpload,
        recent_fingerprints: Sequence[FingerprintEntry] = ()
    ) -> IngestionResult:
        """
        Process one upload end to end.

        Args:
            upload: Raw upload from the client
            recent_fingerprints: Fingerprints of the most recently accepted images,
                freshly queried for this request

        Returns:
            IngestionResult ready to be persisted as an ImageRecord

        Raises:
            ValidationError: Upload rejected by the allow-list (nothing stored)
            ImageProcessingError: Upload cannot be decoded/transcoded (nothing stored)
            StorageUnavailableError: Neither storage tier accepted the bytes
        """
        ensure_upload_allowed(upload)

        normalized = format_normalizer.normalize(upload.data, upload.mime_type, upload.filename)
        if normalized.converted:
            logger.info(f"Converted {upload.filename} to {normalized.filename}")

        outcome = self.validator.validate(normalized.data, recent_fingerprints)
        storage = self.storage.store(normalized.data, normalized.filename)

        logger.info(
            f"Ingested {upload.filename}: {'valid' if outcome.accepted else 'invalid'}",
            extra={"storage_key": storage.storage_key, "backend": storage.backend.value}
        )
        return IngestionResult(
            original_name=upload.filename,
            mime_type=normalized.mime_type,
            size=len(normalized.data),
            outcome=outcome,
            storage=storage,
        )


_coordinator: Optional[IngestionCoordinator] = None


def build_coordinator(
    face_detector: Optional[FaceDetector] = None,
    storage: Optional[StorageWriter] = None,
) -> IngestionCoordinator:
    """Build a coordinator, defaulting to the Rekognition detector and S3/local storage."""
    validator = ImageValidator(face_detector or get_face_detector())
    return IngestionCoordinator(validator, storage or get_storage_writer())


def get_ingestion_coordinator() -> IngestionCoordinator:
    """Get the process-wide coordinator (FastAPI dependency)."""
    global _coordinator
    if _coordinator is None:
        _coordinator = build_coordinator()
    return _coordinator
