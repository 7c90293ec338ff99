"""
Domain types passed between the ingestion pipeline stages.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class ImageUpload:
    """Raw upload as received from the client. Lives only for one request."""
    data: bytes
    mime_type: str
    filename: str
    size: int


@dataclass(frozen=True)
class NormalizedImage:
    """Upload after format normalization; always a standard encoding."""
    data: bytes
    mime_type: str
    filename: str
    converted: bool = False


@dataclass(frozen=True)
class FingerprintEntry:
    """Fingerprint of a previously accepted image."""
    id: str
    fingerprint: str


@dataclass(frozen=True)
class FaceDetectionResult:
    face_count: int
    # width * height of the primary face box, as a fraction of the frame
    primary_box_area: Optional[float] = None


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one validation check. ``reason`` is None when it passed."""
    name: str
    reason: Optional[str] = None
    fingerprint: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.reason is None


@dataclass(frozen=True)
class ValidationOutcome:
    accepted: bool
    reasons: Tuple[str, ...] = ()
    fingerprint: Optional[str] = None
    checks: Tuple[CheckResult, ...] = field(default=(), repr=False)

    @classmethod
    def from_checks(cls, checks: List[CheckResult]) -> "ValidationOutcome":
        """Fold check results, in run order, into a single decision."""
        reasons = tuple(c.reason for c in checks if c.reason is not None)
        fingerprint = next((c.fingerprint for c in checks if c.fingerprint), None)
        return cls(
            accepted=not reasons,
            reasons=reasons,
            fingerprint=fingerprint,
            checks=tuple(checks),
        )


class StorageBackend(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class ImageStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class StorageResult:
    storage_key: str
    location_uri: str
    backend: StorageBackend


@dataclass(frozen=True)
class IngestionResult:
    """Everything the glue layer needs to persist one ImageRecord."""
    original_name: str
    mime_type: str
    size: int
    outcome: ValidationOutcome
    storage: StorageResult

    @property
    def status(self) -> ImageStatus:
        return ImageStatus.VALID if self.outcome.accepted else ImageStatus.INVALID

    def record_fields(self) -> dict:
        """Column values for the persisted ImageRecord."""
        return {
            "storage_key": self.storage.storage_key,
            "original_name": self.original_name,
            "mime_type": self.mime_type,
            "size": self.size,
            "location_uri": self.storage.location_uri,
            "backend": self.storage.backend.value,
            "status": self.status.value,
            "validation_reasons": list(self.outcome.reasons) or None,
            "fingerprint": self.outcome.fingerprint,
        }
