"""
Image Validation Service.

Runs every content check against a normalized image and folds the results
into one accept/reject decision.

Checks (always all of them, in this order):
- Resolution: at least 800x600
- Sharpness: Laplacian variance above the blur threshold
- Face: exactly one face covering enough of the frame
- Duplicate: not a near-copy of a recently accepted image

A failing check never stops the others. Reasons are reported in check
order even when the checks run concurrently.
"""
import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from models.pipeline import CheckResult, FingerprintEntry, ValidationOutcome
from services import fingerprint_service, sharpness_service
from services.face_detection_service import FaceDetector, evaluate_faces
from utils.config import (
    BLUR_THRESHOLD,
    MIN_IMAGE_HEIGHT,
    MIN_IMAGE_WIDTH,
    REASON_DUPLICATE,
    REASON_FACE_ANALYSIS_FAILED,
    REASON_TOO_BLURRY,
    REASON_TOO_SMALL,
    REASON_UNPROCESSABLE,
    SIMILARITY_THRESHOLD,
    VALIDATION_MAX_WORKERS,
)
from utils.exceptions import FaceDetectionError
from utils.image_manager import image_dimensions, load_grayscale

logger = logging.getLogger(__name__)

Check = Callable[[bytes, Sequence[FingerprintEntry]], CheckResult]


class ImageValidator:
    """Validates one image at a time; holds no per-request state."""

    def __init__(
        self,
        face_detector: FaceDetector,
        max_workers: int = VALIDATION_MAX_WORKERS,
        min_width: int = MIN_IMAGE_WIDTH,
        min_height: int = MIN_IMAGE_HEIGHT,
        blur_threshold: float = BLUR_THRESHOLD,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
    ):
        self.face_detector = face_detector
        self.max_workers = max_workers
        self.min_width = min_width
        self.min_height = min_height
        self.blur_threshold = blur_threshold
        self.similarity_threshold = similarity_threshold

    @property
    def checks(self) -> List[Check]:
        return [
            self.check_resolution,
            self.check_sharpness,
            self.check_faces,
            self.check_duplicate,
        ]

    def validate(
        self,
        image_bytes: bytes,
        recent_fingerprints: Sequence[FingerprintEntry] = ()
    ) -> ValidationOutcome:
        """
        Run all checks and decide.

        Args:
            image_bytes: Normalized (standard-encoding) image
            recent_fingerprints: Fingerprints of the most recently accepted images

        Returns:
            ValidationOutcome; accepted iff no check produced a reason
        """
        checks = self.checks
        if self.max_workers > 1:
            # Pool threads don't inherit contextvars; each check runs in a copy of the caller's
            contexts = [contextvars.copy_context() for _ in checks]
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(checks))) as pool:
                # map() yields in submission order, not completion order
                results = list(pool.map(
                    lambda ctx, check: ctx.run(check, image_bytes, recent_fingerprints),
                    contexts,
                    checks,
                ))
        else:
            results = [check(image_bytes, recent_fingerprints) for check in checks]

        outcome = ValidationOutcome.from_checks(results)
        logger.info(
            f"Validation {'passed' if outcome.accepted else 'failed'}: "
            f"{len(outcome.reasons)} reason(s)"
        )
        return outcome

    def check_resolution(self, image_bytes: bytes, _recent=()) -> CheckResult:
        try:
            width, height = image_dimensions(image_bytes)
        except ValueError as e:
            logger.error(f"Error validating image resolution: {e}")
            return CheckResult("resolution", REASON_UNPROCESSABLE)

        if width < self.min_width or height < self.min_height:
            logger.info(f"Image too small: {width}x{height}")
            return CheckResult("resolution", REASON_TOO_SMALL)
        return CheckResult("resolution")

    def check_sharpness(self, image_bytes: bytes, _recent=()) -> CheckResult:
        try:
            gray = load_grayscale(image_bytes)
        except ValueError as e:
            logger.error(f"Error validating image blur: {e}")
            return CheckResult("sharpness", REASON_UNPROCESSABLE)

        sharpness = sharpness_service.laplacian_variance(gray)
        logger.debug(f"Sharpness score {sharpness:.2f}", extra={"sharpness": round(sharpness, 2)})
        if sharpness_service.is_blurry(sharpness, self.blur_threshold):
            return CheckResult("sharpness", REASON_TOO_BLURRY)
        return CheckResult("sharpness")

    def check_faces(self, image_bytes: bytes, _recent=()) -> CheckResult:
        try:
            detection = self.face_detector.detect(image_bytes)
        except FaceDetectionError as e:
            logger.error(f"Error validating faces in image: {e.message}")
            return CheckResult("face", REASON_FACE_ANALYSIS_FAILED)

        return CheckResult("face", evaluate_faces(detection))

    def check_duplicate(
        self,
        image_bytes: bytes,
        recent: Sequence[FingerprintEntry] = ()
    ) -> CheckResult:
        try:
            fingerprint = fingerprint_service.fingerprint_bytes(image_bytes)
        except ValueError as e:
            logger.error(f"Error checking image similarity: {e}")
            return CheckResult("duplicate", REASON_UNPROCESSABLE)

        reason: Optional[str] = None
        if fingerprint_service.is_duplicate(fingerprint, recent, self.similarity_threshold):
            reason = REASON_DUPLICATE
        return CheckResult("duplicate", reason, fingerprint=fingerprint)
