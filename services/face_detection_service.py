"""
Face Detection Service using AWS Rekognition.

The detector itself is an opaque remote capability: bytes in, bounding
boxes (as fractions of the frame) out. This module translates that into
a single pass/fail decision for the validation pipeline.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from models.pipeline import FaceDetectionResult
from utils.config import (
    AWS_ACCESS_KEY_ID,
    AWS_REGION,
    AWS_SECRET_ACCESS_KEY,
    FACE_DETECTION_TIMEOUT_SECONDS,
    MIN_FACE_AREA_RATIO,
    REASON_FACE_TOO_SMALL,
    REASON_MULTIPLE_FACES,
    REASON_NO_FACE,
    REKOGNITION_MAX_DIMENSION,
    REKOGNITION_MAX_IMAGE_BYTES,
)
from utils.exceptions import FaceDetectionError
from utils.image_manager import encode_image, load_image, resize_image
from utils.logging_config import log_execution_time

logger = logging.getLogger(__name__)


class FaceDetector(ABC):
    """Capability interface for anything that can count faces in an image."""

    @abstractmethod
    def detect(self, image_bytes: bytes) -> FaceDetectionResult:
        """
        Raises:
            FaceDetectionError: If the capability is unreachable or errors
        """
        raise NotImplementedError


class RekognitionFaceDetector(FaceDetector):
    """FaceDetector backed by Rekognition DetectFaces."""

    def __init__(self, client=None, timeout: float = FACE_DETECTION_TIMEOUT_SECONDS):
        self._client = client
        self._timeout = timeout

    @property
    def client(self):
        if self._client is None:
            self._client = create_rekognition_client(self._timeout)
        return self._client

    @log_execution_time
    def detect(self, image_bytes: bytes) -> FaceDetectionResult:
        payload = prepare_payload(image_bytes)
        try:
            response = self.client.detect_faces(Image={"Bytes": payload})
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Rekognition DetectFaces failed: {e}")
            raise FaceDetectionError(str(e)) from e

        faces = response.get("FaceDetails") or []
        # Faces without a bounding box carry no size information
        areas = [area for area in (_box_area(face.get("BoundingBox")) for face in faces) if area is not None]
        primary = max(areas) if areas else None

        logger.info(
            f"Rekognition detected {len(faces)} face(s), primary area {primary}",
            extra={"face_count": len(faces)}
        )
        return FaceDetectionResult(face_count=len(faces), primary_box_area=primary)


def _box_area(box: Optional[dict]) -> Optional[float]:
    if not box:
        return None
    return float(box.get("Width") or 0.0) * float(box.get("Height") or 0.0)


def create_rekognition_client(timeout: float = FACE_DETECTION_TIMEOUT_SECONDS):
    """Rekognition client with explicit credentials if configured, else the default chain."""
    config = Config(
        connect_timeout=timeout,
        read_timeout=timeout,
        retries={"max_attempts": 2},
    )
    kwargs = {"region_name": AWS_REGION, "config": config}
    if AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY:
        kwargs["aws_access_key_id"] = AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = AWS_SECRET_ACCESS_KEY
    return boto3.client("rekognition", **kwargs)


def prepare_payload(image_bytes: bytes) -> bytes:
    """
    Shrink images over the Rekognition byte limit.

    Bounding boxes are fractional, so downscaling does not change the
    face-size decision.
    """
    if len(image_bytes) <= REKOGNITION_MAX_IMAGE_BYTES:
        return image_bytes

    try:
        image = load_image(image_bytes)
        max_w, max_h = REKOGNITION_MAX_DIMENSION
        while True:
            payload = encode_image(resize_image(image, (max_w, max_h)), ".jpg", quality=90)
            if len(payload) <= REKOGNITION_MAX_IMAGE_BYTES or max_w <= 256:
                break
            max_w, max_h = max_w // 2, max_h // 2
    except ValueError as e:
        raise FaceDetectionError(f"Could not prepare image for detection: {e}") from e

    logger.debug(f"Downscaled detection payload from {len(image_bytes)} to {len(payload)} bytes")
    return payload


def evaluate_faces(
    result: FaceDetectionResult,
    min_area_ratio: float = MIN_FACE_AREA_RATIO
) -> Optional[str]:
    """
    Turn a detection result into a validation reason.

    Returns:
        None if exactly one sufficiently large face was found, else the reason
    """
    if result.face_count == 0:
        return REASON_NO_FACE
    if result.face_count > 1:
        return REASON_MULTIPLE_FACES
    if result.primary_box_area is not None and result.primary_box_area < min_area_ratio:
        return REASON_FACE_TOO_SMALL
    return None


_detector: Optional[FaceDetector] = None


def get_face_detector() -> FaceDetector:
    """Get the process-wide face detector."""
    global _detector
    if _detector is None:
        _detector = RekognitionFaceDetector()
    return _detector
