"""Health check endpoints."""
from fastapi import APIRouter

from models.schemas import HealthResponse
from services.face_detection_service import get_face_detector
from utils.config import API_KEYS, S3_BUCKET_NAME

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Report service status and which external capabilities are configured.
    """
    return HealthResponse(
        status="ok",
        primary_storage_configured=bool(S3_BUCKET_NAME),
        face_detector=type(get_face_detector()).__name__,
        api_key_auth_enabled=bool(API_KEYS),
    )
