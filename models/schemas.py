"""
Pydantic models for API request/response schemas.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageRecord(BaseModel):
    """Persisted image record as returned to clients."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    storage_key: str = Field(..., description="Unique key of the stored object")
    original_name: str
    mime_type: str
    size: int = Field(..., description="Stored size in bytes")
    location_uri: str = Field(..., description="Where the stored bytes can be fetched")
    backend: Literal["primary", "fallback"] = Field(
        ..., description="Storage tier holding the bytes"
    )
    status: Literal["valid", "invalid"]
    validation_reasons: Optional[List[str]] = Field(
        None, description="Failed checks in check order; empty for valid images"
    )
    fingerprint: Optional[str] = Field(None, description="64-bit average hash as a bit string")
    created_at: datetime


class UploadResponse(BaseModel):
    """Result of POST /images/upload. Rejected images are still stored."""
    accepted: bool
    reasons: List[str] = Field(default_factory=list)
    image: ImageRecord


class ImageListResponse(BaseModel):
    count: int
    images: List[ImageRecord] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""
    status: str = Field("ok", description="Service status")
    primary_storage_configured: bool = Field(..., description="S3 bucket configured")
    face_detector: str = Field(..., description="Face detection implementation in use")
    api_key_auth_enabled: bool
