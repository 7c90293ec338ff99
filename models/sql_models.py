"""
SQLAlchemy Models for the image validation system.
"""
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import BigInteger, DateTime, Index, JSON, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from services.db import Base


class Image(Base):
    """One uploaded photo. Created once the pipeline finishes, status already final."""
    __tablename__ = "images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    storage_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    location_uri: Mapped[str] = mapped_column(String(1024), nullable=False)
    backend: Mapped[str] = mapped_column(String(20), nullable=False)  # 'primary', 'fallback'
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # 'valid', 'invalid'

    validation_reasons: Mapped[Optional[List[str]]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql")
    )
    # 64-char '0'/'1' average hash; NULL when hashing failed
    fingerprint: Mapped[Optional[str]] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        index=True
    )

    __table_args__ = (
        Index("idx_images_status_created", "status", "created_at"),
    )
