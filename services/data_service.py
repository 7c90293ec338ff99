"""
Data Service for interacting with the database.
Handles create/read/delete of image records using SQLAlchemy.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.pipeline import FingerprintEntry, ImageStatus
from models.sql_models import Image
from utils.config import DUPLICATE_WINDOW_SIZE
from utils.exceptions import DatabaseError

logger = logging.getLogger(__name__)


async def create_image_record(session: AsyncSession, fields: Dict[str, Any]) -> Image:
    """
    Persist a new image record built from pipeline output.
    """
    image = Image(**fields)
    session.add(image)
    try:
        await session.commit()
        await session.refresh(image)
    except SQLAlchemyError as e:
        await session.rollback()
        raise DatabaseError(str(e), operation="insert") from e
    return image


async def get_image(session: AsyncSession, image_id: str) -> Optional[Image]:
    """Retrieve an image record by ID."""
    result = await session.execute(select(Image).where(Image.id == image_id))
    return result.scalar_one_or_none()


async def list_images(session: AsyncSession) -> List[Image]:
    """All image records, newest first."""
    result = await session.execute(select(Image).order_by(Image.created_at.desc()))
    return list(result.scalars().all())


async def get_recent_fingerprints(
    session: AsyncSession,
    limit: int = DUPLICATE_WINDOW_SIZE
) -> List[FingerprintEntry]:
    """
    Fingerprints of the ``limit`` most recently accepted images, newest first.

    Rejected images and images without a fingerprint never take part in
    duplicate detection.
    """
    query = (
        select(Image.id, Image.fingerprint)
        .where(Image.status == ImageStatus.VALID.value, Image.fingerprint.is_not(None))
        .order_by(Image.created_at.desc())
        .limit(limit)
    )
    try:
        result = await session.execute(query)
    except SQLAlchemyError as e:
        raise DatabaseError(str(e), operation="query") from e
    return [FingerprintEntry(id=row.id, fingerprint=row.fingerprint) for row in result]


async def delete_image_record(session: AsyncSession, image: Image) -> None:
    """Delete an image record. Stored bytes are removed by the caller."""
    try:
        await session.delete(image)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        raise DatabaseError(str(e), operation="delete") from e
