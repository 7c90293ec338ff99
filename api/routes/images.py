"""Image upload, listing and deletion endpoints."""
import logging

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from models.pipeline import ImageUpload, StorageBackend
from models.schemas import DeleteResponse, ImageListResponse, ImageRecord, UploadResponse
from api.routes.metrics import record_upload
from services import data_service
from services.db import get_db
from services.ingestion_service import IngestionCoordinator, get_ingestion_coordinator
from services.storage_service import StorageWriter, get_storage_writer
from utils.config import MAX_UPLOAD_SIZE_BYTES
from utils.exceptions import DatabaseError, ResourceNotFoundError, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/images", tags=["Images"])


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    image: UploadFile = File(..., description="Photo to validate (JPEG, PNG or HEIC)"),
    db: AsyncSession = Depends(get_db),
    coordinator: IngestionCoordinator = Depends(get_ingestion_coordinator),
    storage: StorageWriter = Depends(get_storage_writer),
):
    """
    Validate and store an uploaded photo.

    The photo is stored whether or not it passes validation. A rejected
    photo is still a successful upload: ``accepted`` is false and
    ``reasons`` lists every failed check.
    """
    # One byte over the limit is enough to reject
    data = await image.read(MAX_UPLOAD_SIZE_BYTES + 1)
    upload = ImageUpload(
        data=data,
        mime_type=image.content_type or "",
        filename=image.filename or "",
        size=max(image.size or 0, len(data)),
    )

    recent = await data_service.get_recent_fingerprints(db)
    result = await run_in_threadpool(coordinator.ingest, upload, recent)

    try:
        record = await data_service.create_image_record(db, result.record_fields())
    except DatabaseError:
        logger.error(
            "Record creation failed, removing stored object",
            extra={"storage_key": result.storage.storage_key}
        )
        try:
            await run_in_threadpool(storage.delete, result.storage.storage_key, result.storage.backend)
        except StorageError as e:
            logger.error(f"Could not remove orphaned object: {e.message}")
        raise

    record_upload(
        result.status.value,
        result.storage.backend.value,
        [check.name for check in result.outcome.checks if not check.passed],
    )
    return UploadResponse(
        accepted=result.outcome.accepted,
        reasons=list(result.outcome.reasons),
        image=ImageRecord.model_validate(record),
    )


@router.get("", response_model=ImageListResponse)
async def list_images(db: AsyncSession = Depends(get_db)):
    """List all image records, newest first."""
    records = await data_service.list_images(db)
    return ImageListResponse(
        count=len(records),
        images=[ImageRecord.model_validate(r) for r in records],
    )


@router.get("/{image_id}", response_model=ImageRecord)
async def get_image(image_id: str, db: AsyncSession = Depends(get_db)):
    """Get a specific image record."""
    record = await data_service.get_image(db, image_id)
    if record is None:
        raise ResourceNotFoundError("Image", image_id)
    return ImageRecord.model_validate(record)


@router.delete("/{image_id}", response_model=DeleteResponse)
async def delete_image(
    image_id: str,
    db: AsyncSession = Depends(get_db),
    storage: StorageWriter = Depends(get_storage_writer),
):
    """Delete an image record and its stored bytes from whichever tier holds them."""
    record = await data_service.get_image(db, image_id)
    if record is None:
        raise ResourceNotFoundError("Image", image_id)

    await run_in_threadpool(storage.delete, record.storage_key, StorageBackend(record.backend))
    await data_service.delete_image_record(db, record)

    return DeleteResponse(message="Image deleted successfully")
