"""
Image Validation API

Ingests user-submitted photos, checks them for resolution, sharpness,
a single clearly visible face and near-duplicates, and stores every
upload (valid or not) on S3 with a local-disk fallback.

Usage:
    uvicorn main:app --reload

Then access the API documentation at http://localhost:8000/docs
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from api.routes.metrics import MetricsMiddleware
from middleware.api_key import APIKeyMiddleware
from middleware.request_id import RequestIDMiddleware
from utils.config import (
    API_KEYS,
    DB_AUTO_CREATE,
    LOCAL_STORAGE_BASE_URL,
    LOG_JSON_FORMAT,
    LOG_LEVEL,
    S3_BUCKET_NAME,
    UPLOADS_DIR,
)
from utils.exceptions import AppError
from utils.logging_config import configure_logging

configure_logging(level=LOG_LEVEL, json_format=LOG_JSON_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    logger.info("Starting Image Validation API...")

    if DB_AUTO_CREATE:
        from services.db import init_db
        await init_db()
        logger.info("Database tables ready")

    if S3_BUCKET_NAME:
        logger.info(f"Primary storage: s3://{S3_BUCKET_NAME}, fallback: {UPLOADS_DIR}")
    else:
        logger.warning(f"No S3 bucket configured - all uploads go to {UPLOADS_DIR}")

    yield

    from services.db import engine
    await engine.dispose()
    logger.info("Shutting down Image Validation API...")


app = FastAPI(
    title="Image Validation API",
    description="""
    Photo ingestion and validation API.

    ## Checks

    * **Resolution**: at least 800x600
    * **Sharpness**: Laplacian variance above the blur threshold
    * **Face**: exactly one face covering at least 5% of the frame
    * **Duplicate**: not a near-copy of one of the last 20 accepted photos

    Every upload is stored, valid or not; rejected photos come back with
    the reasons they failed.
    """,
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# First added = innermost; request IDs must wrap auth so rejections are logged with one
app.add_middleware(APIKeyMiddleware, api_keys=API_KEYS)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(MetricsMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLER
# =============================================================================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Global handler for all AppError exceptions.

    Converts custom exceptions to consistent JSON responses.
    """
    logger.warning(f"[{exc.code}] {exc.message} | Details: {exc.details}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


from api.routes import router as api_router  # noqa: E402
from api.routes.metrics import router as metrics_router  # noqa: E402

app.include_router(api_router, prefix="/api")
app.include_router(metrics_router)  # /metrics at root level

# Fallback-tier objects are served straight from disk
app.mount(LOCAL_STORAGE_BASE_URL, StaticFiles(directory=UPLOADS_DIR), name="uploads")


@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Image Validation API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/api/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=False
    )
