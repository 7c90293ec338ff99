"""
Prometheus Metrics Endpoint for the Image Validation API.

Exposes request and ingestion metrics in Prometheus format at /metrics.
"""
import time
import logging
from typing import Sequence

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

router = APIRouter()

REQUEST_COUNT = Counter(
    "image_api_requests_total",
    "Total number of requests",
    ["method", "endpoint", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "image_api_request_latency_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)
UPLOADS_TOTAL = Counter(
    "image_api_uploads_total",
    "Stored uploads by validation status and storage backend",
    ["status", "backend"]
)
VALIDATION_FAILURES = Counter(
    "image_api_validation_failures_total",
    "Failed validation checks",
    ["check"]
)


def record_upload(status: str, backend: str, failed_checks: Sequence[str]) -> None:
    """Count one stored upload and each check it failed."""
    UPLOADS_TOTAL.labels(status=status, backend=backend).inc()
    for check in failed_checks:
        VALIDATION_FAILURES.labels(check=check).inc()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    async def dispatch(self, request: Request, call_next):
        # Skip metrics collection for /metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        response = await call_next(request)
        latency = time.time() - start_time

        # Group by route template so image IDs don't explode label cardinality
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code
        ).inc()

        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(latency)

        return response


@router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
