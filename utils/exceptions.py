"""
Custom Application Exceptions.

Provides a hierarchy of exceptions for consistent error handling.

Usage:
    from utils.exceptions import ImageProcessingError, StorageUnavailableError

    # In the pipeline
    raise ImageProcessingError("Failed to convert HEIC image to JPEG")

    # In storage
    raise StorageUnavailableError(primary_error, fallback_error)
"""
from typing import Optional, Dict, Any


class AppError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "IMAGE_PROCESSING_ERROR")
        status_code: HTTP status code to return
        details: Additional context for debugging
    """
    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "status": "error",
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# =============================================================================
# SERVICE LAYER EXCEPTIONS (400-level errors)
# =============================================================================

class ServiceError(AppError):
    """General service-layer error (bad input, processing failure)."""
    def __init__(
        self,
        message: str,
        code: str = "SERVICE_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code, status_code=400, details=details)


class ImageProcessingError(ServiceError):
    """
    Image is corrupt, undecodable, or could not be transcoded.

    Terminal for an upload: nothing is stored and no record is created.
    """
    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code="IMAGE_PROCESSING_ERROR", details=details)


class ValidationError(AppError):
    """
    Input validation failed.

    Use for: uploads rejected before the pipeline runs.
    """
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        code: str = "VALIDATION_ERROR",
        status_code: int = 422,
        details: Optional[Dict[str, Any]] = None
    ):
        _details = details or {}
        if field:
            _details["field"] = field
        super().__init__(message, code, status_code=status_code, details=_details)


class UnsupportedMediaError(ValidationError):
    """Upload MIME type or extension is outside the allow-list."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            field="image",
            code="UNSUPPORTED_MEDIA_TYPE",
            status_code=415,
            details=details
        )


class PayloadTooLargeError(ValidationError):
    """Upload exceeds the configured size limit."""
    def __init__(self, size: int, limit: int):
        super().__init__(
            f"File is too large ({size} bytes); the limit is {limit} bytes",
            field="image",
            code="PAYLOAD_TOO_LARGE",
            status_code=413,
            details={"size": size, "limit": limit}
        )


class ResourceNotFoundError(AppError):
    """Requested resource not found in database."""
    def __init__(
        self,
        resource: str,
        identifier: str,
        details: Optional[Dict[str, Any]] = None
    ):
        _details = details or {}
        _details["resource"] = resource
        _details["identifier"] = identifier
        super().__init__(
            f"{resource} with identifier '{identifier}' not found",
            "NOT_FOUND",
            status_code=404,
            details=_details
        )


# =============================================================================
# INFRASTRUCTURE EXCEPTIONS (500-level errors)
# =============================================================================

class ExternalServiceError(AppError):
    """
    External service/API call failed.

    Use for: face detection capability, object storage.
    """
    def __init__(
        self,
        service_name: str,
        message: str,
        status_code: int = 502,
        details: Optional[Dict[str, Any]] = None
    ):
        _details = details or {}
        _details["service"] = service_name
        super().__init__(
            f"{service_name} error: {message}",
            "EXTERNAL_SERVICE_ERROR",
            status_code=status_code,
            details=_details
        )


class FaceDetectionError(ExternalServiceError):
    """Face detection capability unreachable, timed out, or returned an error."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("face_detection", message, details=details)


class StorageError(ExternalServiceError):
    """A single storage tier failed to write, read, or delete an object."""
    def __init__(
        self,
        backend: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        _details = details or {}
        _details["backend"] = backend
        self.backend = backend
        super().__init__(f"{backend}_storage", message, details=_details)


class StorageUnavailableError(AppError):
    """Both the primary and the fallback storage tiers failed for one upload."""
    def __init__(self, primary_error: Exception, fallback_error: Exception):
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        super().__init__(
            "Failed to store image",
            "STORAGE_UNAVAILABLE",
            status_code=503,
            details={
                "primary": str(primary_error),
                "fallback": str(fallback_error),
            }
        )


class DatabaseError(AppError):
    """Database connection or query failed."""
    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        _details = details or {}
        if operation:
            _details["operation"] = operation  # "insert", "delete", "query"
        super().__init__(
            f"Database error: {message}",
            "DATABASE_ERROR",
            status_code=500,
            details=_details
        )
