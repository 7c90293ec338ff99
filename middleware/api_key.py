"""
API Key Authentication Middleware.

Validates the X-API-Key header against configured API keys.
Health, metrics, docs and locally stored images stay public.
"""
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from utils.config import LOCAL_STORAGE_BASE_URL

logger = logging.getLogger(__name__)

PUBLIC_PATHS = {
    "/",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/api",
    "/api/health",
    "/metrics",
}

PUBLIC_PREFIXES = (f"{LOCAL_STORAGE_BASE_URL}/",)


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Middleware to validate API key authentication."""

    def __init__(self, app, api_keys: list[str] = None):
        """
        Args:
            app: ASGI application
            api_keys: List of valid API keys. If empty/None, auth is disabled.
        """
        super().__init__(app)
        self.api_keys = set(api_keys) if api_keys else set()
        self.auth_enabled = len(self.api_keys) > 0

        if self.auth_enabled:
            logger.info(f"API Key authentication enabled with {len(self.api_keys)} key(s)")
        else:
            logger.info("API Key authentication disabled (no keys configured)")

    async def dispatch(self, request: Request, call_next):
        if not self.auth_enabled or self._is_public_path(request.url.path):
            return await call_next(request)

        api_key = request.headers.get("X-API-Key")
        if not api_key or api_key not in self.api_keys:
            message = "Missing X-API-Key header" if not api_key else "Invalid API key"
            logger.warning(f"{message} for {request.method} {request.url.path}")
            return JSONResponse(
                status_code=401,
                content={
                    "status": "error",
                    "code": "UNAUTHORIZED",
                    "message": message,
                    "details": {}
                }
            )

        return await call_next(request)

    @staticmethod
    def _is_public_path(path: str) -> bool:
        return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)
