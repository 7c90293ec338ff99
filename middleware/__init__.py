"""
Middleware package for the image validation API.
"""
from middleware.api_key import APIKeyMiddleware
from middleware.request_id import RequestIDMiddleware

__all__ = ["APIKeyMiddleware", "RequestIDMiddleware"]
