"""API package exports."""

from authcore.api.auth import router
from authcore.api.middleware import CorrelationIdMiddleware

__all__ = ["router", "CorrelationIdMiddleware"]
