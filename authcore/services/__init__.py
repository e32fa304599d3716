"""Services package exports."""

from authcore.services.auth_service import AuthenticationService
from authcore.services.logging_service import configure_logging, get_logger

__all__ = [
    "AuthenticationService",
    "configure_logging",
    "get_logger",
]
