"""FastAPI dependencies for authentication."""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authcore.errors import InvalidOrExpiredToken
from authcore.models.user import User
from authcore.services.auth_service import AuthenticationService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    """Extract and validate the current user from a JWT Bearer token.

    Args:
        credentials: Bearer token from Authorization header

    Returns:
        Authenticated User model

    Raises:
        InvalidOrExpiredToken: If the header is missing, the token does not
            verify, or its user no longer exists
    """
    if credentials is None:
        raise InvalidOrExpiredToken("Missing bearer token")

    auth_service = AuthenticationService()
    return await auth_service.authenticate_access_token(credentials.credentials)
