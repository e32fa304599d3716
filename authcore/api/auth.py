"""Authorization API endpoints."""

from fastapi import APIRouter, Depends, Response, status
import structlog

from authcore.api.dependencies import get_current_user
from authcore.models.auth import (
    LoginRequest,
    PasswordResetConfirmation,
    RefreshRequest,
    ResetPasswordRequest,
    SavePasswordRequest,
    SignupRequest,
    TokenPair,
)
from authcore.models.user import User, UserInfo
from authcore.services.auth_service import AuthenticationService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/authorize", tags=["Authorization"])


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(request: SignupRequest) -> TokenPair:
    """Register a new user.

    Returns:
        TokenPair for the new user

    Raises:
        400: Validation failed or passwords do not match
        409: A user with this email already exists
    """
    auth_service = AuthenticationService()
    return await auth_service.signup(request)


@router.post("/login")
async def login(request: LoginRequest) -> TokenPair:
    """Login with email and password.

    Raises:
        401: Invalid email or password
    """
    auth_service = AuthenticationService()
    return await auth_service.login(request.email, request.password)


@router.post("/token/refresh")
async def refresh_token(request: RefreshRequest) -> TokenPair:
    """Exchange a refresh token for a new token pair.

    Performs rotation: the presented refresh token is revoked and a new
    access + refresh pair is issued.

    Raises:
        401: Refresh token is invalid or expired
        409: Refresh token is revoked
    """
    auth_service = AuthenticationService()
    return await auth_service.refresh(request.refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: RefreshRequest) -> Response:
    """Revoke a refresh token.

    Raises:
        401: Refresh token is invalid or expired
        409: Refresh token is already revoked
    """
    auth_service = AuthenticationService()
    await auth_service.logout(request.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/login/resetPassword")
async def reset_password(request: ResetPasswordRequest) -> PasswordResetConfirmation:
    """Start a password reset: issue a token and email it to the user.

    Raises:
        400: Validation failed
        404: No user with this email
    """
    auth_service = AuthenticationService()
    return await auth_service.request_password_reset(request.email)


@router.post("/login/resetPassword/savePassword")
async def save_password(request: SavePasswordRequest) -> TokenPair:
    """Complete a password reset and log the user in with the new password.

    Raises:
        400: Validation failed or reset token expired
        404: Reset token not found or already used
    """
    auth_service = AuthenticationService()
    return await auth_service.confirm_password_reset(
        request.reset_token, request.new_password
    )


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)) -> UserInfo:
    """Get the authenticated user's public info."""
    return UserInfo.from_user(current_user)
