# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# Exchange admin credentials for the shared admin token, and check a token.
# =============================================================================

import logging

from fastapi import APIRouter

from app.config import settings
from app.auth.dependencies import check_credentials
from app.auth.models import AdminUser, LoginRequest, LoginResponse
from app.exceptions import AuthError
from app.dependencies import AdminDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest) -> LoginResponse:
    """
    Log in to the admin interface.

    Returns:
        LoginResponse: The admin token to send as a Bearer token

    Raises:
        401: If the credentials are wrong
    """
    if not check_credentials(request.username, request.password):
        logger.warning(f"Failed admin login for {request.username!r}")
        raise AuthError("Identifiants invalides")

    logger.info(f"Admin login: {request.username}")
    return LoginResponse(
        token=settings.ADMIN_TOKEN,
        user=AdminUser(username=request.username),
    )


@router.get("/verify")
async def verify_token(
    admin: AdminDep
) -> dict:
    """
    Verify that a stored admin token is still valid.

    Raises:
        401: If token is missing or invalid
    """
    return {
        "valid": True,
        "user": admin.model_dump(),
    }
