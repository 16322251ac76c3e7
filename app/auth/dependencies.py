# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Admin routes are protected by a static shared secret sent as
#
#   Authorization: Bearer <ADMIN_TOKEN>
#
# Usage:
#   from app.auth import require_admin, AdminUser
#
#   @router.get("/admin/stats")
#   async def stats(admin: AdminUser = Depends(require_admin)):
#       ...
# =============================================================================

import logging
import secrets
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config import settings
from app.auth.models import AdminUser
from app.exceptions import AuthError

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor; missing headers are reported as AuthError
security_optional = HTTPBearer(auto_error=False)


def is_valid_admin_token(token: str | None) -> bool:
    """Constant-time comparison against ADMIN_TOKEN."""
    if not token:
        return False
    return secrets.compare_digest(token.encode(), settings.ADMIN_TOKEN.encode())


def check_credentials(username: str, password: str) -> bool:
    """Check /auth/login credentials. Login is disabled while ADMIN_PASSWORD is empty."""
    if not settings.ADMIN_PASSWORD:
        return False
    username_ok = secrets.compare_digest(username.encode(), settings.ADMIN_USERNAME.encode())
    password_ok = secrets.compare_digest(password.encode(), settings.ADMIN_PASSWORD.encode())
    return username_ok and password_ok


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional)
) -> AdminUser:
    """
    Require the admin shared secret.

    Raises:
        AuthError: 401 if the header is missing or the token is wrong
    """
    if credentials is None:
        raise AuthError()

    if not is_valid_admin_token(credentials.credentials):
        logger.warning("Rejected admin request with invalid token")
        raise AuthError("Token admin invalide")

    return AdminUser(username=settings.ADMIN_USERNAME)
