# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Provides shared-secret authentication for admin routes.
#
# Usage:
#   from app.auth import require_admin, AdminUser
#
#   @router.get("/admin/files")
#   async def files(admin: AdminUser = Depends(require_admin)):
#       return {"user": admin.username}
# =============================================================================

from app.auth.dependencies import require_admin, is_valid_admin_token
from app.auth.models import AdminUser, LoginRequest, LoginResponse

__all__ = [
    "require_admin",
    "is_valid_admin_token",
    "AdminUser",
    "LoginRequest",
    "LoginResponse",
]
