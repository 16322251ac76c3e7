# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for admin authentication.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field


class AdminUser(BaseModel):
    """
    The authenticated admin.

    There is a single admin identity; holding the shared token is the
    whole of the check.
    """
    model_config = ConfigDict(frozen=True)

    username: str
    role: str = "admin"


class LoginRequest(BaseModel):
    """Credentials posted to /auth/login."""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Admin token returned by a successful login."""
    success: bool = True
    token: str
    user: AdminUser
