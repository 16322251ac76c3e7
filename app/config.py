# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.STORAGE_BUCKET)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
# =============================================================================

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration (database + object storage)
    # -------------------------------------------------------------------------

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    STORAGE_BUCKET: str = Field(
        default="packshop-files",
        description="Storage bucket holding product files and generated packs"
    )

    # -------------------------------------------------------------------------
    # Redis / Celery
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    CELERY_TASK_ALWAYS_EAGER: bool = Field(
        default=False,
        description="Run background tasks inline instead of on a worker"
    )

    CLEANUP_INTERVAL_SECONDS: int = Field(
        default=3600,
        ge=60,
        description="How often the expired-pack sweep runs"
    )

    # -------------------------------------------------------------------------
    # Payment Provider
    # -------------------------------------------------------------------------

    STRIPE_SECRET_KEY: str = Field(
        default="",
        description="Payment provider secret key"
    )

    STRIPE_API_BASE: str = Field(
        default="https://api.stripe.com/v1",
        description="Payment provider REST endpoint"
    )

    CURRENCY: str = Field(
        default="eur",
        min_length=3,
        max_length=3,
        description="ISO currency code used for payment intents"
    )

    # -------------------------------------------------------------------------
    # Email Delivery
    # -------------------------------------------------------------------------

    RESEND_API_KEY: str = Field(
        default="",
        description="Email provider API key (sending is skipped when empty)"
    )

    RESEND_API_URL: str = Field(
        default="https://api.resend.com/emails",
        description="Email provider send endpoint"
    )

    EMAIL_FROM: str = Field(
        default="PackShop <noreply@packshop.local>",
        description="Sender address for delivery emails"
    )

    SUPPORT_EMAIL: str = Field(
        default="support@packshop.local",
        description="Support address shown in delivery emails"
    )

    UPSTREAM_TIMEOUT_SECONDS: float = Field(
        default=15.0,
        gt=0,
        description="HTTP timeout for payment and email provider calls"
    )

    # -------------------------------------------------------------------------
    # Packs
    # -------------------------------------------------------------------------

    PACK_EXPIRY_HOURS: int = Field(
        default=48,
        ge=1,
        le=24 * 30,
        description="Lifetime of a generated pack"
    )

    DOWNLOAD_URL_TTL_SECONDS: int = Field(
        default=3600,
        ge=60,
        description="Validity of signed URLs issued by /download"
    )

    MAX_UPLOAD_SIZE_MB: int = Field(
        default=500,
        ge=1,
        le=5000,
        description="Maximum admin upload size in MB"
    )

    # -------------------------------------------------------------------------
    # Admin Access
    # -------------------------------------------------------------------------

    ADMIN_TOKEN: str = Field(
        default="dev-admin-token-change-me",
        min_length=16,
        description="Shared secret expected in the Authorization header of admin routes"
    )

    ADMIN_USERNAME: str = Field(
        default="admin",
        description="Username accepted by /auth/login"
    )

    ADMIN_PASSWORD: str = Field(
        default="",
        description="Password accepted by /auth/login (login disabled when empty)"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:8000",
        description="Public URL of this API, used to build download links"
    )

    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://shop.com" -> ["http://localhost:3000", "https://shop.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def pack_expiry(self) -> timedelta:
        """Pack lifetime as a timedelta."""
        return timedelta(hours=self.PACK_EXPIRY_HOURS)

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Parses .env and validates once, not on every access.
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
