# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common helpers used across the application: identifiers, timestamps and
# human-readable sizes.
# =============================================================================

import secrets
import uuid
from datetime import datetime, timezone
from uuid import UUID


# =============================================================================
# UUID Utilities
# =============================================================================

def normalize_uuid(value: str | UUID) -> str:
    """
    Normalize a UUID to string format.

    Handles both string and UUID objects, ensuring consistent string output.

    Example:
        order_id = normalize_uuid(uuid_obj)  # "550e8400-..."
        order_id = normalize_uuid("550e8400-...")  # "550e8400-..."
    """
    return str(value) if isinstance(value, UUID) else value


# =============================================================================
# Identifiers
# =============================================================================

def generate_order_number(now: datetime | None = None) -> str:
    """
    Build a human-readable, unique order number.

    Format: ORD-YYYYMMDD-XXXXXX (six random uppercase hex digits).
    """
    now = now or utcnow()
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


def generate_pack_id() -> str:
    """Public pack identifier, e.g. pack_3f9a1c0e5b7d2a44."""
    return f"pack_{uuid.uuid4().hex[:16]}"


def generate_download_token() -> str:
    """Unguessable token used in /download links."""
    return secrets.token_urlsafe(32)


# =============================================================================
# Time
# =============================================================================

def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# Formatting
# =============================================================================

def format_size(size_bytes: int) -> str:
    """
    Format a byte count for display.

    Example:
        format_size(31457280)  # "30.00 MB"
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    if size_bytes < 1024 ** 3:
        return f"{size_bytes / (1024 * 1024):.2f} MB"
    return f"{size_bytes / 1024 ** 3:.2f} GB"
