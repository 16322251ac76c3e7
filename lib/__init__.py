# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - utils.py: Shared utilities (identifiers, timestamps, sizes)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import (
    format_size,
    generate_download_token,
    generate_order_number,
    generate_pack_id,
    normalize_uuid,
    utcnow,
)

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Utils
    "format_size",
    "generate_download_token",
    "generate_order_number",
    "generate_pack_id",
    "normalize_uuid",
    "utcnow",
]
