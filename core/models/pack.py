# =============================================================================
# core/models/pack.py - Pack Schemas
# =============================================================================
# A pack is the single ZIP archive generated for one order.
#
# Packs are created once, when assembly succeeds. Expiry is a query-time
# check on `expires_at`; the row is kept for auditing and the cleanup sweep
# only deletes the archive object and flips `status` to expired.
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from lib.utils import utcnow


class PackStatus(str, Enum):
    """
    - active: Archive present in storage
    - expired: Archive removed by the cleanup sweep
    """
    ACTIVE = "active"
    EXPIRED = "expired"


class Pack(BaseModel):
    """A generated pack row."""

    pack_id: str = Field(..., description="Public pack identifier")

    order_id: str = Field(..., description="Owning order (one pack per order)")

    storage_key: str = Field(..., description="Object key of the archive")

    size_bytes: int = Field(default=0, ge=0)

    files_included: int = Field(default=0, ge=0)

    download_token: str = Field(..., description="Token used by /download links")

    status: PackStatus = Field(default=PackStatus.ACTIVE)

    created_at: datetime
    expires_at: datetime

    download_count: int = Field(default=0, ge=0)
    last_downloaded_at: datetime | None = Field(default=None)

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once the pack was swept or `now` is past `expires_at`."""
        if self.status == PackStatus.EXPIRED:
            return True
        return (now or utcnow()) > self.expires_at

    def remaining_seconds(self, now: datetime | None = None) -> int:
        """Whole seconds left before expiry (0 when expired)."""
        remaining = (self.expires_at - (now or utcnow())).total_seconds()
        return max(0, int(remaining))


@dataclass
class AssemblyResult:
    """
    Outcome of one PackAssembler.assemble() call.

    `entries` are the in-archive names, in input order; `skipped_keys` are
    the storage keys that could not be fetched.
    """
    archive_key: str
    size_bytes: int
    files_included: int
    download_url: str
    url_expires_in: int
    entries: list[str] = field(default_factory=list)
    skipped_keys: list[str] = field(default_factory=list)
