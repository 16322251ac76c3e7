# =============================================================================
# core/services/pack_assembler.py - ZIP Pack Assembly
# =============================================================================
# Builds one compressed archive from a list of storage keys:
#
#   1. Fetch each key from the object store (missing files are skipped)
#   2. Write survivors into a ZIP using their base names
#   3. Upload the archive once under a fresh, unique key
#   4. Sign a time-limited download URL for it
#
# The assembler is sequential and runs to completion or failure. It never
# retries the upload.
# =============================================================================

import io
import logging
import re
import uuid
import zipfile
from posixpath import basename, dirname, splitext
from typing import Protocol, Sequence

from app.config import settings
from app.exceptions import (
    EmptySelectionError,
    NoFilesIncludedError,
    StorageUploadError,
    UpstreamError,
    UploadFailedError,
)
from core.models.pack import AssemblyResult
from core.services.storage_service import StorageService
from lib.utils import format_size

logger = logging.getLogger(__name__)

# Folder for generated archives
PACKS_PREFIX = "packs"


class ObjectStore(Protocol):
    """The object store operations the assembler needs."""

    def get(self, key: str) -> bytes: ...

    def put(self, data: bytes, key: str, content_type: str | None = None) -> str: ...

    def signed_url(self, key: str, ttl_seconds: int) -> str: ...


def unique_entry_name(key: str, used: set[str]) -> str:
    """
    Pick the in-archive name for `key`.

    The base name is used when free. On a clash the parent folder is
    prefixed (bots_readme.txt), then a counter is appended
    (readme (2).txt). The chosen name is added to `used`.
    """
    name = basename(key.rstrip("/")) or key.replace("/", "_")
    candidates = [name]

    parent = basename(dirname(key.rstrip("/")))
    if parent:
        candidates.append(f"{parent}_{name}")

    for candidate in candidates:
        if candidate not in used:
            used.add(candidate)
            return candidate

    stem, ext = splitext(name)
    counter = 2
    while f"{stem} ({counter}){ext}" in used:
        counter += 1
    chosen = f"{stem} ({counter}){ext}"
    used.add(chosen)
    return chosen


def archive_key_for(archive_name: str) -> str:
    """Globally unique storage key for a new archive."""
    safe = re.sub(r"[^A-Za-z0-9._-]+", "-", archive_name).strip("-.") or "pack"
    return f"{PACKS_PREFIX}/{safe}-{uuid.uuid4().hex}.zip"


class PackAssembler:
    """
    Assemble a ZIP pack from object-store keys.

    Example:
        assembler = PackAssembler()
        result = assembler.assemble(
            ["templates/temp1.zip", "bots/bot1.zip"],
            archive_name="ORD-20260101-ABC123",
        )
        print(result.archive_key, result.files_included)
    """

    def __init__(
        self,
        store: ObjectStore = StorageService,
        url_ttl_seconds: int | None = None,
        compression_level: int = 9,
    ):
        self.store = store
        self.url_ttl_seconds = url_ttl_seconds or settings.PACK_EXPIRY_HOURS * 3600
        self.compression_level = compression_level

    def assemble(self, selected_keys: Sequence[str], archive_name: str) -> AssemblyResult:
        """
        Build, upload and sign one archive.

        Args:
            selected_keys: Storage keys of the files to include (non-empty)
            archive_name: Readable prefix for the archive key

        Returns:
            AssemblyResult with the archive key, size and signed URL

        Raises:
            EmptySelectionError: If no keys are given
            NoFilesIncludedError: If every fetch failed (nothing uploaded)
            UploadFailedError: If the store rejected the archive
            StoreUnavailableError: On transport failure during upload/signing
        """
        if not selected_keys:
            raise EmptySelectionError()

        logger.info(f"Assembling pack {archive_name}: {len(selected_keys)} file(s) requested")

        buffer = io.BytesIO()
        entries: list[str] = []
        skipped: list[str] = []
        used_names: set[str] = set()

        with zipfile.ZipFile(
            buffer,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=self.compression_level,
        ) as archive:
            for key in selected_keys:
                try:
                    content = self.store.get(key)
                except UpstreamError as e:
                    logger.warning(f"Skipping {key} in pack {archive_name}: {e}")
                    skipped.append(key)
                    continue

                entry_name = unique_entry_name(key, used_names)
                archive.writestr(entry_name, content)
                entries.append(entry_name)
                logger.debug(f"Added {entry_name} ({format_size(len(content))})")

        if not entries:
            logger.error(f"Pack {archive_name}: none of {len(selected_keys)} file(s) could be fetched")
            raise NoFilesIncludedError(len(selected_keys))

        payload = buffer.getvalue()
        archive_key = archive_key_for(archive_name)

        try:
            self.store.put(payload, archive_key, "application/zip")
        except StorageUploadError as e:
            raise UploadFailedError(archive_key, e.reason)

        download_url = self.store.signed_url(archive_key, self.url_ttl_seconds)

        logger.info(
            f"Pack {archive_name} uploaded to {archive_key}: "
            f"{len(entries)} file(s), {format_size(len(payload))}, {len(skipped)} skipped"
        )

        return AssemblyResult(
            archive_key=archive_key,
            size_bytes=len(payload),
            files_included=len(entries),
            download_url=download_url,
            url_expires_in=self.url_ttl_seconds,
            entries=entries,
            skipped_keys=skipped,
        )
