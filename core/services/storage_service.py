# =============================================================================
# core/services/storage_service.py - Supabase Storage Operations
# =============================================================================
# Object Store Client: key-addressed binary objects in one Supabase Storage
# bucket. Product files live under their category folder
# (templates/temp1.zip) and generated packs under packs/.
# =============================================================================

import logging
import mimetypes
from posixpath import basename, dirname
from typing import Any

import httpx

from lib.supabase_client import SupabaseClient
from app.config import settings
from app.exceptions import (
    StorageDownloadError,
    StorageUploadError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

# Page size for bucket listings
LIST_PAGE_SIZE = 1000


def content_type_for(key: str) -> str:
    """Guess a Content-Type from the key's extension."""
    guessed, _ = mimetypes.guess_type(key)
    return guessed or "application/octet-stream"


class StorageService:
    """
    Service for Supabase Storage operations.

    All methods are static and share the Supabase client singleton.
    Transport failures raise StoreUnavailableError; provider rejections raise
    StorageUploadError / StorageDownloadError.
    """

    @staticmethod
    def _bucket():
        client = SupabaseClient.get_client()
        return client.storage.from_(settings.STORAGE_BUCKET)

    @staticmethod
    def put(data: bytes, key: str, content_type: str | None = None) -> str:
        """
        Upload bytes under `key`, replacing any existing object.

        Args:
            data: Object content
            key: Storage key (e.g. "packs/ORD-20260101-ABC123-9f1c.zip")
            content_type: Optional explicit Content-Type

        Returns:
            The storage key

        Raises:
            StorageUploadError: If the store rejects the upload
            StoreUnavailableError: On transport failure
        """
        try:
            StorageService._bucket().upload(
                path=key,
                file=data,
                file_options={
                    "content-type": content_type or content_type_for(key),
                    "upsert": "true",
                },
            )
            logger.info(f"Uploaded object to storage: {key} ({len(data)} bytes)")
            return key

        except httpx.TransportError as e:
            logger.error(f"Storage unreachable during upload of {key}: {e}")
            raise StoreUnavailableError(str(e))
        except Exception as e:
            logger.error(f"Storage upload failed for {key}: {e}")
            raise StorageUploadError(key, str(e))

    @staticmethod
    def get(key: str) -> bytes:
        """
        Download an object's content.

        Raises:
            StorageDownloadError: If the object is missing or unreadable
            StoreUnavailableError: On transport failure
        """
        try:
            content = StorageService._bucket().download(key)
            logger.debug(f"Downloaded object from storage: {key} ({len(content)} bytes)")
            return content

        except httpx.TransportError as e:
            logger.error(f"Storage unreachable during download of {key}: {e}")
            raise StoreUnavailableError(str(e))
        except Exception as e:
            raise StorageDownloadError(key, str(e))

    @staticmethod
    def list_objects(prefix: str = "") -> list[dict[str, Any]]:
        """
        List objects directly under a folder prefix.

        Args:
            prefix: Folder (e.g. "templates" or "templates/")

        Returns:
            List of {"key", "size", "modified"} dicts; sub-folders are skipped

        Raises:
            StoreUnavailableError: On transport failure
            StorageDownloadError: If the listing is rejected
        """
        folder = prefix.strip("/")
        objects: list[dict[str, Any]] = []
        offset = 0

        try:
            while True:
                page = StorageService._bucket().list(
                    folder,
                    {"limit": LIST_PAGE_SIZE, "offset": offset, "sortBy": {"column": "name", "order": "asc"}},
                ) or []

                for item in page:
                    # Folders come back without an id or metadata
                    if item.get("id") is None:
                        continue
                    metadata = item.get("metadata") or {}
                    objects.append({
                        "key": f"{folder}/{item['name']}" if folder else item["name"],
                        "size": int(metadata.get("size") or 0),
                        "modified": metadata.get("lastModified") or item.get("updated_at"),
                    })

                if len(page) < LIST_PAGE_SIZE:
                    break
                offset += LIST_PAGE_SIZE

            return objects

        except httpx.TransportError as e:
            raise StoreUnavailableError(str(e))
        except Exception as e:
            logger.error(f"Failed to list {folder or '/'}: {e}")
            raise StorageDownloadError(folder, str(e))

    @staticmethod
    def exists(key: str) -> bool:
        """
        Check whether an object is stored under `key`.

        Raises:
            StoreUnavailableError: On transport failure
            StorageDownloadError: If the listing is rejected
        """
        folder, name = dirname(key.strip("/")), basename(key)

        try:
            page = StorageService._bucket().list(folder, {"search": name, "limit": 100}) or []
        except httpx.TransportError as e:
            raise StoreUnavailableError(str(e))
        except Exception as e:
            logger.error(f"Existence check failed for {key}: {e}")
            raise StorageDownloadError(key, str(e))

        # search is a prefix match; folders come back without an id
        return any(item.get("name") == name and item.get("id") is not None for item in page)

    @staticmethod
    def signed_url(key: str, ttl_seconds: int) -> str:
        """
        Create a time-limited download URL for `key`.

        Every call signs a new URL; nothing is cached.

        Raises:
            StorageDownloadError: If the store refuses to sign
            StoreUnavailableError: On transport failure
        """
        try:
            result = StorageService._bucket().create_signed_url(key, ttl_seconds)
        except httpx.TransportError as e:
            raise StoreUnavailableError(str(e))
        except Exception as e:
            logger.error(f"Failed to sign URL for {key}: {e}")
            raise StorageDownloadError(key, str(e))

        url = result.get("signedURL") or result.get("signedUrl")
        if not url:
            raise StorageDownloadError(key, f"No signed URL in response: {result}")
        return url

    @staticmethod
    def delete(key: str) -> None:
        """
        Delete an object.

        Raises:
            StorageUploadError: If the store rejects the deletion
            StoreUnavailableError: On transport failure
        """
        try:
            StorageService._bucket().remove([key])
            logger.info(f"Deleted object from storage: {key}")

        except httpx.TransportError as e:
            raise StoreUnavailableError(str(e))
        except Exception as e:
            raise StorageUploadError(key, f"delete failed: {e}")
