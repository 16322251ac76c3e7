# =============================================================================
# tests/test_storage_service.py - Object Store Tests
# =============================================================================
# StorageService against the in-memory bucket.
#
# Run with: pytest tests/test_storage_service.py -v
# =============================================================================

import httpx
import pytest

from app.exceptions import StorageDownloadError, StoreUnavailableError
from core.services.storage_service import StorageService


class TestExists:
    """Tests for StorageService.exists."""

    def test_stored_object(self, seeded):
        assert StorageService.exists("templates/temp1.zip") is True
        assert StorageService.exists("/bots/bot1.zip") is True

    def test_missing_object(self, seeded):
        assert StorageService.exists("templates/temp2.zip") is False
        assert StorageService.exists("plugins/temp1.zip") is False

    def test_name_must_match_exactly(self, seeded):
        seeded.storage.bucket.objects["templates/temp1.zip.bak"] = b"old"

        assert StorageService.exists("templates/temp1") is False
        assert StorageService.exists("templates/temp1.zip.bak") is True
        assert StorageService.exists("templates/temp1.zip") is True

    def test_folder_is_not_an_object(self, seeded):
        seeded.storage.bucket.objects["templates/archive/old.zip"] = b"old"

        assert StorageService.exists("templates/archive") is False
        assert StorageService.exists("templates/archive/old.zip") is True

    def test_transport_failure(self, seeded, monkeypatch):
        def refuse(path="", options=None):
            raise httpx.ConnectError("connection refused")

        monkeypatch.setattr(seeded.storage.bucket, "list", refuse)

        with pytest.raises(StoreUnavailableError):
            StorageService.exists("templates/temp1.zip")

    def test_rejected_listing(self, seeded, monkeypatch):
        def reject(path="", options=None):
            raise Exception("permission denied")

        monkeypatch.setattr(seeded.storage.bucket, "list", reject)

        with pytest.raises(StorageDownloadError) as exc_info:
            StorageService.exists("templates/temp1.zip")
        assert exc_info.value.key == "templates/temp1.zip"
