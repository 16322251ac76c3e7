# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - In-memory stand-ins for the Supabase client (tables + storage bucket)
# - A seeded catalog and a FastAPI TestClient with Celery in eager mode
# =============================================================================

import copy
import os
from datetime import datetime
from typing import Any

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token-0123456789")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["RESEND_API_KEY"] = ""

import pytest

from lib.supabase_client import SupabaseClient


MB = 1024 * 1024

# Unique columns per table, enforced on insert and update
UNIQUE_COLUMNS = {
    "products": ["id"],
    "orders": ["id", "order_number", "payment_reference_id"],
    "packs": ["pack_id", "order_id", "download_token"],
}


# =============================================================================
# In-memory Supabase
# =============================================================================

class FakeResponse:
    def __init__(self, data: list[dict[str, Any]], count: int | None = None):
        self.data = data
        self.count = count


def _comparable(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


class FakeQuery:
    """Subset of the PostgREST query builder used by SupabaseClient."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.rows = db.tables.setdefault(table, [])
        self.operation = "select"
        self.payload: Any = None
        self.on_conflict = "id"
        self.filters: list = []
        self.order_by: tuple[str, bool] | None = None
        self.max_rows: int | None = None
        self.want_count = False

    # Operations

    def select(self, *columns, count=None):
        self.operation = "select"
        self.want_count = count is not None
        return self

    def insert(self, data):
        self.operation = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.operation = "update"
        self.payload = data
        return self

    def upsert(self, rows, on_conflict="id"):
        self.operation = "upsert"
        self.payload = rows
        self.on_conflict = on_conflict
        return self

    # Filters

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.filters.append(lambda row: row.get(column) is None)
        return self

    def lt(self, column, value):
        self.filters.append(
            lambda row: row.get(column) is not None and _comparable(row[column]) < _comparable(value)
        )
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    # Execution

    def _matching(self) -> list[dict[str, Any]]:
        return [row for row in self.rows if all(f(row) for f in self.filters)]

    def _check_unique(self, row: dict[str, Any], ignore: dict[str, Any] | None = None) -> None:
        for column in UNIQUE_COLUMNS.get(self.table, []):
            value = row.get(column)
            if value is None:
                continue
            for existing in self.rows:
                if existing is not ignore and existing.get(column) == value:
                    raise Exception(f"duplicate key value violates unique constraint on {self.table}.{column}")

    def execute(self) -> FakeResponse:
        if self.db.fail_tables and self.table in self.db.fail_tables:
            raise Exception(f"connection refused ({self.table})")

        if self.operation == "select":
            rows = self._matching()
            if self.order_by:
                column, desc = self.order_by
                rows = sorted(rows, key=lambda r: (r.get(column) is None, _comparable(r.get(column) or "")), reverse=desc)
            total = len(rows)
            if self.max_rows is not None:
                rows = rows[: self.max_rows]
            return FakeResponse(copy.deepcopy(rows), total if self.want_count else None)

        if self.operation == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            for item in items:
                self._check_unique(item)
                self.rows.append(copy.deepcopy(item))
            return FakeResponse(copy.deepcopy(items))

        if self.operation == "update":
            matched = self._matching()
            for row in matched:
                self._check_unique({**row, **self.payload}, ignore=row)
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse(copy.deepcopy(matched))

        if self.operation == "upsert":
            saved = []
            for item in self.payload:
                existing = next((r for r in self.rows if r.get(self.on_conflict) == item.get(self.on_conflict)), None)
                if existing is None:
                    self.rows.append(copy.deepcopy(item))
                    saved.append(copy.deepcopy(item))
                else:
                    existing.update(copy.deepcopy(item))
                    saved.append(copy.deepcopy(existing))
            return FakeResponse(saved)

        raise AssertionError(f"unsupported operation {self.operation}")


class FakeBucket:
    """Supabase Storage bucket API over a dict of key -> bytes."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.fail_uploads = False
        self.fail_removes = False
        self.fail_remove_keys: set[str] = set()
        self.signed: list[tuple[str, int]] = []

    def upload(self, path, file, file_options=None):
        if self.fail_uploads:
            raise Exception("Bucket quota exceeded")
        self.objects[path] = bytes(file)
        return {"Key": path}

    def download(self, path):
        if path not in self.objects:
            raise Exception(f"Object not found: {path}")
        return self.objects[path]

    def list(self, path="", options=None):
        options = options or {}
        prefix = f"{path.strip('/')}/" if path.strip("/") else ""
        items: dict[str, dict[str, Any]] = {}
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            if "/" in rest:
                folder = rest.split("/", 1)[0]
                items.setdefault(folder, {"name": folder, "id": None, "metadata": None})
            else:
                items[rest] = {
                    "name": rest,
                    "id": f"obj-{rest}",
                    "updated_at": "2026-01-01T00:00:00Z",
                    "metadata": {"size": len(self.objects[key]), "lastModified": "2026-01-01T00:00:00Z"},
                }
        result = list(items.values())
        if options.get("search"):
            result = [item for item in result if options["search"] in item["name"]]
        offset = options.get("offset", 0)
        limit = options.get("limit", 100)
        return result[offset: offset + limit]

    def create_signed_url(self, path, expires_in):
        if path not in self.objects:
            raise Exception(f"Object not found: {path}")
        self.signed.append((path, expires_in))
        return {"signedURL": f"https://storage.test/{path}?token=signed&expires_in={expires_in}"}

    def remove(self, paths):
        if self.fail_removes or self.fail_remove_keys.intersection(paths):
            raise Exception("Storage unavailable")
        for path in paths:
            self.objects.pop(path, None)
        return [{"name": path} for path in paths]


class FakeStorage:
    def __init__(self):
        self.bucket = FakeBucket()

    def from_(self, name):
        return self.bucket


class FakeSupabase:
    """Stand-in for supabase.Client."""

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.storage = FakeStorage()
        self.fail_tables: set[str] = set()

    def table(self, name):
        return FakeQuery(self, name)


class FakeObjectStore:
    """Object store for PackAssembler tests."""

    def __init__(self, objects: dict[str, bytes] | None = None):
        self.objects = dict(objects or {})
        self.puts: list[str] = []
        self.fail_put = False

    def get(self, key: str) -> bytes:
        from app.exceptions import StorageDownloadError

        if key not in self.objects:
            raise StorageDownloadError(key, "Object not found")
        return self.objects[key]

    def put(self, data: bytes, key: str, content_type: str | None = None) -> str:
        from app.exceptions import StorageUploadError

        if self.fail_put:
            raise StorageUploadError(key, "Bucket quota exceeded")
        self.objects[key] = data
        self.puts.append(key)
        return key

    def signed_url(self, key: str, ttl_seconds: int) -> str:
        return f"https://storage.test/{key}?expires_in={ttl_seconds}"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_supabase():
    """Install an in-memory Supabase client for the duration of a test."""
    fake = FakeSupabase()
    SupabaseClient.set_client(fake)
    yield fake
    SupabaseClient.set_client(None)


@pytest.fixture
def bucket(fake_supabase) -> FakeBucket:
    return fake_supabase.storage.bucket


@pytest.fixture
def sample_products() -> list[dict[str, Any]]:
    """Catalog rows: temp1 (10MB) and bot1 (20MB)."""
    return [
        {
            "id": "temp1",
            "name": "Landing Page Template",
            "description": "Responsive landing page",
            "category": "templates",
            "storage_key": "templates/temp1.zip",
            "size_bytes": 10 * MB,
            "price_minor_units": 1500,
            "is_active": True,
            "created_at": "2026-01-01T10:00:00+00:00",
        },
        {
            "id": "bot1",
            "name": "Discord Bot",
            "description": "Moderation bot",
            "category": "plugins",
            "storage_key": "bots/bot1.zip",
            "size_bytes": 20 * MB,
            "price_minor_units": 2500,
            "is_active": True,
            "created_at": "2026-01-02T10:00:00+00:00",
        },
        {
            "id": "doc_old",
            "name": "Old Guide",
            "description": None,
            "category": "docs",
            "storage_key": "docs/old.pdf",
            "size_bytes": 1024,
            "price_minor_units": 100,
            "is_active": False,
            "created_at": "2025-06-01T10:00:00+00:00",
        },
    ]


@pytest.fixture
def seeded(fake_supabase, sample_products) -> FakeSupabase:
    """Catalog rows plus the product files in the bucket."""
    fake_supabase.tables["products"] = [dict(p) for p in sample_products]
    objects = fake_supabase.storage.bucket.objects
    objects["templates/temp1.zip"] = b"t" * (10 * MB)
    objects["bots/bot1.zip"] = b"b" * (20 * MB)
    objects["docs/old.pdf"] = b"%PDF-old"
    return fake_supabase


@pytest.fixture
def client(seeded):
    """FastAPI TestClient over the seeded in-memory backend."""
    from fastapi.testclient import TestClient
    from app.main import app

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {os.environ['ADMIN_TOKEN']}"}


@pytest.fixture
def paid_order(seeded):
    """A paid order for temp1 + bot1."""
    from core.services.catalog_service import CatalogService
    from core.services.order_service import OrderService

    products = CatalogService.resolve_products(["temp1", "bot1"])
    order = OrderService.create_order(
        email="client@example.com",
        products=products,
        currency="eur",
        payment_reference_id="pi_test_123",
    )
    return OrderService.mark_paid(order)
