# =============================================================================
# core/services/catalog_service.py - Catalog Business Logic
# =============================================================================
# Read-only product lookup for customers, plus the admin write paths
# (create, edit, soft-delete, bulk products.csv import).
# =============================================================================

import io
import logging
import uuid
from typing import Any

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from lib.supabase_client import SupabaseClient
from lib.utils import format_size, utcnow
from core.models.product import (
    CATEGORY_LABELS,
    Product,
    ProductCategory,
    ProductCreate,
    ProductUpdate,
)
from app.exceptions import CatalogImportError, ProductNotFoundError

logger = logging.getLogger(__name__)

# products.csv header aliases -> product fields
CSV_COLUMN_ALIASES = {
    "file_path": "storage_key",
    "file": "storage_key",
    "file_size": "size_bytes",
    "size": "size_bytes",
    "price": "price_minor_units",
    "active": "is_active",
}

TRUTHY = {"true", "1", "yes", "oui", "y"}


class CatalogService:
    """
    Service for catalog operations.

    Provides a clean interface between API routes and the products table.
    """

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def list_products(category: ProductCategory | str | None = None) -> list[Product]:
        """Active products, newest first, optionally in one category."""
        category_value = category.value if isinstance(category, ProductCategory) else category
        rows = SupabaseClient.fetch_products(category=category_value)
        return [Product.model_validate(row) for row in rows]

    @staticmethod
    def list_all_products() -> list[Product]:
        """Every product, soft-deleted ones included (admin view)."""
        rows = SupabaseClient.fetch_products(include_inactive=True)
        return [Product.model_validate(row) for row in rows]

    @staticmethod
    def get_product(product_id: str) -> Product:
        """
        Get one product (active or not).

        Raises:
            ProductNotFoundError: If the id is unknown
        """
        row = SupabaseClient.fetch_product(product_id)
        if not row:
            raise ProductNotFoundError([product_id])
        return Product.model_validate(row)

    @staticmethod
    def resolve_products(product_ids: list[str]) -> list[Product]:
        """
        Resolve selected ids to active products, preserving selection order.

        Raises:
            ProductNotFoundError: If any id is unknown or inactive
        """
        rows = SupabaseClient.fetch_products(product_ids=product_ids)
        by_id = {row["id"]: Product.model_validate(row) for row in rows}

        missing = [pid for pid in product_ids if pid not in by_id]
        if missing:
            raise ProductNotFoundError(missing)

        return [by_id[pid] for pid in product_ids]

    @staticmethod
    def total_price(products: list[Product]) -> int:
        """Order amount in minor units."""
        return sum(product.price_minor_units for product in products)

    @staticmethod
    def list_categories() -> list[dict[str, Any]]:
        """
        Group active products by category for GET /categories.

        Returns:
            [{"id", "name", "description", "files": [{"id", "name", "size", ...}]}]
        """
        products = CatalogService.list_products()

        categories = []
        for category in ProductCategory:
            name, description = CATEGORY_LABELS[category]
            files = [
                {
                    "id": product.id,
                    "name": product.name,
                    "size": format_size(product.size_bytes),
                    "sizeBytes": product.size_bytes,
                    "price": product.price_minor_units,
                }
                for product in products
                if product.category == category
            ]
            categories.append({
                "id": category.value,
                "name": name,
                "description": description,
                "files": files,
            })

        return categories

    @staticmethod
    def catalog_summary(category: ProductCategory | None = None) -> dict[str, Any]:
        """Flat catalog keyed by category with per-category counts."""
        products = CatalogService.list_products(category)

        catalog: dict[str, list[dict[str, Any]]] = {c.value: [] for c in ProductCategory}
        for product in products:
            catalog[product.category.value].append({
                "id": product.id,
                "name": product.name,
                "description": product.description,
                "file": product.file_name,
                "size": product.size_bytes,
                "price": product.price_minor_units,
                "category": product.category.value,
            })

        stats = {"total": len(products)}
        stats.update({name: len(items) for name, items in catalog.items()})

        return {"catalog": catalog, "stats": stats}

    # -------------------------------------------------------------------------
    # Admin writes
    # -------------------------------------------------------------------------

    @staticmethod
    def create_product(payload: ProductCreate) -> Product:
        """Register (or overwrite) a product."""
        row = payload.model_dump(mode="json")
        if not row.get("id"):
            row["id"] = f"{payload.category.value[:4]}_{uuid.uuid4().hex[:8]}"
        row["created_at"] = utcnow().isoformat()

        saved = SupabaseClient.upsert_products([row])
        product = Product.model_validate(saved[0] if saved else row)
        logger.info(f"Saved product {product.id} ({product.storage_key})")
        return product

    @staticmethod
    def update_product(product_id: str, payload: ProductUpdate) -> Product:
        """
        Apply an admin edit.

        Raises:
            ProductNotFoundError: If the id is unknown
        """
        changes = payload.model_dump(mode="json", exclude_unset=True)
        if not changes:
            return CatalogService.get_product(product_id)

        row = SupabaseClient.update_product(product_id, changes)
        if not row:
            raise ProductNotFoundError([product_id])

        logger.info(f"Updated product {product_id}: {sorted(changes)}")
        return Product.model_validate(row)

    @staticmethod
    def deactivate_product(product_id: str) -> Product:
        """Soft-delete a product by clearing is_active."""
        return CatalogService.update_product(product_id, ProductUpdate(is_active=False))

    @staticmethod
    def import_csv(content: bytes) -> dict[str, Any]:
        """
        Bulk import a products.csv file.

        Expected columns: id, name, description, category, file_path (or
        storage_key), file_size (or size_bytes), price (cents), is_active.
        Invalid rows are reported and skipped; valid rows are upserted.

        Raises:
            CatalogImportError: If the file cannot be parsed or has no rows
        """
        try:
            df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
        except Exception as e:
            raise CatalogImportError(str(e))

        df.columns = [str(col).strip().lower() for col in df.columns]
        df = df.rename(columns=CSV_COLUMN_ALIASES)

        if df.empty:
            raise CatalogImportError("le fichier ne contient aucune ligne")

        required = {"name", "category", "storage_key"}
        missing = required - set(df.columns)
        if missing:
            raise CatalogImportError(f"colonnes manquantes: {', '.join(sorted(missing))}")

        rows: list[dict[str, Any]] = []
        errors: list[dict[str, Any]] = []
        now = utcnow().isoformat()

        for index, record in enumerate(df.to_dict(orient="records"), start=2):
            record = {k: v.strip() for k, v in record.items() if isinstance(v, str)}
            if "is_active" in record:
                record["is_active"] = record["is_active"].lower() in TRUTHY
            for numeric in ("size_bytes", "price_minor_units"):
                if record.get(numeric) == "":
                    record.pop(numeric)
            if not record.get("id"):
                record.pop("id", None)
            if not record.get("description"):
                record.pop("description", None)

            try:
                product = ProductCreate.model_validate(record)
            except PydanticValidationError as e:
                errors.append({
                    "line": index,
                    "errors": [err["msg"] for err in e.errors()],
                })
                continue

            row = product.model_dump(mode="json")
            if not row.get("id"):
                row["id"] = f"{product.category.value[:4]}_{uuid.uuid4().hex[:8]}"
            row["created_at"] = now
            rows.append(row)

        SupabaseClient.upsert_products(rows)

        logger.info(f"Catalog import: {len(rows)} imported, {len(errors)} rejected")
        return {
            "imported": len(rows),
            "rejected": len(errors),
            "errors": errors[:50],
        }
