# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides specialized methods for:
# - Catalog products
# - Orders (including conditional, compare-and-swap updates)
# - Packs
#
# Storage access goes through core/services/storage_service.py, which uses
# the same singleton client.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   order = SupabaseClient.fetch_order(order_id)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any, Iterable
from uuid import UUID

from supabase import create_client, Client

from app.config import settings
from app.exceptions import UpstreamError

# Set up logging for this module
logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "products"
ORDERS_TABLE = "orders"
PACKS_TABLE = "packs"


class SupabaseClientError(UpstreamError):
    """
    Error during Supabase database operations.

    The raw PostgREST error is kept for logs; API responses only show a
    generic upstream message.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__("database", message, code=code)
        self.context = details or {}


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        order = SupabaseClient.fetch_order_by("payment_reference_id", "pi_123")
        updated = SupabaseClient.update_order(
            order["id"],
            {"status": "processing"},
            expected_status="paid",
            require_null=["pack_id"],
        )
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                )
        return cls._instance

    @classmethod
    def set_client(cls, client: Client | None) -> None:
        """Replace the singleton (used by tests and scripts)."""
        cls._instance = client

    @classmethod
    def _normalize_uuid(cls, uuid_value: str | UUID) -> str:
        """Convert UUID to string for queries."""
        return str(uuid_value) if isinstance(uuid_value, UUID) else uuid_value

    @classmethod
    def _first(cls, table: str, column: str, value: Any) -> dict[str, Any] | None:
        """Fetch the first row where column == value, or None."""
        client = cls.get_client()

        try:
            response = (
                client.table(table)
                .select("*")
                .eq(column, value)
                .limit(1)
                .execute()
            )
            rows = response.data or []
            return rows[0] if rows else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch from {table}: {e}",
                code="FETCH_FAILED",
                details={"table": table, column: value}
            )

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_products(
        cls,
        category: str | None = None,
        product_ids: Iterable[str] | None = None,
        include_inactive: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Fetch catalog products.

        Args:
            category: Optional category filter
            product_ids: Optional id filter
            include_inactive: Also return soft-deleted products

        Returns:
            List of product rows, newest first

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()

        query = client.table(PRODUCTS_TABLE).select("*")
        if not include_inactive:
            query = query.eq("is_active", True)
        if category:
            query = query.eq("category", category)
        if product_ids is not None:
            query = query.in_("id", list(product_ids))

        try:
            response = query.order("created_at", desc=True).execute()
            products = response.data or []
            logger.debug(f"Fetched {len(products)} products (category={category})")
            return products

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch products: {e}",
                code="FETCH_PRODUCTS_FAILED",
                details={"category": category}
            )

    @classmethod
    def fetch_product(cls, product_id: str) -> dict[str, Any] | None:
        """Fetch a single product by id, active or not."""
        return cls._first(PRODUCTS_TABLE, "id", product_id)

    @classmethod
    def upsert_products(cls, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Insert or update products keyed by id.

        Raises:
            SupabaseClientError: If the write fails
        """
        if not rows:
            return []

        client = cls.get_client()

        try:
            response = (
                client.table(PRODUCTS_TABLE)
                .upsert(rows, on_conflict="id")
                .execute()
            )
            logger.info(f"Upserted {len(rows)} products")
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to upsert products: {e}",
                code="UPSERT_PRODUCTS_FAILED",
                details={"count": len(rows)}
            )

    @classmethod
    def update_product(cls, product_id: str, data: dict[str, Any]) -> dict[str, Any] | None:
        """Update a product; returns the updated row or None if unknown."""
        client = cls.get_client()

        try:
            response = (
                client.table(PRODUCTS_TABLE)
                .update(data)
                .eq("id", product_id)
                .execute()
            )
            rows = response.data or []
            return rows[0] if rows else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update product: {e}",
                code="UPDATE_PRODUCT_FAILED",
                details={"product_id": product_id}
            )

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    @classmethod
    def insert_order(cls, data: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a new order row.

        Raises:
            SupabaseClientError: If insert fails or returns nothing
        """
        client = cls.get_client()

        try:
            response = (
                client.table(ORDERS_TABLE)
                .insert(data)
                .execute()
            )

            if response.data:
                return response.data[0]
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA"
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert order: {e}",
                code="INSERT_ORDER_FAILED",
                details={"order_number": data.get("order_number")}
            )

    @classmethod
    def fetch_order(cls, order_id: str | UUID) -> dict[str, Any] | None:
        """Fetch an order by its id (the public purchase id)."""
        return cls._first(ORDERS_TABLE, "id", cls._normalize_uuid(order_id))

    @classmethod
    def fetch_order_by(cls, column: str, value: str) -> dict[str, Any] | None:
        """Fetch an order by order_number or payment_reference_id."""
        return cls._first(ORDERS_TABLE, column, value)

    @classmethod
    def fetch_orders(
        cls,
        statuses: Iterable[str] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch orders, newest first, optionally filtered by status."""
        client = cls.get_client()

        query = client.table(ORDERS_TABLE).select("*")
        if statuses is not None:
            query = query.in_("status", list(statuses))
        query = query.order("created_at", desc=True)
        if limit:
            query = query.limit(limit)

        try:
            response = query.execute()
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch orders: {e}",
                code="FETCH_ORDERS_FAILED",
            )

    @classmethod
    def update_order(
        cls,
        order_id: str | UUID,
        data: dict[str, Any],
        expected_status: str | Iterable[str] | None = None,
        require_null: Iterable[str] = (),
    ) -> dict[str, Any] | None:
        """
        Conditionally update an order.

        The update only applies when the row still has `expected_status`
        and every column in `require_null` IS NULL. The database evaluates
        the filter and the write in one statement, so this acts as a
        compare-and-swap.

        Returns:
            The updated row, or None when no row matched the conditions

        Raises:
            SupabaseClientError: If the write fails
        """
        client = cls.get_client()
        order_id_str = cls._normalize_uuid(order_id)

        query = client.table(ORDERS_TABLE).update(data).eq("id", order_id_str)
        if isinstance(expected_status, str):
            query = query.eq("status", expected_status)
        elif expected_status is not None:
            query = query.in_("status", list(expected_status))
        for column in require_null:
            query = query.is_(column, "null")

        try:
            response = query.execute()
            rows = response.data or []
            return rows[0] if rows else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update order: {e}",
                code="UPDATE_ORDER_FAILED",
                details={"order_id": order_id_str}
            )

    # -------------------------------------------------------------------------
    # Packs
    # -------------------------------------------------------------------------

    @classmethod
    def insert_pack(cls, data: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a pack row.

        Raises:
            SupabaseClientError: If insert fails (including a second pack
            for the same order, rejected by the unique constraint)
        """
        client = cls.get_client()

        try:
            response = (
                client.table(PACKS_TABLE)
                .insert(data)
                .execute()
            )

            if response.data:
                return response.data[0]
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA"
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert pack: {e}",
                code="INSERT_PACK_FAILED",
                details={"pack_id": data.get("pack_id")}
            )

    @classmethod
    def fetch_pack_by(cls, column: str, value: str) -> dict[str, Any] | None:
        """Fetch a pack by pack_id, download_token or order_id."""
        return cls._first(PACKS_TABLE, column, value)

    @classmethod
    def update_pack(cls, pack_id: str, data: dict[str, Any]) -> dict[str, Any] | None:
        """Update a pack by pack_id; returns the updated row or None."""
        client = cls.get_client()

        try:
            response = (
                client.table(PACKS_TABLE)
                .update(data)
                .eq("pack_id", pack_id)
                .execute()
            )
            rows = response.data or []
            return rows[0] if rows else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update pack: {e}",
                code="UPDATE_PACK_FAILED",
                details={"pack_id": pack_id}
            )

    @classmethod
    def fetch_expired_packs(cls, now_iso: str, limit: int = 500) -> list[dict[str, Any]]:
        """
        Fetch active packs whose expires_at is before now.

        Args:
            now_iso: Current time as ISO string
            limit: Maximum rows per sweep
        """
        client = cls.get_client()

        try:
            response = (
                client.table(PACKS_TABLE)
                .select("*")
                .eq("status", "active")
                .lt("expires_at", now_iso)
                .order("expires_at")
                .limit(limit)
                .execute()
            )
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch expired packs: {e}",
                code="FETCH_EXPIRED_PACKS_FAILED",
            )

    @classmethod
    def count_rows(cls, table: str, **filters: Any) -> int:
        """Count rows in a table matching equality filters."""
        client = cls.get_client()

        query = client.table(table).select("*", count="exact")
        for column, value in filters.items():
            query = query.eq(column, value)

        try:
            response = query.execute()
            if response.count is not None:
                return response.count
            return len(response.data or [])

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to count {table}: {e}",
                code="COUNT_FAILED",
            )
