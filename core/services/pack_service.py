# =============================================================================
# core/services/pack_service.py - Pack Generation and Delivery
# =============================================================================
# Orchestrates the pack pipeline around PackAssembler:
#
#   request_generation()  claim the order (paid -> processing), enqueue
#   run_assembly()        worker side: assemble, record pack, complete order,
#                         email the link
#   issue_download_url()  fresh signed URL per download, refused after expiry
#   cleanup_expired_packs()  periodic sweep of expired archives
# =============================================================================

import logging
from datetime import datetime
from typing import Any

from app.config import settings
from app.exceptions import (
    EmailDeliveryError,
    PackExpiredError,
    PackNotFoundError,
    PackShopException,
    UpstreamError,
)
from core.models.order import Order, OrderStatus
from core.models.pack import Pack, PackStatus
from core.services.notification_service import NotificationService
from core.services.order_service import OrderService
from core.services.pack_assembler import PackAssembler
from core.services.storage_service import StorageService
from lib.supabase_client import PACKS_TABLE, SupabaseClient
from lib.utils import generate_download_token, generate_pack_id, utcnow

logger = logging.getLogger(__name__)


class PackService:
    """
    Service for pack records and the generation pipeline.

    All methods are static. The assembler and the store are module-level
    collaborators so tests can patch them.
    """

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    @staticmethod
    def request_generation(purchase_id: str) -> dict[str, Any]:
        """
        Start pack generation for a paid order, at most once.

        Returns:
            {"packId", "status"}; packId is None until the pack exists

        Raises:
            OrderNotFoundError: Unknown purchase id
            OrderNotPaidError: Order still pending
            UpstreamError: The job queue is unreachable (order moved to failed)
        """
        claim = OrderService.claim_for_assembly(purchase_id)
        order = claim.order

        if not claim.claimed:
            return {"packId": order.pack_id, "status": order.status.value}

        pack_id = generate_pack_id()

        # Imported here: workers.tasks imports this module
        from workers.tasks import assemble_pack

        try:
            assemble_pack.delay(order.id, pack_id)
        except Exception as e:
            logger.error(f"Could not enqueue assembly for order {order.order_number}: {e}")
            PackService._fail(order, "Impossible de lancer la génération du pack")
            raise UpstreamError("queue", str(e), code="QUEUE_UNAVAILABLE")

        logger.info(f"Queued pack {pack_id} for order {order.order_number}")

        # Eager mode may already have finished the job
        current = OrderService.get_order(order.id)
        if current.status == OrderStatus.COMPLETED:
            return {"packId": current.pack_id, "status": current.status.value}
        if current.status == OrderStatus.FAILED:
            return {"packId": None, "status": current.status.value}
        return {"packId": pack_id, "status": OrderStatus.PROCESSING.value}

    @staticmethod
    def run_assembly(order_id: str, pack_id: str) -> Pack | None:
        """
        Build and deliver the pack for a processing order.

        Any assembly or storage failure moves the order to failed. An email
        failure is only logged.

        Returns:
            The recorded Pack, or None if the order was not processing or
            assembly failed
        """
        order = OrderService.get_order(order_id)
        if order.status != OrderStatus.PROCESSING:
            logger.warning(
                f"Order {order.order_number} is {order.status.value}, skipping assembly of {pack_id}"
            )
            return None

        archive_key = None
        recorded_pack_id = None
        try:
            keys = PackService._storage_keys_for(order)
            result = PackAssembler().assemble(keys, order.order_number)
            archive_key = result.archive_key

            now = utcnow()
            row = SupabaseClient.insert_pack({
                "pack_id": pack_id,
                "order_id": order.id,
                "storage_key": result.archive_key,
                "size_bytes": result.size_bytes,
                "files_included": result.files_included,
                "download_token": generate_download_token(),
                "status": PackStatus.ACTIVE.value,
                "created_at": now.isoformat(),
                "expires_at": (now + settings.pack_expiry).isoformat(),
                "download_count": 0,
            })
            pack = Pack.model_validate(row)
            recorded_pack_id = pack.pack_id

            OrderService.mark_completed(order, pack.pack_id, pack.storage_key, result.download_url)

        except PackShopException as e:
            logger.error(f"Pack {pack_id} for order {order.order_number} failed: {e}")
            if recorded_pack_id:
                PackService._retire_pack(recorded_pack_id)
            if archive_key:
                PackService._discard_archive(archive_key)
            PackService._fail(order, e.message)
            return None

        logger.info(
            f"Pack {pack.pack_id} ready for order {order.order_number}: "
            f"{pack.files_included} file(s), expires {pack.expires_at.isoformat()}"
        )

        try:
            NotificationService.send_pack_ready(
                email=order.customer_email,
                download_url=PackService.download_link(pack),
                pack_id=pack.pack_id,
                expires_at=pack.expires_at,
                files_count=pack.files_included,
                size_bytes=pack.size_bytes,
            )
        except EmailDeliveryError as e:
            logger.error(f"Delivery email for pack {pack.pack_id} not sent: {e}")

        return pack

    @staticmethod
    def _storage_keys_for(order: Order) -> list[str]:
        """Storage keys of the ordered products, in order."""
        rows = SupabaseClient.fetch_products(product_ids=order.product_ids, include_inactive=True)
        key_by_id = {row["id"]: row["storage_key"] for row in rows}

        keys = []
        for product_id in order.product_ids:
            if product_id not in key_by_id:
                logger.warning(f"Order {order.order_number}: product {product_id} no longer exists")
                continue
            keys.append(key_by_id[product_id])
        return keys

    @staticmethod
    def _fail(order: Order, reason: str) -> None:
        try:
            OrderService.mark_failed(order, reason)
        except PackShopException as e:
            logger.error(f"Could not mark order {order.order_number} failed: {e}")

    @staticmethod
    def _retire_pack(pack_id: str) -> None:
        """Expire a pack row whose order could not be completed."""
        try:
            SupabaseClient.update_pack(pack_id, {"status": PackStatus.EXPIRED.value})
        except UpstreamError as e:
            logger.error(f"Pack {pack_id} left active for an uncompleted order: {e}")

    @staticmethod
    def _discard_archive(archive_key: str) -> None:
        try:
            StorageService.delete(archive_key)
        except UpstreamError as e:
            logger.warning(f"Orphan archive {archive_key} not removed: {e}")

    # -------------------------------------------------------------------------
    # Lookup and status
    # -------------------------------------------------------------------------

    @staticmethod
    def get_pack(reference: str) -> Pack:
        """
        Find a pack by download token or pack id.

        Raises:
            PackNotFoundError: If neither matches
        """
        row = SupabaseClient.fetch_pack_by("download_token", reference)
        if row is None:
            row = SupabaseClient.fetch_pack_by("pack_id", reference)
        if row is None:
            raise PackNotFoundError(reference)
        return Pack.model_validate(row)

    @staticmethod
    def get_pack_for_order(order_id: str) -> Pack | None:
        row = SupabaseClient.fetch_pack_by("order_id", order_id)
        return Pack.model_validate(row) if row else None

    @staticmethod
    def download_link(pack: Pack) -> str:
        """Public link that resolves to a fresh signed URL."""
        return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/download/{pack.download_token}"

    @staticmethod
    def pack_status(purchase_id: str) -> dict[str, Any]:
        """
        Polling view of an order's pack.

        Returns:
            {"status", "packId"} plus "downloadUrl" and "expiresAt" once
            the pack exists
        """
        order = OrderService.get_order(purchase_id)
        response: dict[str, Any] = {
            "status": order.status.value,
            "packId": order.pack_id,
        }

        if order.status == OrderStatus.COMPLETED and order.pack_id:
            pack = PackService.get_pack_for_order(order.id)
            if pack is not None:
                response["downloadUrl"] = PackService.download_link(pack)
                response["expiresAt"] = pack.expires_at.isoformat()
                response["expired"] = pack.is_expired()
        elif order.status == OrderStatus.FAILED:
            response["error"] = order.error_message

        return response

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    @staticmethod
    def issue_download_url(
        pack: Pack,
        ttl_seconds: int | None = None,
        now: datetime | None = None,
    ) -> str:
        """
        Sign a new download URL for a pack.

        The TTL is capped to the pack's remaining lifetime. Each call counts
        as one download.

        Raises:
            PackExpiredError: If the pack is past expires_at or was swept
        """
        now = now or utcnow()
        if pack.is_expired(now):
            raise PackExpiredError(pack.pack_id)

        ttl = min(ttl_seconds or settings.DOWNLOAD_URL_TTL_SECONDS, pack.remaining_seconds(now))
        if ttl <= 0:
            raise PackExpiredError(pack.pack_id)

        url = StorageService.signed_url(pack.storage_key, ttl)

        SupabaseClient.update_pack(pack.pack_id, {
            "download_count": pack.download_count + 1,
            "last_downloaded_at": now.isoformat(),
        })
        logger.info(f"Issued download URL for pack {pack.pack_id} (ttl={ttl}s, count={pack.download_count + 1})")
        return url

    # -------------------------------------------------------------------------
    # Expiry sweep
    # -------------------------------------------------------------------------

    @staticmethod
    def cleanup_expired_packs(now: datetime | None = None) -> dict[str, int]:
        """
        Delete archives of packs past expires_at and mark them expired.

        A failed deletion is logged and left active for the next sweep.
        """
        now = now or utcnow()
        rows = SupabaseClient.fetch_expired_packs(now.isoformat())

        deleted = 0
        failed = 0
        for row in rows:
            pack = Pack.model_validate(row)
            try:
                StorageService.delete(pack.storage_key)
                SupabaseClient.update_pack(pack.pack_id, {"status": PackStatus.EXPIRED.value})
                deleted += 1
            except PackShopException as e:
                logger.error(f"Could not expire pack {pack.pack_id}: {e}")
                failed += 1

        if rows:
            logger.info(f"Expired-pack sweep: {deleted} deleted, {failed} failed of {len(rows)}")
        return {"checked": len(rows), "deleted": deleted, "failed": failed}

    @staticmethod
    def active_pack_count() -> int:
        return SupabaseClient.count_rows(PACKS_TABLE, status=PackStatus.ACTIVE.value)
