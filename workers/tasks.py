# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Background tasks for pack delivery.
#
# Tasks:
# - assemble_pack: Build, upload and deliver the pack for one order
# - cleanup_expired_packs: Periodic sweep of expired archives (celery beat)
# =============================================================================

import logging
from typing import Any

from celery import shared_task

logger = logging.getLogger(__name__)


# =============================================================================
# Pack Assembly Task
# =============================================================================

@shared_task(bind=True, name="workers.tasks.assemble_pack")
def assemble_pack(self, order_id: str, pack_id: str) -> dict[str, Any]:
    """
    Assemble the pack for an order that was claimed for processing.

    The task never retries: a failed assembly leaves the order in `failed`
    for manual follow-up.

    Args:
        order_id: The order UUID (purchase id)
        pack_id: Pack identifier returned to the client by /generate-pack

    Returns:
        Dict with:
        - success: bool
        - pack_id: The recorded pack (if successful)
        - files_included: Number of files in the archive
    """
    logger.info(f"Assembling pack {pack_id} for order {order_id}")

    from core.services.order_service import OrderService
    from core.services.pack_service import PackService

    try:
        pack = PackService.run_assembly(order_id, pack_id)
    except Exception as e:
        logger.exception(f"Pack assembly crashed for order {order_id}: {e}")
        try:
            OrderService.mark_failed(OrderService.get_order(order_id), "Erreur inattendue lors de la création du pack")
        except Exception as mark_error:
            logger.error(f"Could not mark order {order_id} failed: {mark_error}")
        return {"success": False, "error": str(e)}

    if pack is None:
        return {"success": False, "pack_id": None}

    return {
        "success": True,
        "pack_id": pack.pack_id,
        "files_included": pack.files_included,
        "size_bytes": pack.size_bytes,
    }


# =============================================================================
# Expiry Sweep Task
# =============================================================================

@shared_task(bind=True, name="workers.tasks.cleanup_expired_packs")
def cleanup_expired_packs(self) -> dict[str, int]:
    """
    Delete the archives of expired packs.

    Scheduled by celery beat every CLEANUP_INTERVAL_SECONDS.
    """
    from core.services.pack_service import PackService

    return PackService.cleanup_expired_packs()
