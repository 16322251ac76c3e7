# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .storage_service import StorageService
from .catalog_service import CatalogService
from .order_service import AssemblyClaim, OrderService
from .pack_assembler import PackAssembler
from .payment_service import PaymentIntent, PaymentService
from .notification_service import NotificationService
from .pack_service import PackService

__all__ = [
    "StorageService",
    "CatalogService",
    "AssemblyClaim",
    "OrderService",
    "PackAssembler",
    "PaymentIntent",
    "PaymentService",
    "NotificationService",
    "PackService",
]
