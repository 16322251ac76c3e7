# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains schemas for data validation:
# - product.py: Catalog products and admin payloads
# - order.py: Orders and the order lifecycle
# - pack.py: Generated packs and assembly results
# =============================================================================

from .product import (
    CATEGORY_LABELS,
    Product,
    ProductCategory,
    ProductCreate,
    ProductUpdate,
)

from .order import (
    ORDER_TRANSITIONS,
    Order,
    OrderStatus,
    can_transition,
    flatten_selections,
)

from .pack import (
    AssemblyResult,
    Pack,
    PackStatus,
)

__all__ = [
    # Products
    "CATEGORY_LABELS",
    "Product",
    "ProductCategory",
    "ProductCreate",
    "ProductUpdate",
    # Orders
    "ORDER_TRANSITIONS",
    "Order",
    "OrderStatus",
    "can_transition",
    "flatten_selections",
    # Packs
    "AssemblyResult",
    "Pack",
    "PackStatus",
]
