# =============================================================================
# core/models/order.py - Order Schemas and Lifecycle
# =============================================================================
# These models define orders and their state machine:
# - OrderStatus: Enum for order states
# - ORDER_TRANSITIONS: The only allowed status moves
# - Order: A purchase of one or more catalog products
#
# Flow:
#   pending -> paid -> processing -> completed
#                                \-> failed
#
# Orders are never deleted; they are kept as financial records.
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    """
    Possible states for an order.

    - pending: Payment intent created, payment not confirmed
    - paid: Payment provider confirmed the payment
    - processing: Pack assembly has been claimed and queued
    - completed: Pack uploaded, download link available (terminal)
    - failed: Pack assembly failed (terminal, manual intervention only)
    """
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.FAILED)


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID}),
    OrderStatus.PAID: frozenset({OrderStatus.PROCESSING}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.FAILED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.FAILED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Check whether `current -> target` is an allowed lifecycle move."""
    return target in ORDER_TRANSITIONS[current]


def flatten_selections(selections: Iterable[str] | dict[str, Iterable[str]]) -> list[str]:
    """
    Flatten a selection payload into an ordered list of unique product ids.

    Accepts either a plain list of ids or a mapping of category to ids.

    Example:
        flatten_selections({"templates": ["temp1"], "bots": ["bot1", "temp1"]})
        # ["temp1", "bot1"]
    """
    if isinstance(selections, dict):
        raw = [pid for ids in selections.values() for pid in ids]
    else:
        raw = list(selections)

    seen: set[str] = set()
    product_ids = []
    for pid in raw:
        pid = str(pid).strip()
        if pid and pid not in seen:
            seen.add(pid)
            product_ids.append(pid)
    return product_ids


class Order(BaseModel):
    """
    An order row.

    `id` is the public purchase id used by /generate-pack, /pack-status
    and /confirm-payment.
    """

    id: str = Field(..., description="Order UUID (purchase id)")

    order_number: str = Field(..., description="Human-readable order number")

    customer_email: str = Field(..., description="Delivery address for the pack link")

    customer_name: str | None = Field(default=None)

    payment_reference_id: str | None = Field(
        default=None,
        description="Payment provider reference, set once at creation"
    )

    product_ids: list[str] = Field(default_factory=list, description="Selected products, in order")

    amount_minor_units: int = Field(default=0, ge=0, description="Charged amount in cents")

    currency: str = Field(default="eur")

    status: OrderStatus = Field(default=OrderStatus.PENDING)

    # Populated together when the order completes
    pack_id: str | None = Field(default=None)
    pack_storage_key: str | None = Field(default=None)
    download_url: str | None = Field(default=None)

    error_message: str | None = Field(default=None, description="Failure reason for failed orders")

    created_at: datetime | None = Field(default=None)
    paid_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
