# =============================================================================
# core/services/order_service.py - Order Store and Lifecycle
# =============================================================================
# Creates orders and moves them through the lifecycle:
#
#   pending -> paid -> processing -> completed | failed
#
# Every status change is a conditional update filtered on the current status,
# so a status never regresses even when two writers race. The assembly claim
# additionally requires pack_id IS NULL, which makes pack generation
# at-most-once per order.
# =============================================================================

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import generate_order_number, utcnow
from core.models.order import Order, OrderStatus, can_transition
from core.models.product import Product
from app.exceptions import (
    EmptySelectionError,
    InvalidOrderTransitionError,
    OrderNotFoundError,
    OrderNotPaidError,
    PaymentAlreadyUsedError,
)

logger = logging.getLogger(__name__)


@dataclass
class AssemblyClaim:
    """
    Result of OrderService.claim_for_assembly().

    - claimed: this caller moved the order to processing and must enqueue
      assembly
    - order: the order as it stands after the attempt
    """
    claimed: bool
    order: Order


class OrderService:
    """
    Service for order persistence and state transitions.

    All mutations go through the methods below; routes never write order
    rows directly.
    """

    # -------------------------------------------------------------------------
    # Creation and lookup
    # -------------------------------------------------------------------------

    @staticmethod
    def create_order(
        email: str,
        products: list[Product],
        currency: str,
        payment_reference_id: str | None = None,
        customer_name: str | None = None,
    ) -> Order:
        """
        Create a pending order for the given products.

        Raises:
            EmptySelectionError: If no products are selected
        """
        if not products:
            raise EmptySelectionError()

        data: dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "order_number": generate_order_number(),
            "customer_email": email,
            "customer_name": customer_name,
            "payment_reference_id": payment_reference_id,
            "product_ids": [product.id for product in products],
            "amount_minor_units": sum(product.price_minor_units for product in products),
            "currency": currency,
            "status": OrderStatus.PENDING.value,
            "created_at": utcnow().isoformat(),
        }

        row = SupabaseClient.insert_order(data)
        order = Order.model_validate(row)
        logger.info(
            f"Created order {order.order_number} ({order.id}) for {email}: "
            f"{len(order.product_ids)} product(s), {order.amount_minor_units} {currency}"
        )
        return order

    @staticmethod
    def get_order(order_id: str) -> Order:
        """
        Get an order by purchase id.

        Raises:
            OrderNotFoundError: If the id is unknown
        """
        row = SupabaseClient.fetch_order(order_id)
        if not row:
            raise OrderNotFoundError(str(order_id))
        return Order.model_validate(row)

    @staticmethod
    def get_by_order_number(order_number: str) -> Order:
        row = SupabaseClient.fetch_order_by("order_number", order_number)
        if not row:
            raise OrderNotFoundError(order_number)
        return Order.model_validate(row)

    @staticmethod
    def find_by_payment_reference(payment_reference_id: str) -> Order | None:
        """Order created for a payment intent, or None."""
        row = SupabaseClient.fetch_order_by("payment_reference_id", payment_reference_id)
        return Order.model_validate(row) if row else None

    @staticmethod
    def ensure_payment_reference_free(order: Order, payment_reference_id: str) -> None:
        """
        Check that a payment intent is not bound to a different order.

        Raises:
            PaymentAlreadyUsedError: If another order holds the reference
        """
        holder = OrderService.find_by_payment_reference(payment_reference_id)
        if holder is not None and holder.id != order.id:
            logger.warning(
                f"Order {order.order_number}: payment {payment_reference_id} "
                f"already belongs to {holder.order_number}"
            )
            raise PaymentAlreadyUsedError(payment_reference_id)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    @staticmethod
    def _transition(
        order: Order,
        target: OrderStatus,
        changes: dict[str, Any] | None = None,
        require_null: tuple[str, ...] = (),
    ) -> Order:
        """
        Move `order` to `target` with a compare-and-swap on its status.

        Raises:
            InvalidOrderTransitionError: If the move is not allowed, or the
            row changed status since `order` was read
        """
        if not can_transition(order.status, target):
            raise InvalidOrderTransitionError(order.id, order.status.value, target.value)

        data = {"status": target.value, **(changes or {})}
        row = SupabaseClient.update_order(
            order.id,
            data,
            expected_status=order.status.value,
            require_null=require_null,
        )

        if row is None:
            current = OrderService.get_order(order.id)
            raise InvalidOrderTransitionError(order.id, current.status.value, target.value)

        logger.info(f"Order {order.order_number}: {order.status.value} -> {target.value}")
        return Order.model_validate(row)

    @staticmethod
    def mark_paid(order: Order, payment_reference_id: str | None = None) -> Order:
        """
        pending -> paid, after the payment provider confirmed the payment.

        An order created without a payment reference is bound to
        `payment_reference_id` in the same conditional update, so one
        payment can only ever pay one order. Already paid (or later) orders
        are returned unchanged.

        Raises:
            PaymentAlreadyUsedError: If the reference belongs to another order
        """
        if order.status != OrderStatus.PENDING:
            return order

        changes: dict[str, Any] = {"paid_at": utcnow().isoformat()}
        require_null: tuple[str, ...] = ()
        if payment_reference_id and not order.payment_reference_id:
            OrderService.ensure_payment_reference_free(order, payment_reference_id)
            changes["payment_reference_id"] = payment_reference_id
            require_null = ("payment_reference_id",)

        return OrderService._transition(order, OrderStatus.PAID, changes, require_null=require_null)

    @staticmethod
    def claim_for_assembly(order_id: str) -> AssemblyClaim:
        """
        paid -> processing, at most once per order.

        One conditional write on `status = paid AND pack_id IS NULL`. When it
        matches no row the order is re-read and returned unclaimed, so the
        caller can report the existing pack or the in-flight assembly.

        Raises:
            OrderNotFoundError: If the order is unknown
            OrderNotPaidError: If the order is still pending
        """
        order = OrderService.get_order(order_id)

        if order.pack_id or order.status != OrderStatus.PAID:
            if order.status == OrderStatus.PENDING:
                raise OrderNotPaidError(order.id, order.status.value)
            logger.info(f"Order {order.order_number} already {order.status.value}, not re-assembling")
            return AssemblyClaim(claimed=False, order=order)

        row = SupabaseClient.update_order(
            order.id,
            {"status": OrderStatus.PROCESSING.value, "error_message": None},
            expected_status=OrderStatus.PAID.value,
            require_null=["pack_id"],
        )

        if row is None:
            # Another request claimed it between our read and write
            current = OrderService.get_order(order.id)
            logger.info(f"Order {order.order_number} claimed concurrently ({current.status.value})")
            return AssemblyClaim(claimed=False, order=current)

        logger.info(f"Order {order.order_number}: paid -> processing")
        return AssemblyClaim(claimed=True, order=Order.model_validate(row))

    @staticmethod
    def mark_completed(
        order: Order,
        pack_id: str,
        pack_storage_key: str,
        download_url: str,
    ) -> Order:
        """processing -> completed, writing the pack reference in the same update."""
        return OrderService._transition(
            order,
            OrderStatus.COMPLETED,
            {
                "pack_id": pack_id,
                "pack_storage_key": pack_storage_key,
                "download_url": download_url,
                "completed_at": utcnow().isoformat(),
            },
        )

    @staticmethod
    def mark_failed(order: Order, reason: str) -> Order:
        """processing -> failed. Terminal; no automatic retry."""
        return OrderService._transition(
            order,
            OrderStatus.FAILED,
            {"error_message": reason[:500]},
        )

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    @staticmethod
    def revenue_summary() -> dict[str, int]:
        """Counts and revenue over orders that were paid."""
        paid_statuses = [
            OrderStatus.PAID.value,
            OrderStatus.PROCESSING.value,
            OrderStatus.COMPLETED.value,
            OrderStatus.FAILED.value,
        ]
        orders = SupabaseClient.fetch_orders(statuses=paid_statuses)
        return {
            "orders_paid": len(orders),
            "orders_completed": sum(1 for o in orders if o["status"] == OrderStatus.COMPLETED.value),
            "orders_failed": sum(1 for o in orders if o["status"] == OrderStatus.FAILED.value),
            "revenue_minor_units": sum(int(o.get("amount_minor_units") or 0) for o in orders),
        }
