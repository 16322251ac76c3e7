# =============================================================================
# app/routers/orders.py - Checkout and Order Endpoints
# =============================================================================
# Payment intent creation, order creation, payment confirmation and
# pack-status polling. No authentication: the purchase id is the capability.
# =============================================================================

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path
from pydantic import BaseModel, Field

from app.config import settings
from app.exceptions import EmptySelectionError, PaymentAlreadyUsedError, ValidationError
from core.models.order import Order, OrderStatus, flatten_selections
from core.services.catalog_service import CatalogService
from core.services.order_service import OrderService
from core.services.pack_service import PackService
from core.services.payment_service import PaymentIntent, PaymentService
from lib.utils import normalize_uuid

logger = logging.getLogger(__name__)

router = APIRouter()

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# =============================================================================
# Request/Response Models
# =============================================================================

class PaymentIntentRequest(BaseModel):
    """Checkout request from the storefront."""
    email: str = Field(..., pattern=EMAIL_PATTERN, example="client@example.com")
    name: str | None = Field(default=None, max_length=200)
    items: list[str] = Field(..., example=["temp1", "bot1"], description="Selected product ids")


class PaymentIntentResponse(BaseModel):
    clientSecret: str | None
    paymentIntentId: str
    purchaseId: str
    orderNumber: str
    amount: int


class CreateOrderRequest(BaseModel):
    """
    Order creation.

    `selections` is a list of product ids or a mapping of category to ids.
    """
    email: str = Field(..., pattern=EMAIL_PATTERN)
    name: str | None = Field(default=None, max_length=200)
    selections: list[str] | dict[str, list[str]] = Field(
        ...,
        example={"templates": ["temp1"], "bots": ["bot1"]},
    )
    paymentIntentId: str | None = Field(default=None, example="pi_3Nxyz")


class OrderResponse(BaseModel):
    purchaseId: str
    orderNumber: str
    status: str


class ConfirmPaymentRequest(BaseModel):
    paymentIntentId: str | None = None


class ConfirmPaymentResponse(BaseModel):
    purchaseId: str
    status: str
    paymentStatus: str | None = None


PurchaseId = Annotated[UUID, Path(description="Purchase id returned at checkout")]


# =============================================================================
# Helpers
# =============================================================================

def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        purchaseId=order.id,
        orderNumber=order.order_number,
        status=order.status.value,
    )


def _apply_intent(order: Order, intent: PaymentIntent) -> Order:
    """Mark the order paid if the intent succeeded for the full amount."""
    if not intent.succeeded:
        logger.info(f"Order {order.order_number}: payment {intent.id} is {intent.status}")
        return order
    if intent.amount < order.amount_minor_units:
        logger.warning(
            f"Order {order.order_number}: payment {intent.id} covers {intent.amount}, "
            f"expected {order.amount_minor_units}"
        )
        return order
    return OrderService.mark_paid(order, payment_reference_id=intent.id)


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(request: PaymentIntentRequest):
    """
    Create a payment intent and the matching pending order.

    The amount is computed server-side from the catalog prices.
    """
    product_ids = flatten_selections(request.items)
    if not product_ids:
        raise EmptySelectionError()

    products = CatalogService.resolve_products(product_ids)
    amount = CatalogService.total_price(products)

    intent = PaymentService.create_intent(
        amount=amount,
        currency=settings.CURRENCY,
        email=request.email,
        description=f"Pack personnalisé ({len(products)} fichier(s))",
        metadata={"customer_email": request.email, "product_ids": ",".join(product_ids)},
    )

    order = OrderService.create_order(
        email=request.email,
        products=products,
        currency=settings.CURRENCY,
        payment_reference_id=intent.id,
        customer_name=request.name,
    )

    return PaymentIntentResponse(
        clientSecret=intent.client_secret,
        paymentIntentId=intent.id,
        purchaseId=order.id,
        orderNumber=order.order_number,
        amount=order.amount_minor_units,
    )


@router.post("/create-order", response_model=OrderResponse)
async def create_order(request: CreateOrderRequest):
    """
    Create an order for a selection.

    With a paymentIntentId the call is idempotent: the order already
    created for that intent is returned. A succeeded intent marks the
    order paid.
    """
    product_ids = flatten_selections(request.selections)
    if not product_ids:
        raise EmptySelectionError()

    if request.paymentIntentId:
        existing = OrderService.find_by_payment_reference(request.paymentIntentId)
        if existing is not None:
            if existing.customer_email.lower() != request.email.lower():
                raise PaymentAlreadyUsedError(request.paymentIntentId)
            if existing.status == OrderStatus.PENDING:
                existing = _apply_intent(existing, PaymentService.retrieve_intent(request.paymentIntentId))
            return _order_response(existing)

    products = CatalogService.resolve_products(product_ids)
    order = OrderService.create_order(
        email=request.email,
        products=products,
        currency=settings.CURRENCY,
        payment_reference_id=request.paymentIntentId,
        customer_name=request.name,
    )

    if request.paymentIntentId:
        order = _apply_intent(order, PaymentService.retrieve_intent(request.paymentIntentId))

    return _order_response(order)


@router.post("/confirm-payment/{purchase_id}", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    purchase_id: PurchaseId,
    request: ConfirmPaymentRequest | None = None,
):
    """
    Check the payment provider and move a pending order to paid.

    Orders past pending are returned unchanged.
    """
    order = OrderService.get_order(normalize_uuid(purchase_id))

    if order.status != OrderStatus.PENDING:
        return ConfirmPaymentResponse(purchaseId=order.id, status=order.status.value)

    intent_id = (request.paymentIntentId if request else None) or order.payment_reference_id
    if not intent_id:
        raise ValidationError("paymentIntentId requis", code="MISSING_PAYMENT_INTENT")
    if order.payment_reference_id and intent_id != order.payment_reference_id:
        raise ValidationError(
            "Ce paiement ne correspond pas à la commande",
            code="PAYMENT_MISMATCH",
        )
    if not order.payment_reference_id:
        OrderService.ensure_payment_reference_free(order, intent_id)

    intent = PaymentService.retrieve_intent(intent_id)
    order = _apply_intent(order, intent)

    return ConfirmPaymentResponse(
        purchaseId=order.id,
        status=order.status.value,
        paymentStatus=intent.status,
    )


@router.get("/pack-status/{purchase_id}")
async def pack_status(purchase_id: PurchaseId) -> dict:
    """
    Poll the pack of an order.

    Returns {status, packId} and, once completed, downloadUrl and expiresAt.
    """
    return PackService.pack_status(normalize_uuid(purchase_id))
