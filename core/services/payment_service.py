# =============================================================================
# core/services/payment_service.py - Payment Provider Client
# =============================================================================
# Thin client for the Stripe REST API. Only two calls are needed:
# - create a payment intent for an order amount
# - retrieve an intent to check whether it succeeded
#
# Stripe takes form-encoded bodies; nested fields use bracket keys
# (metadata[order_id]=...).
# =============================================================================

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.config import settings
from app.exceptions import PaymentProviderError

logger = logging.getLogger(__name__)

INTENT_SUCCEEDED = "succeeded"


@dataclass
class PaymentIntent:
    """The parts of a provider payment intent the shop uses."""
    id: str
    client_secret: str | None
    amount: int
    currency: str
    status: str
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == INTENT_SUCCEEDED

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "PaymentIntent":
        return cls(
            id=data["id"],
            client_secret=data.get("client_secret"),
            amount=int(data.get("amount") or 0),
            currency=data.get("currency") or settings.CURRENCY,
            status=data.get("status") or "unknown",
            metadata=data.get("metadata") or {},
        )


class PaymentService:
    """
    Payment intents over the provider HTTP API.

    Every failure (missing key, transport error, non-2xx response) is raised
    as PaymentProviderError; the provider message is kept for logs only.
    """

    @staticmethod
    def _request(method: str, path: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        if not settings.STRIPE_SECRET_KEY:
            raise PaymentProviderError("STRIPE_SECRET_KEY is not configured")

        url = f"{settings.STRIPE_API_BASE.rstrip('/')}/{path.lstrip('/')}"

        try:
            with httpx.Client(timeout=settings.UPSTREAM_TIMEOUT_SECONDS) as client:
                response = client.request(
                    method,
                    url,
                    data=data,
                    headers={"Authorization": f"Bearer {settings.STRIPE_SECRET_KEY}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Payment provider unreachable ({method} {path}): {e}")
            raise PaymentProviderError(str(e))

        if response.status_code >= 400:
            try:
                reason = response.json().get("error", {}).get("message") or response.text
            except ValueError:
                reason = response.text
            logger.error(f"Payment provider rejected {method} {path}: {response.status_code} {reason}")
            raise PaymentProviderError(f"{response.status_code}: {reason}")

        return response.json()

    @staticmethod
    def create_intent(
        amount: int,
        currency: str,
        email: str,
        description: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PaymentIntent:
        """
        Create a payment intent.

        Args:
            amount: Amount in minor units (cents)
            currency: ISO currency code, lowercase
            email: Receipt address
            description: Optional statement description
            metadata: Flat string metadata (order id, order number)

        Returns:
            PaymentIntent with the client secret for the front-end
        """
        form: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "receipt_email": email,
            "automatic_payment_methods[enabled]": "true",
        }
        if description:
            form["description"] = description
        for key, value in (metadata or {}).items():
            form[f"metadata[{key}]"] = value

        intent = PaymentIntent.from_response(PaymentService._request("POST", "payment_intents", form))
        logger.info(f"Created payment intent {intent.id} for {amount} {currency}")
        return intent

    @staticmethod
    def retrieve_intent(intent_id: str) -> PaymentIntent:
        """Fetch the current state of a payment intent."""
        intent = PaymentIntent.from_response(PaymentService._request("GET", f"payment_intents/{intent_id}"))
        logger.debug(f"Payment intent {intent.id} is {intent.status}")
        return intent
