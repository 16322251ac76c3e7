# =============================================================================
# app/exceptions.py - Custom Exceptions and Handlers
# =============================================================================
# Centralized exception hierarchy for the API.
#
# Every error raised by services carries its HTTP status, a machine-readable
# code and a customer-facing message. Upstream (storage, database, payment,
# email) failures are logged with full detail but rendered with a generic
# message so provider internals never reach clients.
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PackShopException(Exception):
    """
    Base exception for the PackShop API.

    Provides structured error responses:
    - error: short customer-facing label
    - message: customer-facing explanation
    - code: machine-readable error code
    """

    def __init__(
        self,
        message: str,
        code: str = "PACKSHOP_ERROR",
        status_code: int = 500,
        error: str = "Erreur serveur",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.error = error
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "error": self.error,
            "message": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Validation Errors (400)
# =============================================================================

class ValidationError(PackShopException):
    """Raised when a request is missing fields or carries malformed values."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            error="Données invalides",
            details=details,
        )


class EmptySelectionError(ValidationError):
    """Raised when an order or pack request selects no files."""

    def __init__(self):
        super().__init__(
            message="Sélectionnez au moins un fichier",
            code="EMPTY_SELECTION",
        )


class InvalidFileTypeError(ValidationError):
    """Raised when an uploaded file type is not accepted."""

    def __init__(self, filename: str, allowed: list[str]):
        super().__init__(
            message=f"Type de fichier non supporté: {filename}",
            code="INVALID_FILE_TYPE",
            details={"filename": filename, "allowed_types": allowed},
        )


class CatalogImportError(ValidationError):
    """Raised when a products.csv file cannot be imported."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Import du catalogue impossible: {reason}",
            code="CATALOG_IMPORT_ERROR",
        )


# =============================================================================
# Auth Errors (401)
# =============================================================================

class AuthError(PackShopException):
    """Raised when the admin shared secret is missing or wrong."""

    def __init__(self, message: str = "Token admin requis"):
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            status_code=401,
            error="Non autorisé",
        )


# =============================================================================
# Not Found Errors (404)
# =============================================================================

class NotFoundError(PackShopException):
    """Base for unknown orders, packs and products."""

    def __init__(self, message: str, error: str, code: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code=code,
            status_code=404,
            error=error,
            details=details,
        )


class OrderNotFoundError(NotFoundError):
    """Raised when a purchase id, order number or payment reference is unknown."""

    def __init__(self, reference: str):
        super().__init__(
            message="Cette commande n'existe pas",
            error="Commande introuvable",
            code="ORDER_NOT_FOUND",
            details={"reference": reference},
        )


class PackNotFoundError(NotFoundError):
    """Raised when a download token or pack id is unknown."""

    def __init__(self, reference: str):
        super().__init__(
            message="Ce pack n'existe pas",
            error="Pack introuvable",
            code="PACK_NOT_FOUND",
        )
        self.reference = reference


class ProductNotFoundError(NotFoundError):
    """Raised when selected product ids are not in the active catalog."""

    def __init__(self, product_ids: list[str]):
        super().__init__(
            message=f"Produit(s) introuvable(s): {', '.join(product_ids)}",
            error="Produit introuvable",
            code="PRODUCT_NOT_FOUND",
            details={"product_ids": product_ids},
        )


# =============================================================================
# Lifecycle Errors (409 / 410)
# =============================================================================

class PackExpiredError(PackShopException):
    """Raised when a pack is past its expiry date."""

    def __init__(self, pack_id: str):
        super().__init__(
            message="Ce lien de téléchargement a expiré",
            code="PACK_EXPIRED",
            status_code=410,
            error="Le lien a expiré",
        )
        self.pack_id = pack_id


class InvalidOrderTransitionError(PackShopException):
    """Raised when an order status change is not allowed by the lifecycle."""

    def __init__(self, order_id: str, current: str, target: str):
        super().__init__(
            message=f"Transition impossible: {current} -> {target}",
            code="INVALID_ORDER_TRANSITION",
            status_code=409,
            error="Statut de commande invalide",
            details={"order_id": order_id, "current": current, "target": target},
        )


class OrderNotPaidError(PackShopException):
    """Raised when a pack is requested for an order that is not paid yet."""

    def __init__(self, order_id: str, status: str):
        super().__init__(
            message="Paiement non validé",
            code="ORDER_NOT_PAID",
            status_code=409,
            error="Paiement non validé",
            suggestion="Confirm the payment before generating the pack",
            details={"order_id": order_id, "status": status},
        )


class PaymentAlreadyUsedError(PackShopException):
    """Raised when a payment intent is already bound to another order."""

    def __init__(self, payment_reference_id: str):
        super().__init__(
            message="Ce paiement est déjà associé à une autre commande",
            code="PAYMENT_ALREADY_USED",
            status_code=409,
            error="Paiement déjà utilisé",
        )
        self.payment_reference_id = payment_reference_id


class FileTooLargeError(PackShopException):
    """Raised when an uploaded file exceeds the size limit."""

    def __init__(self, size_mb: float, max_mb: int):
        super().__init__(
            message=f"Fichier trop volumineux: {size_mb:.1f}MB (max: {max_mb}MB)",
            code="FILE_TOO_LARGE",
            status_code=413,
            error="Fichier trop volumineux",
            details={"size_mb": round(size_mb, 1), "max_mb": max_mb},
        )


# =============================================================================
# Upstream Errors (500)
# =============================================================================

class UpstreamError(PackShopException):
    """
    Failure of an external provider (storage, database, payment, email).

    `reason` keeps the raw provider error for logs; the response only
    carries a generic message.
    """

    def __init__(
        self,
        service: str,
        reason: str,
        code: str = "UPSTREAM_ERROR",
        message: str = "Service externe momentanément indisponible",
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=500,
            error="Erreur serveur",
            details={"service": service},
        )
        self.service = service
        self.reason = reason

    def __str__(self) -> str:
        return f"[{self.code}] {self.service}: {self.reason}"


class StorageUploadError(UpstreamError):
    """Raised when the object store rejects an upload."""

    def __init__(self, key: str, reason: str):
        super().__init__("storage", reason, code="STORAGE_UPLOAD_ERROR")
        self.key = key


class StorageDownloadError(UpstreamError):
    """Raised when an object cannot be read from the object store."""

    def __init__(self, key: str, reason: str):
        super().__init__("storage", reason, code="STORAGE_DOWNLOAD_ERROR")
        self.key = key


class StoreUnavailableError(UpstreamError):
    """Raised on transport-level failures talking to the object store."""

    def __init__(self, reason: str):
        super().__init__("storage", reason, code="STORE_UNAVAILABLE")


class PaymentProviderError(UpstreamError):
    """Raised when the payment provider rejects or fails a request."""

    def __init__(self, reason: str):
        super().__init__(
            "payment",
            reason,
            code="PAYMENT_PROVIDER_ERROR",
            message="Erreur de paiement, veuillez réessayer",
        )


class EmailDeliveryError(UpstreamError):
    """Raised when the email provider refuses a message."""

    def __init__(self, reason: str):
        super().__init__("email", reason, code="EMAIL_DELIVERY_ERROR")


# =============================================================================
# Pack Assembly Errors (500)
# =============================================================================

class PackAssemblyError(PackShopException):
    """Base for failures that move an order to `failed`."""

    def __init__(self, message: str, code: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code=code,
            status_code=500,
            error="Erreur lors de la création du pack",
            details=details,
        )


class NoFilesIncludedError(PackAssemblyError):
    """Raised when every selected file failed to download."""

    def __init__(self, requested: int):
        super().__init__(
            message="Aucun fichier n'a pu être ajouté au pack",
            code="NO_FILES_INCLUDED",
            details={"requested": requested},
        )


class UploadFailedError(PackAssemblyError):
    """Raised when the finalized archive could not be stored."""

    def __init__(self, archive_key: str, reason: str):
        super().__init__(
            message="Le pack n'a pas pu être enregistré",
            code="UPLOAD_FAILED",
            details={"archive_key": archive_key},
        )
        self.reason = reason


# =============================================================================
# Exception Handlers
# =============================================================================

async def packshop_exception_handler(
    request: Request,
    exc: PackShopException
) -> JSONResponse:
    """
    Convert PackShopException to JSON response.

    Upstream failures are logged with the raw provider reason before the
    sanitized body is returned.
    """
    if isinstance(exc, UpstreamError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: [{exc.code}] {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request body / path validation errors.

    Returned as 400 with one entry per invalid field.
    """
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "invalid"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "error": "Données invalides",
            "message": "Données manquantes ou invalides",
            "code": "VALIDATION_ERROR",
            "errors": errors,
        }
    )
