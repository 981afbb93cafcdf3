"""Checkout error taxonomy.

Domain services raise these; the app factory turns them into
``{"error": {"code", "message", "reason", "details"}}`` responses.
"""

from typing import Any, Optional


class StoreError(Exception):
    """Base exception for checkout and pricing failures."""

    code = "STORE_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.reason = reason
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "reason": self.reason,
            "details": self.details,
        }


class ValidationFailedError(StoreError):
    code = "VALIDATION"


class NotFoundError(StoreError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(StoreError):
    code = "CONFLICT"
    status_code = 409


class InsufficientStockError(StoreError):
    code = "INSUFFICIENT_STOCK"
    status_code = 400

    def __init__(self, title: str, available: int, requested: int, variant_id=None):
        super().__init__(
            f"Insufficient stock for {title}. Available: {available}",
            details={
                "variant_id": str(variant_id) if variant_id else None,
                "available": available,
                "requested": requested,
            },
        )


class DiscountInvalidError(StoreError):
    """Discount rejected. ``reason`` is one of the DiscountReason values."""

    code = "DISCOUNT_INVALID"


class DiscountReason:
    INVALID_CODE = "INVALID_CODE"
    INACTIVE = "INACTIVE"
    NOT_YET_ACTIVE = "NOT_YET_ACTIVE"
    EXPIRED = "EXPIRED"
    LIMIT_REACHED = "LIMIT_REACHED"
    BELOW_MINIMUM = "BELOW_MINIMUM"
    ALREADY_USED = "ALREADY_USED"


class PriceNotFoundError(ValidationFailedError):
    def __init__(self, variant_id, region_id):
        super().__init__(
            "No price configured for this variant in the selected region",
            reason="PRICE_NOT_FOUND",
            details={"variant_id": str(variant_id), "region_id": str(region_id)},
        )


class MOQNotMetError(ValidationFailedError):
    def __init__(self, variant_id, moq: int, requested: int):
        super().__init__(
            f"MOQ not met. Minimum order quantity is {moq}",
            reason="MOQ_NOT_MET",
            details={"variant_id": str(variant_id), "moq": moq, "requested": requested},
        )


class InvalidTransitionError(StoreError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: str, requested: str, allowed: list[str]):
        super().__init__(
            f"Cannot transition order from {current} to {requested}",
            details={"current": current, "requested": requested, "allowed": allowed},
        )


class PaymentGatewayError(StoreError):
    code = "PAYMENT_GATEWAY_ERROR"
    status_code = 502


class WebhookUnverifiedError(StoreError):
    code = "WEBHOOK_UNVERIFIED"
    status_code = 400
