"""Payment bridge: payment intents and webhook reconciliation.

Orders are matched to processor events by the payment intent id stored on
the order when the intent was created. Every webhook event id is recorded
before it is applied, so a redelivered event is acknowledged without being
applied twice.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.store_service.errors import (
    ConflictError,
    PaymentGatewayError,
    ValidationFailedError,
    WebhookUnverifiedError,
)
from services.store_service.models import (
    Order,
    OrderStatus,
    PaymentStatus,
    WebhookEvent,
    WebhookEventStatus,
)
from services.store_service.services.orders import get_order, get_order_for_update
from services.store_service.stripe_client import (
    PaymentIntent,
    StripeClient,
    StripeError,
    verify_stripe_signature,
)
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"

NON_PAYABLE_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------


async def create_intent(
    db: AsyncSession, order_id: uuid.UUID, client: StripeClient
) -> PaymentIntent:
    """Create (or re-fetch, via the idempotency key) the intent for an order.

    The processor call happens outside any row lock; only storing the intent
    id takes the order lock.
    """
    order = await get_order(db, order_id)
    if order.payment_status == PaymentStatus.CAPTURED:
        raise ConflictError(
            "Order has already been paid", reason="ALREADY_CAPTURED", status_code=400
        )
    if order.status in NON_PAYABLE_STATUSES:
        raise ConflictError(
            f"Order is {order.status.value} and cannot be paid",
            reason="NOT_PAYABLE",
            status_code=400,
        )
    if order.total <= 0:
        raise ValidationFailedError("Order total must be positive to take payment")

    amount, currency, display_id = order.total, order.currency_code, order.display_id
    # Release the read transaction before calling out
    await db.rollback()

    try:
        intent = await client.create_payment_intent(
            amount=amount,
            currency=currency,
            metadata={"order_id": str(order_id), "display_id": display_id},
            idempotency_key=f"order-{order_id}-{amount}",
        )
    except StripeError as e:
        logger.error(
            f"Payment intent creation failed for order {display_id}: {e.message}",
            extra={"extra_fields": {"order_id": str(order_id), "status_code": e.status_code}},
        )
        raise PaymentGatewayError(
            "Payment processor is unavailable, please try again",
            details={"processor_status": e.status_code},
        )

    order = await get_order_for_update(db, order_id)
    order.payment_intent_id = intent.id
    db.add(order)
    await db.commit()

    logger.info(
        "Payment intent %s created for order %s",
        intent.id,
        order.display_id,
        extra={"extra_fields": {"amount": intent.amount, "currency": intent.currency}},
    )
    return intent


async def get_payment_status(db: AsyncSession, order_id: uuid.UUID) -> Order:
    return await get_order(db, order_id)


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


def parse_event(raw: bytes, signature: Optional[str]) -> dict:
    """Verify the signature, then decode. Nothing is read from an unverified body."""
    if not verify_stripe_signature(raw, signature):
        raise WebhookUnverifiedError("Invalid webhook signature")
    try:
        event = json.loads(raw.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationFailedError("Webhook body is not valid JSON")
    if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
        raise ValidationFailedError("Webhook event is missing id or type")
    return event


def _intent_id(event_type: str, obj: dict) -> Optional[str]:
    if event_type == CHARGE_REFUNDED:
        return obj.get("payment_intent")
    return obj.get("id")


async def _find_order_by_intent(db: AsyncSession, intent_id: str) -> Optional[Order]:
    result = await db.execute(
        select(Order)
        .where(Order.payment_intent_id == intent_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _claim_event(db: AsyncSession, event: dict, intent_id: Optional[str]):
    """
    Record the event as PROCESSING. Returns None when it was already processed.
    Failed events are claimed again so a processor retry can apply them.
    """
    result = await db.execute(
        select(WebhookEvent)
        .where(WebhookEvent.event_id == event["id"])
        .with_for_update()
    )
    record = result.scalar_one_or_none()

    if record is not None:
        if record.status == WebhookEventStatus.PROCESSED:
            await db.rollback()
            return None
        if record.status == WebhookEventStatus.PROCESSING:
            await db.rollback()
            raise ConflictError("Webhook event is already being processed")
        record.status = WebhookEventStatus.PROCESSING
        record.error = None
    else:
        record = WebhookEvent(
            event_id=event["id"],
            event_type=event["type"],
            payment_intent_id=intent_id,
            status=WebhookEventStatus.PROCESSING,
        )
        db.add(record)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Webhook event is already being processed")
    return record


def _paid_at(obj: dict) -> datetime:
    created = obj.get("created")
    if isinstance(created, int):
        return datetime.fromtimestamp(created, tz=timezone.utc)
    return utc_now()


def apply_payment_succeeded(order: Order, obj: dict) -> None:
    if order.payment_status == PaymentStatus.CAPTURED:
        return

    amount = int(obj.get("amount_received") or obj.get("amount") or 0)
    if amount and amount != order.total:
        order.payment_failure_reason = (
            f"Payment amount mismatch: got {amount}, expected {order.total}"
        )
        order.order_metadata = {
            **(order.order_metadata or {}),
            "payment_amount_mismatch": {"received": amount, "expected": order.total},
        }
        logger.warning(
            f"Amount mismatch on order {order.display_id}: got {amount}, expected {order.total}"
        )
        return

    order.payment_status = PaymentStatus.CAPTURED
    order.payment_failure_reason = None
    order.paid_at = _paid_at(obj)
    if order.status == OrderStatus.PENDING:
        order.status = OrderStatus.COMPLETED


def apply_payment_failed(order: Order, obj: dict) -> None:
    if order.payment_status == PaymentStatus.CAPTURED:
        return
    error = obj.get("last_payment_error") or {}
    order.payment_status = PaymentStatus.FAILED
    order.payment_failure_reason = error.get("message") or "Payment failed"


def apply_charge_refunded(order: Order, obj: dict) -> None:
    order.payment_status = PaymentStatus.REFUNDED


HANDLERS = {
    PAYMENT_SUCCEEDED: apply_payment_succeeded,
    PAYMENT_FAILED: apply_payment_failed,
    CHARGE_REFUNDED: apply_charge_refunded,
}


async def reconcile_event(db: AsyncSession, event: dict) -> Optional[Order]:
    """Apply one verified event to its order. Does not commit."""
    event_type = event["type"]
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Ignoring webhook event type {event_type}")
        return None

    obj = (event.get("data") or {}).get("object") or {}
    intent_id = _intent_id(event_type, obj)
    if not intent_id:
        logger.warning(f"Webhook {event['id']} carries no payment intent id")
        return None

    order = await _find_order_by_intent(db, intent_id)
    if order is None:
        logger.warning(
            f"Webhook received for unknown payment intent: {intent_id}",
            extra={"extra_fields": {"event_id": event["id"], "event": event_type}},
        )
        return None

    previous = (order.status, order.payment_status)
    handler(order, obj)
    db.add(order)

    logger.info(
        f"Reconciled {event_type} for order {order.display_id}",
        extra={
            "extra_fields": {
                "order_id": str(order.id),
                "from": [s.value for s in previous],
                "to": [order.status.value, order.payment_status.value],
            }
        },
    )
    return order


async def handle_webhook(
    db: AsyncSession, raw: bytes, signature: Optional[str]
) -> dict:
    event = parse_event(raw, signature)
    obj = (event.get("data") or {}).get("object") or {}
    record = await _claim_event(db, event, _intent_id(event["type"], obj))
    if record is None:
        logger.info(f"Webhook {event['id']} skipped - already processed")
        return {"received": True, "duplicate": True}

    record_id = record.id
    try:
        await reconcile_event(db, event)
        record.status = WebhookEventStatus.PROCESSED
        record.processed_at = utc_now()
        db.add(record)
        await db.commit()
    except Exception as e:
        await db.rollback()
        await db.execute(
            update(WebhookEvent)
            .where(WebhookEvent.id == record_id)
            .values(status=WebhookEventStatus.FAILED, error=str(e)[:1000])
        )
        await db.commit()
        logger.exception(f"Webhook {event['id']} failed")
        raise

    return {"received": True, "duplicate": False}
