"""Unit tests for payment intents and webhook reconciliation."""

import json
import uuid

import pytest
from libs.common.config import get_settings
from services.store_service.errors import (
    ConflictError,
    PaymentGatewayError,
    WebhookUnverifiedError,
)
from services.store_service.models import (
    Order,
    OrderStatus,
    PaymentStatus,
    WebhookEvent,
    WebhookEventStatus,
)
from services.store_service.services import payments
from services.store_service.services.payments import (
    CHARGE_REFUNDED,
    PAYMENT_FAILED,
    PAYMENT_SUCCEEDED,
    create_intent,
    handle_webhook,
)
from services.store_service.stripe_client import sign_payload
from sqlalchemy import func, select
from tests.factories import OrderFactory, seed_region


async def _order(db, **overrides):
    region = await seed_region(db)
    order = OrderFactory.create(region_id=region.id, **overrides)
    db.add(order)
    await db.commit()
    return order.id


async def _reload(db, order_id) -> Order:
    return await db.get(Order, order_id, populate_existing=True)


def _event(event_type, obj, event_id=None) -> dict:
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex[:12]}",
        "type": event_type,
        "data": {"object": obj},
    }


def _signed(event):
    raw = json.dumps(event).encode("utf-8")
    return raw, sign_payload(raw, get_settings().STRIPE_WEBHOOK_SECRET)


async def _event_rows(db):
    return (await db.execute(select(WebhookEvent))).scalars().all()


# ---------------------------------------------------------------------------
# create_intent
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_intent_stores_intent_on_order(db_session, stripe_client, stripe_stub):
    order_id = await _order(db_session, total=4500)

    intent = await create_intent(db_session, order_id, stripe_client)

    assert intent.amount == 4500
    assert intent.currency == "inr"
    assert intent.metadata["order_id"] == str(order_id)
    assert (await _reload(db_session, order_id)).payment_intent_id == intent.id

    request = stripe_stub.requests[-1]
    assert request.headers["Idempotency-Key"] == f"order-{order_id}-4500"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_intent_twice_returns_same_intent(db_session, stripe_client):
    order_id = await _order(db_session)

    first = await create_intent(db_session, order_id, stripe_client)
    second = await create_intent(db_session, order_id, stripe_client)

    assert first.id == second.id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_intent_refuses_captured_order(db_session, stripe_client, stripe_stub):
    order_id = await _order(
        db_session, status=OrderStatus.COMPLETED, payment_status=PaymentStatus.CAPTURED
    )

    with pytest.raises(ConflictError) as exc:
        await create_intent(db_session, order_id, stripe_client)

    assert exc.value.status_code == 400
    assert exc.value.reason == "ALREADY_CAPTURED"
    assert stripe_stub.requests == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_intent_refuses_cancelled_order(db_session, stripe_client):
    order_id = await _order(db_session, status=OrderStatus.CANCELLED)

    with pytest.raises(ConflictError) as exc:
        await create_intent(db_session, order_id, stripe_client)

    assert exc.value.reason == "NOT_PAYABLE"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_gateway_failure_leaves_order_pending(db_session, stripe_client, stripe_stub):
    order_id = await _order(db_session)
    stripe_stub.fail_with = 503

    with pytest.raises(PaymentGatewayError) as exc:
        await create_intent(db_session, order_id, stripe_client)

    assert exc.value.status_code == 502
    assert exc.value.details == {"processor_status": 503}
    order = await _reload(db_session, order_id)
    assert order.payment_intent_id is None
    assert order.status == OrderStatus.PENDING


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bad_signature_is_rejected_without_side_effects(db_session):
    order_id = await _order(db_session, payment_intent_id="pi_sig")
    raw, _ = _signed(_event(PAYMENT_SUCCEEDED, {"id": "pi_sig", "amount_received": 1000}))

    with pytest.raises(WebhookUnverifiedError):
        await handle_webhook(db_session, raw, "t=1,v1=deadbeef")
    with pytest.raises(WebhookUnverifiedError):
        await handle_webhook(db_session, raw, None)

    assert await _event_rows(db_session) == []
    assert (await _reload(db_session, order_id)).payment_status == PaymentStatus.AWAITING


@pytest.mark.asyncio
@pytest.mark.unit
async def test_payment_succeeded_captures_and_completes(db_session):
    order_id = await _order(db_session, payment_intent_id="pi_ok", total=1000)
    raw, signature = _signed(
        _event(PAYMENT_SUCCEEDED, {"id": "pi_ok", "amount_received": 1000, "created": 1700000000})
    )

    result = await handle_webhook(db_session, raw, signature)

    assert result == {"received": True, "duplicate": False}
    order = await _reload(db_session, order_id)
    assert order.payment_status == PaymentStatus.CAPTURED
    assert order.status == OrderStatus.COMPLETED
    assert order.paid_at is not None

    [record] = await _event_rows(db_session)
    assert record.status == WebhookEventStatus.PROCESSED
    assert record.payment_intent_id == "pi_ok"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redelivered_event_is_acknowledged_once(db_session):
    order_id = await _order(db_session, payment_intent_id="pi_dup")
    raw, signature = _signed(_event(PAYMENT_SUCCEEDED, {"id": "pi_dup", "amount_received": 1000}))

    await handle_webhook(db_session, raw, signature)
    again = await handle_webhook(db_session, raw, signature)

    assert again == {"received": True, "duplicate": True}
    assert len(await _event_rows(db_session)) == 1
    assert (await _reload(db_session, order_id)).payment_status == PaymentStatus.CAPTURED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_amount_mismatch_is_recorded_not_captured(db_session):
    order_id = await _order(db_session, payment_intent_id="pi_short", total=1000)
    raw, signature = _signed(_event(PAYMENT_SUCCEEDED, {"id": "pi_short", "amount_received": 500}))

    await handle_webhook(db_session, raw, signature)

    order = await _reload(db_session, order_id)
    assert order.payment_status == PaymentStatus.AWAITING
    assert order.status == OrderStatus.PENDING
    assert "mismatch" in order.payment_failure_reason
    assert order.order_metadata["payment_amount_mismatch"] == {"received": 500, "expected": 1000}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_payment_failed_records_reason(db_session):
    order_id = await _order(db_session, payment_intent_id="pi_declined")
    raw, signature = _signed(
        _event(
            PAYMENT_FAILED,
            {"id": "pi_declined", "last_payment_error": {"message": "Your card was declined."}},
        )
    )

    await handle_webhook(db_session, raw, signature)

    order = await _reload(db_session, order_id)
    assert order.payment_status == PaymentStatus.FAILED
    assert order.payment_failure_reason == "Your card was declined."
    assert order.status == OrderStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failure_after_capture_is_ignored(db_session):
    order_id = await _order(
        db_session,
        payment_intent_id="pi_late",
        status=OrderStatus.COMPLETED,
        payment_status=PaymentStatus.CAPTURED,
    )
    raw, signature = _signed(_event(PAYMENT_FAILED, {"id": "pi_late"}))

    await handle_webhook(db_session, raw, signature)

    assert (await _reload(db_session, order_id)).payment_status == PaymentStatus.CAPTURED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_charge_refunded_marks_payment_refunded(db_session):
    order_id = await _order(
        db_session,
        payment_intent_id="pi_back",
        status=OrderStatus.DELIVERED,
        payment_status=PaymentStatus.CAPTURED,
    )
    raw, signature = _signed(
        _event(CHARGE_REFUNDED, {"id": "ch_1", "payment_intent": "pi_back", "amount_refunded": 1000})
    )

    await handle_webhook(db_session, raw, signature)

    order = await _reload(db_session, order_id)
    assert order.payment_status == PaymentStatus.REFUNDED
    # Order status only moves through the admin transition
    assert order.status == OrderStatus.DELIVERED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_intent_is_acknowledged(db_session):
    raw, signature = _signed(_event(PAYMENT_SUCCEEDED, {"id": "pi_nobody", "amount_received": 1000}))

    result = await handle_webhook(db_session, raw, signature)

    assert result["received"] is True
    [record] = await _event_rows(db_session)
    assert record.status == WebhookEventStatus.PROCESSED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unhandled_event_type_is_recorded(db_session):
    raw, signature = _signed(_event("customer.created", {"id": "cus_1"}))

    result = await handle_webhook(db_session, raw, signature)

    assert result == {"received": True, "duplicate": False}
    assert len(await _event_rows(db_session)) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_event_is_retried_on_redelivery(db_session, monkeypatch):
    order_id = await _order(db_session, payment_intent_id="pi_retry")
    event = _event(PAYMENT_SUCCEEDED, {"id": "pi_retry", "amount_received": 1000})
    raw, signature = _signed(event)

    calls = []

    def flaky(order, obj):
        calls.append(obj["id"])
        if len(calls) == 1:
            raise RuntimeError("connection reset")
        payments.apply_payment_succeeded(order, obj)

    monkeypatch.setitem(payments.HANDLERS, PAYMENT_SUCCEEDED, flaky)

    with pytest.raises(RuntimeError):
        await handle_webhook(db_session, raw, signature)

    record = (
        await db_session.execute(
            select(WebhookEvent)
            .where(WebhookEvent.event_id == event["id"])
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert record.status == WebhookEventStatus.FAILED
    assert record.error == "connection reset"
    assert (await _reload(db_session, order_id)).payment_status == PaymentStatus.AWAITING

    result = await handle_webhook(db_session, raw, signature)

    assert result["duplicate"] is False
    assert (await _reload(db_session, order_id)).payment_status == PaymentStatus.CAPTURED
    count = await db_session.scalar(select(func.count()).select_from(WebhookEvent))
    assert count == 1
