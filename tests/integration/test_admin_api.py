"""Integration tests for admin order, tier and inventory endpoints."""

import uuid

import pytest
from jose import jwt
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from services.store_service.models import FulfillmentStatus, OrderStatus, PaymentStatus
from tests.factories import (
    CustomerFactory,
    OrderFactory,
    WholesaleTierFactory,
    seed_region,
    seed_variant,
)


async def _order(db, **overrides):
    region = await seed_region(db)
    order = OrderFactory.create(region_id=region.id, **overrides)
    db.add(order)
    await db.commit()
    return order.id


# ---------------------------------------------------------------------------
# Order status
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delivered_order_cannot_go_back_to_processing(client, db_session, admin_user):
    order_id = await _order(
        db_session,
        status=OrderStatus.DELIVERED,
        payment_status=PaymentStatus.CAPTURED,
        fulfillment_status=FulfillmentStatus.DELIVERED,
    )

    response = await client.patch(
        f"/admin/orders/{order_id}/status", json={"status": "processing"}
    )

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"]["allowed"] == ["refunded"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delivered_order_can_be_refunded(client, db_session, admin_user, email_outbox):
    order_id = await _order(
        db_session,
        status=OrderStatus.DELIVERED,
        payment_status=PaymentStatus.CAPTURED,
        fulfillment_status=FulfillmentStatus.DELIVERED,
    )

    response = await client.patch(
        f"/admin/orders/{order_id}/status", json={"status": "refunded"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "refunded"
    assert data["payment_status"] == "refunded"
    assert email_outbox.sent[-1]["data"]["status"] == "refunded"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_status_value(client, db_session, admin_user):
    order_id = await _order(db_session)

    response = await client.patch(
        f"/admin/orders/{order_id}/status", json={"status": "teleported"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bulk_status(client, db_session, admin_user):
    first = await _order(db_session, status=OrderStatus.PROCESSING)
    second = await _order(db_session, status=OrderStatus.PROCESSING)

    response = await client.post(
        "/admin/orders/bulk-status",
        json={"order_ids": [str(first), str(second)], "status": "shipped"},
    )

    assert response.status_code == 200
    assert [o["status"] for o in response.json()] == ["shipped", "shipped"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_customers_cannot_change_status(client, db_session, login):
    login(AuthUser(user_id="buyer-1", email="buyer@test.com"))
    order_id = await _order(db_session)

    response = await client.patch(
        f"/admin/orders/{order_id}/status", json={"status": "processing"}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_with_real_token(client, db_session):
    order_id = await _order(db_session)
    settings = get_settings()
    token = jwt.encode(
        {"sub": "admin-2", "email": "ops@test.com", "role": "admin"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )

    response = await client.patch(
        f"/admin/orders/{order_id}/status",
        json={"status": "processing"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "processing"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bad_token_is_unauthorized(client, db_session):
    order_id = await _order(db_session)

    response = await client.patch(
        f"/admin/orders/{order_id}/status",
        json={"status": "processing"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Wholesale tiers
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_tier_lifecycle(client, admin_user):
    created = await client.post(
        "/admin/wholesale/tiers",
        json={
            "name": "Growth",
            "slug": "growth",
            "discount_percent": "30",
            "min_order_value": 5000000,
            "min_order_quantity": 200,
            "default_moq": 200,
            "payment_terms": "net_45",
            "priority": 2,
        },
    )
    assert created.status_code == 201
    tier = created.json()
    assert tier["version"] == 1

    duplicate = await client.post(
        "/admin/wholesale/tiers",
        json={"name": "Growth 2", "slug": "growth", "discount_percent": "10"},
    )
    assert duplicate.status_code == 409

    updated = await client.patch(
        f"/admin/wholesale/tiers/{tier['id']}", json={"discount_percent": "35"}
    )
    assert updated.status_code == 200
    assert updated.json()["version"] == 2
    assert float(updated.json()["discount_percent"]) == 35

    deactivated = await client.delete(f"/admin/wholesale/tiers/{tier['id']}")
    assert deactivated.json()["active"] is False
    assert deactivated.json()["version"] == 3

    listed = await client.get("/admin/wholesale/tiers")
    assert listed.json() == []
    listed = await client.get("/admin/wholesale/tiers", params={"include_inactive": True})
    assert [t["slug"] for t in listed.json()] == ["growth"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_assign_customer_tier(client, db_session, admin_user):
    tier = WholesaleTierFactory.create(slug="starter")
    customer = CustomerFactory.create()
    db_session.add_all([tier, customer])
    await db_session.commit()

    response = await client.post(
        f"/admin/wholesale/customers/{customer.id}/tier", json={"tier_id": str(tier.id)}
    )

    assert response.status_code == 200
    assert response.json() == {"customer_id": str(customer.id), "tier": "starter"}
    assert customer.is_wholesale is True


@pytest.mark.asyncio
@pytest.mark.integration
async def test_assign_tier_to_unknown_customer(client, admin_user):
    response = await client.post(
        f"/admin/wholesale/customers/{uuid.uuid4()}/tier", json={"tier_id": None}
    )

    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_adjust_stock(client, db_session, admin_user):
    region = await seed_region(db_session)
    variant = await seed_variant(db_session, region, stock=5)

    response = await client.post(
        f"/admin/inventory/{variant.id}/adjust", json={"delta": 7, "reason": "restock"}
    )

    assert response.status_code == 200
    assert response.json()["inventory_quantity"] == 12

    response = await client.post(f"/admin/inventory/{variant.id}/adjust", json={"delta": -20})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INSUFFICIENT_STOCK"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_adjust_stock_rejects_zero(client, db_session, admin_user):
    region = await seed_region(db_session)
    variant = await seed_variant(db_session, region)

    response = await client.post(f"/admin/inventory/{variant.id}/adjust", json={"delta": 0})

    assert response.status_code == 400
