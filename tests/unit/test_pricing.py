"""Unit tests for regional price resolution and tax."""

import uuid
from decimal import Decimal

import pytest
from services.store_service.errors import NotFoundError, PriceNotFoundError, ValidationFailedError
from services.store_service.services.pricing import (
    calculate_tax,
    get_region,
    percent_of,
    resolve_prices,
    round_minor,
)
from tests.factories import MoneyAmountFactory, seed_region, seed_variant

# ---------------------------------------------------------------------------
# Rounding and tax
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_round_minor_is_half_up():
    assert round_minor(Decimal("2.5")) == 3
    assert round_minor(Decimal("3.5")) == 4
    assert round_minor(Decimal("2.49")) == 2


@pytest.mark.unit
def test_percent_of_rounds_to_minor_unit():
    assert percent_of(1000, 30) == 300
    assert percent_of(999, Decimal("12.5")) == 125  # 124.875


@pytest.mark.unit
def test_tax_split_into_equal_halves():
    tax = calculate_tax(10000, Decimal("18"))

    assert tax.total == 1800
    assert tax.cgst == 900
    assert tax.sgst == 900


@pytest.mark.unit
def test_tax_odd_unit_lands_on_sgst():
    """105 at 5% is 5.25 -> 5; CGST rounds 2.625 up to 3 so SGST takes 2."""
    tax = calculate_tax(105, Decimal("5"))

    assert tax.total == 5
    assert tax.cgst == 3
    assert tax.sgst == 2
    assert tax.cgst + tax.sgst == tax.total


@pytest.mark.unit
def test_tax_zero_rate_or_empty_cart():
    assert calculate_tax(10000, Decimal("0")).total == 0
    assert calculate_tax(0, Decimal("18")).total == 0
    assert calculate_tax(5000, None).total == 0


# ---------------------------------------------------------------------------
# Price lookup
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_resolve_price_in_region(db_session):
    region = await seed_region(db_session, currency_code="INR")
    variant = await seed_variant(db_session, region, amount=2500)

    price = (await resolve_prices(db_session, {variant.id: 1}, region.id))[variant.id]

    assert price.amount == 2500
    assert price.currency_code == "inr"
    assert price.variant_id == variant.id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_resolve_price_never_falls_back_to_another_region(db_session):
    india = await seed_region(db_session)
    europe = await seed_region(db_session, name="Europe", currency_code="eur")
    variant = await seed_variant(db_session, india, amount=2500)

    with pytest.raises(PriceNotFoundError) as exc:
        await resolve_prices(db_session, {variant.id: 1}, europe.id)

    assert exc.value.code == "VALIDATION"
    assert exc.value.reason == "PRICE_NOT_FOUND"
    assert exc.value.details["region_id"] == str(europe.id)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_resolve_price_enforces_price_min_quantity(db_session):
    region = await seed_region(db_session)
    variant = await seed_variant(db_session, region, amount=800)
    # Second region only sells this variant in tens
    other_region = await seed_region(db_session, name="Wholesale Only")
    db_session.add(
        MoneyAmountFactory.create(
            variant_id=variant.id, region_id=other_region.id, amount=600, min_quantity=10
        )
    )
    await db_session.commit()

    with pytest.raises(ValidationFailedError) as exc:
        await resolve_prices(db_session, {variant.id: 5}, other_region.id)
    assert exc.value.reason == "BELOW_PRICE_MIN_QUANTITY"

    prices = await resolve_prices(db_session, {variant.id: 10}, other_region.id)
    assert prices[variant.id].amount == 600


@pytest.mark.asyncio
@pytest.mark.unit
async def test_resolve_prices_batch(db_session):
    region = await seed_region(db_session)
    first = await seed_variant(db_session, region, amount=100)
    second = await seed_variant(db_session, region, amount=200)

    prices = await resolve_prices(db_session, {first.id: 1, second.id: 3}, region.id)

    assert {vid: p.amount for vid, p in prices.items()} == {first.id: 100, second.id: 200}

    missing = uuid.uuid4()
    with pytest.raises(PriceNotFoundError) as exc:
        await resolve_prices(db_session, {first.id: 1, missing: 1}, region.id)
    assert exc.value.details["variant_id"] == str(missing)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_region_missing(db_session):
    with pytest.raises(NotFoundError):
        await get_region(db_session, uuid.uuid4())
