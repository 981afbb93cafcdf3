"""Order placement and the order status state machine.

place_order is the only writer of new orders. Everything it reads is
validated before the first write, and every write lands in one transaction:
either the order, its line items, the stock decrements and the discount
redemption all commit together, or none of them do.
"""

import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.store_service.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    StoreError,
    ValidationFailedError,
)
from services.store_service.models import (
    Address,
    Customer,
    FulfillmentStatus,
    LineItem,
    Order,
    OrderStatus,
    PaymentStatus,
    ProductVariant,
    WholesaleTier,
)
from services.store_service.models.orders import DISPLAY_ID_SEQ
from services.store_service.schemas import AddressInput, CartItemInput, PlaceOrderRequest
from services.store_service.services import discounts as discount_service
from services.store_service.services import customers, inventory, notifications, wholesale
from services.store_service.services.discounts import DiscountEvaluation
from services.store_service.services.pricing import calculate_tax, get_region, resolve_prices
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Status state machine
# ---------------------------------------------------------------------------

# COMPLETED is only entered from PENDING by payment reconciliation
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.PROCESSING: frozenset(
        {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.SHIPPED: frozenset(
        {OrderStatus.DELIVERED, OrderStatus.REFUNDED, OrderStatus.CANCELLED}
    ),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

FULFILLMENT_FOR_STATUS = {
    OrderStatus.SHIPPED: FulfillmentStatus.SHIPPED,
    OrderStatus.DELIVERED: FulfillmentStatus.DELIVERED,
    OrderStatus.CANCELLED: FulfillmentStatus.CANCELED,
}


def allowed_transitions(current: OrderStatus) -> list[OrderStatus]:
    return sorted(ORDER_TRANSITIONS.get(current, frozenset()), key=lambda s: s.value)


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Same-state moves are accepted as no-ops."""
    if current == new:
        return True
    return new in ORDER_TRANSITIONS.get(current, frozenset())


def assert_transition(current: OrderStatus, new: OrderStatus) -> None:
    if not can_transition(current, new):
        raise InvalidTransitionError(
            current.value, new.value, [s.value for s in allowed_transitions(current)]
        )


def _apply_status(order: Order, new_status: OrderStatus) -> None:
    order.status = new_status
    if new_status in FULFILLMENT_FOR_STATUS:
        order.fulfillment_status = FULFILLMENT_FOR_STATUS[new_status]
    if new_status == OrderStatus.REFUNDED and order.payment_status == PaymentStatus.CAPTURED:
        order.payment_status = PaymentStatus.REFUNDED


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def _order_query():
    return select(Order).options(
        selectinload(Order.items),
        selectinload(Order.shipping_address),
        selectinload(Order.billing_address),
    )


async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        _order_query()
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise NotFoundError("Order not found", details={"order_id": str(order_id)})
    return order


async def get_order_for_update(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise NotFoundError("Order not found", details={"order_id": str(order_id)})
    return order


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


async def transition_order_status(
    db: AsyncSession, order_id: uuid.UUID, new_status: OrderStatus
) -> Order:
    order = await get_order_for_update(db, order_id)
    previous = order.status
    assert_transition(previous, new_status)

    if previous != new_status:
        _apply_status(order, new_status)
        db.add(order)
        await db.commit()
        logger.info(
            "Order %s moved from %s to %s",
            order.display_id,
            previous.value,
            new_status.value,
        )
        await notifications.send_status_update(order)
    else:
        await db.rollback()

    return await get_order(db, order_id)


async def bulk_transition_order_status(
    db: AsyncSession, order_ids: Sequence[uuid.UUID], new_status: OrderStatus
) -> list[Order]:
    """All orders move or none do: every transition is checked before any is applied."""
    wanted = sorted(set(order_ids))
    result = await db.execute(
        select(Order).where(Order.id.in_(wanted)).order_by(Order.id).with_for_update()
    )
    orders = list(result.scalars().all())

    missing = {str(i) for i in wanted} - {str(o.id) for o in orders}
    if missing:
        await db.rollback()
        raise NotFoundError("Order not found", details={"order_ids": sorted(missing)})

    for order in orders:
        if not can_transition(order.status, new_status):
            error = InvalidTransitionError(
                order.status.value,
                new_status.value,
                [s.value for s in allowed_transitions(order.status)],
            )
            error.details["order_id"] = str(order.id)
            await db.rollback()
            raise error

    for order in orders:
        _apply_status(order, new_status)
        db.add(order)
    await db.commit()

    logger.info(
        "Bulk moved %d orders to %s",
        len(orders),
        new_status.value,
        extra={"extra_fields": {"order_ids": [str(o.id) for o in orders]}},
    )
    return [await get_order(db, o.id) for o in orders]


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------


@dataclass
class PricedLine:
    variant: ProductVariant
    quantity: int
    retail_price: int
    unit_price: int
    total: int
    quote: Optional[wholesale.LineQuote] = None


def merge_items(items: Sequence[CartItemInput]) -> dict[uuid.UUID, int]:
    """Collapse repeated variants into one line, keeping first-seen order."""
    merged: dict[uuid.UUID, int] = {}
    for item in items:
        merged[item.variant_id] = merged.get(item.variant_id, 0) + item.quantity
    return merged


async def _price_lines(
    db: AsyncSession,
    region_id: uuid.UUID,
    quantities: dict[uuid.UUID, int],
    variants: dict[uuid.UUID, ProductVariant],
    tier: Optional[WholesaleTier],
) -> list[PricedLine]:
    bands = await wholesale.get_bulk_discounts(db, list(quantities)) if tier else {}
    prices = await resolve_prices(db, quantities, region_id)

    lines = []
    for variant_id, quantity in quantities.items():
        variant = variants[variant_id]
        price = prices[variant_id]

        if tier is not None:
            quote = wholesale.build_line_quote(
                variant, price.amount, quantity, tier, bands.get(variant_id, [])
            )
            unit_price, quote_total = quote.unit_price, quote.total
        else:
            quote = None
            unit_price, quote_total = price.amount, price.amount * quantity

        inventory.check_stock(variant, quantity)
        lines.append(
            PricedLine(
                variant=variant,
                quantity=quantity,
                retail_price=price.amount,
                unit_price=unit_price,
                total=quote_total,
                quote=quote,
            )
        )
    return lines


def _address(data: AddressInput, customer_id: uuid.UUID) -> Address:
    return Address(customer_id=customer_id, **data.model_dump())


def _line_item(line: PricedLine) -> LineItem:
    variant = line.variant
    product = variant.product
    metadata = {}
    if line.quote is not None:
        metadata = {
            "tier_discount_percent": str(line.quote.tier_discount_percent),
            "bulk_discount_percent": str(line.quote.bulk_discount_percent),
            "tier_savings": line.quote.tier_savings,
            "bulk_savings": line.quote.bulk_savings,
            "is_wholesale_price": line.quote.is_wholesale_price,
        }
    return LineItem(
        variant_id=variant.id,
        title=product.title if product else variant.title,
        description=variant.title,
        sku=variant.sku,
        thumbnail=product.thumbnail if product else None,
        unit_price=line.unit_price,
        compare_at_unit_price=(
            line.retail_price if line.unit_price != line.retail_price else None
        ),
        quantity=line.quantity,
        total=line.total,
        item_metadata=metadata,
    )


async def _next_display_id(db: AsyncSession) -> int:
    if db.get_bind().dialect.supports_sequences:
        return int(await db.scalar(select(DISPLAY_ID_SEQ.next_value())))
    # No sequences (SQLite): a duplicate hits the unique key and surfaces as CONFLICT
    result = await db.execute(
        select(func.coalesce(func.max(Order.display_id), DISPLAY_ID_SEQ.start - 1))
    )
    return int(result.scalar_one()) + 1


async def place_order(
    db: AsyncSession,
    request: PlaceOrderRequest,
    current_user: Optional[AuthUser] = None,
) -> Order:
    """Turn a cart into a priced, stock-checked, persisted order.

    1. Region and currency, then row-lock every variant in the cart.
    2. Price each line: regional price, wholesale tier + bulk band + MOQ for
       tiered buyers, stock check.
    3. Validate the discount code against the subtotal.
    4. Tax, shipping and the floored total.
    5. One transaction: customer, addresses, order, line items, stock
       decrements, discount redemption.
    6. Best-effort confirmation email after commit.
    """
    settings = get_settings()
    try:
        try:
            region = await get_region(db, request.region_id)
            quantities = merge_items(request.items)
            variants = await inventory.lock_variants(db, quantities.keys())
        except NotFoundError as e:
            # Unknown ids in a checkout body are a bad request, not a missing resource
            raise NotFoundError(e.message, details=e.details, status_code=400)

        if region.currency_code.lower() != request.currency_code:
            raise ValidationFailedError(
                "Currency does not match the selected region",
                reason="CURRENCY_MISMATCH",
                details={
                    "region_currency": region.currency_code.lower(),
                    "currency_code": request.currency_code,
                },
            )

        customer = await customers.find_customer(db, request.email, current_user)
        tier = (
            await wholesale.get_customer_tier(db, customer)
            if current_user is not None
            else None
        )

        lines = await _price_lines(db, region.id, quantities, variants, tier)
        subtotal = sum(line.total for line in lines)
        total_items = sum(line.quantity for line in lines)

        evaluation: Optional[DiscountEvaluation] = None
        if request.discount_code:
            evaluation = await discount_service.validate_discount(
                db,
                request.discount_code,
                subtotal,
                customer_id=customer.id if customer else None,
            )

        discount_total = evaluation.amount if evaluation else 0
        tax = calculate_tax(subtotal, region.tax_rate)
        shipping_total = (
            0 if evaluation and evaluation.waives_shipping else settings.FLAT_SHIPPING_AMOUNT
        )
        total = max(subtotal + shipping_total + tax.total - discount_total, 0)

        # ---- writes start here ----
        if customer is None:
            customer = Customer(
                email=request.email,
                first_name=request.first_name,
                last_name=request.last_name,
                phone=request.phone,
                has_account=current_user is not None,
            )
            db.add(customer)
            await db.flush()

        shipping_address = _address(request.shipping_address, customer.id)
        db.add(shipping_address)
        billing_address = None
        if request.billing_address:
            billing_address = _address(request.billing_address, customer.id)
            db.add(billing_address)
        await db.flush()

        metadata = {
            "tax": {
                "rate": str(tax.rate),
                "cgst": tax.cgst,
                "sgst": tax.sgst,
            },
        }
        if evaluation:
            metadata["discount_code"] = evaluation.code
        if tier is not None:
            metadata.update(
                {
                    "is_wholesale": True,
                    "tier": tier.slug,
                    "tier_version": tier.version,
                    "payment_terms": tier.payment_terms.value,
                    "tier_discount_total": sum(
                        line.quote.tier_savings for line in lines if line.quote
                    ),
                    "bulk_discount_total": sum(
                        line.quote.bulk_savings for line in lines if line.quote
                    ),
                    "po_number": request.po_number,
                }
            )

        order = Order(
            display_id=await _next_display_id(db),
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.AWAITING,
            fulfillment_status=FulfillmentStatus.NOT_FULFILLED,
            customer_id=customer.id,
            email=request.email,
            region_id=region.id,
            shipping_address_id=shipping_address.id,
            billing_address_id=billing_address.id if billing_address else None,
            discount_id=evaluation.discount.id if evaluation else None,
            currency_code=region.currency_code.lower(),
            tax_rate=tax.rate,
            subtotal=subtotal,
            discount_total=discount_total,
            shipping_total=shipping_total,
            tax_total=tax.total,
            total=total,
            is_wholesale=tier is not None,
            total_items=total_items,
            order_metadata=metadata,
            items=[_line_item(line) for line in lines],
        )
        db.add(order)
        await db.flush()

        for line in lines:
            await inventory.reserve_stock(db, line.variant, line.quantity)

        if evaluation:
            await discount_service.redeem_discount(
                db,
                discount=evaluation.discount,
                customer_id=customer.id,
                order_id=order.id,
                order_total=total,
            )

        await db.commit()
    except StoreError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Order placement hit a constraint: {e.orig}")
        raise ConflictError(
            "Order could not be placed due to a concurrent update, please retry"
        )

    logger.info(
        "Placed order %s",
        order.display_id,
        extra={
            "extra_fields": {
                "order_id": str(order.id),
                "total": order.total,
                "currency_code": order.currency_code,
                "is_wholesale": order.is_wholesale,
                "items": total_items,
            }
        },
    )

    order = await get_order(db, order.id)
    await notifications.send_order_confirmation(order)
    return order
