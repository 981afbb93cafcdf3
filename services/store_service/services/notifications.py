"""Order emails. Sent after commit; a failure here never affects the order."""

import asyncio

from libs.common.config import get_settings
from libs.common.emails.client import get_email_client
from libs.common.logging import get_logger
from services.store_service.models import Order

logger = get_logger(__name__)


def _order_summary(order: Order) -> dict:
    return {
        "order_id": str(order.id),
        "display_id": order.display_id,
        "status": order.status.value,
        "currency_code": order.currency_code,
        "subtotal": order.subtotal,
        "discount_total": order.discount_total,
        "shipping_total": order.shipping_total,
        "tax_total": order.tax_total,
        "total": order.total,
        "is_wholesale": order.is_wholesale,
    }


async def _send(template_type: str, order: Order, template_data: dict) -> bool:
    settings = get_settings()
    try:
        return await asyncio.wait_for(
            get_email_client().send_template(
                template_type=template_type,
                to_email=order.email,
                template_data=template_data,
            ),
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.warning(
            f"Timed out sending {template_type} for order {order.display_id}"
        )
    except Exception as e:
        # Non-fatal: the order is already committed
        logger.error(f"Failed to send {template_type} for order {order.display_id}: {e}")
    return False


async def send_order_confirmation(order: Order) -> bool:
    items = [
        {
            "title": item.title,
            "variant": item.description,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "total": item.total,
        }
        for item in order.items
    ]
    return await _send(
        "order_confirmation",
        order,
        {
            **_order_summary(order),
            "store_name": get_settings().STORE_NAME,
            "items": items,
        },
    )


async def send_status_update(order: Order) -> bool:
    return await _send("order_status_update", order, _order_summary(order))
