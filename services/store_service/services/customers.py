"""Customer lookup for authenticated and guest buyers."""

import uuid
from typing import Optional

from libs.auth.models import AuthUser
from services.store_service.errors import NotFoundError
from services.store_service.models import Customer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


async def find_customer(
    db: AsyncSession,
    email: Optional[str] = None,
    current_user: Optional[AuthUser] = None,
) -> Optional[Customer]:
    """
    Token customer id first, then ``email``. The token email is used only when
    no email is given, so checkout looks up the same address it would insert.
    """
    if current_user is not None and current_user.customer_id:
        try:
            customer = await db.get(Customer, uuid.UUID(current_user.customer_id))
        except ValueError:
            customer = None
        if customer:
            return customer

    if not email and current_user is not None:
        email = current_user.email
    if not email:
        return None
    result = await db.execute(select(Customer).where(Customer.email == email.lower()))
    return result.scalar_one_or_none()


async def require_customer(db: AsyncSession, current_user: AuthUser) -> Customer:
    customer = await find_customer(db, current_user=current_user)
    if customer is None:
        raise NotFoundError("No customer account for this user")
    return customer
