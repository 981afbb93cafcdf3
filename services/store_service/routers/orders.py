"""Order read router."""

import uuid

from fastapi import APIRouter, Depends
from libs.db.session import get_async_db
from services.store_service.schemas import OrderResponse
from services.store_service.services import orders as order_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)):
    """Order with its line-item snapshots."""
    return await order_service.get_order(db, order_id)
