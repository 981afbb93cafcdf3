"""Payments router: intents, status and the processor webhook."""

import uuid

from fastapi import APIRouter, Depends, Request
from libs.db.session import get_async_db
from services.store_service.schemas import (
    CreateIntentRequest,
    CreateIntentResponse,
    ErrorResponse,
    PaymentStatusResponse,
    WebhookAck,
)
from services.store_service.services import payments as payment_service
from services.store_service.stripe_client import StripeClient, get_stripe_client
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/create-intent",
    response_model=CreateIntentResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def create_intent(
    payload: CreateIntentRequest,
    db: AsyncSession = Depends(get_async_db),
    stripe: StripeClient = Depends(get_stripe_client),
):
    intent = await payment_service.create_intent(db, payload.order_id, stripe)
    return CreateIntentResponse(
        client_secret=intent.client_secret, payment_intent_id=intent.id
    )


@router.get("/status/{order_id}", response_model=PaymentStatusResponse)
async def payment_status(order_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)):
    order = await payment_service.get_payment_status(db, order_id)
    return PaymentStatusResponse(
        order_id=order.id,
        payment_status=order.payment_status,
        status=order.status,
        payment_intent_id=order.payment_intent_id,
    )


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_async_db)):
    """
    Processor webhook (no auth; verified by the Stripe-Signature header).
    The raw body is verified before anything in it is trusted.
    """
    raw = await request.body()
    signature = request.headers.get("stripe-signature")
    return await payment_service.handle_webhook(db, raw, signature)
