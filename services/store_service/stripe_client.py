"""
Stripe API client for payment intents and webhook signature checks.

Provides async methods for:
- Creating payment intents (idempotent per order and amount)
- Retrieving payment intents
"""

import hashlib
import hmac
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PaymentIntent:
    """Subset of a Stripe PaymentIntent the store relies on."""

    id: str
    client_secret: Optional[str]
    amount: int
    currency: str
    status: str
    metadata: dict = field(default_factory=dict)


class StripeError(Exception):
    """Base exception for Stripe API errors."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


def _flatten_metadata(metadata: dict) -> dict:
    # Stripe expects form-encoded nested keys: metadata[order_id]=...
    return {f"metadata[{k}]": str(v) for k, v in (metadata or {}).items()}


def _to_intent(data: dict) -> PaymentIntent:
    return PaymentIntent(
        id=data["id"],
        client_secret=data.get("client_secret"),
        amount=int(data.get("amount") or 0),
        currency=data.get("currency", ""),
        status=data.get("status", ""),
        metadata=data.get("metadata") or {},
    )


class StripeClient:
    """Async client for the Stripe PaymentIntents API."""

    def __init__(
        self,
        secret_key: str = None,
        base_url: str = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        if not self.secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required")
        self.base_url = base_url or settings.STRIPE_API_BASE
        self.timeout = timeout or settings.PAYMENT_TIMEOUT_SECONDS
        self._transport = transport
        self._headers = {"Authorization": f"Bearer {self.secret_key}"}

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: dict = None,
        idempotency_key: str = None,
    ) -> dict:
        """Make an async request to the Stripe API."""
        headers = dict(self._headers)
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.request(
                    method=method, url=endpoint, headers=headers, data=data
                )
            except httpx.TimeoutException as e:
                raise StripeError(f"Stripe request timed out: {e}") from e
            except httpx.RequestError as e:
                raise StripeError(f"Stripe request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not response.is_success:
            message = (payload.get("error") or {}).get("message", "Unknown Stripe error")
            logger.error(f"Stripe API error: {response.status_code} - {message}")
            raise StripeError(
                message=message,
                status_code=response.status_code,
                response_data=payload,
            )
        return payload

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        """
        Create a PaymentIntent.

        Args:
            amount: Amount in the currency's minor unit
            currency: Three-letter currency code, lower-case
            metadata: Free-form key/values echoed back on webhook events
            idempotency_key: Repeat calls with the same key return the same intent
        """
        data = {
            "amount": str(amount),
            "currency": currency.lower(),
            "automatic_payment_methods[enabled]": "true",
            **_flatten_metadata(metadata or {}),
        }
        result = await self._request(
            "POST", "/v1/payment_intents", data=data, idempotency_key=idempotency_key
        )
        intent = _to_intent(result)
        logger.info(f"Created payment intent {intent.id} for {amount} {currency}")
        return intent


def verify_stripe_signature(
    payload: bytes,
    signature_header: Optional[str],
    secret: Optional[str] = None,
    tolerance: Optional[int] = None,
    now: Optional[int] = None,
) -> bool:
    """
    Check a ``Stripe-Signature`` header (``t=<ts>,v1=<hex>[,v1=...]``).

    The signed payload is ``"{t}.{raw body}"`` under HMAC-SHA256 with the
    endpoint secret. Timestamps older than ``tolerance`` seconds are rejected.
    """
    settings = get_settings()
    secret = secret or settings.STRIPE_WEBHOOK_SECRET
    tolerance = settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS if tolerance is None else tolerance
    if not signature_header or not secret:
        return False

    timestamp = None
    signatures = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if not timestamp or not signatures:
        return False
    try:
        ts = int(timestamp)
    except ValueError:
        return False

    now = int(time.time()) if now is None else now
    if tolerance and abs(now - ts) > tolerance:
        return False

    signed = f"{timestamp}.".encode("utf-8") + payload
    expected = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return any(hmac.compare_digest(expected, sig) for sig in signatures)


def sign_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for ``payload``; used by local tooling and tests."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


_stripe_client: Optional[StripeClient] = None


def get_stripe_client() -> StripeClient:
    """FastAPI dependency / singleton accessor."""
    global _stripe_client
    if _stripe_client is None:
        _stripe_client = StripeClient()
    return _stripe_client
