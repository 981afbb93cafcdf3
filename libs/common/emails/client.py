"""
Email client for service-to-service email communication.

The Notifications Service owns every email template and the actual sending.
This client forwards a template type plus its data, authenticating with a
short-lived service-role JWT.

Usage:
    from libs.common.emails.client import get_email_client

    email_client = get_email_client()
    await email_client.send_template(
        template_type="order_confirmation",
        to_email="buyer@example.com",
        template_data={"display_id": 1042, "total": 9000},
    )
"""

from datetime import timedelta
from typing import Any, Optional

import httpx
from jose import jwt

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


def _service_role_jwt(issuer: str) -> str:
    settings = get_settings()
    now = utc_now()
    claims = {
        "sub": f"service:{issuer}",
        "role": "service_role",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=60)).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class EmailClient:
    """
    HTTP client for sending emails through the Notifications Service.

    Errors are logged and reported as ``False``; email delivery never
    decides the outcome of the caller's operation.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0):
        settings = get_settings()
        self.base_url = base_url or settings.NOTIFICATIONS_SERVICE_URL
        self.timeout = timeout

    def _get_auth_headers(self) -> dict[str, str]:
        token = _service_role_jwt("store")
        headers = {"Authorization": f"Bearer {token}"}
        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id
        return headers

    async def send_template(
        self,
        template_type: str,
        to_email: str,
        template_data: dict[str, Any],
    ) -> bool:
        """
        Send a templated email through the Notifications Service.

        Available template types:
        - order_confirmation: Order placed
        - order_status_update: Order moved to a new status

        Returns:
            True if email was sent successfully, False otherwise
        """
        payload = {
            "template_type": template_type,
            "to_email": to_email,
            "template_data": template_data,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/email/template",
                    json=payload,
                    headers=self._get_auth_headers(),
                )
                if response.status_code == 200:
                    return response.json().get("success", False)
                logger.error(
                    f"Template email API returned {response.status_code}: {response.text}"
                )
                return False
        except httpx.RequestError as e:
            logger.error(f"Failed to connect to Notifications Service: {e}")
            return False


# Singleton instance for convenience
_email_client: Optional[EmailClient] = None


def get_email_client() -> EmailClient:
    """Get or create the singleton EmailClient instance."""
    global _email_client
    if _email_client is None:
        _email_client = EmailClient()
    return _email_client
