"""Payment processor bookkeeping."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import WebhookEventStatus, enum_values
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class WebhookEvent(Base):
    """One row per processor event id; the unique key makes redelivery a no-op."""

    __tablename__ = "webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[WebhookEventStatus] = mapped_column(
        SAEnum(
            WebhookEventStatus,
            values_callable=enum_values,
            name="webhook_event_status_enum",
        ),
        default=WebhookEventStatus.PROCESSING,
        nullable=False,
    )
    payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
