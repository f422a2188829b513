"""Alert model for price threshold notifications."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from pricewatch.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin


class Alert(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Subscription that fires when a product's price reaches a target."""

    __tablename__ = "alerts"

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False,
        comment="Alert when price drops to or below this"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    notification_type: Mapped[str] = mapped_column(
        String(100), nullable=False, default="email",
        comment="Comma-separated channel names, or 'all'"
    )
    recipient: Mapped[Optional[str]] = mapped_column(
        String(320), nullable=True,
        comment="Channel-specific recipient override (email address, chat id)"
    )
    notified_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(timezone=True), nullable=True,
        comment="Last time this alert was delivered"
    )

    @property
    def channels(self) -> List[str]:
        """Channel names selected by ``notification_type``."""
        return [c.strip().lower() for c in (self.notification_type or "").split(",") if c.strip()]

    def __repr__(self) -> str:
        return f"<Alert(product={self.product_id}, target={self.target_price}, channels={self.notification_type})>"
