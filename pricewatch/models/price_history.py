"""Price history tracking for products."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from pricewatch.models.base import Base, UTCDateTime, UUIDPrimaryKeyMixin, utcnow


class PriceHistory(UUIDPrimaryKeyMixin, Base):
    """Append-only record of a product's price changes.

    Rows are never updated; they disappear only when their product is deleted.
    """

    __tablename__ = "price_history"

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="Price at this point in time")
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="BRL")

    recorded_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When this price was captured",
    )

    __table_args__ = (
        Index("idx_price_history_product_recorded", "product_id", "recorded_at"),
    )

    def __repr__(self) -> str:
        return f"<PriceHistory(product_id={self.product_id}, price={self.price}, recorded_at={self.recorded_at})>"
