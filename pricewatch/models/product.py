"""Product model representing a tracked product page."""

from decimal import Decimal

from sqlalchemy import Boolean, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from pricewatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Product(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Product tracked on an external e-commerce site.

    Each product is uniquely identified by its URL. ``current_price`` always
    reflects the latest successful scrape.
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(500), nullable=False, default="", comment="Display name")
    url: Mapped[str] = mapped_column(String(2000), nullable=False, unique=True, comment="Tracked product page")
    image_url: Mapped[str] = mapped_column(String(2000), nullable=False, default="")

    current_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Price from the latest successful scrape",
    )
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="BRL")
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    website: Mapped[str] = mapped_column(
        String(255), nullable=False, default="", comment="Normalized host of the product page"
    )

    __table_args__ = (
        Index("idx_products_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{(self.name or '')[:50]}', price={self.current_price})>"
