"""SQLAlchemy models for PriceWatch.

All models are imported here so metadata.create_all sees every table.
"""

from pricewatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow
from pricewatch.models.product import Product
from pricewatch.models.price_history import PriceHistory
from pricewatch.models.alert import Alert

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "utcnow",
    "Product",
    "PriceHistory",
    "Alert",
]
