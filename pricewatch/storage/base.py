"""Storage contract consumed by the monitoring pipeline.

Absence is reported as ``None`` or an empty list, never as an exception.
Backend failures surface as :class:`~pricewatch.core.exceptions.StorageError`.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pricewatch.models import Alert, PriceHistory, Product


class Storage(ABC):
    """Abstract persistence layer for products, price history and alerts."""

    # Products

    @abstractmethod
    async def list_tracked_products(self, limit: int = 0, offset: int = 0) -> List[Product]:
        """List tracked products ordered by creation time.

        Args:
            limit: Maximum number of products, 0 for no limit
            offset: Number of products to skip
        """

    @abstractmethod
    async def get_product(self, product_id: uuid.UUID) -> Optional[Product]:
        """Get a product by id."""

    @abstractmethod
    async def get_product_by_url(self, url: str) -> Optional[Product]:
        """Get a product by its tracked URL."""

    @abstractmethod
    async def create_product(self, product: Product) -> Product:
        """Persist a new product. Raises StorageError if the URL is already tracked."""

    @abstractmethod
    async def update_product(self, product: Product) -> Product:
        """Overwrite the stored fields of an existing product."""

    @abstractmethod
    async def delete_product(self, product_id: uuid.UUID) -> bool:
        """Delete a product together with its history and alerts."""

    # Price history

    @abstractmethod
    async def append_price_history(
        self,
        product_id: uuid.UUID,
        price: Decimal,
        captured_at: datetime,
        currency: Optional[str] = None,
    ) -> PriceHistory:
        """Append one history entry."""

    @abstractmethod
    async def get_price_history(
        self, product_id: uuid.UUID, days: Optional[int] = None
    ) -> List[PriceHistory]:
        """Price history in capture order, optionally limited to the last ``days``."""

    @abstractmethod
    async def get_last_price_history(self, product_id: uuid.UUID) -> Optional[PriceHistory]:
        """Most recent history entry for a product."""

    @abstractmethod
    async def commit_price_update(
        self,
        product: Product,
        history_price: Optional[Decimal],
        captured_at: datetime,
        expected_updated_at: Optional[datetime] = None,
    ) -> Optional[Product]:
        """Atomically store the product fields and, if given, one history entry.

        Args:
            product: Product carrying the new field values
            history_price: Price to append to the history, None for no entry
            captured_at: Capture time of the history entry
            expected_updated_at: When given, the write only happens if the
                stored ``updated_at`` still equals this value

        Returns:
            The stored product, or None if it was deleted in the meantime

        Raises:
            UpdateConflictError: The stored row changed after it was read
        """

    # Alerts

    @abstractmethod
    async def create_alert(self, alert: Alert) -> Alert:
        """Persist a new alert."""

    @abstractmethod
    async def get_alert(self, alert_id: uuid.UUID) -> Optional[Alert]:
        """Get an alert by id."""

    @abstractmethod
    async def get_active_alerts(self, product_id: uuid.UUID) -> List[Alert]:
        """All active alerts of a product."""

    @abstractmethod
    async def update_alert(self, alert: Alert) -> Alert:
        """Overwrite the stored fields of an existing alert."""

    @abstractmethod
    async def mark_alert_notified(self, alert_id: uuid.UUID, notified_at: datetime) -> Optional[Alert]:
        """Set only ``notified_at`` (and ``updated_at``) of an alert.

        Returns:
            The stored alert, or None if it was deleted in the meantime
        """

    @abstractmethod
    async def delete_alert(self, alert_id: uuid.UUID) -> bool:
        """Delete an alert."""

    async def close(self) -> None:
        """Release backend resources."""
