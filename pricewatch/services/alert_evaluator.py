"""Edge-triggered price alert evaluation."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

import structlog

from pricewatch.models import Alert, Product, utcnow
from pricewatch.storage.base import Storage

logger = structlog.get_logger(__name__)


class AlertEvaluator:
    """Decides which active alerts fire for a newly observed price.

    An alert fires when the price is at or below its target and either the
    price just crossed into that range or the alert has never notified.
    Once notified it stays quiet while the price remains in range, and is
    re-armed by the price rising back above the target.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        self.logger = logger.bind(service="alert_evaluator")

    @staticmethod
    def should_fire(alert: Alert, old_price: Optional[Decimal], new_price: Decimal) -> bool:
        target = Decimal(alert.target_price)
        if new_price > target:
            return False
        crossed = old_price is not None and Decimal(old_price) > target
        return crossed or alert.notified_at is None

    async def evaluate(
        self,
        product: Product,
        old_price: Optional[Decimal],
        new_price: Decimal,
    ) -> List[Alert]:
        """Return the product's active alerts that fire for this observation.

        Args:
            product: Product the price was observed for
            old_price: Stored price before this observation
            new_price: Newly observed price

        Returns:
            Alerts to notify, in creation order
        """
        alerts = await self.storage.get_active_alerts(product.id)
        fired = [alert for alert in alerts if self.should_fire(alert, old_price, new_price)]

        for alert in fired:
            self.logger.info(
                "alert_triggered",
                alert_id=str(alert.id),
                product_id=str(product.id),
                target_price=str(alert.target_price),
                old_price=str(old_price),
                new_price=str(new_price),
            )
        return fired

    async def mark_notified(self, alert: Alert, when: Optional[datetime] = None) -> Optional[Alert]:
        """Record that the alert has been delivered.

        Only the delivery timestamp is written, so changes made to the alert
        while it was being dispatched are preserved.

        Returns:
            The stored alert, or None if it was deleted during dispatch
        """
        alert.notified_at = when or utcnow()
        stored = await self.storage.mark_alert_notified(alert.id, alert.notified_at)
        if stored is None:
            self.logger.info("notified_alert_vanished", alert_id=str(alert.id))
        return stored
