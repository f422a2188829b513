"""Per-product step of the monitoring cycle.

Takes one scrape result through comparison, alert evaluation and
notification dispatch, isolating every failure to that product.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import structlog

from pricewatch.config import Settings
from pricewatch.core.exceptions import StorageError
from pricewatch.models import Product
from pricewatch.scrapers.base import ScrapeResult
from pricewatch.services.alert_evaluator import AlertEvaluator
from pricewatch.services.notification_service import NotificationDispatcher
from pricewatch.services.price_comparator import PriceComparator
from pricewatch.storage.base import Storage

logger = structlog.get_logger(__name__)

UPDATED = "updated"
UNCHANGED = "unchanged"
FAILED = "failed"
VANISHED = "vanished"


@dataclass
class ProductOutcome:
    """What happened to one product in a cycle."""

    status: str
    alerts_fired: int = 0
    notifications_failed: int = 0
    error: Optional[str] = None


class MonitorService:
    """Applies scrape results to stored products and fires alerts."""

    def __init__(
        self,
        storage: Storage,
        dispatcher: NotificationDispatcher,
        comparator: Optional[PriceComparator] = None,
        evaluator: Optional[AlertEvaluator] = None,
    ):
        self.storage = storage
        self.dispatcher = dispatcher
        self.comparator = comparator or PriceComparator(storage)
        self.evaluator = evaluator or AlertEvaluator(storage)
        self.logger = logger.bind(service="monitor_service")

    @classmethod
    def from_settings(
        cls, settings: Settings, storage: Storage, dispatcher: NotificationDispatcher
    ) -> "MonitorService":
        interval = None
        if settings.HISTORY_SNAPSHOT_INTERVAL_HOURS > 0:
            interval = timedelta(hours=settings.HISTORY_SNAPSHOT_INTERVAL_HOURS)
        return cls(storage, dispatcher, comparator=PriceComparator(storage, snapshot_interval=interval))

    async def process_result(self, product: Product, result: ScrapeResult) -> ProductOutcome:
        """Process one scrape result for a tracked product.

        Failed scrapes leave the product untouched. Storage errors abort
        this product only.
        """
        if not result.ok:
            self.logger.warning(
                "product_scrape_skipped",
                product_id=str(product.id),
                url=product.url,
                error=str(result.error),
            )
            return ProductOutcome(FAILED, error=str(result.error))

        try:
            return await self._apply(product, result)
        except StorageError as e:
            self.logger.error(
                "product_update_failed",
                product_id=str(product.id),
                operation=e.operation,
                error=str(e),
            )
            return ProductOutcome(FAILED, error=str(e))

    async def _apply(self, product: Product, result: ScrapeResult) -> ProductOutcome:
        comparison = await self.comparator.apply(product, result.snapshot)
        if comparison.product is None:
            return ProductOutcome(VANISHED)

        outcome = ProductOutcome(UPDATED if comparison.changed else UNCHANGED)
        if comparison.stale:
            return outcome

        # Evaluated on every fresh observation: the edge rule keeps unchanged
        # prices quiet except for alerts that have never been delivered.
        fired = await self.evaluator.evaluate(
            comparison.product, comparison.old_price, comparison.new_price
        )
        for alert in fired:
            dispatch = await self.dispatcher.dispatch(alert, comparison.product, comparison.old_price)
            if dispatch.ok:
                await self.evaluator.mark_notified(alert)
                outcome.alerts_fired += 1
            else:
                # Left armed so the next qualifying observation retries delivery
                outcome.notifications_failed += 1
        return outcome
