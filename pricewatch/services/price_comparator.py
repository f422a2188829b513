"""Price change detection and history recording.

History is delta-logged: a row is appended only when the scraped price
differs from the stored one, unless periodic snapshots are configured.
Each product's read-compare-write runs under a per-product lock and ends
in a write conditional on the row being unchanged since it was read, so a
cycle overlapping another one, in this process or another, cannot record
the same change twice.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncIterator, Dict, Hashable, Optional

import structlog

from pricewatch.core.exceptions import UpdateConflictError
from pricewatch.models import Product, utcnow
from pricewatch.scrapers.base import ProductSnapshot
from pricewatch.storage.base import Storage

logger = structlog.get_logger(__name__)

PRICE_QUANTUM = Decimal("0.01")


class KeyedLock:
    """asyncio locks created on demand per key and dropped when unused."""

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class ComparisonResult:
    """Outcome of applying one snapshot to a stored product."""

    product: Optional[Product]  # None if the product was deleted meanwhile
    changed: bool
    old_price: Optional[Decimal]
    new_price: Optional[Decimal]
    history_recorded: bool = False
    stale: bool = False  # Snapshot older than the stored state; ignored


class PriceComparator:
    """Detects price deltas against stored state and appends history entries."""

    def __init__(
        self,
        storage: Storage,
        snapshot_interval: Optional[timedelta] = None,
        max_attempts: int = 3,
    ):
        """Initialize the comparator.

        Args:
            storage: Storage backend
            snapshot_interval: When set, an unchanged price is still recorded
                once this much time has passed since the last history entry
            max_attempts: Read-compare-write attempts before a conflict is raised
        """
        self.storage = storage
        self.snapshot_interval = snapshot_interval if snapshot_interval else None
        self.max_attempts = max(1, max_attempts)
        self._locks = KeyedLock()
        self.logger = logger.bind(service="price_comparator")

    async def apply(self, existing: Product, snapshot: ProductSnapshot) -> ComparisonResult:
        """Apply a fresh snapshot to a product.

        The stored product is re-read under the product's lock, so ``existing``
        only identifies the product; its price may be out of date. The write
        is conditional on the row being unchanged since that read; when another
        process got there first, the comparison is redone against its result.

        Args:
            existing: Tracked product the snapshot was scraped for
            snapshot: Successful scrape result carrying a price

        Returns:
            ComparisonResult with the stored product and whether the price changed

        Raises:
            UpdateConflictError: The row kept changing for every attempt
        """
        if snapshot.price is None:
            raise ValueError("snapshot has no price")
        new_price = snapshot.price.quantize(PRICE_QUANTUM)

        async with self._locks.hold(existing.id):
            for attempt in range(1, self.max_attempts + 1):
                try:
                    result = await self._compare_and_commit(existing, snapshot, new_price)
                except UpdateConflictError:
                    if attempt == self.max_attempts:
                        raise
                    self.logger.info(
                        "price_update_conflict",
                        product_id=str(existing.id),
                        attempt=attempt,
                    )
                    continue
                break

        if result.product is None:
            self.logger.info("product_vanished", product_id=str(existing.id))
        elif result.changed:
            self.logger.info(
                "price_changed",
                product_id=str(result.product.id),
                old_price=str(result.old_price),
                new_price=str(new_price),
                currency=result.product.currency,
            )
        return result

    async def _compare_and_commit(
        self, existing: Product, snapshot: ProductSnapshot, new_price: Decimal
    ) -> ComparisonResult:
        current = await self.storage.get_product(existing.id)
        if current is None:
            return ComparisonResult(None, False, existing.current_price, new_price)

        old_price = current.current_price
        if current.updated_at and snapshot.scraped_at < current.updated_at:
            self.logger.info(
                "stale_snapshot_ignored",
                product_id=str(current.id),
                scraped_at=snapshot.scraped_at.isoformat(),
                updated_at=current.updated_at.isoformat(),
            )
            return ComparisonResult(current, False, old_price, new_price, stale=True)

        changed = old_price is None or Decimal(old_price) != new_price
        fields_changed = self._merge_fields(current, snapshot, new_price)

        history_price = new_price if changed else None
        if history_price is None and await self._snapshot_due(current, snapshot.scraped_at):
            history_price = new_price

        if not (changed or fields_changed or history_price is not None):
            return ComparisonResult(current, False, old_price, new_price)

        read_at = current.updated_at
        current.updated_at = utcnow() if read_at is None else max(utcnow(), read_at)

        # A commit that has started must finish even if the cycle is cancelled
        stored = await asyncio.shield(
            self.storage.commit_price_update(
                current, history_price, snapshot.scraped_at, expected_updated_at=read_at
            )
        )
        if stored is None:
            return ComparisonResult(None, False, old_price, new_price)

        return ComparisonResult(
            product=stored,
            changed=changed,
            old_price=old_price,
            new_price=new_price,
            history_recorded=history_price is not None,
        )

    @staticmethod
    def _merge_fields(product: Product, snapshot: ProductSnapshot, new_price: Decimal) -> bool:
        """Copy scraped fields onto the product; True if anything differs."""
        updates = {
            "current_price": new_price,
            "is_available": snapshot.is_available if snapshot.is_available is not None else product.is_available,
        }
        if snapshot.currency:
            updates["currency"] = snapshot.currency
        # Name and image only fill in what was never discovered
        if snapshot.name and not product.name:
            updates["name"] = snapshot.name
        if snapshot.image_url and not product.image_url:
            updates["image_url"] = snapshot.image_url
        if snapshot.website and not product.website:
            updates["website"] = snapshot.website

        changed = False
        for key, value in updates.items():
            if getattr(product, key) != value:
                setattr(product, key, value)
                changed = True
        return changed

    async def _snapshot_due(self, product: Product, captured_at: datetime) -> bool:
        if self.snapshot_interval is None:
            return False
        last = await self.storage.get_last_price_history(product.id)
        return last is None or captured_at - last.recorded_at >= self.snapshot_interval
