"""In-process storage backed by dictionaries.

Used for tests and throwaway runs (``DATABASE_URL=memory://``). Every read
returns a copy, so callers cannot change stored state without going through
an update call.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, TypeVar

import structlog
from sqlalchemy import inspect as sa_inspect

from pricewatch.core.exceptions import StorageError, UpdateConflictError
from pricewatch.models import Alert, PriceHistory, Product, utcnow
from pricewatch.storage.base import Storage

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", Product, PriceHistory, Alert)


def _clone(obj: ModelT) -> ModelT:
    """Detached copy of a model instance holding only its column values."""
    mapper = sa_inspect(type(obj))
    return type(obj)(**{attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs})


class InMemoryStorage(Storage):
    """Dictionary-backed Storage implementation."""

    def __init__(self, default_currency: str = "BRL"):
        self.default_currency = default_currency
        self._products: Dict[uuid.UUID, Product] = {}
        self._history: Dict[uuid.UUID, List[PriceHistory]] = {}
        self._alerts: Dict[uuid.UUID, Alert] = {}
        self.logger = logger.bind(service="memory_storage")

    # Products

    async def list_tracked_products(self, limit: int = 0, offset: int = 0) -> List[Product]:
        products = sorted(self._products.values(), key=lambda p: (p.created_at, str(p.id)))
        products = products[offset:]
        if limit:
            products = products[:limit]
        return [_clone(p) for p in products]

    async def get_product(self, product_id: uuid.UUID) -> Optional[Product]:
        product = self._products.get(product_id)
        return _clone(product) if product else None

    async def get_product_by_url(self, url: str) -> Optional[Product]:
        for product in self._products.values():
            if product.url == url:
                return _clone(product)
        return None

    async def create_product(self, product: Product) -> Product:
        if any(p.url == product.url for p in self._products.values()):
            raise StorageError("create_product", f"product already tracked: {product.url}")

        now = utcnow()
        product.id = product.id or uuid.uuid4()
        product.name = product.name or ""
        product.image_url = product.image_url or ""
        product.website = product.website or ""
        product.currency = product.currency or self.default_currency
        if product.current_price is None:
            product.current_price = Decimal("0")
        if product.is_available is None:
            product.is_available = True
        product.created_at = product.created_at or now
        product.updated_at = product.updated_at or product.created_at

        self._products[product.id] = _clone(product)
        self._history.setdefault(product.id, [])
        self.logger.info("product_created", product_id=str(product.id), url=product.url)
        return _clone(product)

    async def update_product(self, product: Product) -> Product:
        if product.id not in self._products:
            raise StorageError("update_product", f"product {product.id} does not exist")
        self._products[product.id] = _clone(product)
        return _clone(product)

    async def delete_product(self, product_id: uuid.UUID) -> bool:
        if self._products.pop(product_id, None) is None:
            return False
        self._history.pop(product_id, None)
        for alert_id in [a.id for a in self._alerts.values() if a.product_id == product_id]:
            del self._alerts[alert_id]
        return True

    # Price history

    async def append_price_history(
        self,
        product_id: uuid.UUID,
        price: Decimal,
        captured_at: datetime,
        currency: Optional[str] = None,
    ) -> PriceHistory:
        product = self._products.get(product_id)
        if product is None:
            raise StorageError("append_price_history", f"product {product_id} does not exist")

        entry = PriceHistory(
            id=uuid.uuid4(),
            product_id=product_id,
            price=price,
            currency=currency or product.currency,
            recorded_at=captured_at,
        )
        self._history.setdefault(product_id, []).append(entry)
        return _clone(entry)

    async def get_price_history(
        self, product_id: uuid.UUID, days: Optional[int] = None
    ) -> List[PriceHistory]:
        entries = sorted(self._history.get(product_id, []), key=lambda h: h.recorded_at)
        if days:
            since = datetime.now(timezone.utc) - timedelta(days=days)
            entries = [h for h in entries if h.recorded_at >= since]
        return [_clone(h) for h in entries]

    async def get_last_price_history(self, product_id: uuid.UUID) -> Optional[PriceHistory]:
        entries = self._history.get(product_id)
        if not entries:
            return None
        return _clone(max(entries, key=lambda h: h.recorded_at))

    async def commit_price_update(
        self,
        product: Product,
        history_price: Optional[Decimal],
        captured_at: datetime,
        expected_updated_at: Optional[datetime] = None,
    ) -> Optional[Product]:
        stored = self._products.get(product.id)
        if stored is None:
            return None
        if expected_updated_at is not None and stored.updated_at != expected_updated_at:
            raise UpdateConflictError("commit_price_update", f"product {product.id}")

        self._products[product.id] = _clone(product)
        if history_price is not None:
            self._history.setdefault(product.id, []).append(PriceHistory(
                id=uuid.uuid4(),
                product_id=product.id,
                price=history_price,
                currency=product.currency,
                recorded_at=captured_at,
            ))
        return _clone(product)

    # Alerts

    async def create_alert(self, alert: Alert) -> Alert:
        if alert.product_id not in self._products:
            raise StorageError("create_alert", f"product {alert.product_id} does not exist")

        now = utcnow()
        alert.id = alert.id or uuid.uuid4()
        if alert.is_active is None:
            alert.is_active = True
        alert.notification_type = alert.notification_type or "email"
        alert.created_at = alert.created_at or now
        alert.updated_at = alert.updated_at or alert.created_at

        self._alerts[alert.id] = _clone(alert)
        return _clone(alert)

    async def get_alert(self, alert_id: uuid.UUID) -> Optional[Alert]:
        alert = self._alerts.get(alert_id)
        return _clone(alert) if alert else None

    async def get_active_alerts(self, product_id: uuid.UUID) -> List[Alert]:
        alerts = [a for a in self._alerts.values() if a.product_id == product_id and a.is_active]
        return [_clone(a) for a in sorted(alerts, key=lambda a: a.created_at)]

    async def update_alert(self, alert: Alert) -> Alert:
        if alert.id not in self._alerts:
            raise StorageError("update_alert", f"alert {alert.id} does not exist")
        alert.updated_at = utcnow()
        self._alerts[alert.id] = _clone(alert)
        return _clone(alert)

    async def mark_alert_notified(self, alert_id: uuid.UUID, notified_at: datetime) -> Optional[Alert]:
        stored = self._alerts.get(alert_id)
        if stored is None:
            return None
        stored.notified_at = notified_at
        stored.updated_at = utcnow()
        return _clone(stored)

    async def delete_alert(self, alert_id: uuid.UUID) -> bool:
        return self._alerts.pop(alert_id, None) is not None
