"""SQLAlchemy-backed storage.

Every operation runs in its own session so concurrent products in a cycle
never share a transaction.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from pricewatch.core.exceptions import StorageError, UpdateConflictError
from pricewatch.models import Alert, PriceHistory, Product, utcnow
from pricewatch.storage.base import Storage

logger = structlog.get_logger(__name__)


class SQLStorage(Storage):
    """Storage implementation on top of an async SQLAlchemy engine."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: Optional[AsyncEngine] = None,
    ):
        """Initialize SQL storage.

        Args:
            session_factory: Async session factory for database access
            engine: Engine to dispose on close(), if owned by this storage
        """
        self.session_factory = session_factory
        self.engine = engine
        self.logger = logger.bind(service="sql_storage")

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def list_tracked_products(self, limit: int = 0, offset: int = 0) -> List[Product]:
        stmt = select(Product).order_by(Product.created_at, Product.id)
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError("list_tracked_products", str(e)) from e

    async def get_product(self, product_id: uuid.UUID) -> Optional[Product]:
        try:
            async with self.session_factory() as db:
                return await db.get(Product, product_id)
        except SQLAlchemyError as e:
            raise StorageError("get_product", str(e)) from e

    async def get_product_by_url(self, url: str) -> Optional[Product]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(select(Product).where(Product.url == url))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError("get_product_by_url", str(e)) from e

    async def create_product(self, product: Product) -> Product:
        try:
            async with self.session_factory() as db:
                db.add(product)
                await db.commit()
                await db.refresh(product)
        except IntegrityError as e:
            raise StorageError("create_product", f"product already tracked: {product.url}") from e
        except SQLAlchemyError as e:
            raise StorageError("create_product", str(e)) from e

        self.logger.info("product_created", product_id=str(product.id), url=product.url)
        return product

    async def update_product(self, product: Product) -> Product:
        try:
            async with self.session_factory() as db:
                merged = await db.merge(product)
                await db.commit()
                return merged
        except SQLAlchemyError as e:
            raise StorageError("update_product", str(e)) from e

    async def delete_product(self, product_id: uuid.UUID) -> bool:
        try:
            async with self.session_factory() as db:
                # Explicit cascade: SQLite only honours ON DELETE with a pragma
                await db.execute(delete(PriceHistory).where(PriceHistory.product_id == product_id))
                await db.execute(delete(Alert).where(Alert.product_id == product_id))
                result = await db.execute(delete(Product).where(Product.id == product_id))
                await db.commit()
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            raise StorageError("delete_product", str(e)) from e

    # ------------------------------------------------------------------
    # Price history
    # ------------------------------------------------------------------

    async def append_price_history(
        self,
        product_id: uuid.UUID,
        price: Decimal,
        captured_at: datetime,
        currency: Optional[str] = None,
    ) -> PriceHistory:
        entry = PriceHistory(product_id=product_id, price=price, recorded_at=captured_at)
        if currency:
            entry.currency = currency
        try:
            async with self.session_factory() as db:
                db.add(entry)
                await db.commit()
                await db.refresh(entry)
                return entry
        except SQLAlchemyError as e:
            raise StorageError("append_price_history", str(e)) from e

    async def get_price_history(
        self, product_id: uuid.UUID, days: Optional[int] = None
    ) -> List[PriceHistory]:
        stmt = select(PriceHistory).where(PriceHistory.product_id == product_id)
        if days:
            since = datetime.now(timezone.utc) - timedelta(days=days)
            stmt = stmt.where(PriceHistory.recorded_at >= since)
        stmt = stmt.order_by(PriceHistory.recorded_at.asc())
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError("get_price_history", str(e)) from e

    async def get_last_price_history(self, product_id: uuid.UUID) -> Optional[PriceHistory]:
        stmt = (
            select(PriceHistory)
            .where(PriceHistory.product_id == product_id)
            .order_by(PriceHistory.recorded_at.desc())
            .limit(1)
        )
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError("get_last_price_history", str(e)) from e

    async def commit_price_update(
        self,
        product: Product,
        history_price: Optional[Decimal],
        captured_at: datetime,
        expected_updated_at: Optional[datetime] = None,
    ) -> Optional[Product]:
        stmt = update(Product).where(Product.id == product.id)
        if expected_updated_at is not None:
            # Compare-and-set: the row must still be the one the caller read
            stmt = stmt.where(Product.updated_at == expected_updated_at)
        stmt = stmt.values(
            name=product.name,
            image_url=product.image_url,
            current_price=product.current_price,
            currency=product.currency,
            is_available=product.is_available,
            website=product.website,
            updated_at=product.updated_at,
        ).execution_options(synchronize_session=False)

        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                if not result.rowcount:
                    await db.rollback()
                    exists = await db.scalar(select(Product.id).where(Product.id == product.id))
                    if exists is None:
                        return None
                    raise UpdateConflictError("commit_price_update", f"product {product.id}")

                if history_price is not None:
                    db.add(PriceHistory(
                        product_id=product.id,
                        price=history_price,
                        currency=product.currency,
                        recorded_at=captured_at,
                    ))

                await db.commit()
                return await db.get(Product, product.id)
        except SQLAlchemyError as e:
            raise StorageError("commit_price_update", str(e)) from e

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def create_alert(self, alert: Alert) -> Alert:
        try:
            async with self.session_factory() as db:
                db.add(alert)
                await db.commit()
                await db.refresh(alert)
        except SQLAlchemyError as e:
            raise StorageError("create_alert", str(e)) from e

        self.logger.info(
            "alert_created",
            alert_id=str(alert.id),
            product_id=str(alert.product_id),
            target_price=str(alert.target_price),
        )
        return alert

    async def get_alert(self, alert_id: uuid.UUID) -> Optional[Alert]:
        try:
            async with self.session_factory() as db:
                return await db.get(Alert, alert_id)
        except SQLAlchemyError as e:
            raise StorageError("get_alert", str(e)) from e

    async def get_active_alerts(self, product_id: uuid.UUID) -> List[Alert]:
        stmt = (
            select(Alert)
            .where(Alert.product_id == product_id, Alert.is_active == True)  # noqa: E712
            .order_by(Alert.created_at)
        )
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError("get_active_alerts", str(e)) from e

    async def update_alert(self, alert: Alert) -> Alert:
        alert.updated_at = utcnow()
        try:
            async with self.session_factory() as db:
                merged = await db.merge(alert)
                await db.commit()
                return merged
        except SQLAlchemyError as e:
            raise StorageError("update_alert", str(e)) from e

    async def mark_alert_notified(self, alert_id: uuid.UUID, notified_at: datetime) -> Optional[Alert]:
        # Column-level update so edits made to the alert meanwhile are kept
        stmt = (
            update(Alert)
            .where(Alert.id == alert_id)
            .values(notified_at=notified_at, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                await db.commit()
                if not result.rowcount:
                    return None
                return await db.get(Alert, alert_id)
        except SQLAlchemyError as e:
            raise StorageError("mark_alert_notified", str(e)) from e

    async def delete_alert(self, alert_id: uuid.UUID) -> bool:
        try:
            async with self.session_factory() as db:
                result = await db.execute(delete(Alert).where(Alert.id == alert_id))
                await db.commit()
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            raise StorageError("delete_alert", str(e)) from e

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.logger.info("sql_storage_closed")
