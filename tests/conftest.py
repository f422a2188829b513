"""Pytest configuration and shared fixtures."""

import asyncio
import json
from decimal import Decimal
from typing import Dict, List, Optional, Union

import pytest
import pytest_asyncio

from pricewatch.config import Settings
from pricewatch.core.exceptions import DispatchError, FetchError
from pricewatch.db.session import create_engine, create_session_factory, create_tables
from pricewatch.models import Alert, Product
from pricewatch.scrapers.base import RawContent
from pricewatch.scrapers.factory import ExtractorRegistry
from pricewatch.scrapers.register_adapters import register_all_extractors
from pricewatch.storage import InMemoryStorage, SQLStorage


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


# ============================================================================
# HELPERS
# ============================================================================

def product_page(
    name: str,
    price: Union[str, Decimal, None],
    currency: str = "BRL",
    availability: str = "https://schema.org/InStock",
) -> str:
    """Minimal product page carrying a schema.org JSON-LD block."""
    offer = {"@type": "Offer", "priceCurrency": currency, "availability": availability}
    if price is not None:
        offer["price"] = str(price)
    data = {"@context": "https://schema.org", "@type": "Product", "name": name, "offers": offer}
    return (
        "<html><head><title>Shop</title>"
        f'<script type="application/ld+json">{json.dumps(data)}</script>'
        "</head><body></body></html>"
    )


class FakeFetcher:
    """Fetcher stand-in serving canned pages and recording concurrency."""

    def __init__(self, pages: Optional[Dict[str, Union[str, Exception]]] = None, delay: float = 0.0):
        self.pages: Dict[str, Union[str, Exception]] = dict(pages or {})
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url: str, timeout=None, user_agent=None) -> RawContent:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            page = self.pages.get(url)
            if page is None:
                raise FetchError.http_status(url, 404)
            if isinstance(page, Exception):
                raise page
            return RawContent(url=url, text=page)
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        pass


class RecordingChannel:
    """Notification channel stand-in that records or fails every send."""

    def __init__(self, name: str, fail: bool = False, enabled: bool = True):
        self.name = name
        self.fail = fail
        self.enabled = enabled
        self.sent: List[tuple] = []

    async def send(self, recipient, subject, body) -> None:
        if self.fail:
            raise DispatchError(self.name, "simulated outage")
        self.sent.append((recipient, subject, body))

    async def close(self) -> None:
        pass


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment of the test run."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL="memory://",
        SCRAPER_REQUEST_DELAY=0.0,
        SCRAPER_USER_AGENT="pricewatch-tests/1.0",
        SCRAPER_WORKERS=5,
        DEFAULT_CURRENCY="BRL",
        MONITOR_RUN_ON_START=False,
    )


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage(default_currency="BRL")


@pytest_asyncio.fixture
async def sql_storage():
    """SQLStorage on an in-memory SQLite database."""
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    storage = SQLStorage(create_session_factory(engine), engine=engine)
    yield storage
    await storage.close()


@pytest.fixture
def registry() -> ExtractorRegistry:
    """Fresh registry with the built-in extractors."""
    reg = ExtractorRegistry()
    register_all_extractors(reg)
    return reg


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def make_page():
    return product_page


@pytest_asyncio.fixture
async def tracked_product(memory_storage: InMemoryStorage) -> Product:
    """Product at 120.00 BRL with no alerts."""
    return await memory_storage.create_product(Product(
        url="https://shop.example.com/p/1",
        name="Headphones",
        current_price=Decimal("120.00"),
        currency="BRL",
    ))


@pytest.fixture
def make_alert(memory_storage: InMemoryStorage):
    """Create an alert on a product in the memory storage."""

    async def _make(product: Product, target: str, channels: str = "email", recipient: str = None) -> Alert:
        return await memory_storage.create_alert(Alert(
            product_id=product.id,
            target_price=Decimal(target),
            notification_type=channels,
            recipient=recipient,
        ))

    return _make
