"""Base extraction strategy interface and scrape data structures.

All site-specific extractors inherit from ExtractionStrategy and turn the
raw content of one product page into a ProductSnapshot.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import structlog


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RawContent:
    """Body of a successfully fetched product page."""

    url: str  # URL that was requested
    text: str
    status_code: int = 200
    final_url: Optional[str] = None  # After redirects
    fetched_at: datetime = field(default_factory=_utcnow)


@dataclass
class ProductSnapshot:
    """Structured result of one successful page extraction.

    Fields the page did not expose stay None; the orchestrator fills in
    configured defaults for currency and availability.
    """

    url: str
    name: str = ""
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    is_available: Optional[bool] = None
    image_url: Optional[str] = None
    website: str = ""
    scraped_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        """Validate data after initialization."""
        if self.price is not None and self.price < 0:
            raise ValueError("price must be a non-negative Decimal")


@dataclass
class ScrapeResult:
    """Outcome of scraping one URL: a snapshot or the error that prevented it."""

    url: str
    snapshot: Optional[ProductSnapshot] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.snapshot is not None and self.error is None


class ExtractionStrategy(ABC):
    """Abstract base class for per-site page extractors.

    Strategies are pure: they never perform I/O and can be shared between
    concurrent scrapes.
    """

    name: str = ""  # Must be overridden in subclass (e.g., "amazon")

    def __init__(self):
        """Initialize the strategy."""
        self.logger = structlog.get_logger(extractor=self.name)

    @abstractmethod
    def extract(self, raw: RawContent) -> ProductSnapshot:
        """Parse a fetched page into a product snapshot.

        Args:
            raw: Fetched page content

        Returns:
            ProductSnapshot with whatever fields the page exposes

        Raises:
            ExtractionError: If the page structure is unusable
        """
