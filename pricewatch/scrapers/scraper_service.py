"""Scrape orchestration: fetch + extract with bounded concurrency.

Composes the fetcher and the extractor registry into ``scrape(url)`` and
runs many of those concurrently through a fixed-size worker pool. Every
URL is independent; one failure never aborts the others.
"""

import asyncio
from typing import AsyncIterator, Dict, Iterable, Optional
from urllib.parse import urlparse

import structlog

from pricewatch.config import Settings
from pricewatch.core.exceptions import ExtractionError, FetchError
from pricewatch.scrapers.base import ProductSnapshot, ScrapeResult
from pricewatch.scrapers.factory import ExtractorRegistry, get_extractor_registry
from pricewatch.scrapers.fetcher import PageFetcher
from pricewatch.scrapers.utils.retry import call_with_retry

logger = structlog.get_logger(__name__)


class ScrapeOrchestrator:
    """Service turning product URLs into product snapshots.

    The worker pool bounds how many fetch/extract tasks are in flight at
    once; politeness per host is enforced by the fetcher's rate limiter.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        registry: Optional[ExtractorRegistry] = None,
        default_currency: str = "BRL",
        workers: int = 5,
        max_retries: int = 0,
    ):
        """Initialize the orchestrator.

        Args:
            fetcher: Page fetcher
            registry: Extractor registry, defaults to the global one
            default_currency: Currency used when the page does not state one
            workers: Maximum concurrent scrapes in bulk operations
            max_retries: Extra attempts for transient fetch errors
        """
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.fetcher = fetcher
        self.registry = registry or get_extractor_registry()
        self.default_currency = default_currency
        self.workers = workers
        self.max_retries = max_retries
        self.logger = logger.bind(service="scrape_orchestrator")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        fetcher: PageFetcher,
        registry: Optional[ExtractorRegistry] = None,
    ) -> "ScrapeOrchestrator":
        return cls(
            fetcher,
            registry=registry,
            default_currency=settings.DEFAULT_CURRENCY,
            workers=settings.SCRAPER_WORKERS,
            max_retries=settings.SCRAPER_MAX_RETRIES,
        )

    async def scrape(self, url: str) -> ProductSnapshot:
        """Scrape one product page.

        Args:
            url: Product page URL

        Returns:
            ProductSnapshot with currency and availability defaulted

        Raises:
            FetchError: If the page could not be downloaded
            ExtractionError: If the page has no usable product data
        """
        host = urlparse(url).hostname
        if not host:
            raise ExtractionError(url, "URL has no host")

        strategy = self.registry.resolve(host)
        raw = await call_with_retry(lambda: self.fetcher.fetch(url), self.max_retries)

        try:
            snapshot = strategy.extract(raw)
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(url, f"{strategy.name} extractor failed: {e}") from e

        if snapshot.price is None:
            raise ExtractionError(url, f"no price found by {strategy.name} extractor")

        if not snapshot.currency:
            snapshot.currency = self.default_currency
        if snapshot.is_available is None:
            snapshot.is_available = True

        self.logger.debug(
            "product_scraped",
            url=url,
            extractor=strategy.name,
            price=str(snapshot.price),
            currency=snapshot.currency,
        )
        return snapshot

    async def scrape_all(self, urls: Iterable[str]) -> Dict[str, ScrapeResult]:
        """Scrape many URLs with bounded concurrency.

        Returns:
            Mapping of URL to its ScrapeResult
        """
        results: Dict[str, ScrapeResult] = {}
        async for result in self.iter_scrape(urls):
            results[result.url] = result
        return results

    async def iter_scrape(self, urls: Iterable[str]) -> AsyncIterator[ScrapeResult]:
        """Scrape many URLs, yielding each result as soon as it completes.

        Tasks still pending when the consumer stops iterating (or is
        cancelled) are cancelled. Close the generator explicitly, e.g. with
        ``contextlib.aclosing``, to make that happen promptly.
        """
        semaphore = asyncio.Semaphore(self.workers)
        tasks = [
            asyncio.create_task(self._scrape_one(url, semaphore))
            for url in dict.fromkeys(urls)
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                self.logger.info("scrapes_cancelled", count=len(pending))

    async def _scrape_one(self, url: str, semaphore: asyncio.Semaphore) -> ScrapeResult:
        async with semaphore:
            try:
                snapshot = await self.scrape(url)
            except (FetchError, ExtractionError) as e:
                self.logger.warning("scrape_failed", url=url, error=str(e))
                return ScrapeResult(url=url, error=e)
            except Exception as e:
                self.logger.error("scrape_crashed", url=url, error=str(e), exc_info=True)
                return ScrapeResult(url=url, error=e)
        return ScrapeResult(url=url, snapshot=snapshot)
