"""Scraping pipeline: fetch product pages and extract price snapshots.

This package provides:
- ExtractionStrategy base class and the per-site strategies
- ExtractorRegistry selecting a strategy by host
- PageFetcher / ScraperAPIFetcher for rate-limited page fetches
- ScrapeOrchestrator for bounded-concurrency bulk scrapes
- MonitoringScheduler driving the periodic monitoring cycle
"""

from .base import (
    ExtractionStrategy,
    ProductSnapshot,
    RawContent,
    ScrapeResult,
)
from .factory import ExtractorRegistry, extractor_registry, get_extractor_registry, normalize_host

__all__ = [
    # Base classes
    "ExtractionStrategy",
    # Data structures
    "ProductSnapshot",
    "RawContent",
    "ScrapeResult",
    # Registry
    "ExtractorRegistry",
    "extractor_registry",
    "get_extractor_registry",
    "normalize_host",
]
