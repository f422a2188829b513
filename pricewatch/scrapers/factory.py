"""Registry mapping product hosts to extraction strategies."""

from typing import Dict, List, Optional, Sequence, Tuple, Type
from urllib.parse import urlparse

import structlog

from pricewatch.scrapers.base import ExtractionStrategy


logger = structlog.get_logger(__name__)


def normalize_host(hostname: Optional[str]) -> str:
    """Lower-case a host name and strip its port and leading ``www.``."""
    if not hostname:
        return ""
    host = hostname.strip().lower()
    if "://" in host:
        host = urlparse(host).hostname or ""
    host = host.split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return host


class ExtractorRegistry:
    """Dispatch table from host substrings to extraction strategies.

    Strategies are checked in registration order; the first whose pattern
    occurs in the normalized host wins. Hosts nobody claims get the
    fallback strategy, so resolution never fails once a fallback is set.
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._entries: List[Tuple[Tuple[str, ...], ExtractionStrategy]] = []
        self._fallback: Optional[ExtractionStrategy] = None

    def register(self, patterns: Sequence[str], strategy_class: Type[ExtractionStrategy]) -> None:
        """Register a strategy for hosts containing any of ``patterns``.

        Args:
            patterns: Host substrings (e.g., ["mercadolivre", "mercadolibre"])
            strategy_class: Strategy class (must inherit from ExtractionStrategy)
        """
        if not issubclass(strategy_class, ExtractionStrategy):
            raise ValueError(f"Strategy class must inherit from ExtractionStrategy: {strategy_class}")
        normalized = tuple(p.strip().lower() for p in patterns if p and p.strip())
        if not normalized:
            raise ValueError("At least one host pattern is required")

        self._entries.append((normalized, strategy_class()))
        logger.info("extractor_registered", strategy=strategy_class.name, patterns=list(normalized))

    def set_fallback(self, strategy_class: Type[ExtractionStrategy]) -> None:
        """Set the strategy used when no pattern matches."""
        if not issubclass(strategy_class, ExtractionStrategy):
            raise ValueError(f"Strategy class must inherit from ExtractionStrategy: {strategy_class}")
        self._fallback = strategy_class()
        logger.info("fallback_extractor_registered", strategy=strategy_class.name)

    def resolve(self, hostname: str) -> ExtractionStrategy:
        """Select the strategy for a host.

        Args:
            hostname: Host name, with or without port and ``www.``

        Returns:
            First matching site-specific strategy, else the fallback
        """
        host = normalize_host(hostname)
        for patterns, strategy in self._entries:
            if any(pattern in host for pattern in patterns):
                return strategy

        if self._fallback is None:
            raise LookupError("No fallback extraction strategy registered")
        return self._fallback

    def resolve_url(self, url: str) -> ExtractionStrategy:
        """Select the strategy for the host of ``url``."""
        return self.resolve(urlparse(url).hostname or "")

    def get_registered_strategies(self) -> List[str]:
        """Get names of the registered strategies, fallback last.

        Returns:
            List of strategy names
        """
        names = [strategy.name for _, strategy in self._entries]
        if self._fallback is not None:
            names.append(self._fallback.name)
        return names

    def has_strategy(self, name: str) -> bool:
        return name in self.get_registered_strategies()


# Global registry instance
extractor_registry = ExtractorRegistry()


def get_extractor_registry() -> ExtractorRegistry:
    """Get the global extractor registry, registering built-ins on first use.

    Returns:
        ExtractorRegistry instance
    """
    if not extractor_registry.get_registered_strategies():
        from pricewatch.scrapers.register_adapters import register_all_extractors

        register_all_extractors(extractor_registry)
    return extractor_registry
