"""Register the built-in extraction strategies with the registry.

Imported lazily by :func:`pricewatch.scrapers.factory.get_extractor_registry`
the first time the global registry is used.
"""

from typing import Optional

import structlog

from pricewatch.scrapers.factory import ExtractorRegistry, extractor_registry
from pricewatch.scrapers.adapters import (
    AmazonExtractor,
    GenericExtractor,
    MercadoLivreExtractor,
)

logger = structlog.get_logger(__name__)


def register_all_extractors(registry: Optional[ExtractorRegistry] = None) -> ExtractorRegistry:
    """Register all available strategies, in matching order.

    Args:
        registry: Registry to fill, defaults to the global one

    Returns:
        The filled registry
    """
    registry = registry if registry is not None else extractor_registry

    extractors = [
        (["amazon"], AmazonExtractor),
        (["mercadolivre", "mercadolibre"], MercadoLivreExtractor),
    ]

    for patterns, strategy_class in extractors:
        registry.register(patterns, strategy_class)
    registry.set_fallback(GenericExtractor)

    logger.info(
        "all_extractors_registered",
        count=len(registry.get_registered_strategies()),
        strategies=registry.get_registered_strategies(),
    )
    return registry
