"""Scraper utilities for rate limiting, retries and data normalization."""

from .rate_limiter import DomainRateLimiter, TokenBucket
from .user_agents import get_random_user_agent, USER_AGENTS
from .normalizer import (
    PriceNormalizer,
    normalize_url,
    is_valid_product_url,
    CURRENCY_SYMBOLS,
)
from .retry import call_with_retry, fetch_retrying, is_retryable


__all__ = [
    # Rate limiting
    "DomainRateLimiter",
    "TokenBucket",
    # User agents
    "get_random_user_agent",
    "USER_AGENTS",
    # Normalization
    "PriceNormalizer",
    "normalize_url",
    "is_valid_product_url",
    "CURRENCY_SYMBOLS",
    # Retry
    "call_with_retry",
    "fetch_retrying",
    "is_retryable",
]
