"""Price, currency and URL normalization utilities."""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import structlog

logger = structlog.get_logger()


# Checked in order: multi-character symbols before the bare dollar sign
CURRENCY_SYMBOLS = [
    ("R$", "BRL"),
    ("US$", "USD"),
    ("€", "EUR"),
    ("£", "GBP"),
    ("¥", "JPY"),
    ("$", "USD"),
]

ISO_CURRENCIES = {"BRL", "USD", "EUR", "GBP", "JPY", "ARS", "MXN", "CLP", "COP", "CAD", "AUD"}

_MACHINE_NUMBER = re.compile(r"^\d+(\.\d+)?$")
_PRICE_TOKEN = re.compile(r"\d[\d.,]*")


class PriceNormalizer:
    """Price parsing utilities.

    Handles the Brazilian ("R$ 1.299,90") and US ("$1,299.99") notations
    used by the supported stores.
    """

    @staticmethod
    def clean_price_string(raw: str) -> Optional[Decimal]:
        """Parse a human-formatted price string.

        Handles various formats:
        - "R$ 1.299,90" -> 1299.90
        - "$1,299.99" -> 1299.99
        - "1.299" -> 1299 (a single separator followed by three digits groups thousands)
        - "12,99" -> 12.99

        Args:
            raw: Raw price string

        Returns:
            Decimal price value, or None if parsing fails
        """
        if not raw:
            return None

        match = _PRICE_TOKEN.search(raw)
        if not match:
            return None
        cleaned = match.group(0).rstrip(".,")

        has_dot = "." in cleaned
        has_comma = "," in cleaned

        if has_dot and has_comma:
            # Whichever separator comes last is the decimal point
            if cleaned.rfind(",") > cleaned.rfind("."):
                cleaned = cleaned.replace(".", "").replace(",", ".")
            else:
                cleaned = cleaned.replace(",", "")
        elif has_dot or has_comma:
            sep = "." if has_dot else ","
            head, _, tail = cleaned.rpartition(sep)
            if cleaned.count(sep) > 1 or len(tail) == 3:
                cleaned = cleaned.replace(sep, "")
            else:
                cleaned = f"{head.replace(sep, '')}.{tail}"

        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None

    @classmethod
    def to_decimal(cls, value: Any) -> Optional[Decimal]:
        """Convert a structured-data price (JSON-LD, meta content) to Decimal.

        Numbers and plain machine-formatted strings ("1299.90") are taken as-is;
        anything else goes through :meth:`clean_price_string`.
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            try:
                return Decimal(str(value))
            except InvalidOperation:
                return None

        text = str(value).strip()
        if _MACHINE_NUMBER.match(text):
            return Decimal(text)
        return cls.clean_price_string(text)

    @staticmethod
    def detect_currency(text: str) -> Optional[str]:
        """Detect the currency of a price string from its symbol or ISO code.

        Args:
            text: Text containing a price

        Returns:
            ISO 4217 code, or None if no currency marker is present
        """
        if not text:
            return None

        for symbol, code in CURRENCY_SYMBOLS:
            if symbol in text:
                return code

        for token in re.findall(r"\b[A-Z]{3}\b", text):
            if token in ISO_CURRENCIES:
                return token
        return None


def normalize_url(url: str) -> str:
    """Normalize a URL by removing tracking parameters and the fragment.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL
    """
    if not url:
        return url

    tracking_params = {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_content",
        "utm_term",
        "ref",
        "fbclid",
        "gclid",
        "mc_cid",
        "mc_eid",
    }

    parsed = urlparse(url.strip())
    query_params = parse_qs(parsed.query, keep_blank_values=True)
    filtered_params = {k: v for k, v in query_params.items() if k not in tracking_params}
    new_query = urlencode(filtered_params, doseq=True)

    return urlunparse(
        (parsed.scheme, parsed.netloc, parsed.path, parsed.params, new_query, "")
    )


def is_valid_product_url(url: Optional[str]) -> bool:
    """True if ``url`` is an absolute http(s) URL with a host."""
    if not url or not url.strip():
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)
