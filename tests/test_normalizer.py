"""Tests for price, currency and URL normalization."""

from decimal import Decimal

import pytest

from pricewatch.scrapers.utils.normalizer import (
    PriceNormalizer,
    is_valid_product_url,
    normalize_url,
)


class TestCleanPriceString:
    """Tests for PriceNormalizer.clean_price_string."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("R$ 1.299,90", Decimal("1299.90")),
            ("$1,299.99", Decimal("1299.99")),
            ("1.299", Decimal("1299")),
            ("12,99", Decimal("12.99")),
            ("R$ 99", Decimal("99")),
            ("1.234.567", Decimal("1234567")),
            ("€ 15.5", Decimal("15.5")),
            ("Por apenas R$ 49,90 à vista", Decimal("49.90")),
        ],
    )
    def test_formats(self, raw, expected):
        """Brazilian and US notations parse to the same Decimal."""
        assert PriceNormalizer.clean_price_string(raw) == expected

    @pytest.mark.parametrize("raw", ["", "grátis", "R$ --"])
    def test_unparseable_returns_none(self, raw):
        assert PriceNormalizer.clean_price_string(raw) is None


class TestToDecimal:
    """Tests for PriceNormalizer.to_decimal."""

    def test_machine_formatted_string_taken_as_is(self):
        """A dot in JSON-LD prices is always the decimal point."""
        assert PriceNormalizer.to_decimal("1299.900") == Decimal("1299.900")
        assert PriceNormalizer.to_decimal("1.299") == Decimal("1.299")

    def test_numbers(self):
        assert PriceNormalizer.to_decimal(1299) == Decimal("1299")
        assert PriceNormalizer.to_decimal(19.9) == Decimal("19.9")

    def test_human_formatted_string(self):
        assert PriceNormalizer.to_decimal("R$ 2.499,00") == Decimal("2499.00")

    def test_none_and_bool(self):
        assert PriceNormalizer.to_decimal(None) is None
        assert PriceNormalizer.to_decimal(True) is None


class TestDetectCurrency:
    """Tests for PriceNormalizer.detect_currency."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("R$ 10,00", "BRL"),
            ("US$ 10.00", "USD"),
            ("$10.00", "USD"),
            ("€ 9,99", "EUR"),
            ("£5", "GBP"),
            ("10.00 EUR", "EUR"),
            ("10.00", None),
        ],
    )
    def test_detect(self, text, expected):
        assert PriceNormalizer.detect_currency(text) == expected


class TestUrlHelpers:
    """Tests for URL normalization and validation."""

    def test_normalize_url_strips_tracking_and_fragment(self):
        url = "https://shop.example.com/p/1?utm_source=mail&color=red&gclid=x#reviews"
        assert normalize_url(url) == "https://shop.example.com/p/1?color=red"

    @pytest.mark.parametrize(
        "url, valid",
        [
            ("https://www.amazon.com.br/dp/B0TEST", True),
            ("http://shop.example.com/p/1", True),
            ("ftp://shop.example.com/p/1", False),
            ("shop.example.com/p/1", False),
            ("https://", False),
            ("", False),
            (None, False),
        ],
    )
    def test_is_valid_product_url(self, url, valid):
        assert is_valid_product_url(url) is valid
