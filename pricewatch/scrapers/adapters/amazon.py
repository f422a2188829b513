"""Amazon product page extractor.

Works on every Amazon storefront (amazon.com, amazon.com.br, ...).

Structure:
  - span#productTitle (product name)
  - input[name*=customerVisiblePrice][amount|currencyCode] (buy-box price, when present)
  - #corePrice_feature_div / #apex_desktop span.a-price > span.a-offscreen (displayed price)
  - div#availability (stock message)
  - img#landingImage (main image, data-old-hires for the large version)
"""

import re

from bs4 import BeautifulSoup

from pricewatch.scrapers.adapters.generic import Fields, GenericExtractor, parse_availability
from pricewatch.scrapers.utils.normalizer import PriceNormalizer

_PRICE_SELECTORS = [
    "#corePrice_feature_div span.a-price span.a-offscreen",
    "#corePriceDisplay_desktop_feature_div span.a-price span.a-offscreen",
    "#apex_desktop span.a-price span.a-offscreen",
    "#priceblock_dealprice",
    "#priceblock_ourprice",
    "#price_inside_buybox",
    "span.a-price span.a-offscreen",
]

_VISIBLE_PRICE_AMOUNT = re.compile(r"customerVisiblePrice.*\[amount\]")
_VISIBLE_PRICE_CURRENCY = re.compile(r"customerVisiblePrice.*\[currencyCode\]")


class AmazonExtractor(GenericExtractor):
    """Amazon product page extractor."""

    name = "amazon"

    def _site_fields(self, soup: BeautifulSoup) -> Fields:
        fields: Fields = {}

        title = soup.select_one("#productTitle")
        if title:
            fields["name"] = " ".join(title.get_text().split())

        # Hidden add-to-cart inputs carry a machine-formatted price
        amount = soup.find("input", attrs={"name": _VISIBLE_PRICE_AMOUNT})
        if amount and amount.get("value"):
            fields["price"] = PriceNormalizer.to_decimal(amount["value"])
            currency = soup.find("input", attrs={"name": _VISIBLE_PRICE_CURRENCY})
            if currency and currency.get("value"):
                fields["currency"] = currency["value"].strip().upper()

        if fields.get("price") is None:
            for selector in _PRICE_SELECTORS:
                elem = soup.select_one(selector)
                if not elem:
                    continue
                text = elem.get_text(strip=True)
                price = PriceNormalizer.clean_price_string(text)
                if price is not None:
                    fields["price"] = price
                    fields["currency"] = PriceNormalizer.detect_currency(text)
                    break

        availability = soup.select_one("#availability")
        if availability:
            fields["is_available"] = parse_availability(availability.get_text(" ", strip=True))
        if fields.get("is_available") is None and soup.select_one("#add-to-cart-button"):
            fields["is_available"] = True

        image = soup.select_one("#landingImage") or soup.select_one("#imgBlkFront")
        if image:
            fields["image_url"] = image.get("data-old-hires") or image.get("src")

        return fields
