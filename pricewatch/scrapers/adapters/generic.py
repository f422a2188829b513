"""Generic extraction strategy for any product page.

Reads, in order of preference:
  - JSON-LD ``Product`` blocks (schema.org)
  - OpenGraph / ``product:price:*`` meta tags
  - ``itemprop`` microdata
  - the ``<title>`` element, so a name is always available

Site-specific strategies subclass this and contribute their own selectors
through :meth:`GenericExtractor._site_fields`; generic sources only fill in
what the site selectors left empty.
"""

import json
from typing import Any, Dict, Iterator, Optional

from bs4 import BeautifulSoup

from pricewatch.scrapers.base import ExtractionStrategy, ProductSnapshot, RawContent
from pricewatch.scrapers.factory import normalize_host
from pricewatch.scrapers.utils.normalizer import PriceNormalizer

Fields = Dict[str, Any]

_UNAVAILABLE_MARKERS = (
    "outofstock",
    "out of stock",
    "soldout",
    "sold out",
    "discontinued",
    "indisponível",
    "indisponivel",
    "esgotado",
    "agotado",
    "currently unavailable",
)
_AVAILABLE_MARKERS = (
    "instock",
    "in stock",
    "limitedavailability",
    "preorder",
    "onlineonly",
    "em estoque",
    "disponível",
    "disponivel",
)


def parse_availability(value: Optional[str]) -> Optional[bool]:
    """Interpret a schema.org URL or free-text stock message.

    Returns None when the text says nothing recognizable.
    """
    if not value:
        return None
    text = value.strip().lower()
    if text == "oos":
        return False
    # Unavailable markers first: "indisponível" contains "disponível"
    if any(marker in text for marker in _UNAVAILABLE_MARKERS):
        return False
    if any(marker in text for marker in _AVAILABLE_MARKERS):
        return True
    return None


def _iter_json_ld_nodes(data: Any) -> Iterator[dict]:
    stack = [data]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            yield node
            stack.extend(v for v in node.values() if isinstance(v, (dict, list)))
        elif isinstance(node, list):
            stack.extend(reversed(node))


def _is_product(node: dict) -> bool:
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return "Product" in node_type
    return node_type == "Product"


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _image_url(value: Any) -> Optional[str]:
    value = _first(value)
    if isinstance(value, dict):
        value = value.get("url") or value.get("contentUrl")
    return str(value) if value else None


def _meta_content(soup: BeautifulSoup, *keys: str) -> Optional[str]:
    for key in keys:
        tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
        if tag and tag.get("content"):
            return tag["content"].strip()
    return None


class GenericExtractor(ExtractionStrategy):
    """Fallback strategy built on structured data embedded in the page."""

    name = "generic"

    def extract(self, raw: RawContent) -> ProductSnapshot:
        soup = BeautifulSoup(raw.text or "", "html.parser")

        fields: Fields = {}
        for source in (self._site_fields, self._json_ld_fields, self._meta_fields, self._itemprop_fields):
            for key, value in source(soup).items():
                if value is not None and value != "" and fields.get(key) is None:
                    fields[key] = value

        if not fields.get("name"):
            fields["name"] = self._title(soup)

        snapshot = ProductSnapshot(
            url=raw.url,
            name=fields.get("name") or "",
            price=fields.get("price"),
            currency=fields.get("currency"),
            is_available=fields.get("is_available"),
            image_url=fields.get("image_url"),
            website=normalize_host(raw.final_url or raw.url) or normalize_host(raw.url),
            scraped_at=raw.fetched_at,
        )
        self.logger.debug(
            "page_extracted",
            url=raw.url,
            has_price=snapshot.price is not None,
            currency=snapshot.currency,
        )
        return snapshot

    def _site_fields(self, soup: BeautifulSoup) -> Fields:
        """Site-specific selectors; overridden by subclasses."""
        return {}

    def _json_ld_fields(self, soup: BeautifulSoup) -> Fields:
        for script in soup.find_all("script", type="application/ld+json"):
            try:
                data = json.loads(script.string or script.get_text() or "")
            except (json.JSONDecodeError, TypeError):
                continue

            for node in _iter_json_ld_nodes(data):
                if _is_product(node):
                    return self._product_node_fields(node)
        return {}

    def _product_node_fields(self, node: dict) -> Fields:
        fields: Fields = {
            "name": str(node.get("name") or "").strip() or None,
            "image_url": _image_url(node.get("image")),
        }

        offers = node.get("offers")
        if not isinstance(offers, list):
            offers = [offers]

        for offer in offers:
            if not isinstance(offer, dict):
                continue
            price = offer.get("price", offer.get("lowPrice"))
            spec = offer.get("priceSpecification")
            if price is None and isinstance(_first(spec), dict):
                price = _first(spec).get("price")
            fields["price"] = PriceNormalizer.to_decimal(price)
            fields["currency"] = offer.get("priceCurrency") or None
            fields["is_available"] = parse_availability(offer.get("availability"))
            if fields["price"] is not None:
                break
        return fields

    def _meta_fields(self, soup: BeautifulSoup) -> Fields:
        price = _meta_content(soup, "product:price:amount", "og:price:amount")
        return {
            "name": _meta_content(soup, "og:title"),
            "image_url": _meta_content(soup, "og:image"),
            "price": PriceNormalizer.to_decimal(price),
            "currency": _meta_content(soup, "product:price:currency", "og:price:currency"),
            "is_available": parse_availability(_meta_content(soup, "product:availability", "og:availability")),
        }

    def _itemprop_fields(self, soup: BeautifulSoup) -> Fields:
        fields: Fields = {}

        price_tag = soup.find(attrs={"itemprop": "price"})
        if price_tag is not None:
            content = price_tag.get("content")
            if content:
                fields["price"] = PriceNormalizer.to_decimal(content)
            else:
                text = price_tag.get_text(strip=True)
                fields["price"] = PriceNormalizer.clean_price_string(text)
                fields["currency"] = PriceNormalizer.detect_currency(text)

        currency_tag = soup.find(attrs={"itemprop": "priceCurrency"})
        if currency_tag is not None and currency_tag.get("content"):
            fields["currency"] = currency_tag["content"].strip()

        name_tag = soup.find(attrs={"itemprop": "name"})
        if name_tag is not None:
            fields["name"] = name_tag.get("content") or name_tag.get_text(strip=True)

        availability_tag = soup.find(attrs={"itemprop": "availability"})
        if availability_tag is not None:
            fields["is_available"] = parse_availability(
                availability_tag.get("href") or availability_tag.get("content") or availability_tag.get_text()
            )
        return fields

    @staticmethod
    def _title(soup: BeautifulSoup) -> str:
        if soup.title and soup.title.string:
            return " ".join(soup.title.string.split())
        return ""
