"""Mercado Livre / Mercado Libre product page extractor.

Structure:
  - h1.ui-pdp-title (product name)
  - meta[itemprop=price] / meta[itemprop=priceCurrency] (machine-formatted price)
  - div.ui-pdp-price__second-line span.andes-money-amount__fraction + __cents (displayed price)
  - span.andes-money-amount__currency-symbol ("R$", "$")
  - figure.ui-pdp-gallery__figure img (main image, data-zoom for the large version)
"""

from decimal import Decimal

from bs4 import BeautifulSoup

from pricewatch.scrapers.adapters.generic import Fields, GenericExtractor
from pricewatch.scrapers.utils.normalizer import PriceNormalizer

_PAUSED_MARKERS = ("anúncio pausado", "publicación pausada", "produto indisponível", "sem estoque")


class MercadoLivreExtractor(GenericExtractor):
    """Mercado Livre product page extractor."""

    name = "mercadolivre"

    def _site_fields(self, soup: BeautifulSoup) -> Fields:
        fields: Fields = {}

        title = soup.select_one("h1.ui-pdp-title")
        if title:
            fields["name"] = title.get_text(strip=True)

        price_meta = soup.select_one("meta[itemprop='price']")
        if price_meta and price_meta.get("content"):
            fields["price"] = PriceNormalizer.to_decimal(price_meta["content"])
        else:
            fields["price"] = self._displayed_price(soup)

        currency_meta = soup.select_one("meta[itemprop='priceCurrency']")
        if currency_meta and currency_meta.get("content"):
            fields["currency"] = currency_meta["content"].strip().upper()
        else:
            symbol = soup.select_one(".ui-pdp-price__second-line .andes-money-amount__currency-symbol")
            if symbol:
                fields["currency"] = PriceNormalizer.detect_currency(symbol.get_text(strip=True))

        page_text = soup.get_text(" ", strip=True).lower()
        if any(marker in page_text for marker in _PAUSED_MARKERS):
            fields["is_available"] = False
        elif soup.select_one(".ui-pdp-actions button, form.ui-pdp-buybox button"):
            fields["is_available"] = True

        image = soup.select_one("figure.ui-pdp-gallery__figure img") or soup.select_one("img.ui-pdp-image")
        if image:
            fields["image_url"] = image.get("data-zoom") or image.get("src")

        return fields

    @staticmethod
    def _displayed_price(soup: BeautifulSoup):
        container = soup.select_one(".ui-pdp-price__second-line") or soup
        fraction = container.select_one(".andes-money-amount__fraction")
        if not fraction:
            return None

        # Fraction uses dots for thousands ("1.299"), cents are separate
        price = PriceNormalizer.clean_price_string(fraction.get_text(strip=True))
        if price is None:
            return None
        cents = container.select_one(".andes-money-amount__cents")
        if cents and cents.get_text(strip=True).isdigit():
            price += Decimal(cents.get_text(strip=True)) / 100
        return price
