"""Tests for the extraction strategies and their registry."""

import json
from decimal import Decimal

import pytest

from pricewatch.scrapers.adapters import AmazonExtractor, GenericExtractor, MercadoLivreExtractor
from pricewatch.scrapers.adapters.generic import parse_availability
from pricewatch.scrapers.base import RawContent
from pricewatch.scrapers.factory import ExtractorRegistry, normalize_host


# ============================================================================
# FIXTURES
# ============================================================================

AMAZON_PAGE = """
<html><head><title>Amazon.com.br: Fone Bluetooth</title></head>
<body>
  <span id="productTitle">   Fone de Ouvido Bluetooth XYZ   </span>
  <div id="corePrice_feature_div">
    <span class="a-price"><span class="a-offscreen">R$ 1.299,90</span></span>
  </div>
  <div id="availability"><span>Em estoque</span></div>
  <img id="landingImage" src="https://m.media-amazon.com/small.jpg"
       data-old-hires="https://m.media-amazon.com/large.jpg">
</body></html>
"""

AMAZON_HIDDEN_PRICE_PAGE = """
<html><body>
  <span id="productTitle">Kindle</span>
  <input type="hidden" name="items[0.base][customerVisiblePrice][amount]" value="499.00">
  <input type="hidden" name="items[0.base][customerVisiblePrice][currencyCode]" value="brl">
  <div id="corePrice_feature_div">
    <span class="a-price"><span class="a-offscreen">R$ 999,00</span></span>
  </div>
  <div id="availability"><span>Não disponível. Indisponível no momento.</span></div>
</body></html>
"""

MERCADOLIVRE_PAGE = """
<html><body>
  <h1 class="ui-pdp-title">Smartphone Modelo X 128GB</h1>
  <div class="ui-pdp-price__second-line">
    <span class="andes-money-amount__currency-symbol">R$</span>
    <span class="andes-money-amount__fraction">1.899</span>
    <span class="andes-money-amount__cents">90</span>
  </div>
  <form class="ui-pdp-buybox"><button>Comprar agora</button></form>
  <figure class="ui-pdp-gallery__figure">
    <img src="https://http2.mlstatic.com/small.webp" data-zoom="https://http2.mlstatic.com/zoom.webp">
  </figure>
</body></html>
"""


def raw(url: str, text: str) -> RawContent:
    return RawContent(url=url, text=text)


# ============================================================================
# TESTS: GENERIC EXTRACTOR
# ============================================================================

class TestGenericExtractor:
    """Tests for GenericExtractor."""

    def test_json_ld_product(self, make_page):
        """JSON-LD Product blocks provide every field."""
        page = make_page("Cafeteira Expresso", "349.90", availability="https://schema.org/OutOfStock")
        snapshot = GenericExtractor().extract(raw("https://www.loja.example.com/p/1", page))

        assert snapshot.name == "Cafeteira Expresso"
        assert snapshot.price == Decimal("349.90")
        assert snapshot.currency == "BRL"
        assert snapshot.is_available is False
        assert snapshot.website == "loja.example.com"

    def test_json_ld_graph_with_offer_list(self):
        data = {
            "@context": "https://schema.org",
            "@graph": [
                {"@type": "BreadcrumbList"},
                {
                    "@type": ["Product", "Thing"],
                    "name": "Monitor 27",
                    "image": [{"url": "https://cdn.example.com/m.jpg"}],
                    "offers": [
                        {"@type": "Offer", "priceCurrency": "USD"},
                        {"@type": "Offer", "price": 199.99, "priceCurrency": "USD"},
                    ],
                },
            ],
        }
        page = f'<script type="application/ld+json">{json.dumps(data)}</script>'
        snapshot = GenericExtractor().extract(raw("https://example.com/m", page))

        assert snapshot.name == "Monitor 27"
        assert snapshot.price == Decimal("199.99")
        assert snapshot.currency == "USD"
        assert snapshot.image_url == "https://cdn.example.com/m.jpg"

    def test_invalid_json_ld_is_skipped(self):
        page = """
        <script type="application/ld+json">{not json</script>
        <meta property="product:price:amount" content="59.90">
        <meta property="product:price:currency" content="BRL">
        <meta property="og:title" content="Mouse sem fio">
        """
        snapshot = GenericExtractor().extract(raw("https://example.com/mouse", page))

        assert snapshot.price == Decimal("59.90")
        assert snapshot.currency == "BRL"
        assert snapshot.name == "Mouse sem fio"

    def test_itemprop_microdata(self):
        page = """
        <div itemscope itemtype="https://schema.org/Product">
          <span itemprop="name">Teclado Mecânico</span>
          <span itemprop="price">R$ 289,00</span>
          <link itemprop="availability" href="https://schema.org/InStock">
        </div>
        """
        snapshot = GenericExtractor().extract(raw("https://example.com/teclado", page))

        assert snapshot.name == "Teclado Mecânico"
        assert snapshot.price == Decimal("289.00")
        assert snapshot.currency == "BRL"
        assert snapshot.is_available is True

    def test_title_fallback_and_missing_price(self):
        """Pages without structured data still yield a name, but no price."""
        page = "<html><head><title>  Some   Store Page </title></head><body>Hello</body></html>"
        snapshot = GenericExtractor().extract(raw("https://example.com/x", page))

        assert snapshot.name == "Some Store Page"
        assert snapshot.price is None
        assert snapshot.currency is None
        assert snapshot.is_available is None

    def test_scraped_at_comes_from_fetch_time(self, make_page):
        content = raw("https://example.com/x", make_page("X", "1.00"))
        snapshot = GenericExtractor().extract(content)
        assert snapshot.scraped_at == content.fetched_at


class TestParseAvailability:
    """Tests for parse_availability."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("https://schema.org/InStock", True),
            ("http://schema.org/OutOfStock", False),
            ("Em estoque", True),
            ("Indisponível", False),
            ("Currently unavailable.", False),
            ("oos", False),
            ("Choose an option", None),
            ("", None),
            (None, None),
        ],
    )
    def test_values(self, value, expected):
        assert parse_availability(value) is expected


# ============================================================================
# TESTS: SITE EXTRACTORS
# ============================================================================

class TestAmazonExtractor:
    """Tests for AmazonExtractor."""

    def test_displayed_price(self):
        snapshot = AmazonExtractor().extract(raw("https://www.amazon.com.br/dp/B0TEST", AMAZON_PAGE))

        assert snapshot.name == "Fone de Ouvido Bluetooth XYZ"
        assert snapshot.price == Decimal("1299.90")
        assert snapshot.currency == "BRL"
        assert snapshot.is_available is True
        assert snapshot.image_url == "https://m.media-amazon.com/large.jpg"
        assert snapshot.website == "amazon.com.br"

    def test_hidden_buy_box_price_wins(self):
        snapshot = AmazonExtractor().extract(
            raw("https://www.amazon.com.br/dp/B0KINDLE", AMAZON_HIDDEN_PRICE_PAGE)
        )

        assert snapshot.price == Decimal("499.00")
        assert snapshot.currency == "BRL"
        assert snapshot.is_available is False


class TestMercadoLivreExtractor:
    """Tests for MercadoLivreExtractor."""

    def test_displayed_price_with_cents(self):
        snapshot = MercadoLivreExtractor().extract(
            raw("https://produto.mercadolivre.com.br/MLB-123", MERCADOLIVRE_PAGE)
        )

        assert snapshot.name == "Smartphone Modelo X 128GB"
        assert snapshot.price == Decimal("1899.90")
        assert snapshot.currency == "BRL"
        assert snapshot.is_available is True
        assert snapshot.image_url == "https://http2.mlstatic.com/zoom.webp"

    def test_meta_price_and_paused_listing(self):
        page = """
        <h1 class="ui-pdp-title">Cadeira Gamer</h1>
        <meta itemprop="price" content="799.5">
        <meta itemprop="priceCurrency" content="BRL">
        <p>Anúncio pausado</p>
        """
        snapshot = MercadoLivreExtractor().extract(raw("https://www.mercadolivre.com.br/p/MLB9", page))

        assert snapshot.price == Decimal("799.5")
        assert snapshot.is_available is False


# ============================================================================
# TESTS: REGISTRY
# ============================================================================

class TestExtractorRegistry:
    """Tests for ExtractorRegistry."""

    @pytest.mark.parametrize(
        "host, expected",
        [
            ("www.amazon.com.br", "amazon"),
            ("AMAZON.COM:443", "amazon"),
            ("produto.mercadolivre.com.br", "mercadolivre"),
            ("articulo.mercadolibre.com.ar", "mercadolivre"),
            ("shop.example.com", "generic"),
        ],
    )
    def test_resolve(self, registry, host, expected):
        assert registry.resolve(host).name == expected

    def test_resolve_url(self, registry):
        assert registry.resolve_url("https://www.amazon.com/dp/B0X").name == "amazon"

    def test_registered_strategies_fallback_last(self, registry):
        assert registry.get_registered_strategies() == ["amazon", "mercadolivre", "generic"]
        assert registry.has_strategy("generic")

    def test_first_registration_wins(self):
        class A(GenericExtractor):
            name = "a"

        class B(GenericExtractor):
            name = "b"

        reg = ExtractorRegistry()
        reg.register(["shop"], A)
        reg.register(["shop.example"], B)
        assert reg.resolve("shop.example.com").name == "a"

    def test_no_fallback_raises(self):
        reg = ExtractorRegistry()
        with pytest.raises(LookupError):
            reg.resolve("unknown.example.com")

    def test_register_rejects_non_strategy(self):
        reg = ExtractorRegistry()
        with pytest.raises(ValueError):
            reg.register(["x"], object)

    def test_normalize_host(self):
        assert normalize_host("https://WWW.Example.com:8080/path") == "example.com"
        assert normalize_host(None) == ""
