"""Tests for page classification, root location and platform detection."""

import pytest
from bs4 import BeautifulSoup

from catalogminer.extractor.classifier import StructuralClassifier, detect_platform
from catalogminer.extractor.root_locator import FALLBACK_SELECTOR, RootLocator, count_cards
from catalogminer.protocols import PageSample, PageType
from tests.helpers import BASE, homepage, listing_page

JSON_LD_PRODUCT = (
    "<html><head>"
    '<script type="application/ld+json">'
    '{"@context": "https://schema.org", "@type": "Product", "name": "Lamp Seven", "sku": "LMP-7",'
    ' "offers": {"@type": "Offer", "price": "29.90", "priceCurrency": "EUR"}}'
    "</script></head>"
    "<body><h1>Lamp Seven</h1><p>Eine Lampe.</p></body></html>"
)


@pytest.fixture
def classifier() -> StructuralClassifier:
    return StructuralClassifier()


def sample(markup: str, path: str = "/") -> PageSample:
    return PageSample.create(BASE + path, markup)


@pytest.mark.unit
class TestStructuralClassifier:
    def test_structured_product_overrides_everything(self, classifier):
        verdict = classifier.classify(sample(JSON_LD_PRODUCT, "/item/7"))
        assert verdict.page_type is PageType.PRODUCT
        assert verdict.confidence == 1.0
        assert "structured_data_product" in verdict.signals

    def test_structured_product_in_graph(self, classifier):
        markup = (
            '<html><head><script type="application/ld+json">'
            '{"@context": "https://schema.org", "@graph": [{"@type": "WebPage"}, {"@type": "Product", "name": "X"}]}'
            "</script></head><body></body></html>"
        )
        assert classifier.classify(sample(markup)).page_type is PageType.PRODUCT

    def test_detail_page_heuristic(self, classifier):
        markup = (
            "<html><body><h1>Lamp</h1><img src='/img/lamp.jpg'>"
            "<span class='price'>49,90 €</span><button>In den Warenkorb</button></body></html>"
        )
        verdict = classifier.classify(sample(markup, "/item/1"))
        assert verdict.page_type is PageType.PRODUCT
        assert verdict.confidence == pytest.approx(0.7)
        assert verdict.root_selector == FALLBACK_SELECTOR

    def test_listing_is_catalog(self, classifier):
        verdict = classifier.classify(sample(listing_page(range(1001, 1013)), "/lampen"))
        assert verdict.page_type is PageType.CATALOG
        assert verdict.confidence >= 0.6
        assert verdict.root_selector == ".product-list"

    def test_navigation_heavy_page_is_downgraded_to_homepage(self, classifier):
        verdict = classifier.classify(sample(homepage(product_links=20, nav_links=20)))
        assert verdict.page_type is PageType.HOMEPAGE
        assert verdict.confidence == pytest.approx(0.5)
        assert "downgraded" in verdict.signals

    def test_product_links_with_prices_stay_catalog(self, classifier):
        products = "".join(f'<a href="/product/item-{i}">Item {i}</a><span>{i},99 €</span>' for i in range(20))
        nav = "".join(f'<a href="/help/topic-{i}">Help {i}</a>' for i in range(20))
        verdict = classifier.classify(sample(f"<html><body><div>{products}</div>{nav}</body></html>"))
        assert verdict.page_type is PageType.CATALOG

    def test_sparse_page_is_homepage(self, classifier):
        verdict = classifier.classify(sample("<html><body><p>Willkommen</p></body></html>"))
        assert verdict.page_type is PageType.HOMEPAGE
        assert "downgraded" not in verdict.signals


@pytest.mark.unit
class TestRootLocator:
    def test_count_cards_ignores_nested_matches(self):
        soup = BeautifulSoup(
            '<div class="product-item"><div class="product-item-info">a</div></div>'
            '<div class="product-item"><div class="product-item-info">b</div></div>',
            "html.parser",
        )
        assert count_cards(soup) == 2

    def test_falls_back_to_body(self):
        soup = BeautifulSoup("<html><body><p>nothing</p></body></html>", "html.parser")
        root = RootLocator().locate(soup)
        assert root.selector_path == FALLBACK_SELECTOR


@pytest.mark.unit
class TestDetectPlatform:
    def test_shopify(self):
        markup = '<link href="https://cdn.shopify.com/s/files/1/theme.css"><div class="shopify-section"></div>'
        match = detect_platform(markup, BASE + "/collections/all")
        assert match.platform == "shopify"
        assert match.signals

    def test_woocommerce(self):
        markup = '<body class="woocommerce"><ul class="products"><li class="product type-product"></li></ul></body>'
        match = detect_platform(markup, BASE + "/shop/")
        assert match.platform == "woocommerce"

    def test_plain_markup_has_no_platform(self):
        match = detect_platform("<html><body><p>hi</p></body></html>", BASE)
        assert match.platform is None
