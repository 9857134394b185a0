"""
Structural page classification.

A page is a ``product`` detail page, a ``catalog`` listing or a ``homepage``
(anything else). Embedded product structured data settles the question
outright; otherwise the verdict is derived from card counts, product-path
anchors, price and cart tokens and image presence.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Set

import structlog
from bs4 import BeautifulSoup

from catalogminer.config.config import ClassifierSettings
from catalogminer.extractor.fields import visible_text
from catalogminer.extractor.lexicon import Lexicon
from catalogminer.extractor.root_locator import FALLBACK_SELECTOR, RootLocator, count_cards
from catalogminer.extractor.structured_data import extract_records, has_offer_price, is_product_node, iter_nodes
from catalogminer.protocols import PageSample, PageType, StructuralVerdict
from catalogminer.utils.prices import has_price_token
from catalogminer.utils.urls import absolutize, dedup_key

logger = structlog.get_logger(__name__)


@dataclass
class PageSignals:
    """Raw signals gathered from one page."""

    structured_product: bool = False
    card_count: int = 0
    product_link_count: int = 0
    has_price: bool = False
    has_cart: bool = False
    has_image: bool = False
    anchor_sample: int = 0
    denylisted_in_sample: int = 0

    @property
    def denylist_ratio(self) -> float:
        if not self.anchor_sample:
            return 0.0
        return self.denylisted_in_sample / self.anchor_sample

    def describe(self) -> List[str]:
        out = [
            f"cards={self.card_count}",
            f"product_links={self.product_link_count}",
            f"denylisted={self.denylisted_in_sample}/{self.anchor_sample}",
        ]
        if self.structured_product:
            out.append("structured_data_product")
        if self.has_price:
            out.append("price")
        if self.has_cart:
            out.append("cart")
        if self.has_image:
            out.append("image")
        return out


class StructuralClassifier:
    """Scores a fetched page into homepage / catalog / product."""

    def __init__(self, settings: Optional[ClassifierSettings] = None, lexicon: Optional[Lexicon] = None) -> None:
        self.settings = settings or ClassifierSettings()
        self.lexicon = lexicon or Lexicon()
        self.root_locator = RootLocator(self.settings)

    def collect_signals(self, page: PageSample, soup: BeautifulSoup) -> PageSignals:
        signals = PageSignals()

        records = extract_records(soup)
        signals.structured_product = any(
            is_product_node(node) or has_offer_price(node) for node in iter_nodes(records)
        )

        text = visible_text(soup)
        signals.has_price = has_price_token(text)
        signals.has_cart = self.lexicon.has_cart_phrase(text)
        signals.has_image = soup.find("img") is not None
        signals.card_count = count_cards(soup)

        product_links: Set[str] = set()
        anchors = soup.find_all("a", href=True)
        for anchor in anchors:
            href = absolutize(page.url, anchor.get("href"))
            if not href:
                continue
            if self.lexicon.is_product_path(href) and not self.lexicon.is_blocked_href(href):
                product_links.add(dedup_key(href))
        signals.product_link_count = len(product_links)

        sample = anchors[: self.settings.denylist_sample_size]
        signals.anchor_sample = len(sample)
        signals.denylisted_in_sample = sum(
            1 for anchor in sample if self.lexicon.is_generic_link(absolutize(page.url, anchor.get("href")) or anchor.get("href", ""))
        )
        return signals

    def classify(self, page: PageSample) -> StructuralVerdict:
        s = self.settings
        soup = page.parse()
        signals = self.collect_signals(page, soup)
        root = self.root_locator.locate(soup)

        if signals.structured_product:
            return StructuralVerdict(PageType.PRODUCT, 1.0, FALLBACK_SELECTOR, signals.describe())

        price_or_cart = signals.has_price or signals.has_cart

        if signals.card_count <= s.product_max_cards and price_or_cart and signals.has_image:
            verdict = StructuralVerdict(PageType.PRODUCT, s.product_confidence, FALLBACK_SELECTOR, signals.describe())
        elif signals.card_count >= s.catalog_min_cards or signals.product_link_count >= s.catalog_min_product_links:
            if not price_or_cart and signals.denylist_ratio > s.denylist_ratio:
                verdict = StructuralVerdict(
                    PageType.HOMEPAGE, s.homepage_confidence, root.selector_path, signals.describe() + ["downgraded"]
                )
            else:
                verdict = StructuralVerdict(
                    PageType.CATALOG, max(s.catalog_confidence, root.score), root.selector_path, signals.describe()
                )
        else:
            verdict = StructuralVerdict(PageType.HOMEPAGE, s.homepage_confidence, root.selector_path, signals.describe())

        logger.debug(
            "Page classified",
            url=page.url,
            page_type=verdict.page_type.value,
            confidence=verdict.confidence,
            root=verdict.root_selector,
        )
        return verdict


# --- Platform fingerprints ---


@dataclass(frozen=True)
class PlatformMatch:
    platform: Optional[str]
    confidence: float
    signals: List[str] = field(default_factory=list)


_FINGERPRINTS = {
    "shopify": (
        (re.compile(r"cdn\.shopify\.com/", re.I), 2, "cdn.shopify.com"),
        (re.compile(r"shopify-section|Shopify\.theme|window\.Shopify", re.I), 2, "shopify-section"),
        (re.compile(r"/collections/", re.I), 1, "collections URL"),
    ),
    "woocommerce": (
        (re.compile(r"woocommerce", re.I), 2, "class woocommerce"),
        (re.compile(r"wp-content/plugins/woocommerce", re.I), 2, "woocommerce plugin assets"),
        (re.compile(r"name=[\"']add-to-cart[\"']", re.I), 1, "add-to-cart form"),
        (re.compile(r"/product-category/", re.I), 1, "product-category URL"),
    ),
    "shopware": (
        (re.compile(r"<meta[^>]+name=[\"']generator[\"'][^>]+content=[\"']Shopware", re.I), 3, "generator Shopware"),
        (re.compile(r"\bShopware\b", re.I), 1, "string Shopware"),
        (re.compile(r"\bsw-|is--ctl-listing|is--act-listing|js-listing|product-box|product--box", re.I), 2, "listing classes"),
        (re.compile(r"/bundles/storefront/|/themes/Frontend/|window\.Shopware", re.I), 1, "storefront assets"),
    ),
    "magento": (
        (re.compile(r"data-mage-init|Magento_Catalog|mage/validation", re.I), 2, "mage-init"),
        (re.compile(r"/static/version|requirejs/require\.js", re.I), 2, "static/version"),
        (re.compile(r"<meta[^>]+name=[\"']generator[\"'][^>]+content=[\"']Magento", re.I), 2, "generator Magento"),
        (re.compile(r"/catalog/category/view|product-item-info", re.I), 1, "catalog markup"),
    ),
}


MIN_PLATFORM_SCORE = 2


def detect_platform(markup: str, url: str = "") -> PlatformMatch:
    """Best-scoring shop platform fingerprint; ``platform`` is None when nothing matched."""
    haystack = f"{url}\n{markup or ''}"
    scores = []
    signals: List[str] = []
    for platform, rules in _FINGERPRINTS.items():
        score = 0
        for pattern, weight, label in rules:
            if pattern.search(haystack):
                score += weight
                signals.append(f"{platform}:{label}")
        scores.append((platform, score))

    ranked = sorted(scores, key=lambda pair: pair[1], reverse=True)
    best_platform, best_score = ranked[0]
    if best_score < MIN_PLATFORM_SCORE:
        return PlatformMatch(None, 0.0, [])
    ceiling = max(1.0, best_score + ranked[1][1] / 4)
    confidence = max(0.0, min(1.0, best_score / ceiling))
    return PlatformMatch(best_platform, round(confidence, 3), signals)
