"""
Platform adapters for the common shop systems.

Each adapter reads the product cards of its platform's listing markup and
supplements them with JSON-LD ``ItemList`` / ``Product`` records when the
cards come up short.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from catalogminer.exceptions import ValidationReject
from catalogminer.extractor.adapters.base import BaseAdapter, is_junk_title
from catalogminer.extractor.fields import normalize_text
from catalogminer.extractor.structured_data import (
    extract_records,
    find_offer_currency,
    find_offer_price,
    item_list_entries,
    product_nodes,
)
from catalogminer.protocols import AdapterKind, DraftItem, PageSample, StructuralVerdict
from catalogminer.utils.urls import absolutize


def _first_image(value: Any) -> str:
    if isinstance(value, list):
        value = value[0] if value else ""
    if isinstance(value, dict):
        value = value.get("url") or value.get("contentUrl") or ""
    return str(value or "")


class PlatformAdapter(BaseAdapter):
    """Card-selector driven adapter; subclasses describe one platform's markup."""

    kind = AdapterKind.PLATFORM
    platform: str = ""
    card_selectors: Sequence[str] = ()
    link_selector: str = "a[href]"
    title_selectors: Sequence[str] = ()

    def matches_link(self, url: str) -> bool:
        return True

    def _title(self, card: Tag, anchor: Tag) -> str:
        for selector in self.title_selectors:
            node = card.select_one(selector)
            if node is not None:
                text = normalize_text(node.get_text(" ")) or normalize_text(node.get("title"))  # type: ignore[arg-type]
                if text:
                    return text
        return normalize_text(anchor.get("title")) or normalize_text(anchor.get_text(" "))  # type: ignore[arg-type]

    def from_cards(self, page: PageSample, soup: BeautifulSoup) -> List[DraftItem]:
        items: List[DraftItem] = []
        for card in soup.select(", ".join(self.card_selectors)):
            anchor = card.select_one(self.link_selector)
            if anchor is None and card.name == "a" and card.has_attr("href"):
                anchor = card
            if anchor is None:
                continue
            url = absolutize(page.url, anchor.get("href"))  # type: ignore[arg-type]
            if not self.matches_link(url):
                continue
            title = self._title(card, anchor)
            if is_junk_title(title):
                title = ""
            item = self.build_item(page, card, anchor, href=url, title=title or None)
            if item is not None:
                items.append(item)
        return items

    def _structured_sku(self, node: Dict[str, Any]) -> str:
        # Rejected values stay empty so the detail page can supply one.
        for raw in (node.get("sku"), node.get("mpn")):
            if raw in (None, ""):
                continue
            try:
                return self.identifiers.validate(str(raw))
            except ValidationReject:
                continue
        return ""

    def from_structured_data(self, page: PageSample, soup: BeautifulSoup) -> List[DraftItem]:
        records = extract_records(soup)
        items: List[DraftItem] = []
        for node in item_list_entries(records) + product_nodes(records):
            url = absolutize(page.url, str(node.get("url") or node.get("@id") or ""))
            title = normalize_text(str(node.get("name") or ""))
            if not url or not title or is_junk_title(title):
                continue
            if not self.matches_link(url) or not self.accept_link(url, page):
                continue
            items.append(
                DraftItem(
                    title=title,
                    detail_url=url,
                    sku=self._structured_sku(node),
                    image_url=absolutize(page.url, _first_image(node.get("image"))),
                    price_text=find_offer_price(node) or "",
                    currency=find_offer_currency(node),
                    description=normalize_text(str(node.get("description") or "")),
                    source=self.name,
                )
            )
        return items

    def extract(self, page: PageSample, limit: int, verdict: Optional[StructuralVerdict] = None) -> List[DraftItem]:
        soup = page.parse()
        cards = self.from_cards(page, soup)
        # Structured data only supplements thin card output.
        supplement = self.from_structured_data(page, soup) if len(cards) < 3 else []
        items = self.merge_items(cards + supplement, limit)
        self.logger.debug("Platform cards extracted", url=page.url, cards=len(cards), items=len(items))
        return items


class ShopifyAdapter(PlatformAdapter):
    name = "shopify"
    platform = "shopify"
    card_selectors = (
        "[class*=product-card]",
        "[class*=ProductItem]",
        ".grid-product",
        ".product-item",
        ".product-grid-item",
        "li[class*=product]",
        "article[class*=product]",
    )
    link_selector = "a[href*='/products/']"
    title_selectors = (
        "[class*=product-title]",
        "[class*=ProductItem__Title]",
        "[class*=card__heading]",
        "[itemprop='name']",
    )

    def matches_link(self, url: str) -> bool:
        lowered = url.lower()
        if "/products/" not in lowered:
            return False
        return "#reviews" not in lowered and "/reviews" not in lowered


class WooCommerceAdapter(PlatformAdapter):
    name = "woocommerce"
    platform = "woocommerce"
    card_selectors = (
        "ul.products li.product",
        ".products .product",
        ".wc-block-grid__product",
        "[class*=product-card]",
    )
    link_selector = "a.woocommerce-LoopProduct-link[href], a.woocommerce-loop-product__link[href], a[href]"
    title_selectors = (
        ".woocommerce-loop-product__title",
        ".wc-block-grid__product-title",
        ".product-title",
    )


class ShopwareAdapter(PlatformAdapter):
    name = "shopware"
    platform = "shopware"
    card_selectors = (".product-box", ".product--box", "[data-product-id]")
    link_selector = (
        "a[href*='/detail/'], a.product-name[href], a.product--title[href], a.product-image-link[href], "
        "a[href*='/product/'], a[href]"
    )
    title_selectors = (".product-name", ".product-name-link", ".product--title", "h3", "h2")


class MagentoAdapter(PlatformAdapter):
    name = "magento"
    platform = "magento"
    card_selectors = (".products-grid .product-item", ".product-items .product-item", ".product-item-info")
    link_selector = "a.product-item-link[href], a[href$='.html']"
    title_selectors = (".product-item-link", ".product.name a", ".product-item-name a", ".product-item-name")

    def matches_link(self, url: str) -> bool:
        path = urlparse(url).path.lower()
        return path.endswith(".html") and "/category" not in path


PLATFORM_ADAPTERS: Dict[str, type[PlatformAdapter]] = {
    ShopifyAdapter.platform: ShopifyAdapter,
    WooCommerceAdapter.platform: WooCommerceAdapter,
    ShopwareAdapter.platform: ShopwareAdapter,
    MagentoAdapter.platform: MagentoAdapter,
}
