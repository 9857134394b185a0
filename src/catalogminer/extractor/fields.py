"""
Field pickers shared by the adapters and the detail enrichment.

Everything here is a pure function over a BeautifulSoup node or a string.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup, Comment, Doctype, NavigableString, Tag

from catalogminer.utils.images import DEFAULT_PLACEHOLDER_HINTS, pick_image
from catalogminer.utils.prices import DECIMAL_PRICE, PRICE_WITH_CURRENCY
from catalogminer.utils.text import normalize_text
from catalogminer.utils.urls import absolutize

PRICE_SELECTORS = (
    "[itemprop='price']",
    ".price--content",
    ".price--default",
    ".product-price",
    ".product__price",
    ".price__current",
    "[data-price-type='finalPrice']",
    ".price",
    ".amount",
    "[class*=price]",
    "[class*=Price]",
)
CARD_TITLE_SELECTORS = (
    "[itemprop='name']",
    ".product-name",
    ".product-title",
    ".product-item-link",
    ".woocommerce-loop-product__title",
    "[class*=product-title]",
    "[class*=card__heading]",
    "[class*=title]",
    "h2",
    "h3",
    "h4",
)
DESCRIPTION_SELECTORS = (
    "[itemprop='description']",
    ".product-description",
    ".product__description",
    ".product--description",
    ".description",
)
DETAIL_IMAGE_SELECTORS = (
    "img[itemprop='image']",
    "img.product-image",
    ".product__media img",
    ".gallery img",
    "img[data-zoom-image]",
)
_HIDDEN_TAGS = {"script", "style", "noscript", "template"}
_BLOCK_TAGS = {
    "p", "div", "li", "ul", "ol", "tr", "td", "th", "table", "dl", "dt", "dd",
    "h1", "h2", "h3", "h4", "h5", "h6", "section", "article", "header", "footer",
    "main", "aside", "nav", "form", "body", "figure", "figcaption", "blockquote",
}
_MOQ = re.compile(r"(?:MOQ|Mindestbestellmenge|Mindestmenge|Min\.?\s*order)[\s:]*(\d+)", re.IGNORECASE)
_TITLE_SKU = re.compile(r"^([A-Za-z0-9][A-Za-z0-9._\-/]{2,31})\s+(.+)$")


def _is_hidden_string(node: NavigableString) -> bool:
    if isinstance(node, (Comment, Doctype)):
        return True
    parent = node.parent
    return parent is not None and parent.name in _HIDDEN_TAGS


def visible_text(root: Tag) -> str:
    """Normalized text of ``root`` without script, style and template content."""
    return normalize_text(" ".join(s for s in root.find_all(string=True) if not _is_hidden_string(s)))


def text_lines(root: Tag) -> List[str]:
    """Visible text split at block-level element boundaries."""
    lines: List[str] = []
    current: List[str] = []
    current_block: Optional[Tag] = None
    for node in root.find_all(string=True):
        if _is_hidden_string(node):
            continue
        block = next((p for p in node.parents if p.name in _BLOCK_TAGS), None)
        if block is not current_block and current:
            lines.append(normalize_text(" ".join(current)))
            current = []
        current_block = block
        current.append(str(node))
    if current:
        lines.append(normalize_text(" ".join(current)))
    return [line for line in lines if line]


def _node_value(node: Tag) -> str:
    if node.name == "meta":
        return normalize_text(node.get("content"))  # type: ignore[arg-type]
    return normalize_text(node.get("content") or node.get_text(" "))  # type: ignore[arg-type]


def find_price(scope: Tag) -> str:
    """Price text inside a card or a detail page; empty when none is visible."""
    for selector in PRICE_SELECTORS:
        for node in scope.select(selector):
            value = _node_value(node)
            if value and any(ch.isdigit() for ch in value):
                return value
    text = visible_text(scope)
    match = PRICE_WITH_CURRENCY.search(text) or DECIMAL_PRICE.search(text)
    return normalize_text(match.group(0)) if match else ""


def find_currency(scope: Tag) -> str:
    meta = scope.select_one("[itemprop='priceCurrency']")
    if meta is not None:
        return normalize_text(meta.get("content") or meta.get_text())  # type: ignore[arg-type]
    return ""


def find_moq(scope: Tag) -> str:
    match = _MOQ.search(visible_text(scope))
    return match.group(1) if match else ""


def pick_card_title(anchor: Optional[Tag], scope: Tag) -> str:
    """Title of a listing card: heading-like nodes first, then the anchor's own text and attributes."""
    for selector in CARD_TITLE_SELECTORS:
        node = scope.select_one(selector)
        if node is not None:
            value = normalize_text(node.get_text(" ")) or normalize_text(node.get("title"))  # type: ignore[arg-type]
            if value and len(value) >= 2:
                return value
    if anchor is not None:
        for value in (
            anchor.get_text(" "),
            anchor.get("title"),
            anchor.get("aria-label"),
        ):
            text = normalize_text(value)  # type: ignore[arg-type]
            if text:
                return text
        img = anchor.find("img")
        if isinstance(img, Tag):
            return normalize_text(img.get("alt"))  # type: ignore[arg-type]
    return ""


def _meta(soup: BeautifulSoup | Tag, **attrs: str) -> str:
    node = soup.find("meta", attrs=attrs)
    if isinstance(node, Tag):
        return normalize_text(node.get("content"))  # type: ignore[arg-type]
    return ""


def pick_detail_title(soup: BeautifulSoup) -> str:
    h1 = soup.find("h1")
    title_tag = soup.find("title")
    for value in (
        _meta(soup, property="og:title"),
        _meta(soup, name="twitter:title"),
        normalize_text(h1.get_text(" ")) if isinstance(h1, Tag) else "",
        normalize_text(title_tag.get_text(" ")) if isinstance(title_tag, Tag) else "",
    ):
        if value:
            return value
    return ""


def pick_detail_price(soup: BeautifulSoup) -> str:
    meta_price = _meta(soup, itemprop="price") or _meta(soup, property="product:price:amount")
    if meta_price:
        return meta_price
    body = soup.body or soup
    return find_price(body)


def pick_detail_image(
    soup: BeautifulSoup, base_url: str, hints: Sequence[str] = DEFAULT_PLACEHOLDER_HINTS
) -> str:
    og = _meta(soup, property="og:image")
    if og:
        return absolutize(base_url, og)
    for selector in DETAIL_IMAGE_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            picked = pick_image(node, base_url, hints)
            if picked:
                return picked
    body = soup.body or soup
    return pick_image(body, base_url, hints) or ""


def pick_detail_description(soup: BeautifulSoup) -> str:
    for value in (_meta(soup, name="description"), _meta(soup, property="og:description")):
        if value:
            return value
    for selector in DESCRIPTION_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            value = normalize_text(node.get_text(" "))
            if value:
                return value
    return ""


def guess_sku_from_title(title: str) -> str:
    """
    Leading code token of a title such as "78001-3 Druckerkabel 25pol".

    Only tokens that mix digits with letters or separators qualify, plain
    words and short bare numbers are not treated as codes.
    """
    match = _TITLE_SKU.match(normalize_text(title))
    if not match:
        return ""
    token = match.group(1)
    if not any(ch.isdigit() for ch in token):
        return ""
    if token.isdigit() and len(token) < 5:
        return ""
    return token
