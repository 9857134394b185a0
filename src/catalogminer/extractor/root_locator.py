"""
Item container location.

``RootLocator`` tries a ranked list of container selectors, samples the
repeating sub-items of each match and keeps the best-scoring one. Product
card shapes known from the common shop systems are also counted here for
the classifier.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Set

from bs4 import Tag

from catalogminer.config.config import ClassifierSettings
from catalogminer.extractor.fields import visible_text
from catalogminer.protocols import CandidateRoot
from catalogminer.utils.prices import has_price_token

# Platform-specific containers first, generic grid/list patterns last.
ROOT_SELECTORS: Sequence[str] = (
    ".products-grid .product-items",
    ".product-items",
    "ul.products",
    ".wc-block-grid__products",
    ".cms-listing-row",
    ".listing--container .listing",
    ".product-grid",
    ".collection-grid",
    ".grid--products",
    ".productlist",
    ".product-list",
    ".products",
    ".category-products",
    ".search-results",
    ".listing",
    ".catalog",
    ".items",
    ".grid",
    "main",
    "#content",
    "#main",
)

CARD_SELECTORS: Sequence[str] = (
    "[class*=product-card]",
    "[class*=product-item]",
    "[class*=ProductItem]",
    ".product-box",
    ".product--box",
    ".grid-product",
    ".product-tile",
    ".product-miniature",
    "li.product",
    "article[class*=product]",
    ".wc-block-grid__product",
    "[data-product-id]",
)

FALLBACK_SELECTOR = "body"


def count_cards(root: Tag, selectors: Sequence[str] = CARD_SELECTORS) -> int:
    """
    Number of product cards: matches of any card selector that do not
    contain another match (so ``.product-items`` wrapping ``.product-item``
    counts once per item, not once for the wrapper).
    """
    matched: List[Tag] = []
    seen: Set[int] = set()
    for selector in selectors:
        for node in root.select(selector):
            if id(node) not in seen:
                seen.add(id(node))
                matched.append(node)

    containers: Set[int] = set()
    for node in matched:
        for parent in node.parents:
            if id(parent) in seen:
                containers.add(id(parent))
    return sum(1 for node in matched if id(node) not in containers)


def item_children(container: Tag) -> List[Tag]:
    """Direct element children, descending through single-child wrappers."""
    node = container
    while True:
        children = [child for child in node.children if isinstance(child, Tag)]
        if len(children) != 1:
            return children
        node = children[0]


class RootLocator:
    """Scores candidate item containers of a listing page."""

    def __init__(self, settings: Optional[ClassifierSettings] = None, selectors: Sequence[str] = ROOT_SELECTORS):
        self.settings = settings or ClassifierSettings()
        self.selectors = selectors

    def score(self, selector: str, container: Tag) -> CandidateRoot:
        s = self.settings
        sample = item_children(container)[: s.root_sample_size]
        price_like = sum(1 for item in sample if has_price_token(visible_text(item)))
        links = sum(len(item.find_all("a", href=True)) + (1 if item.name == "a" and item.has_attr("href") else 0) for item in sample)
        images = sum(len(item.find_all("img")) + (1 if item.name == "img" else 0) for item in sample)
        score = (
            s.root_base_score
            + min(s.root_price_cap, price_like * s.root_price_weight)
            + min(s.root_link_cap, links * s.root_link_weight)
            + min(s.root_image_cap, images * s.root_image_weight)
        )
        return CandidateRoot(
            selector_path=selector,
            score=round(score, 4),
            node_count=len(sample),
            price_like_count=price_like,
            link_count=links,
            image_count=images,
        )

    def candidates(self, root: Tag) -> List[CandidateRoot]:
        scored: List[CandidateRoot] = []
        for selector in self.selectors:
            container = root.select_one(selector)
            if container is None:
                continue
            scored.append(self.score(selector, container))
        return scored

    def locate(self, root: Tag) -> CandidateRoot:
        """Best container, or ``body`` with the fallback confidence when nothing beats the base score."""
        best: Optional[CandidateRoot] = None
        for candidate in self.candidates(root):
            if candidate.score <= self.settings.root_base_score:
                continue
            if best is None or candidate.score > best.score:
                best = candidate
        if best is None:
            return CandidateRoot(selector_path=FALLBACK_SELECTOR, score=self.settings.root_fallback_confidence)
        return best
