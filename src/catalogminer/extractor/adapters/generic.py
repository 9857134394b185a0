"""
Generic anchor adapter.

Works on any markup: every anchor inside the located item container is
scored on product-like evidence (product path, card classes, image, price,
title length, numeric path segments) and the convincing ones become items.
"""

from __future__ import annotations

import re
from typing import List, Optional

from bs4 import Tag

from catalogminer.extractor.adapters.base import CARD_CLASS_CUES, BaseAdapter, card_scope
from catalogminer.extractor.fields import find_price, pick_card_title
from catalogminer.extractor.root_locator import FALLBACK_SELECTOR, RootLocator
from catalogminer.protocols import AdapterKind, DraftItem, PageSample, StructuralVerdict
from catalogminer.utils.urls import absolutize

_NUMERIC_SEGMENT = re.compile(r"[/-]\d{3,}")
MIN_ANCHOR_SCORE = 4


class GenericAnchorsAdapter(BaseAdapter):
    name = "generic_anchors"
    kind = AdapterKind.GENERIC_ANCHORS

    def __init__(self, *args, root_locator: Optional[RootLocator] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.root_locator = root_locator or RootLocator()

    def score_anchor(self, url: str, anchor: Tag, scope: Tag) -> int:
        score = 0
        if self.lexicon.is_product_path(url):
            score += 3
        classes = " ".join(scope.get("class") or []).lower()  # type: ignore[arg-type]
        if any(cue in classes for cue in CARD_CLASS_CUES):
            score += 2
        if scope.find("img") is not None or scope.name == "img":
            score += 2
        if find_price(scope):
            score += 3
        if len(pick_card_title(anchor, scope)) >= 4:
            score += 1
        if _NUMERIC_SEGMENT.search(url.lower()):
            score += 1
        return score

    def _root(self, page: PageSample, verdict: Optional[StructuralVerdict]) -> Tag:
        soup = page.parse()
        selector = verdict.root_selector if verdict is not None else self.root_locator.locate(soup).selector_path
        if selector and selector != FALLBACK_SELECTOR:
            node = soup.select_one(selector)
            if node is not None:
                return node
        return soup.body or soup

    def extract(self, page: PageSample, limit: int, verdict: Optional[StructuralVerdict] = None) -> List[DraftItem]:
        root = self._root(page, verdict)
        items: List[DraftItem] = []
        for anchor in root.find_all("a", href=True):
            url = absolutize(page.url, anchor.get("href"))
            if not self.accept_link(url, page):
                continue
            scope = card_scope(anchor)
            if self.score_anchor(url, anchor, scope) < MIN_ANCHOR_SCORE:
                continue
            item = self.build_item(page, scope, anchor, href=url)
            if item is not None:
                items.append(item)
        items = self.merge_items(items, limit)
        self.logger.debug("Generic anchors extracted", url=page.url, items=len(items))
        return items
