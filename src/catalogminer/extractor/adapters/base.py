"""
Shared machinery for the extraction adapters.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

import structlog
from bs4 import Tag

from catalogminer.extractor.fields import (
    find_currency,
    find_moq,
    find_price,
    normalize_text,
    pick_card_title,
)
from catalogminer.extractor.identifiers import IdentifierExtractor
from catalogminer.extractor.lexicon import Lexicon
from catalogminer.protocols import AdapterKind, DraftItem, PageSample, StructuralVerdict
from catalogminer.utils.images import pick_image
from catalogminer.utils.urls import absolutize, dedup_key, is_http_url, origin_host

logger = structlog.get_logger(__name__)

CARD_CLASS_CUES = ("product", "item", "card", "tile", "teaser", "box", "result")
_CARD_TAGS = {"li", "article"}
_CONTAINER_TAGS = {"div", "li", "article", "section", "figure", "a"}
_STOP_TAGS = {"body", "html", "[document]", "main"}


def card_scope(anchor: Tag, max_depth: int = 6) -> Tag:
    """Nearest ancestor (or the anchor itself) that looks like a product card."""
    candidates: List[Tag] = [anchor]
    for depth, parent in enumerate(anchor.parents):
        if depth >= max_depth or parent.name in _STOP_TAGS:
            break
        candidates.append(parent)

    for node in candidates:
        if node is not anchor and node.name in _CARD_TAGS:
            return node
        if node.name in _CONTAINER_TAGS:
            classes = " ".join(node.get("class") or []).lower()  # type: ignore[arg-type]
            if any(cue in classes for cue in CARD_CLASS_CUES):
                return node
    parent = anchor.parent
    if parent is not None and parent.name not in _STOP_TAGS:
        return parent
    return anchor


def same_site(url: str, page_host: str) -> bool:
    host = origin_host(url)
    if not host or not page_host:
        return True
    return host == page_host or host.endswith("." + page_host) or page_host.endswith("." + host)


class BaseAdapter(ABC):
    """Base class for the extraction strategies of the cascade."""

    name: str = "base"
    kind: AdapterKind = AdapterKind.PLATFORM

    def __init__(self, lexicon: Optional[Lexicon] = None, identifiers: Optional[IdentifierExtractor] = None) -> None:
        self.lexicon = lexicon or Lexicon()
        self.identifiers = identifiers or IdentifierExtractor(self.lexicon)
        self.logger = logger.bind(adapter=self.name)

    @abstractmethod
    def extract(self, page: PageSample, limit: int, verdict: Optional[StructuralVerdict] = None) -> List[DraftItem]:
        """Extract up to ``limit`` draft items from ``page``."""

    # --- helpers ---

    def accept_link(self, url: str, page: PageSample) -> bool:
        if not url or not is_http_url(url):
            return False
        if self.lexicon.is_blocked_href(url) or self.lexicon.is_generic_link(url):
            return False
        return same_site(url, page.origin_host)

    def build_item(
        self,
        page: PageSample,
        scope: Tag,
        anchor: Optional[Tag],
        href: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Optional[DraftItem]:
        """Assemble a draft item from a card; returns None for jump cards and unusable links."""
        url = absolutize(page.url, href if href is not None else (anchor.get("href") if anchor is not None else ""))  # type: ignore[arg-type]
        if not self.accept_link(url, page):
            return None
        title = normalize_text(title) if title else pick_card_title(anchor, scope)
        if not title or self.lexicon.is_jump_title(title):
            return None

        item = DraftItem(
            title=title,
            detail_url=url,
            image_url=pick_image(scope, page.url, self.lexicon.settings.placeholder_image_hints) or "",
            price_text=find_price(scope),
            currency=find_currency(scope),
            moq=find_moq(scope),
            source=self.name,
        )
        candidate = self.identifiers.extract(scope)
        # Check-number fallbacks from list cards are left for the detail page.
        if candidate is not None and not candidate.is_last_resort:
            item.sku = candidate.value
        return item

    @staticmethod
    def merge_items(items: Iterable[DraftItem], limit: int) -> List[DraftItem]:
        """Keep valid items, deduplicated by detail URL; later duplicates only fill empty fields."""
        merged: Dict[str, DraftItem] = {}
        for item in items:
            if not item.is_valid:
                continue
            key = dedup_key(item.detail_url)
            existing = merged.get(key)
            if existing is None:
                if len(merged) >= limit:
                    continue
                merged[key] = item
                continue
            for attr in ("sku", "image_url", "price_text", "currency", "moq", "description"):
                if not getattr(existing, attr) and getattr(item, attr):
                    setattr(existing, attr, getattr(item, attr))
        return list(merged.values())


_JUNK_TITLE = re.compile(r"bewertung|reviews|\{\{\s*title\s*\}\}", re.IGNORECASE)


def is_junk_title(title: str) -> bool:
    """Review links and unrendered template placeholders."""
    return bool(_JUNK_TITLE.search(title)) or title.strip().lower() == "item"
