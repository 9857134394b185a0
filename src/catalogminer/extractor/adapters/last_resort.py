"""
Last-resort anchor adapter: every same-site, non-navigation anchor with text.
"""

from __future__ import annotations

from typing import Dict, List, Optional
from urllib.parse import urlparse

from catalogminer.extractor.adapters.base import BaseAdapter, card_scope
from catalogminer.extractor.fields import normalize_text
from catalogminer.protocols import AdapterKind, DraftItem, PageSample, StructuralVerdict
from catalogminer.utils.urls import absolutize, same_url, strip_fragment


class LastResortAnchorsAdapter(BaseAdapter):
    name = "last_resort_anchors"
    kind = AdapterKind.LAST_RESORT_ANCHORS

    def extract(self, page: PageSample, limit: int, verdict: Optional[StructuralVerdict] = None) -> List[DraftItem]:
        soup = page.parse()
        seen: Dict[str, DraftItem] = {}
        for anchor in soup.find_all("a", href=True):
            if len(seen) >= limit:
                break
            url = absolutize(page.url, anchor.get("href"))
            if not self.accept_link(url, page) or same_url(url, page.url):
                continue
            if urlparse(url).path in ("", "/"):
                continue
            key = strip_fragment(url)
            if key in seen:
                continue
            title = normalize_text(anchor.get_text(" ")) or normalize_text(anchor.get("title"))  # type: ignore[arg-type]
            if len(title) < 3:
                continue
            item = self.build_item(page, card_scope(anchor), anchor, href=url, title=title)
            if item is not None:
                seen[key] = item
        self.logger.debug("Last-resort anchors extracted", url=page.url, items=len(seen))
        return list(seen.values())
