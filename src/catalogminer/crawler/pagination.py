"""
Sequential traversal of paginated listings.

``find_next_url`` is a pure function over a parsed page. ``PaginationTraversal``
drives the FETCHING -> EXTRACTING -> LOCATING_NEXT -> DONE state machine and
never visits a URL twice.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

import structlog
from bs4 import BeautifulSoup, Tag

from catalogminer.exceptions import HttpStatusError, NetworkError, StartPageFetchError
from catalogminer.extractor.fields import normalize_text
from catalogminer.extractor.lexicon import Lexicon
from catalogminer.observability.observer import NullObserver
from catalogminer.protocols import (
    CrawlFrontier,
    DraftItem,
    Observer,
    PageFetcher,
    PageSample,
    TraversalState,
)
from catalogminer.utils.urls import absolutize, dedup_key, is_http_url, same_url

logger = structlog.get_logger(__name__)

NEXT_SELECTORS = (
    "a.next[href]",
    "a.next-page[href]",
    "a.pagination-next[href]",
    "a.pagination__next[href]",
    "li.next a[href]",
    ".pagination .next a[href]",
    ".pagination-next a[href]",
    "a.paging--next[href]",
    "a.action.next[href]",
    ".pages-item-next a[href]",
    "a.page-link--next[href]",
    "a.next.page-numbers[href]",
    "a[aria-label*='next' i][href]",
    "a[aria-label*='weiter' i][href]",
)
NEXT_SYMBOLS = {"›", "»", ">", ">>", "→", "❯", "⟩"}
CURRENT_PAGE_SELECTORS = (
    "[aria-current='page']",
    ".pagination .active",
    ".pagination .current",
    ".pagination .is-active",
    ".page-numbers.current",
    ".pages .current",
    ".paging--link.is--active",
    ".pagination li.selected",
)

_PAGE_NUMBER = re.compile(r"\d{1,4}")


def _href(anchor: Optional[Tag], current_url: str) -> Optional[str]:
    if anchor is None:
        return None
    url = absolutize(current_url, anchor.get("href"))  # type: ignore[arg-type]
    return url if url and is_http_url(url) else None


def _current_page_number(soup: BeautifulSoup) -> Optional[int]:
    for selector in CURRENT_PAGE_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        match = _PAGE_NUMBER.fullmatch(normalize_text(node.get_text(" ")))
        if match:
            return int(match.group(0))
    return None


def find_next_url(soup: BeautifulSoup, current_url: str, lexicon: Optional[Lexicon] = None) -> Optional[str]:
    """
    Locate the link to the following listing page.

    Tried in order: ``rel=next``, known next-button classes, "next" anchor
    text in any configured language (or an arrow symbol), and finally the
    numbered link right after the highlighted current page.
    """
    lexicon = lexicon or Lexicon()

    url = _href(soup.select_one("link[rel~=next][href], a[rel~=next][href]"), current_url)
    if url:
        return url

    for selector in NEXT_SELECTORS:
        url = _href(soup.select_one(selector), current_url)
        if url:
            return url

    for anchor in soup.find_all("a", href=True):
        label = normalize_text(anchor.get_text(" ")) or normalize_text(anchor.get("title")) or normalize_text(
            anchor.get("aria-label")
        )
        if label and (lexicon.is_next_text(label) or label in NEXT_SYMBOLS):
            url = _href(anchor, current_url)
            if url:
                return url

    current = _current_page_number(soup)
    if current is not None:
        wanted = str(current + 1)
        for anchor in soup.find_all("a", href=True):
            if normalize_text(anchor.get_text(" ")) == wanted:
                url = _href(anchor, current_url)
                if url:
                    return url
    return None


@dataclass
class PageVisit:
    url: str
    item_count: int
    new_items: int


@dataclass
class TraversalResult:
    items: List[DraftItem] = field(default_factory=list)
    visits: List[PageVisit] = field(default_factory=list)
    frontier: CrawlFrontier = field(default_factory=CrawlFrontier)
    stop_reason: str = ""


ExtractPage = Callable[[PageSample, int], List[DraftItem]]


class PaginationTraversal:
    """Walks listing pages one at a time until the item limit or the page cap is reached."""

    def __init__(
        self,
        fetcher: PageFetcher,
        extract_page: ExtractPage,
        *,
        lexicon: Optional[Lexicon] = None,
        max_pages: int = 50,
        timeout: Optional[float] = None,
        observer: Optional[Observer] = None,
    ):
        self.fetcher = fetcher
        self.extract_page = extract_page
        self.lexicon = lexicon or Lexicon()
        self.max_pages = max_pages
        self.timeout = timeout
        self.observer: Observer = observer or NullObserver()
        self.state = TraversalState.DONE

    async def _fetch(self, url: str) -> PageSample:
        result = await self.fetcher.fetch(url, timeout=self.timeout)
        return PageSample.create(result.final_url or url, result.markup)

    async def run(self, start_url: str, limit: int, first_page: Optional[PageSample] = None) -> TraversalResult:
        """
        Collect up to ``limit`` distinct items starting at ``start_url``.

        ``first_page`` lets the caller hand over an already fetched start page.
        A failing start page raises ``StartPageFetchError``; a failing later
        page ends the walk with what was collected so far.
        """
        result = TraversalResult()
        frontier = result.frontier
        seen: Set[str] = set()
        url: Optional[str] = start_url
        page: Optional[PageSample] = first_page

        while url is not None:
            # FETCHING
            self.state = TraversalState.FETCHING
            frontier.admit(dedup_key(url))
            frontier.pending = None
            if page is None:
                try:
                    page = await self._fetch(url)
                except (NetworkError, HttpStatusError) as e:
                    if frontier.page_count == 0:
                        raise StartPageFetchError(start_url, e) from e
                    logger.warning("Listing page failed, stopping", url=url, error=str(e))
                    result.stop_reason = "fetch_failed"
                    break
            frontier.admit(dedup_key(page.url))
            frontier.page_count += 1

            # EXTRACTING
            self.state = TraversalState.EXTRACTING
            remaining = limit - len(result.items)
            extracted = self.extract_page(page, remaining)
            added = 0
            for item in extracted:
                key = dedup_key(item.detail_url)
                if key in seen or len(result.items) >= limit:
                    continue
                seen.add(key)
                result.items.append(item)
                added += 1
            result.visits.append(PageVisit(url=page.url, item_count=len(extracted), new_items=added))
            self.observer.record(
                "pagination.page",
                {"url": page.url, "page": frontier.page_count, "items": len(extracted), "new_items": added},
            )
            logger.debug("Listing page done", url=page.url, page=frontier.page_count, new_items=added)

            # LOCATING_NEXT
            self.state = TraversalState.LOCATING_NEXT
            if len(result.items) >= limit:
                result.stop_reason = "limit"
                break
            if frontier.page_count >= self.max_pages:
                result.stop_reason = "max_pages"
                break
            next_url = find_next_url(page.parse(), page.url, self.lexicon)
            if next_url is None:
                result.stop_reason = "no_next_link"
                break
            if same_url(next_url, page.url) or same_url(next_url, url):
                result.stop_reason = "self_link"
                break
            if dedup_key(next_url) in frontier.visited:
                result.stop_reason = "already_visited"
                break
            frontier.pending = next_url
            url, page = next_url, None

        self.state = TraversalState.DONE
        logger.info(
            "Pagination finished",
            start_url=start_url,
            pages=frontier.page_count,
            items=len(result.items),
            reason=result.stop_reason,
        )
        return result
