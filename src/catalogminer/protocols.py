"""
Core contracts and data structures for CatalogMiner.

This module defines the records that flow through the extraction pipeline
and the protocols for the collaborators the core depends on.

Architecture Overview:
- Page Fetcher (external): URL -> decoded markup
- Structural Classifier: page -> homepage / catalog / product verdict
- Adapter Cascade: ordered extraction strategies with a fallback chain
- Identifier Extractor: SKU / EAN search with check-digit rejection
- Detail Enrichment: bounded worker pool filling gaps from detail pages
- Pagination Traversal: sequential walk over listing pages
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Set, runtime_checkable
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .utils.prices import normalize_price

# ============================================================================
# Enums
# ============================================================================


class PageType(Enum):
    """Structural page types recognised by the classifier."""

    HOMEPAGE = "homepage"
    CATALOG = "catalog"
    PRODUCT = "product"


class IdentifierKind(Enum):
    """Kinds of product identifiers."""

    EAN13 = "EAN13"
    EAN8 = "EAN8"
    SKU = "SKU"


class AdapterKind(Enum):
    """Closed set of extraction strategy variants, in cascade order."""

    PLATFORM = "platform"
    GENERIC_ANCHORS = "generic_anchors"
    LAST_RESORT_ANCHORS = "last_resort_anchors"


class TraversalState(Enum):
    """States of the pagination state machine."""

    FETCHING = "fetching"
    EXTRACTING = "extracting"
    LOCATING_NEXT = "locating_next"
    DONE = "done"


# ============================================================================
# Core Dataclasses
# ============================================================================


@dataclass(frozen=True)
class FetchResult:
    """Decoded response returned by a page fetcher."""

    markup: str
    status: int
    final_url: str
    encoding: str = "utf-8"


@dataclass(frozen=True)
class PageSample:
    """One fetched document."""

    url: str
    origin_host: str
    markup: str

    @classmethod
    def create(cls, url: str, markup: str) -> PageSample:
        return cls(url=url, origin_host=(urlparse(url).hostname or "").lower(), markup=markup or "")

    def parse(self) -> BeautifulSoup:
        """Parse a fresh tree; callers own the returned soup and may mutate it."""
        return BeautifulSoup(self.markup, "html.parser")


@dataclass(frozen=True)
class StructuralVerdict:
    """Classifier output for one page."""

    page_type: PageType
    confidence: float
    root_selector: str
    signals: List[str] = field(default_factory=list)


@dataclass
class CandidateRoot:
    """Scoring record for one candidate item container."""

    selector_path: str
    score: float
    node_count: int = 0
    price_like_count: int = 0
    link_count: int = 0
    image_count: int = 0


@dataclass(frozen=True)
class IdentifierCandidate:
    """A SKU or EAN value found in a markup fragment."""

    value: str
    kind: IdentifierKind
    validated: bool = True
    is_last_resort: bool = False
    # False for values taken from bare attributes or structured data rather than a visible label
    labeled: bool = True


@dataclass(frozen=True)
class ProductRecord:
    """Final output record handed to exporters."""

    title: str
    sku: str
    price: str
    currency: str
    moq: str
    image_url: str
    detail_url: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "title": self.title,
            "sku": self.sku,
            "price": self.price,
            "currency": self.currency,
            "moq": self.moq,
            "image_url": self.image_url,
            "detail_url": self.detail_url,
            "description": self.description,
        }


@dataclass
class DraftItem:
    """
    Mutable product record owned by the pipeline while enrichment runs.

    ``complete`` is set once enrichment has been attempted or skipped; only
    complete items may be turned into output records.
    """

    title: str = ""
    detail_url: str = ""
    sku: str = ""
    image_url: str = ""
    price_text: str = ""
    currency: str = ""
    moq: str = ""
    description: str = ""
    source: str = ""
    complete: bool = False

    @property
    def is_valid(self) -> bool:
        return bool(self.title.strip() and self.detail_url.strip())

    def to_record(self) -> ProductRecord:
        if not self.complete:
            raise ValueError(f"Item {self.detail_url or self.title!r} read before enrichment finished")
        amount, currency = normalize_price(self.price_text)
        return ProductRecord(
            title=self.title,
            sku=self.sku,
            price=amount or self.price_text,
            currency=self.currency or currency,
            moq=self.moq,
            image_url=self.image_url,
            detail_url=self.detail_url,
            description=self.description,
        )


@dataclass
class EnrichmentTask:
    """One item waiting for (or undergoing) detail-page enrichment."""

    item: DraftItem
    attempts_made: int = 0
    last_error: Optional[str] = None


@dataclass
class CrawlFrontier:
    """Traversal bookkeeping; no URL in ``visited`` is fetched again."""

    visited: Set[str] = field(default_factory=set)
    pending: Optional[str] = None
    page_count: int = 0

    def admit(self, url: str) -> bool:
        """Mark ``url`` as visited; returns False if it was seen before."""
        if url in self.visited:
            return False
        self.visited.add(url)
        return True


# ============================================================================
# Protocols
# ============================================================================


@runtime_checkable
class PageFetcher(Protocol):
    """Fetches a URL and returns decoded markup."""

    async def fetch(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> FetchResult:
        """
        Fetch one URL.

        Raises:
            NetworkError: on timeout or connection failure
            HttpStatusError: on a 4xx/5xx response
        """
        ...


@runtime_checkable
class Observer(Protocol):
    """Receives informational diagnostics events from the pipeline."""

    def record(self, stage: str, payload: Dict[str, Any]) -> None:
        ...


@runtime_checkable
class Adapter(Protocol):
    """Extraction strategy: page -> draft items."""

    name: str
    kind: AdapterKind

    def extract(
        self, page: PageSample, limit: int, verdict: Optional[StructuralVerdict] = None
    ) -> List[DraftItem]:
        ...
