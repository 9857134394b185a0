"""
Catalog scraping pipeline.

Fetches the start page, classifies it and either reads a single product from
a detail page or walks the listing pages through the adapter cascade. The
collected draft items are then completed from their detail pages and
emitted as ``ProductRecord`` objects, capped by ``limit``.
"""

from __future__ import annotations

import random
import uuid
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from catalogminer.config.config import Config, SpeedPreset, settings
from catalogminer.crawler.enrichment import DetailEnricher, EnrichmentReport, SleepFn, finalize_items
from catalogminer.crawler.http_client import HttpClient, fetch_with_retry
from catalogminer.crawler.pagination import PaginationTraversal
from catalogminer.exceptions import HttpStatusError, NetworkError, StartPageFetchError
from catalogminer.extractor.cascade import AdapterCascade
from catalogminer.extractor.classifier import StructuralClassifier, detect_platform
from catalogminer.extractor.fields import (
    find_currency,
    normalize_text,
    pick_detail_description,
    pick_detail_image,
    pick_detail_price,
    pick_detail_title,
)
from catalogminer.extractor.identifiers import IdentifierExtractor, best_identifier
from catalogminer.extractor.lexicon import Lexicon
from catalogminer.extractor.structured_data import extract_records, find_offer_currency, find_offer_price, product_nodes
from catalogminer.observability.observer import NullObserver
from catalogminer.protocols import (
    DraftItem,
    Observer,
    PageFetcher,
    PageSample,
    PageType,
    ProductRecord,
    StructuralVerdict,
)

logger = structlog.get_logger(__name__)


@dataclass
class PipelineResult:
    """Outcome of one scrape."""

    url: str
    verdict: StructuralVerdict
    records: List[ProductRecord] = field(default_factory=list)
    platform: Optional[str] = None
    adapters: List[str] = field(default_factory=list)
    pages_visited: int = 0
    enrichment: Optional[EnrichmentReport] = None

    def to_dicts(self) -> List[Dict[str, str]]:
        return [record.to_dict() for record in self.records]


class CatalogPipeline:
    """Wires fetcher, classifier, cascade, traversal and enrichment together."""

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        fetcher: Optional[PageFetcher] = None,
        observer: Optional[Observer] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[SleepFn] = None,
    ):
        # Without an explicit config the process-wide settings apply (catalogminer.yaml in the cwd, env overrides).
        self.config: Config = config if config is not None else settings
        self.fetcher = fetcher
        self.observer: Observer = observer or NullObserver()
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.lexicon = Lexicon(self.config.lexicon)
        self.classifier = StructuralClassifier(self.config.classifier, self.lexicon)
        self.cascade = AdapterCascade(self.lexicon, self.observer)
        self.identifiers = IdentifierExtractor(self.lexicon)
        self._verdicts: Dict[str, StructuralVerdict] = {}
        self._adapters: List[str] = []

    async def run(
        self,
        url: str,
        *,
        limit: int = 50,
        speed_preset: SpeedPreset = "normal",
        enable_detail_enrichment: bool = True,
        max_pages: Optional[int] = None,
    ) -> PipelineResult:
        """
        Scrape up to ``limit`` products starting at ``url``.

        Raises:
            StartPageFetchError: the start page could not be fetched
            ValueError: unknown ``speed_preset`` or a non-positive ``limit``
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        preset = self.config.enrichment.preset(speed_preset)
        run_id = uuid.uuid4().hex[:12]
        self._verdicts.clear()
        self._adapters = []

        with structlog.contextvars.bound_contextvars(run_id=run_id):
            logger.info("Scrape started", url=url, limit=limit, speed=speed_preset, details=enable_detail_enrichment)
            async with AsyncExitStack() as stack:
                fetcher = self.fetcher
                if fetcher is None:
                    fetcher = await stack.enter_async_context(HttpClient(self.config, rng=self.rng, sleep=self.sleep))

                start = await self._fetch_start_page(fetcher, url)
                verdict = self._classify(start)
                platform = detect_platform(start.markup, start.url).platform
                result = PipelineResult(url=url, verdict=verdict, platform=platform)

                if verdict.page_type is PageType.PRODUCT:
                    item = self.product_item(start)
                    items = [item] if item.is_valid else []
                    result.pages_visited = 1
                    if items:
                        self._adapters.append("product_page")
                    # The start page already is the detail page
                    finalize_items(items)
                else:
                    traversal = PaginationTraversal(
                        fetcher,
                        self._extract_listing,
                        lexicon=self.lexicon,
                        max_pages=max_pages or self.config.pagination.max_pages,
                        timeout=self.config.crawler.timeout,
                        observer=self.observer,
                    )
                    walked = await traversal.run(url, limit, first_page=start)
                    items = walked.items[:limit]
                    result.pages_visited = walked.frontier.page_count

                    if enable_detail_enrichment and items:
                        enricher = DetailEnricher(
                            fetcher,
                            preset,
                            lexicon=self.lexicon,
                            max_items=self.config.enrichment.max_items,
                            rng=self.rng,
                            sleep=self.sleep,
                            observer=self.observer,
                        )
                        result.enrichment = await enricher.enrich(items)
                    else:
                        finalize_items(items)

            result.records = [item.to_record() for item in items]
            result.adapters = list(dict.fromkeys(self._adapters))
            logger.info(
                "Scrape finished",
                url=url,
                page_type=verdict.page_type.value,
                records=len(result.records),
                pages=result.pages_visited,
            )
            return result

    async def _fetch_start_page(self, fetcher: PageFetcher, url: str) -> PageSample:
        crawler = self.config.crawler
        try:
            fetched = await fetch_with_retry(
                fetcher,
                url,
                retries=crawler.start_page_retries,
                timeout=crawler.timeout,
                backoff_base=crawler.backoff_base,
                rng=self.rng,
                sleep=self.sleep,
            )
        except (NetworkError, HttpStatusError) as e:
            logger.error("Start page fetch failed", url=url, error=str(e))
            raise StartPageFetchError(url, e) from e
        return PageSample.create(fetched.final_url or url, fetched.markup)

    def _classify(self, page: PageSample) -> StructuralVerdict:
        verdict = self._verdicts.get(page.url)
        if verdict is None:
            verdict = self.classifier.classify(page)
            self._verdicts[page.url] = verdict
            self.observer.record(
                "classifier.decision",
                {
                    "url": page.url,
                    "page_type": verdict.page_type.value,
                    "confidence": verdict.confidence,
                    "root_selector": verdict.root_selector,
                    "signals": list(verdict.signals),
                },
            )
        return verdict

    def _extract_listing(self, page: PageSample, limit: int) -> List[DraftItem]:
        verdict = self._classify(page)
        outcome = self.cascade.run(page, verdict, limit)
        if outcome.adapter_name:
            self._adapters.append(outcome.adapter_name)
        return outcome.items

    def product_item(self, page: PageSample) -> DraftItem:
        """Single item read from a product detail page."""
        soup = page.parse()
        hints = self.lexicon.settings.placeholder_image_hints
        nodes = product_nodes(extract_records(soup))
        node: Dict[str, Any] = nodes[0] if nodes else {}

        item = DraftItem(
            title=pick_detail_title(soup) or normalize_text(str(node.get("name") or "")),
            detail_url=page.url,
            price_text=(find_offer_price(node) if node else None) or pick_detail_price(soup),
            currency=find_offer_currency(node) if node else "",
            image_url=pick_detail_image(soup, page.url, hints),
            description=pick_detail_description(soup),
            source="product_page",
        )
        if not item.currency:
            item.currency = find_currency(soup.body or soup)
        candidate = best_identifier(soup, self.identifiers)
        if candidate is not None:
            item.sku = candidate.value
        return item


async def scrape_catalog(
    url: str,
    *,
    limit: int = 50,
    speed_preset: SpeedPreset = "normal",
    enable_detail_enrichment: bool = True,
    config: Optional[Config] = None,
    fetcher: Optional[PageFetcher] = None,
    observer: Optional[Observer] = None,
) -> List[Dict[str, str]]:
    """Convenience wrapper returning the emitted records as plain dicts."""
    pipeline = CatalogPipeline(config, fetcher=fetcher, observer=observer)
    result = await pipeline.run(
        url,
        limit=limit,
        speed_preset=speed_preset,
        enable_detail_enrichment=enable_detail_enrichment,
    )
    return result.to_dicts()
