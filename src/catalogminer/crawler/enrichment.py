"""
Detail-page enrichment.

Items that came off a listing page without an identifier (or with only a
check-number look-alike), or without both price and image, are completed
from their detail pages. A fixed pool of workers drains one shared FIFO
queue; every fetch is retried with a randomized delay and each worker
pauses once more after finishing an item.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional

import structlog

from catalogminer.config.config import PolitenessPreset
from catalogminer.exceptions import HttpStatusError, NetworkError
from catalogminer.extractor.fields import (
    find_currency,
    guess_sku_from_title,
    pick_detail_description,
    pick_detail_image,
    pick_detail_price,
    pick_detail_title,
)
from catalogminer.extractor.identifiers import IdentifierExtractor, best_identifier
from catalogminer.extractor.lexicon import Lexicon
from catalogminer.observability import metrics
from catalogminer.observability.observer import NullObserver
from catalogminer.protocols import DraftItem, EnrichmentTask, Observer, PageFetcher, PageSample
from catalogminer.utils.images import is_placeholder

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class EnrichmentReport:
    """Per-run outcome counts."""

    enriched: int = 0
    failed: int = 0
    skipped: int = 0
    fetch_attempts: int = 0

    def as_payload(self) -> dict:
        return {
            "enriched": self.enriched,
            "failed": self.failed,
            "skipped": self.skipped,
            "fetch_attempts": self.fetch_attempts,
        }


def finalize_items(items: Iterable[DraftItem]) -> None:
    """Mark items complete; a code-like leading title token stands in for a missing SKU."""
    for item in items:
        if not item.sku:
            item.sku = guess_sku_from_title(item.title)
        item.complete = True


class DetailEnricher:
    """Bounded worker pool that fills gaps in draft items from their detail pages."""

    def __init__(
        self,
        fetcher: PageFetcher,
        preset: PolitenessPreset,
        *,
        lexicon: Optional[Lexicon] = None,
        max_items: int = 30,
        rng: Optional[random.Random] = None,
        sleep: Optional[SleepFn] = None,
        observer: Optional[Observer] = None,
    ):
        self.fetcher = fetcher
        self.preset = preset
        self.lexicon = lexicon or Lexicon()
        self.identifiers = IdentifierExtractor(self.lexicon)
        self.max_items = max_items
        self.rng = rng or random.Random()
        self._sleep: SleepFn = sleep or asyncio.sleep
        self.observer: Observer = observer or NullObserver()

    def needs_enrichment(self, item: DraftItem) -> bool:
        if not item.sku or self.lexicon.looks_like_check_number(item.sku):
            return True
        return not item.price_text and not item.image_url

    def _delay(self) -> float:
        return self.rng.uniform(self.preset.delay_min, self.preset.delay_max)

    async def enrich(self, items: List[DraftItem]) -> EnrichmentReport:
        """Enrich ``items`` in place and mark every one of them complete."""
        report = EnrichmentReport()
        queue: asyncio.Queue[EnrichmentTask] = asyncio.Queue()
        for item in items:
            if self.needs_enrichment(item) and queue.qsize() < self.max_items:
                queue.put_nowait(EnrichmentTask(item=item))
            else:
                report.skipped += 1

        if not queue.empty():
            workers = min(self.preset.workers, queue.qsize())
            logger.info("Starting detail enrichment", items=queue.qsize(), workers=workers, retries=self.preset.retries)
            await asyncio.gather(*(self._worker(n, queue, report) for n in range(workers)))

        finalize_items(items)
        self.observer.record("enrichment.completed", report.as_payload())
        logger.info("Detail enrichment finished", **report.as_payload())
        return report

    async def _worker(self, worker_id: int, queue: asyncio.Queue[EnrichmentTask], report: EnrichmentReport) -> None:
        while True:
            try:
                task = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                if await self._process(task, report):
                    report.enriched += 1
                else:
                    report.failed += 1
                    logger.debug(
                        "Detail page gave up",
                        worker=worker_id,
                        url=task.item.detail_url,
                        attempts=task.attempts_made,
                        error=task.last_error,
                    )
            finally:
                queue.task_done()
            await self._sleep(self._delay())

    async def _process(self, task: EnrichmentTask, report: EnrichmentReport) -> bool:
        url = task.item.detail_url
        for attempt in range(1 + self.preset.retries):
            if attempt:
                await self._sleep(self._delay())
            task.attempts_made += 1
            report.fetch_attempts += 1
            metrics.gauge_add("enrichment_in_flight", 1)
            try:
                result = await self.fetcher.fetch(url, timeout=self.preset.timeout)
            except HttpStatusError as e:
                task.last_error = str(e)
                if e.status < 500:
                    # Client errors will not change on a retry
                    return False
                continue
            except NetworkError as e:
                task.last_error = str(e)
                continue
            finally:
                metrics.gauge_add("enrichment_in_flight", -1)
            self.apply_detail(task.item, PageSample.create(result.final_url or url, result.markup))
            return True
        return False

    def apply_detail(self, item: DraftItem, page: PageSample) -> None:
        """Fill empty fields of ``item`` from a detail page; placeholder images are replaced."""
        soup = page.parse()
        hints = self.lexicon.settings.placeholder_image_hints

        candidate = best_identifier(soup, self.identifiers)
        if candidate is not None:
            check_number_sku = bool(item.sku) and self.lexicon.looks_like_check_number(item.sku)
            if not item.sku or (check_number_sku and not candidate.is_last_resort):
                item.sku = candidate.value

        if not item.title:
            item.title = pick_detail_title(soup)
        if not item.price_text:
            item.price_text = pick_detail_price(soup)
        if not item.currency:
            item.currency = find_currency(soup.body or soup)
        if not item.image_url or is_placeholder(item.image_url, hints):
            image = pick_detail_image(soup, page.url, hints)
            if image:
                item.image_url = image
        if not item.description:
            item.description = pick_detail_description(soup)
