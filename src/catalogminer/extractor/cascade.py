"""
Adapter cascade.

The adapters form a static, ordered registry: the platform adapter picked by
fingerprint, the generic anchor adapter and the last-resort anchor adapter.
Each step runs only when the previous ones came up short, so the outcome for
a given page is deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import structlog

from catalogminer.exceptions import NoAdapterMatched, ParseMismatch
from catalogminer.extractor.adapters import (
    PLATFORM_ADAPTERS,
    BaseAdapter,
    GenericAnchorsAdapter,
    LastResortAnchorsAdapter,
    PlatformAdapter,
)
from catalogminer.extractor.classifier import detect_platform
from catalogminer.extractor.identifiers import IdentifierExtractor
from catalogminer.extractor.lexicon import Lexicon
from catalogminer.observability.observer import NullObserver
from catalogminer.protocols import DraftItem, Observer, PageSample, StructuralVerdict

logger = structlog.get_logger(__name__)

ACCEPTANCE_THRESHOLD = 3


@dataclass
class CascadeOutcome:
    """Items of the winning adapter plus the (adapter, valid item count) of every step that ran."""

    adapter_name: Optional[str]
    items: List[DraftItem] = field(default_factory=list)
    attempts: List[Tuple[str, int]] = field(default_factory=list)


class AdapterCascade:
    """Runs the adapters in registry order until one produces enough items."""

    def __init__(self, lexicon: Optional[Lexicon] = None, observer: Optional[Observer] = None) -> None:
        self.lexicon = lexicon or Lexicon()
        self.observer: Observer = observer or NullObserver()
        identifiers = IdentifierExtractor(self.lexicon)
        self.platform_adapters = {
            name: adapter_cls(self.lexicon, identifiers) for name, adapter_cls in PLATFORM_ADAPTERS.items()
        }
        self.generic = GenericAnchorsAdapter(self.lexicon, identifiers)
        self.last_resort = LastResortAnchorsAdapter(self.lexicon, identifiers)

    @property
    def registry(self) -> List[BaseAdapter]:
        return [*self.platform_adapters.values(), self.generic, self.last_resort]

    def platform_for(self, page: PageSample) -> PlatformAdapter:
        match = detect_platform(page.markup, page.url)
        if match.platform is None or match.platform not in self.platform_adapters:
            raise NoAdapterMatched(page.url)
        logger.debug("Platform detected", url=page.url, platform=match.platform, confidence=match.confidence)
        return self.platform_adapters[match.platform]

    def _extract(
        self,
        adapter: BaseAdapter,
        page: PageSample,
        limit: int,
        verdict: Optional[StructuralVerdict],
        attempts: List[Tuple[str, int]],
    ) -> List[DraftItem]:
        items = [item for item in adapter.extract(page, limit, verdict) if item.is_valid]
        attempts.append((adapter.name, len(items)))
        return items

    @staticmethod
    def _accept(adapter: BaseAdapter, items: List[DraftItem]) -> List[DraftItem]:
        if len(items) < ACCEPTANCE_THRESHOLD:
            raise ParseMismatch(adapter.name, len(items), ACCEPTANCE_THRESHOLD)
        return items

    def run(self, page: PageSample, verdict: Optional[StructuralVerdict], limit: int) -> CascadeOutcome:
        attempts: List[Tuple[str, int]] = []
        best_name: Optional[str] = None
        best: List[DraftItem] = []

        # Step 1: platform adapter
        try:
            platform = self.platform_for(page)
            best_name, best = platform.name, self._extract(platform, page, limit, verdict, attempts)
            self._accept(platform, best)
        except NoAdapterMatched:
            logger.debug("No platform fingerprint", url=page.url)
        except ParseMismatch as exc:
            logger.debug("Platform adapter below threshold", adapter=exc.adapter_name, found=exc.found)

        # Step 2: generic anchors; ties go to the earlier adapter
        if len(best) < ACCEPTANCE_THRESHOLD:
            generic = self._extract(self.generic, page, limit, verdict, attempts)
            try:
                best_name, best = self.generic.name, self._accept(self.generic, generic)
            except ParseMismatch as exc:
                logger.debug("Generic adapter below threshold", found=exc.found)
                if len(generic) > len(best):
                    best_name, best = self.generic.name, generic

        # Step 3: last resort, only when nothing at all was found
        if not best:
            best = self._extract(self.last_resort, page, limit, verdict, attempts)
            best_name = self.last_resort.name if best else None

        items = [item for item in best if not self.lexicon.is_generic_link(item.detail_url)][:limit]
        self.observer.record(
            "cascade.selected",
            {"url": page.url, "adapter": best_name or "none", "item_count": len(items), "attempts": list(attempts)},
        )
        logger.info("Adapter selected", url=page.url, adapter=best_name, items=len(items))
        return CascadeOutcome(adapter_name=best_name, items=items, attempts=attempts)
