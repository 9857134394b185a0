"""
Diagnostics observers.

The pipeline reports informational events at fixed stages
(``classifier.decision``, ``cascade.selected``, ``pagination.page``,
``enrichment.completed``). Observers never influence extraction results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import structlog

from . import metrics


class NullObserver:
    """Discards every event."""

    def record(self, stage: str, payload: Dict[str, Any]) -> None:
        return None


class LoggingObserver:
    """Writes events to the structured log and updates Prometheus metrics."""

    def __init__(self, metrics_enabled: bool = True) -> None:
        self.logger = structlog.get_logger("catalogminer.observer")
        self.metrics_enabled = metrics_enabled

    def record(self, stage: str, payload: Dict[str, Any]) -> None:
        self.logger.info(stage, **payload)
        if not self.metrics_enabled:
            return
        if stage == "classifier.decision":
            metrics.increment("page_verdicts", labels={"page_type": payload.get("page_type", "unknown")})
        elif stage == "cascade.selected":
            metrics.increment(
                "items_extracted",
                value=float(payload.get("item_count", 0)),
                labels={"adapter": payload.get("adapter", "none")},
            )
        elif stage == "enrichment.completed":
            for outcome in ("enriched", "failed", "skipped"):
                count = payload.get(outcome, 0)
                if count:
                    metrics.increment("enrichment_outcomes", value=float(count), labels={"outcome": outcome})


@dataclass
class RecordingObserver:
    """Keeps every event in memory, in arrival order."""

    events: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    def record(self, stage: str, payload: Dict[str, Any]) -> None:
        self.events.append((stage, dict(payload)))

    def stages(self) -> List[str]:
        return [stage for stage, _ in self.events]

    def payloads(self, stage: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == stage]
