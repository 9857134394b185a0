"""
Defines the Prometheus metrics recorded by the scraping pipeline.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Gauge as _OrigGauge
from prometheus_client import Histogram as _OrigHistogram
from prometheus_client import generate_latest

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Importing this module more than once (as the test suite does) must not
# trip prometheus_client's duplicate registration check.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            # Registration lost the race, fall back to the now-existing collector.
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Gauge = _duplicate_safe_factory(_OrigGauge)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "pages_fetched": Counter(
            "catalogminer_pages_fetched_total",
            "Total number of pages fetched, by outcome",
            ["outcome"],
        ),
        "fetch_latency_seconds": Histogram(
            "catalogminer_fetch_latency_seconds",
            "Time taken to fetch a single page",
            buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
        ),
        "items_extracted": Counter(
            "catalogminer_items_extracted_total",
            "Total number of draft items produced, by winning adapter",
            ["adapter"],
        ),
        "page_verdicts": Counter(
            "catalogminer_page_verdicts_total",
            "Structural classification results",
            ["page_type"],
        ),
        "enrichment_outcomes": Counter(
            "catalogminer_enrichment_outcomes_total",
            "Detail enrichment outcomes per item",
            ["outcome"],
        ),
        "enrichment_in_flight": Gauge(
            "catalogminer_enrichment_in_flight",
            "Detail page fetches currently in flight",
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def increment(name: str, value: float = 1.0, labels: Optional[Dict[str, Any]] = None) -> None:
    """Increment a counter metric."""
    if name in METRICS:
        metric = METRICS[name]
        if labels is not None:
            metric.labels(**labels).inc(value)
        else:
            metric.inc(value)


def gauge_add(name: str, value: float) -> None:
    """Add to (or subtract from) a gauge metric."""
    if name in METRICS:
        METRICS[name].inc(value)


def observe(name: str, value: float, labels: Optional[Dict[str, Any]] = None) -> None:
    """Observe a histogram metric."""
    if name in METRICS:
        metric = METRICS[name]
        if labels is not None:
            metric.labels(**labels).observe(value)
        else:
            metric.observe(value)


def export_prometheus() -> str:
    """Export metrics in Prometheus text format."""
    return generate_latest().decode("utf-8")
