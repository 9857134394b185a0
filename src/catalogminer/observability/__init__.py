"""Logging, diagnostics observers and Prometheus metrics."""

from __future__ import annotations

from .logging import configure_logging
from .metrics import METRICS, export_prometheus
from .observer import LoggingObserver, NullObserver, RecordingObserver

__all__ = [
    "configure_logging",
    "METRICS",
    "export_prometheus",
    "NullObserver",
    "LoggingObserver",
    "RecordingObserver",
]
