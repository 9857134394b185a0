from .metric_delta import histogram_observes, metric_delta
from .pages import (
    BASE,
    FakeFetcher,
    SleepRecorder,
    detail_page,
    homepage,
    listing_card,
    listing_page,
)

__all__ = [
    "BASE",
    "FakeFetcher",
    "SleepRecorder",
    "detail_page",
    "histogram_observes",
    "homepage",
    "listing_card",
    "listing_page",
    "metric_delta",
]
