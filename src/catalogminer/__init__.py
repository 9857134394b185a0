"""
CatalogMiner - adaptive product extraction from e-commerce catalog pages.

Classifies an unknown page, picks an extraction strategy through a
deterministic adapter cascade, walks paginated listings and completes the
records from their detail pages.
"""

__version__ = "0.1.0"

from .exceptions import CatalogMinerError, StartPageFetchError
from .pipeline import CatalogPipeline, PipelineResult, scrape_catalog
from .protocols import DraftItem, PageSample, PageType, ProductRecord, StructuralVerdict

__all__ = [
    "__version__",
    "CatalogPipeline",
    "PipelineResult",
    "scrape_catalog",
    "CatalogMinerError",
    "StartPageFetchError",
    "DraftItem",
    "PageSample",
    "PageType",
    "ProductRecord",
    "StructuralVerdict",
]
