"""
Fetching and traversal: the default aiohttp page fetcher, detail-page
enrichment and pagination.
"""

from .enrichment import DetailEnricher, EnrichmentReport, finalize_items
from .http_client import HttpClient, decode_body, fetch_with_retry
from .pagination import PaginationTraversal, TraversalResult, find_next_url
from .user_agents import UserAgentRotator

__all__ = [
    "HttpClient",
    "fetch_with_retry",
    "decode_body",
    "DetailEnricher",
    "EnrichmentReport",
    "finalize_items",
    "PaginationTraversal",
    "TraversalResult",
    "find_next_url",
    "UserAgentRotator",
]
