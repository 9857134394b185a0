"""Utility modules for CatalogMiner."""

from .images import is_placeholder, pick_from_srcset, pick_image
from .prices import has_price_token, normalize_price
from .text import normalize_text
from .urls import absolutize, dedup_key, origin_host, same_url, strip_fragment

__all__ = [
    "absolutize",
    "dedup_key",
    "origin_host",
    "same_url",
    "strip_fragment",
    "is_placeholder",
    "pick_from_srcset",
    "pick_image",
    "has_price_token",
    "normalize_price",
    "normalize_text",
]
