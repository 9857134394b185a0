"""Extraction adapters, in cascade order."""

from .base import BaseAdapter, card_scope, is_junk_title
from .generic import GenericAnchorsAdapter
from .last_resort import LastResortAnchorsAdapter
from .platforms import (
    PLATFORM_ADAPTERS,
    MagentoAdapter,
    PlatformAdapter,
    ShopifyAdapter,
    ShopwareAdapter,
    WooCommerceAdapter,
)

__all__ = [
    "BaseAdapter",
    "PlatformAdapter",
    "ShopifyAdapter",
    "WooCommerceAdapter",
    "ShopwareAdapter",
    "MagentoAdapter",
    "GenericAnchorsAdapter",
    "LastResortAnchorsAdapter",
    "PLATFORM_ADAPTERS",
    "card_scope",
    "is_junk_title",
]
