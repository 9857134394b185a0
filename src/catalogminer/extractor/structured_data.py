"""
Structured Data Parser - JSON-LD and Schema.org microdata

Reads embedded product annotations. The classifier uses them for the
product override, the identifier extractor for ``sku`` / ``mpn`` /
``productID`` values and the adapters for ItemList fallbacks.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

import structlog
from bs4 import BeautifulSoup, Tag

logger = structlog.get_logger(__name__)

PRODUCT_TYPES = {"product", "productmodel", "individualproduct", "productgroup"}
IDENTIFIER_FIELDS = ("sku", "mpn", "productID")
GTIN_FIELDS = ("gtin13", "gtin", "gtin8", "ean")


class SchemaOrgParser:
    """Parser for Schema.org structured data."""

    @staticmethod
    def parse_json_ld(soup: BeautifulSoup | Tag) -> List[Dict[str, Any]]:
        """Parse JSON-LD blocks; invalid blocks are logged and skipped."""
        json_ld_data: List[Dict[str, Any]] = []

        for script in soup.find_all("script", type="application/ld+json"):
            raw = script.string if script.string is not None else script.get_text()
            if not raw or not raw.strip():
                continue
            try:
                data = json.loads(raw.strip())
            except json.JSONDecodeError as e:
                logger.debug("Invalid JSON-LD block", error=str(e))
                continue

            if isinstance(data, list):
                json_ld_data.extend(item for item in data if isinstance(item, dict))
            elif isinstance(data, dict):
                json_ld_data.append(data)

        return json_ld_data

    @staticmethod
    def parse_microdata(soup: BeautifulSoup | Tag) -> List[Dict[str, Any]]:
        """
        Parse top-level microdata items into JSON-LD shaped dicts.

        Nested itemscopes (an Offer inside a Product) are folded into their
        parent's properties.
        """
        records: List[Dict[str, Any]] = []

        for item in soup.find_all(attrs={"itemscope": True}):
            if item.find_parent(attrs={"itemscope": True}) is not None:
                continue
            item_type = item.get("itemtype", "")
            if not item_type:
                continue

            record: Dict[str, Any] = {"@type": str(item_type).rstrip("/").rsplit("/", 1)[-1]}
            for prop_elem in item.find_all(attrs={"itemprop": True}):
                prop_name = prop_elem.get("itemprop")
                if prop_elem.name == "meta":
                    prop_value = prop_elem.get("content", "")
                elif prop_elem.name in ("img", "source"):
                    prop_value = prop_elem.get("src", "")
                elif prop_elem.name in ("a", "link"):
                    prop_value = prop_elem.get("href", prop_elem.get_text().strip())
                elif prop_elem.has_attr("content"):
                    prop_value = prop_elem.get("content", "")
                else:
                    prop_value = prop_elem.get_text(" ").strip()

                if prop_name and prop_value and prop_name not in record:
                    record[prop_name] = prop_value

            records.append(record)

        return records


def extract_records(soup: BeautifulSoup | Tag) -> List[Dict[str, Any]]:
    """All JSON-LD and microdata records of a document or fragment."""
    return SchemaOrgParser.parse_json_ld(soup) + SchemaOrgParser.parse_microdata(soup)


def iter_nodes(data: Any, keys: Sequence[str] = ("@graph",)) -> Iterator[Dict[str, Any]]:
    """Depth-first walk over dict nodes, descending into lists and the given keys."""
    if isinstance(data, list):
        for entry in data:
            yield from iter_nodes(entry, keys)
    elif isinstance(data, dict):
        yield data
        for key in keys:
            if key in data:
                yield from iter_nodes(data[key], keys)


def node_types(node: Dict[str, Any]) -> List[str]:
    raw = node.get("@type", [])
    if isinstance(raw, str):
        raw = [raw]
    return [str(t).rsplit("/", 1)[-1].lower() for t in raw if t]


def is_product_node(node: Dict[str, Any]) -> bool:
    return any(t in PRODUCT_TYPES for t in node_types(node))


def find_offer_price(node: Dict[str, Any]) -> Optional[str]:
    """Price carried by a node's offers (or by the node itself when it is an Offer)."""
    for offer in iter_nodes(node.get("offers"), keys=("offers",)):
        for key in ("price", "lowPrice"):
            value = offer.get(key)
            if value not in (None, ""):
                return str(value)
        spec = offer.get("priceSpecification")
        if isinstance(spec, dict) and spec.get("price") not in (None, ""):
            return str(spec["price"])
    if "offer" in node_types(node) or "aggregateoffer" in node_types(node):
        value = node.get("price") or node.get("lowPrice")
        if value not in (None, ""):
            return str(value)
    # Microdata folds the nested offer's properties into the product record.
    if is_product_node(node) and node.get("price") not in (None, ""):
        return str(node["price"])
    return None


def find_offer_currency(node: Dict[str, Any]) -> str:
    for offer in iter_nodes(node.get("offers"), keys=("offers",)):
        if offer.get("priceCurrency"):
            return str(offer["priceCurrency"])
    return str(node.get("priceCurrency", "") or "")


def has_offer_price(node: Dict[str, Any]) -> bool:
    return find_offer_price(node) is not None


def product_nodes(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Product nodes at the top level or inside ``@graph``; ItemList members are not included."""
    return [node for node in iter_nodes(list(records)) if is_product_node(node)]


def find_identifier_fields(records: Iterable[Dict[str, Any]]) -> List[str]:
    """``sku`` / ``mpn`` / ``productID`` values, recursing into ``offers`` and ``@graph``."""
    values: List[str] = []
    for node in iter_nodes(list(records), keys=("@graph", "offers")):
        for key in IDENTIFIER_FIELDS:
            value = node.get(key)
            if isinstance(value, (str, int)) and str(value).strip():
                values.append(str(value).strip())
    return values


def find_gtins(records: Iterable[Dict[str, Any]]) -> List[str]:
    values: List[str] = []
    for node in iter_nodes(list(records), keys=("@graph", "offers")):
        for key in GTIN_FIELDS:
            value = node.get(key)
            if isinstance(value, (str, int)) and str(value).strip():
                values.append(str(value).strip())
    return values


def item_list_entries(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Entries of ``ItemList`` records (``itemListElement`` items, unwrapped from ``ListItem``)."""
    entries: List[Dict[str, Any]] = []
    for node in iter_nodes(list(records)):
        if "itemlist" not in node_types(node):
            continue
        elements = node.get("itemListElement") or []
        if isinstance(elements, dict):
            elements = [elements]
        for element in elements:
            if not isinstance(element, dict):
                continue
            cell = element.get("item") if isinstance(element.get("item"), dict) else element
            entries.append(cell)
    return entries
