"""
Identifier extraction and validation (SKU / EAN).

``IdentifierExtractor.extract`` searches a markup fragment in six steps and
returns the first candidate that survives validation:

1. attribute and class hints (``itemprop=sku``, ``data-sku``, ``.entry--sku``);
2. label text next to a value (``Artikel-Nr.: XYZ-100``);
3. a line scan over the whole subtree, skipping lines that mention
   disqualifying words such as ``Prüfziffer``;
4. structured data (``sku`` / ``mpn`` / ``productID``);
5. ``<dl>`` and ``<table>`` rows whose header is a known label;
6. a per-label regex sweep over the flattened text.

Steps 1 and 4 carry no label, so when they yield several values the one
ranked highest by ``rank_skus`` wins.

Values that look like internal check numbers are rejected at every step and
kept aside; the first of them is returned (flagged ``is_last_resort``) only
when no step produced anything else.
"""

from __future__ import annotations

import re
from typing import Iterable, Iterator, List, Optional, Union

import structlog
from bs4 import BeautifulSoup, Tag

from catalogminer.exceptions import ValidationReject
from catalogminer.extractor.fields import normalize_text, text_lines, visible_text
from catalogminer.extractor.lexicon import Lexicon
from catalogminer.extractor.structured_data import extract_records, find_gtins, find_identifier_fields
from catalogminer.protocols import IdentifierCandidate, IdentifierKind

logger = structlog.get_logger(__name__)

Fragment = Union[str, Tag]

_BARE_EAN = re.compile(r"(?<!\d)(\d{13}|\d{8})(?!\d)")
_TRAILING = ".,;:)]}/-_"


# --- EAN ---


def _mod10_valid(code: str) -> bool:
    digits = [int(d) for d in code]
    body, check = digits[:-1], digits[-1]
    # Weights run 3,1,3,1... from the digit next to the check digit.
    total = sum(d * (3 if i % 2 == 0 else 1) for i, d in enumerate(reversed(body)))
    return (10 - total % 10) % 10 == check


def validate_ean13(code: str) -> bool:
    return len(code) == 13 and code.isdigit() and _mod10_valid(code)


def validate_ean8(code: str) -> bool:
    return len(code) == 8 and code.isdigit() and _mod10_valid(code)


def _valid_ean(code: str) -> bool:
    return validate_ean13(code) or validate_ean8(code)


def extract_eans(text: str, lexicon: Optional[Lexicon] = None) -> List[str]:
    """Checksum-valid EAN-13/EAN-8 codes; labeled ones first, then bare digit runs."""
    lexicon = lexicon or Lexicon()
    text = normalize_text(text)
    found: List[str] = []
    for match in lexicon.ean_label_pattern.finditer(text):
        code = match.group(1)
        if _valid_ean(code) and code not in found:
            found.append(code)
    for match in _BARE_EAN.finditer(text):
        code = match.group(1)
        if _valid_ean(code) and code not in found:
            found.append(code)
    return found


# --- SKU ranking ---


def _sku_rank(value: str) -> tuple:
    has_letters = any(ch.isalpha() for ch in value)
    has_separator = "-" in value or "_" in value
    return (has_letters, has_separator, -abs(10 - len(value)))


def rank_skus(values: Iterable[str]) -> List[str]:
    """Order SKU strings: letters first, then hyphen/underscore, then length closest to 10."""
    unique = list(dict.fromkeys(v for v in values if v))
    return sorted(unique, key=_sku_rank, reverse=True)


# --- Extractor ---


def _as_tag(fragment: Fragment) -> Tag:
    if isinstance(fragment, Tag):
        return fragment
    return BeautifulSoup(fragment or "", "html.parser")


class IdentifierExtractor:
    """Finds the most trustworthy SKU in a listing card or detail page."""

    def __init__(self, lexicon: Optional[Lexicon] = None) -> None:
        self.lexicon = lexicon or Lexicon()

    def validate(self, value: str, require_digit: bool = False) -> str:
        """
        Clean and check one raw value.

        Raises:
            ValidationReject: when the value is unusable or looks like a check number
        """
        value = normalize_text(value).strip(_TRAILING)
        if len(value) < 3:
            raise ValidationReject(value, "too short")
        if len(value) > 40 or " " in value:
            raise ValidationReject(value, "not a single token")
        if require_digit and not any(ch.isdigit() for ch in value):
            raise ValidationReject(value, "no digits")
        if self.lexicon.label_pattern.fullmatch(value):
            raise ValidationReject(value, "label word")
        if self.lexicon.looks_like_check_number(value):
            raise ValidationReject(value, "check number look-alike")
        return value

    def extract(self, fragment: Fragment) -> Optional[IdentifierCandidate]:
        root = _as_tag(fragment)
        pool: List[str] = []

        # (candidates, require_digit, ranked): unlabeled sources are ranked, labeled ones return on first hit
        steps = (
            (self._from_attributes(root), False, True),
            (self._from_label_nodes(root), False, False),
            (self._from_line_scan(root), True, False),
            (self._from_structured_data(root), False, True),
            (self._from_rows(root), True, False),
            (self._from_label_sweep(root), True, False),
        )
        for candidates, require_digit, ranked in steps:
            accepted: List[str] = []
            for raw in candidates:
                try:
                    value = self.validate(raw, require_digit=require_digit)
                except ValidationReject as reject:
                    if reject.reason == "check number look-alike" and reject.value not in pool:
                        pool.append(reject.value)
                    continue
                if not ranked:
                    return IdentifierCandidate(value=value, kind=IdentifierKind.SKU)
                accepted.append(value)
            if accepted:
                return IdentifierCandidate(value=rank_skus(accepted)[0], kind=IdentifierKind.SKU, labeled=False)

        for match in self.lexicon.check_label_pattern.finditer(visible_text(root)):
            if match.group(1) not in pool:
                pool.append(match.group(1))

        if pool:
            logger.debug("Falling back to check-number identifier", value=pool[0])
            return IdentifierCandidate(value=pool[0], kind=IdentifierKind.SKU, validated=False, is_last_resort=True)
        return None

    # --- steps ---

    def _labeled_value(self, text: str) -> Optional[str]:
        if self.lexicon.is_disqualified_line(text):
            return None
        match = self.lexicon.label_value_pattern.search(text)
        return match.group(1) if match else None

    def _from_attributes(self, root: Tag) -> Iterator[str]:
        settings = self.lexicon.settings

        for node in root.select("[itemprop='sku'], meta[name='sku'], meta[property='product:retailer_item_id']"):
            yield str(node.get("content") or node.get_text(" "))

        for hint in settings.sku_attribute_hints:
            attr = f"data-{hint}"
            for node in root.find_all(attrs={attr: True}):
                yield str(node.get(attr))

        for hint in settings.sku_class_hints:
            for node in root.select(f".{hint}"):
                text = normalize_text(node.get_text(" "))
                if self.lexicon.is_disqualified_line(text):
                    continue
                labeled = self._labeled_value(text)
                if labeled:
                    yield labeled
                else:
                    # Bare value or "Label value" without a separator.
                    stripped = self.lexicon.label_pattern.sub("", text)
                    tokens = stripped.strip(" :#.").split()
                    if tokens:
                        yield tokens[-1]

    def _from_label_nodes(self, root: Tag) -> Iterator[str]:
        for text_node in root.find_all(string=self.lexicon.label_pattern):
            parent = text_node.parent
            if parent is None or parent.name in ("script", "style"):
                continue
            # Label and value may sit in sibling elements ("<dt>SKU</dt><dd>..."), so widen once.
            labeled = self._labeled_value(normalize_text(parent.get_text(" ")))
            if not labeled and parent.parent is not None:
                labeled = self._labeled_value(normalize_text(parent.parent.get_text(" ")))
            if labeled:
                yield labeled

    def _from_line_scan(self, root: Tag) -> Iterator[str]:
        for line in text_lines(root):
            labeled = self._labeled_value(line)
            if labeled:
                yield labeled

    def _from_structured_data(self, root: Tag) -> Iterator[str]:
        yield from find_identifier_fields(extract_records(root))

    def _from_rows(self, root: Tag) -> Iterator[str]:
        for dt in root.find_all("dt"):
            header = normalize_text(dt.get_text(" "))
            if not self.lexicon.label_pattern.search(header) or self.lexicon.is_disqualified_line(header):
                continue
            dd = dt.find_next_sibling("dd")
            if dd is not None:
                tokens = normalize_text(dd.get_text(" ")).split()
                if tokens:
                    yield tokens[0]

        for row in root.find_all("tr"):
            cells = row.find_all(["th", "td"])
            if len(cells) < 2:
                continue
            header = normalize_text(cells[0].get_text(" "))
            if not self.lexicon.label_pattern.search(header) or self.lexicon.is_disqualified_line(header):
                continue
            tokens = normalize_text(cells[1].get_text(" ")).split()
            if tokens:
                yield tokens[0]

    def _from_label_sweep(self, root: Tag) -> Iterator[str]:
        text = visible_text(root)
        for pattern in self.lexicon.label_sweep_patterns:
            for match in pattern.finditer(text):
                yield match.group(1)


def best_identifier(
    fragment: Fragment, extractor: Optional[IdentifierExtractor] = None
) -> Optional[IdentifierCandidate]:
    """
    Pick one identifier for a product.

    A SKU read next to a visible label wins; otherwise a checksum-valid EAN
    beats SKUs taken from bare attributes or structured data, which in turn
    beat the check-number fallback.
    """
    extractor = extractor or IdentifierExtractor()
    root = _as_tag(fragment)
    sku = extractor.extract(root)
    if sku is not None and sku.labeled and not sku.is_last_resort:
        return sku

    eans = [code for code in find_gtins(extract_records(root)) if _valid_ean(code)]
    eans += [code for code in extract_eans(visible_text(root), extractor.lexicon) if code not in eans]
    if eans:
        code = eans[0]
        kind = IdentifierKind.EAN13 if len(code) == 13 else IdentifierKind.EAN8
        return IdentifierCandidate(value=code, kind=kind)
    return sku
