"""
Compiled word lists for the extraction heuristics.

All language-specific vocabulary (identifier labels, navigation denylist,
cart phrases, pagination words) lives in ``LexiconSettings`` so it can be
overridden per deployment. ``Lexicon`` turns those lists into the regular
expressions and predicates used by the classifier, the adapters, the
identifier extractor and the pagination traversal.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional
from urllib.parse import parse_qsl, urlparse

from catalogminer.config.config import LexiconSettings

# Characters that may separate the words of a label ("Art.-Nr", "Item No").
_LABEL_GAP = r"[\s.\-–—]*"
_LETTER = r"A-Za-zÄÖÜäöüß"
_SKIP_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")


def _label_regex(label: str) -> str:
    words = [w for w in re.split(r"[\s.\-]+", label) if w]
    return _LABEL_GAP.join(re.escape(w) for w in words)


def _alternation(labels: Iterable[str]) -> str:
    # Longest first so "Artikelnummer" is tried before "Artikel-Nr".
    parts = sorted({_label_regex(label) for label in labels if label.strip()}, key=len, reverse=True)
    return "|".join(parts)


def _path_segments(href: str) -> List[str]:
    path = urlparse(href).path.lower()
    return [segment for segment in path.split("/") if segment]


def _segment_hits(segment: str, word: str) -> bool:
    return segment == word or any(segment.startswith(word + sep) for sep in ("-", "_", "."))


class Lexicon:
    """Regexes and predicates compiled from a ``LexiconSettings`` instance."""

    def __init__(self, settings: Optional[LexiconSettings] = None) -> None:
        self.settings = settings or LexiconSettings()
        s = self.settings

        labels = _alternation(s.sku_labels)
        bounded_labels = rf"(?<![{_LETTER}])(?:{labels})(?![{_LETTER}])"
        self.label_pattern = re.compile(bounded_labels, re.IGNORECASE)
        self.label_value_pattern = re.compile(
            bounded_labels + r"[\s:#.]+([A-Za-z0-9][\w\-/]*)",
            re.IGNORECASE,
        )
        self.label_sweep_patterns = [
            re.compile(
                rf"(?<![{_LETTER}])(?:{_label_regex(label)})[\s:#.]*([A-Za-z0-9][\w\-/]{{2,}})",
                re.IGNORECASE,
            )
            for label in s.sku_labels
            if label.strip()
        ]
        self.disqualifying_pattern = re.compile(
            r"\b(?:" + "|".join(re.escape(w) for w in s.disqualifying_words) + r")\b",
            re.IGNORECASE,
        )
        self.check_label_pattern = re.compile(
            r"(?:" + _alternation(s.check_number_labels) + r")[\s:#.]*(\d{6,})",
            re.IGNORECASE,
        )
        self.check_number_pattern = re.compile(rf"^{re.escape(s.check_number_prefix)}\d{{6,10}}$")
        self.ean_label_pattern = re.compile(
            r"(?<![A-Za-z])(?:" + _alternation(s.ean_labels) + r")(?:[\s\-]?1[3]|[\s\-]?8)?[\s:#.]*(\d{13}|\d{8})(?!\d)",
            re.IGNORECASE,
        )

        self._generic_words = [w.lower() for w in s.generic_link_words]
        self._path_cues = [c.lower() for c in s.product_path_cues]
        self._query_params = {p.lower() for p in s.product_query_params}
        self._blocked_words = [w.lower() for w in s.blocked_link_words]
        self._blocked_keys = {k.lower() for k in s.blocked_query_keys}
        self._cart_phrases = [p.lower() for p in s.cart_phrases]
        self._next_words = [w.lower() for w in s.next_words]
        self._jump_titles = {t.lower() for t in s.jump_card_titles}

    # --- identifiers ---

    def looks_like_check_number(self, value: str) -> bool:
        """Internal check numbers: long pure-digit runs or the configured prefix + 6-10 digits."""
        value = value.strip()
        if not value.isdigit():
            return False
        if len(value) >= self.settings.check_number_min_digits:
            return True
        return bool(self.check_number_pattern.match(value))

    def is_disqualified_line(self, line: str) -> bool:
        return bool(self.disqualifying_pattern.search(line))

    # --- links ---

    def is_product_path(self, href: str) -> bool:
        if not href or href.lower().startswith(_SKIP_SCHEMES):
            return False
        parsed = urlparse(href)
        path = parsed.path.lower()
        if not path.endswith("/"):
            path += "/"
        if any(cue in path for cue in self._path_cues):
            return True
        for key, value in parse_qsl(parsed.query):
            if key.lower() in self._query_params and any(ch.isdigit() for ch in value):
                return True
        return False

    def is_generic_link(self, href: str) -> bool:
        """Navigation, legal, account and similar non-product links."""
        if not href:
            return True
        lowered = href.strip().lower()
        if lowered.startswith(_SKIP_SCHEMES) or lowered.startswith("#"):
            return True
        if self.is_product_path(href):
            return False
        for segment in _path_segments(href):
            if any(_segment_hits(segment, word) for word in self._generic_words):
                return True
        return False

    def is_blocked_href(self, href: str) -> bool:
        """Cart, wishlist, compare, login and filter/sort links that never point at a product."""
        if not href:
            return True
        lowered = href.strip().lower()
        if lowered.startswith(_SKIP_SCHEMES) or lowered.startswith("#"):
            return True
        for segment in _path_segments(href):
            if any(_segment_hits(segment, word) for word in self._blocked_words):
                return True
        for key, _ in parse_qsl(urlparse(href).query, keep_blank_values=True):
            if key.lower() in self._blocked_keys:
                return True
        return False

    # --- text ---

    def has_cart_phrase(self, text: str) -> bool:
        lowered = text.lower()
        return any(phrase in lowered for phrase in self._cart_phrases)

    def is_next_text(self, text: str) -> bool:
        lowered = " ".join(text.split()).lower()
        if not lowered or len(lowered) > 24:
            return False
        return any(word in lowered for word in self._next_words)

    def is_jump_title(self, title: str) -> bool:
        return " ".join(title.split()).lower() in self._jump_titles
