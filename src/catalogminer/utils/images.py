"""
Best-effort product image picking.

Looks at ``<img>`` sources (including lazy-load attributes and ``srcset``),
``<picture><source>`` elements, arbitrary attributes holding an image URL and
inline ``background-image`` styles. Loader and placeholder assets are skipped.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

from bs4 import Tag

from .urls import absolutize

IMG_EXT = re.compile(r"\.(avif|webp|jpe?g|png|gif|bmp|tiff)(\?.*)?$", re.IGNORECASE)
DEFAULT_PLACEHOLDER_HINTS: Sequence[str] = (
    "loader.svg",
    "spacer.gif",
    "transparent",
    "placeholder",
    "no-image",
    "no_image",
    "noimage",
    "dummy",
    "blank",
)
_STYLE_URL = re.compile(r"url\(([^)]+)\)", re.IGNORECASE)
_SRC_ATTRS = ("src", "data-src", "data-original", "data-lazy", "data-image", "data-img", "file")


def is_placeholder(url: str, hints: Iterable[str] = DEFAULT_PLACEHOLDER_HINTS) -> bool:
    if not url:
        return True
    lowered = url.lower()
    if lowered.startswith("data:"):
        return True
    return any(hint.lower() in lowered for hint in hints)


def _clean(url: str | None) -> str:
    return (url or "").strip().strip("'\"")


def pick_from_srcset(srcset: str | None) -> str:
    """Return the widest image candidate of a ``srcset`` value."""
    if not srcset:
        return ""
    best, best_score = "", -1
    for part in srcset.split(","):
        bits = part.strip().split()
        if not bits:
            continue
        url = bits[0]
        score = 0
        if len(bits) > 1:
            digits = re.match(r"(\d+)", bits[1])
            score = int(digits.group(1)) if digits else 0
        if IMG_EXT.search(url) and score >= best_score:
            best, best_score = url, score
    return best


def _from_style(style: str | None) -> str:
    if not style:
        return ""
    match = _STYLE_URL.search(style)
    return _clean(match.group(1)) if match else ""


def _any_attr_image(tag: Tag, hints: Sequence[str]) -> str:
    for value in tag.attrs.values():
        if isinstance(value, str) and IMG_EXT.search(value.strip()) and not is_placeholder(value, hints):
            return value.strip()
    return ""


def _usable(url: str, hints: Sequence[str]) -> bool:
    return bool(url) and not is_placeholder(url, hints)


def pick_image(ctx: Tag, base_url: str, hints: Sequence[str] = DEFAULT_PLACEHOLDER_HINTS) -> Optional[str]:
    """Find the first clear image inside ``ctx`` (or of ``ctx`` itself when it is an ``<img>``)."""
    img = ctx if ctx.name == "img" else ctx.find("img")
    if isinstance(img, Tag):
        srcset_url = pick_from_srcset(img.get("srcset") or img.get("data-srcset"))  # type: ignore[arg-type]
        if _usable(srcset_url, hints):
            return absolutize(base_url, srcset_url)
        for attr in _SRC_ATTRS:
            candidate = _clean(img.get(attr))  # type: ignore[arg-type]
            if _usable(candidate, hints):
                return absolutize(base_url, candidate)
        candidate = _any_attr_image(img, hints) or _from_style(img.get("style")) or _from_style(ctx.get("style"))  # type: ignore[arg-type]
        if _usable(candidate, hints):
            return absolutize(base_url, candidate)

    for source in ctx.select("picture source[srcset], picture source[data-srcset]"):
        candidate = pick_from_srcset(source.get("srcset") or source.get("data-srcset"))  # type: ignore[arg-type]
        if _usable(candidate, hints):
            return absolutize(base_url, candidate)

    candidate = _any_attr_image(ctx, hints)
    if candidate:
        return absolutize(base_url, _clean(candidate))

    for styled in ctx.select('[style*="background"]'):
        candidate = _from_style(styled.get("style"))  # type: ignore[arg-type]
        if IMG_EXT.search(candidate) and _usable(candidate, hints):
            return absolutize(base_url, candidate)
    return None
