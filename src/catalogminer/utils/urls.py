"""URL helpers shared by the adapters, enrichment and pagination."""

from __future__ import annotations

from urllib.parse import urldefrag, urljoin, urlparse


def absolutize(base: str, href: str | None) -> str:
    """Resolve ``href`` against ``base``; returns an empty string for unusable input."""
    if not href:
        return ""
    href = href.strip().strip("'\"")
    if not href or href.startswith("#"):
        return ""
    try:
        return urljoin(base, href)
    except ValueError:
        return ""


def strip_fragment(url: str) -> str:
    return urldefrag(url)[0] if url else ""


def dedup_key(url: str) -> str:
    """Key used to detect the same detail page across cards and pages."""
    clean = strip_fragment(url)
    return clean.rstrip("/").lower()


def origin_host(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def is_http_url(url: str) -> bool:
    return urlparse(url).scheme in ("http", "https")


def same_url(a: str, b: str) -> bool:
    """True when two URLs point at the same document (ignoring fragment and trailing slash)."""
    return dedup_key(a) == dedup_key(b)
