"""
Error taxonomy for CatalogMiner.

Only ``StartPageFetchError`` ever reaches callers of the pipeline. The other
errors are raised and handled inside the core: fetch errors are retried by
the enrichment workers, ``ParseMismatch`` and ``NoAdapterMatched`` drive the
adapter cascade, ``ValidationReject`` drops identifier candidates.
"""

from __future__ import annotations

from typing import Optional


class CatalogMinerError(Exception):
    """Base class for all CatalogMiner errors."""


class NetworkError(CatalogMinerError):
    """Timeout, connection failure or abort while fetching a page."""

    retryable = True

    def __init__(self, url: str, message: str = "") -> None:
        self.url = url
        super().__init__(f"Network error fetching {url}: {message}" if message else f"Network error fetching {url}")


class HttpStatusError(CatalogMinerError):
    """The server answered with a 4xx/5xx status."""

    def __init__(self, url: str, status: int) -> None:
        self.url = url
        self.status = status
        super().__init__(f"HTTP {status} for {url}")

    @property
    def retryable(self) -> bool:
        return self.status >= 500 or self.status == 429


class DecodeError(CatalogMinerError):
    """Response bytes could not be decoded with the detected charset."""

    def __init__(self, url: str, encoding: str) -> None:
        self.url = url
        self.encoding = encoding
        super().__init__(f"Could not decode {url} as {encoding}")


class ParseMismatch(CatalogMinerError):
    """An adapter produced fewer valid items than the acceptance threshold."""

    def __init__(self, adapter_name: str, found: int, required: int) -> None:
        self.adapter_name = adapter_name
        self.found = found
        self.required = required
        super().__init__(f"Adapter {adapter_name} produced {found} valid items, {required} required")


class ValidationReject(CatalogMinerError):
    """An identifier candidate failed the checksum or check-number rules."""

    def __init__(self, value: str, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"Rejected identifier {value!r}: {reason}")


class NoAdapterMatched(CatalogMinerError):
    """No platform adapter signature matched the page."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"No platform adapter matched {url}")


class StartPageFetchError(CatalogMinerError):
    """The first listing page could not be fetched after all retries."""

    def __init__(self, url: str, cause: Optional[BaseException] = None) -> None:
        self.url = url
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to fetch start page {url}{detail}")
