"""
Default page fetcher built on aiohttp, with charset detection and start-page retries.
"""

from __future__ import annotations

import asyncio
import random
import re
import time
from typing import Awaitable, Callable, Dict, List, Mapping, Optional

import aiohttp
import charset_normalizer
import structlog
from selectolax.lexbor import LexborHTMLParser

from catalogminer.config.config import Config, CrawlerConfig
from catalogminer.crawler.user_agents import UserAgentRotator
from catalogminer.exceptions import DecodeError, HttpStatusError, NetworkError
from catalogminer.observability import metrics
from catalogminer.protocols import FetchResult, PageFetcher

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

_META_CHARSET = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.IGNORECASE)
_SNIFF_BYTES = 4096


def sniff_meta_charset(body: bytes) -> Optional[str]:
    """Charset declared in ``<meta charset>`` or ``<meta http-equiv=Content-Type>`` near the top of the document."""
    head = body[:_SNIFF_BYTES].decode("ascii", errors="ignore")
    if not head:
        return None
    parser = LexborHTMLParser(head)
    node = parser.css_first("meta[charset]")
    if node is not None:
        value = (node.attributes.get("charset") or "").strip()
        if value:
            return value
    for node in parser.css("meta[http-equiv]"):
        if (node.attributes.get("http-equiv") or "").lower() != "content-type":
            continue
        match = _META_CHARSET.search(node.attributes.get("content") or "")
        if match:
            return match.group(1)
    return None


def decode_body(body: bytes, url: str, header_charset: Optional[str] = None) -> tuple[str, str]:
    """
    Decode response bytes.

    Order: Content-Type charset, meta charset, charset-normalizer guess, and
    finally UTF-8 with replacement characters. Returns ``(text, encoding)``.
    """
    candidates: List[str] = []
    if header_charset:
        candidates.append(header_charset)
    meta_charset = sniff_meta_charset(body)
    if meta_charset:
        candidates.append(meta_charset)
    guess = charset_normalizer.from_bytes(body).best()
    if guess is not None and guess.encoding:
        candidates.append(guess.encoding)

    for encoding in candidates:
        try:
            return body.decode(encoding), encoding
        except (LookupError, UnicodeDecodeError):
            logger.debug("Charset candidate failed", error=str(DecodeError(url, encoding)))
    if candidates:
        logger.warning("Falling back to utf-8 with replacement", url=url, tried=candidates)
    return body.decode("utf-8", errors="replace"), "utf-8"


async def fetch_with_retry(
    fetcher: PageFetcher,
    url: str,
    *,
    retries: int,
    timeout: Optional[float] = None,
    headers: Optional[Mapping[str, str]] = None,
    backoff_base: float = 1.0,
    rng: Optional[random.Random] = None,
    sleep: Optional[SleepFn] = None,
) -> FetchResult:
    """
    Fetch through any ``PageFetcher`` with exponential backoff (±20% jitter).

    Only network errors, 429 and 5xx are retried; the last error is re-raised.
    """
    rng = rng or random.Random()
    sleep = sleep or asyncio.sleep
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fetcher.fetch(url, timeout=timeout, headers=headers)
        except (NetworkError, HttpStatusError) as e:
            if not e.retryable or attempt > retries:
                raise
            delay = backoff_base * 2 ** (attempt - 1) * rng.uniform(0.8, 1.2)
            logger.info("Retrying request", url=url, attempt=attempt, max_retries=retries, delay=round(delay, 3))
            await sleep(delay)


class HttpClient:
    """aiohttp-backed ``PageFetcher`` with pooled connections."""

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        user_agents: Optional[UserAgentRotator] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self.crawler_config: CrawlerConfig = config.crawler if config is not None else CrawlerConfig()
        self.user_agents = user_agents or UserAgentRotator()
        self.rng = rng or random.Random()
        self._sleep: SleepFn = sleep or asyncio.sleep

        # Session and connector are created in initialize(), inside the running loop
        self.connector: Optional[aiohttp.TCPConnector] = None
        self.session: Optional[aiohttp.ClientSession] = None
        self._is_initialized = False

    async def initialize(self) -> None:
        """Initialize the HTTP client session."""
        if self.session is None:
            self.connector = aiohttp.TCPConnector(
                limit=0,
                ttl_dns_cache=30,
                use_dns_cache=True,
                keepalive_timeout=30,
            )
            self.session = aiohttp.ClientSession(
                connector=self.connector,
                timeout=aiohttp.ClientTimeout(total=self.crawler_config.timeout),
            )
            self._is_initialized = True
            logger.info("HTTP client session initialized", timeout=self.crawler_config.timeout)

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self.session:
            await self.session.close()
            self.session = None
        self.connector = None
        self._is_initialized = False
        logger.info("HTTP client closed")

    async def __aenter__(self) -> "HttpClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def build_headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        cfg = self.crawler_config
        headers = {
            "User-Agent": self.user_agents.get_user_agent() if cfg.rotate_user_agents else cfg.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": cfg.accept_language,
        }
        if extra:
            headers.update(extra)
        return headers

    async def fetch(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> FetchResult:
        """
        Fetch one URL, a single attempt.

        Raises:
            NetworkError: on timeout or connection failure
            HttpStatusError: on a 4xx/5xx response
        """
        return await self._fetch_once(url, timeout=timeout, headers=headers)

    async def fetch_with_retry(
        self,
        url: str,
        *,
        retries: Optional[int] = None,
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> FetchResult:
        """Start-page fetch: retries network errors, 429 and 5xx with backoff."""
        return await fetch_with_retry(
            self,
            url,
            retries=self.crawler_config.start_page_retries if retries is None else retries,
            timeout=timeout,
            headers=headers,
            backoff_base=self.crawler_config.backoff_base,
            rng=self.rng,
            sleep=self._sleep,
        )

    async def _fetch_once(
        self,
        url: str,
        *,
        timeout: Optional[float],
        headers: Optional[Mapping[str, str]],
    ) -> FetchResult:
        if not self._is_initialized or self.session is None:
            raise RuntimeError("HTTP client not initialized. Call initialize() first.")

        limit = timeout if timeout is not None else self.crawler_config.timeout
        start_time = time.monotonic()
        try:
            async with asyncio.timeout(limit):
                async with self.session.get(
                    url,
                    headers=self.build_headers(headers),
                    allow_redirects=True,
                    max_redirects=self.crawler_config.max_redirects,
                ) as response:
                    body = await response.read()
                    status = response.status
                    final_url = str(response.url)
                    header_charset = response.charset
        except TimeoutError as e:
            metrics.increment("pages_fetched", labels={"outcome": "timeout"})
            logger.warning("Request timed out", url=url, timeout=limit)
            raise NetworkError(url, f"timed out after {limit}s") from e
        except aiohttp.ClientError as e:
            metrics.increment("pages_fetched", labels={"outcome": "network_error"})
            logger.warning("Request failed", url=url, error=str(e))
            raise NetworkError(url, str(e)) from e

        metrics.observe("fetch_latency_seconds", time.monotonic() - start_time)
        if status >= 400:
            metrics.increment("pages_fetched", labels={"outcome": f"{status // 100}xx"})
            logger.info("HTTP error status", url=url, status=status)
            raise HttpStatusError(url, status)

        markup, encoding = decode_body(body, url, header_charset)
        metrics.increment("pages_fetched", labels={"outcome": "ok"})
        logger.debug("Fetched page", url=url, status=status, encoding=encoding, size=len(body))
        return FetchResult(markup=markup, status=status, final_url=final_url, encoding=encoding)
