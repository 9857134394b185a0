"""
Tests for the aiohttp page fetcher.

HTTP traffic is mocked with aioresponses; backoff sleeps are recorded
instead of awaited.
"""

import asyncio
import random

import aiohttp
import pytest
import pytest_asyncio
from aioresponses import aioresponses
from yarl import URL

from catalogminer.config.config import Config
from catalogminer.crawler.http_client import HttpClient, decode_body, sniff_meta_charset
from catalogminer.crawler.user_agents import UserAgentRotator
from catalogminer.exceptions import HttpStatusError, NetworkError
from catalogminer.observability.metrics import METRICS
from tests.helpers import SleepRecorder, histogram_observes, metric_delta

URL_ = "https://shop.example.com/c/lampen"
HTML = "text/html; charset=utf-8"


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture
async def http_client(sleeps):
    config = Config()
    config.crawler.start_page_retries = 2
    async with HttpClient(config, rng=random.Random(3), sleep=sleeps) as client:
        yield client


@pytest.mark.unit
class TestFetch:
    @pytest.mark.asyncio
    async def test_successful_fetch(self, http_client):
        with aioresponses() as m:
            m.get(URL_, status=200, content_type=HTML, body="<html><body>Hallo</body></html>")
            with metric_delta(METRICS["pages_fetched"].labels(outcome="ok")):
                with histogram_observes(METRICS["fetch_latency_seconds"]):
                    result = await http_client.fetch(URL_)

        assert result.status == 200
        assert "Hallo" in result.markup
        assert result.final_url == URL_
        assert result.encoding == "utf-8"

    @pytest.mark.asyncio
    async def test_header_charset_is_used(self, http_client):
        with aioresponses() as m:
            m.get(URL_, status=200, content_type="text/html; charset=iso-8859-1", body="Größe".encode("latin-1"))
            result = await http_client.fetch(URL_)

        assert result.markup == "Größe"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, http_client):
        with aioresponses() as m:
            m.get(URL_, status=404, content_type=HTML, body="gone")
            with pytest.raises(HttpStatusError) as exc_info:
                await http_client.fetch(URL_)

        assert exc_info.value.status == 404
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_connection_error_becomes_network_error(self, http_client):
        with aioresponses() as m:
            m.get(URL_, exception=aiohttp.ClientConnectionError("refused"))
            with pytest.raises(NetworkError):
                await http_client.fetch(URL_)

    @pytest.mark.asyncio
    async def test_timeout_becomes_network_error(self, http_client):
        with aioresponses() as m:
            m.get(URL_, exception=asyncio.TimeoutError())
            with pytest.raises(NetworkError):
                await http_client.fetch(URL_)

    @pytest.mark.asyncio
    async def test_request_headers(self, http_client):
        with aioresponses() as m:
            m.get(URL_, status=200, content_type=HTML, body="ok")
            await http_client.fetch(URL_, headers={"Referer": "https://shop.example.com/"})
            request = m.requests[("GET", URL(URL_))][0]

        sent = request.kwargs["headers"]
        assert sent["Accept-Language"] == "de,en;q=0.9"
        assert sent["Referer"] == "https://shop.example.com/"
        assert sent["User-Agent"] in UserAgentRotator().get_all_agents()

    @pytest.mark.asyncio
    async def test_fetch_requires_initialize(self):
        client = HttpClient()
        with pytest.raises(RuntimeError):
            await client.fetch(URL_)


@pytest.mark.unit
class TestRetry:
    @pytest.mark.asyncio
    async def test_retry_on_503_then_success(self, http_client, sleeps):
        with aioresponses() as m:
            m.get(URL_, status=503, content_type=HTML, body="")
            m.get(URL_, status=200, content_type=HTML, body="<p>ok</p>")
            result = await http_client.fetch_with_retry(URL_)

        assert result.status == 200
        assert len(sleeps.delays) == 1
        assert 0.8 <= sleeps.delays[0] <= 1.2

    @pytest.mark.asyncio
    async def test_retry_on_429(self, http_client, sleeps):
        with aioresponses() as m:
            m.get(URL_, status=429, content_type=HTML, body="")
            m.get(URL_, status=200, content_type=HTML, body="<p>ok</p>")
            result = await http_client.fetch_with_retry(URL_)

        assert result.status == 200
        assert len(sleeps.delays) == 1

    @pytest.mark.asyncio
    async def test_max_retries_exhausted(self, http_client, sleeps):
        with aioresponses() as m:
            m.get(URL_, status=503, content_type=HTML, repeat=True)
            with pytest.raises(HttpStatusError):
                await http_client.fetch_with_retry(URL_)

        # Exponential backoff with +-20% jitter
        assert len(sleeps.delays) == 2
        assert 0.8 <= sleeps.delays[0] <= 1.2
        assert 1.6 <= sleeps.delays[1] <= 2.4

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, http_client, sleeps):
        with aioresponses() as m:
            m.get(URL_, status=404, content_type=HTML, repeat=True)
            with pytest.raises(HttpStatusError):
                await http_client.fetch_with_retry(URL_)

        assert sleeps.delays == []


@pytest.mark.unit
class TestDecoding:
    def test_meta_charset_sniffing(self):
        assert sniff_meta_charset(b'<html><head><meta charset="windows-1252"></head>') == "windows-1252"
        http_equiv = b'<meta http-equiv="Content-Type" content="text/html; charset=ISO-8859-1">'
        assert sniff_meta_charset(http_equiv) == "ISO-8859-1"
        assert sniff_meta_charset(b"<p>none</p>") is None

    def test_meta_charset_used_without_header(self):
        body = b'<html><head><meta charset="windows-1252"></head><body>' + "Größe".encode("cp1252") + b"</body></html>"
        text, encoding = decode_body(body, URL_)
        assert "Größe" in text
        assert encoding == "windows-1252"

    def test_undecodable_header_charset_falls_through(self):
        content = "Größe und Gewicht der schönen Lampe, gefertigt in Süddeutschland. " * 4
        text, _ = decode_body(content.encode("utf-8"), URL_, header_charset="no-such-charset")
        assert text == content
