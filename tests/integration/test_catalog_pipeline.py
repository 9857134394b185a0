"""
End-to-end pipeline tests over an in-memory shop.

Covers classification, the adapter cascade, pagination, detail enrichment
and record emission without touching the network.
"""

import random

import pytest

from catalogminer import CatalogPipeline, StartPageFetchError, scrape_catalog
from catalogminer.config.config import LazyConfig
from catalogminer.exceptions import HttpStatusError
from catalogminer.observability.observer import RecordingObserver
from catalogminer.protocols import PageType
from tests.helpers import BASE, FakeFetcher, detail_page, listing_page

START = BASE + "/lampen"

PRODUCT_PAGE = (
    "<html><head><title>Lamp Seven | Shop</title>"
    '<script type="application/ld+json">'
    '{"@context": "https://schema.org", "@type": "Product", "name": "Lamp Seven", "sku": "LMP-7",'
    ' "image": "https://shop.example.com/img/7.jpg",'
    ' "offers": {"@type": "Offer", "price": "29.90", "priceCurrency": "EUR"}}'
    "</script>"
    '<meta name="description" content="Eine helle Lampe."></head>'
    "<body><h1>Lamp Seven</h1><img src='/img/7.jpg'></body></html>"
)


def shop(numbers, **listing_kwargs):
    pages = {START: listing_page(numbers, **listing_kwargs)}
    for n in numbers:
        pages[f"{BASE}/item/{n}"] = detail_page(f"LMP-{n}", title=f"Lamp {n} detail")
    return pages


def pipeline(fetcher, observer=None, sleep_recorder=None) -> CatalogPipeline:
    return CatalogPipeline(fetcher=fetcher, observer=observer, rng=random.Random(11), sleep=sleep_recorder)


@pytest.mark.integration
class TestCatalogPipeline:
    @pytest.mark.asyncio
    async def test_listing_with_enrichment(self, sleep_recorder):
        numbers = list(range(1001, 1007))
        fetcher = FakeFetcher(shop(numbers))
        observer = RecordingObserver()

        result = await pipeline(fetcher, observer, sleep_recorder).run(START, limit=50)

        assert result.verdict.page_type is PageType.CATALOG
        assert result.adapters == ["generic_anchors"]
        assert result.pages_visited == 1
        records = result.to_dicts()
        assert [r["sku"] for r in records] == [f"LMP-{n}" for n in numbers]
        assert [r["title"] for r in records] == [f"Lamp {n}" for n in numbers]
        first = records[0]
        assert first["price"] == "19.99"
        assert first["currency"] == "EUR"
        assert first["image_url"] == f"{BASE}/img/1001.jpg"
        assert first["detail_url"] == f"{BASE}/item/1001"
        assert first["description"] == "Lamp 1001 detail description"
        assert observer.stages() == [
            "classifier.decision",
            "cascade.selected",
            "pagination.page",
            "enrichment.completed",
        ]
        assert result.enrichment is not None and result.enrichment.enriched == 6

    @pytest.mark.asyncio
    async def test_limit_is_respected(self, sleep_recorder):
        fetcher = FakeFetcher(shop(list(range(1001, 1011))))

        result = await pipeline(fetcher, sleep_recorder=sleep_recorder).run(START, limit=3)

        assert len(result.records) == 3
        # Start page plus one detail page per emitted item
        assert len(fetcher.calls) == 4

    @pytest.mark.asyncio
    async def test_without_detail_enrichment(self, sleep_recorder):
        fetcher = FakeFetcher(shop(list(range(1001, 1005))))

        result = await pipeline(fetcher, sleep_recorder=sleep_recorder).run(START, enable_detail_enrichment=False)

        assert fetcher.calls == [START]
        assert all(record.sku == "" for record in result.records)
        assert result.enrichment is None

    @pytest.mark.asyncio
    async def test_follows_pagination(self, sleep_recorder):
        pages = shop(list(range(1001, 1005)), next_href="/lampen?page=2")
        pages[START + "?page=2"] = listing_page(range(1005, 1009))
        for n in range(1005, 1009):
            pages[f"{BASE}/item/{n}"] = detail_page(f"LMP-{n}")
        fetcher = FakeFetcher(pages)

        result = await pipeline(fetcher, sleep_recorder=sleep_recorder).run(START, enable_detail_enrichment=False)

        assert result.pages_visited == 2
        assert len(result.records) == 8

    @pytest.mark.asyncio
    async def test_default_config_comes_from_working_directory(self, sleep_recorder, tmp_path, monkeypatch):
        (tmp_path / "catalogminer.yaml").write_text("pagination:\n  max_pages: 1\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(LazyConfig, "_config", None)
        pages = shop(list(range(1001, 1005)), next_href="/lampen?page=2")
        pages[START + "?page=2"] = listing_page(range(1005, 1009))
        fetcher = FakeFetcher(pages)

        result = await pipeline(fetcher, sleep_recorder=sleep_recorder).run(START, enable_detail_enrichment=False)

        assert result.pages_visited == 1
        assert fetcher.calls == [START]

    @pytest.mark.asyncio
    async def test_product_page_yields_single_record(self, sleep_recorder):
        url = BASE + "/item/7"
        fetcher = FakeFetcher({url: PRODUCT_PAGE})

        result = await pipeline(fetcher, sleep_recorder=sleep_recorder).run(url)

        assert result.verdict.page_type is PageType.PRODUCT
        assert result.adapters == ["product_page"]
        assert fetcher.calls == [url]
        [record] = result.records
        assert record.title == "Lamp Seven"
        assert record.sku == "LMP-7"
        assert record.price == "29.90"
        assert record.currency == "EUR"
        assert record.description == "Eine helle Lampe."

    @pytest.mark.asyncio
    async def test_start_page_failure(self, sleep_recorder):
        fetcher = FakeFetcher(errors={START: [HttpStatusError(START, 503)] * 5})

        with pytest.raises(StartPageFetchError):
            await pipeline(fetcher, sleep_recorder=sleep_recorder).run(START)

        # First attempt plus the configured start-page retries
        assert len(fetcher.calls) == 3
        assert len(sleep_recorder.delays) == 2

    @pytest.mark.asyncio
    async def test_start_page_client_error_is_not_retried(self, sleep_recorder):
        fetcher = FakeFetcher()

        with pytest.raises(StartPageFetchError):
            await pipeline(fetcher, sleep_recorder=sleep_recorder).run(START)

        assert fetcher.calls == [START]

    @pytest.mark.asyncio
    async def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            await pipeline(FakeFetcher()).run(START, speed_preset="turbo")
        with pytest.raises(ValueError):
            await pipeline(FakeFetcher()).run(START, limit=0)

    @pytest.mark.asyncio
    async def test_scrape_catalog_returns_dicts(self):
        fetcher = FakeFetcher(shop(list(range(1001, 1007))))

        records = await scrape_catalog(START, enable_detail_enrichment=False, fetcher=fetcher)

        assert len(records) == 6
        assert set(records[0]) == {"title", "sku", "price", "currency", "moq", "image_url", "detail_url", "description"}
