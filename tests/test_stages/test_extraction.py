"""Tests for the Content Extraction stage."""

import pytest

from aiscan.schemas.config import PromptLimits, ScannerConfig
from aiscan.schemas.scan import DiscoveredPage
from aiscan.shared.fetcher import PageFetcher
from aiscan.stages.extraction.stage import ExtractionStage

from conftest import failing_transport, site_transport


def _pages(*paths: str) -> list[DiscoveredPage]:
    return [
        DiscoveredPage(url=f"https://shop.test{p}", title=p.strip("/") or "Home", category="product")
        for p in paths
    ]


@pytest.mark.asyncio
async def test_builds_page_content() -> None:
    transport = site_transport({"https://shop.test/shoes": "<h1>Shoes</h1><p>Running shoes for everyone.</p>"})
    config = ScannerConfig()
    async with PageFetcher(transport=transport) as fetcher:
        contents = await ExtractionStage(config, fetcher).run(_pages("/shoes"))

    assert len(contents) == 1
    content = contents[0]
    assert content.url == "https://shop.test/shoes"
    assert content.title == "shoes"
    assert content.description == "Shoes Running shoes for everyone."
    assert content.content_type == "product"


@pytest.mark.asyncio
async def test_failed_pages_are_dropped_in_order() -> None:
    transport = site_transport({
        "https://shop.test/a": "<p>A</p>",
        "https://shop.test/c": "<p>C</p>",
        "https://shop.test/empty": "<script>only()</script>",
    })
    async with PageFetcher(transport=transport) as fetcher:
        contents = await ExtractionStage(ScannerConfig(), fetcher).run(_pages("/a", "/b", "/empty", "/c"))

    assert [c.url for c in contents] == ["https://shop.test/a", "https://shop.test/c"]


@pytest.mark.asyncio
async def test_all_failures_give_empty_list() -> None:
    async with PageFetcher(transport=failing_transport()) as fetcher:
        contents = await ExtractionStage(ScannerConfig(), fetcher).run(_pages("/a", "/b"))
    assert contents == []


@pytest.mark.asyncio
async def test_description_truncated() -> None:
    transport = site_transport({"https://shop.test/long": "<p>" + "word " * 400 + "</p>"})
    config = ScannerConfig(limits=PromptLimits(description_chars=50))
    async with PageFetcher(transport=transport) as fetcher:
        contents = await ExtractionStage(config, fetcher).run(_pages("/long"))
    assert len(contents[0].description) == 50
