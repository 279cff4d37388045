"""Tests for the Page Discovery stage."""

from __future__ import annotations

import json

import httpx
import pytest

from aiscan.schemas.config import ScannerConfig
from aiscan.shared.fetcher import PageFetcher
from aiscan.stages.discovery.stage import DiscoveryStage, homepage_fallback

from conftest import ScriptedClient, site_transport

BASE = "https://acme.test"


def _reply(**payload) -> str:
    return "```json\n" + json.dumps(payload) + "\n```"


async def _run(client, transport, *, max_pages: int = 8, base_url: str = BASE):
    config = ScannerConfig()
    async with PageFetcher(config.fetch, transport=transport) as fetcher:
        return await DiscoveryStage(client, config, fetcher).run(base_url, max_pages)


class TestFindSitemap:
    @pytest.mark.asyncio
    async def test_first_responding_path_wins(self) -> None:
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.path)
            if request.url.path == "/sitemap_index.xml":
                return httpx.Response(200, text="<sitemapindex/>")
            return httpx.Response(404)

        config = ScannerConfig()
        async with PageFetcher(transport=httpx.MockTransport(handler)) as fetcher:
            body = await DiscoveryStage(ScriptedClient(), config, fetcher).find_sitemap(BASE + "/shop?x=1")

        assert body == "<sitemapindex/>"
        assert requested == ["/sitemap.xml", "/sitemap_index.xml"]

    @pytest.mark.asyncio
    async def test_none_found(self) -> None:
        async with PageFetcher(transport=site_transport({})) as fetcher:
            body = await DiscoveryStage(ScriptedClient(), ScannerConfig(), fetcher).find_sitemap(BASE)
        assert body == ""


class TestDiscoveryRun:
    @pytest.mark.asyncio
    async def test_happy_path(self) -> None:
        client = ScriptedClient(_reply(
            businessName="Acme Plumbing",
            industry="Home Services",
            pages=[
                {"url": f"{BASE}/", "title": "Home", "category": "homepage", "priority": 10},
                {"url": "/services", "title": "Services", "category": "service", "priority": 9},
            ],
        ))
        transport = site_transport({
            f"{BASE}/sitemap.xml": "<urlset><url><loc>https://acme.test/services</loc></url></urlset>",
            BASE: "<h1>Acme Plumbing</h1>",
        })

        out = await _run(client, transport)

        assert out.business.name == "Acme Plumbing"
        assert out.business.industry == "Home Services"
        assert [p.url for p in out.pages] == [f"{BASE}/", f"{BASE}/services"]
        prompt = client.prompts[0]
        assert "acme.test/services" in prompt
        assert "Acme Plumbing" in prompt
        assert client.calls[0]["model"] == ScannerConfig().models.discovery_model

    @pytest.mark.asyncio
    async def test_truncates_to_max_pages(self) -> None:
        pages = [{"url": f"{BASE}/p{i}", "title": f"P{i}", "category": "other", "priority": 5} for i in range(6)]
        client = ScriptedClient(_reply(businessName="A", industry="B", pages=pages))

        out = await _run(client, site_transport({}), max_pages=3)

        assert len(out.pages) == 3
        assert out.pages[0].url == f"{BASE}/p0"

    @pytest.mark.asyncio
    async def test_unparseable_reply_falls_back_to_homepage(self) -> None:
        client = ScriptedClient("I could not work out what this site is about.")

        out = await _run(client, site_transport({}))

        assert out.business.name == "Unknown Business"
        assert out.business.industry == "Unknown"
        assert out.pages == [homepage_fallback(BASE)]
        assert out.pages[0].priority == 10

    @pytest.mark.asyncio
    async def test_unreachable_site_still_asks_model(self) -> None:
        client = ScriptedClient(_reply(businessName="Ghost", industry="Unknown", pages=[]))

        out = await _run(client, site_transport({}))

        assert len(client.prompts) == 1
        assert out.business.name == "Ghost"
        assert out.pages == [homepage_fallback(BASE)]

    @pytest.mark.asyncio
    async def test_client_errors_propagate(self) -> None:
        client = ScriptedClient(RuntimeError("model unavailable"))
        with pytest.raises(RuntimeError, match="model unavailable"):
            await _run(client, site_transport({}))


class TestParseOutput:
    def _stage(self) -> DiscoveryStage:
        return DiscoveryStage(ScriptedClient(), ScannerConfig(), fetcher=None)  # type: ignore[arg-type]

    def test_missing_business_fields_use_placeholders(self) -> None:
        out = self._stage().parse_output({"pages": [{"url": BASE}]}, BASE, 8)
        assert out.business.name == "Unknown Business"
        assert out.business.industry == "Unknown"
        assert out.pages[0].url == BASE

    def test_drops_malformed_entries(self) -> None:
        result = {
            "businessName": "A",
            "industry": "B",
            "pages": [
                "not a dict",
                {"title": "no url"},
                {"url": "mailto:hello@acme.test"},
                {"url": f"{BASE}/bad-priority", "priority": "urgent"},
                {"url": f"{BASE}/ok", "category": "pricing", "priority": 99},
            ],
        }
        out = self._stage().parse_output(result, BASE, 8)
        assert len(out.pages) == 1
        page = out.pages[0]
        assert page.url == f"{BASE}/ok"
        assert page.category == "other"
        assert page.priority == 10

    def test_pages_not_a_list(self) -> None:
        out = self._stage().parse_output({"businessName": "A", "pages": "none"}, BASE, 8)
        assert out.business.name == "A"
        assert out.pages == [homepage_fallback(BASE)]

    def test_array_reply_falls_back(self) -> None:
        out = self._stage().parse_output([{"url": BASE}], BASE, 8)
        assert out.business.name == "Unknown Business"
        assert out.pages == [homepage_fallback(BASE)]
