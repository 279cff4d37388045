"""Page Discovery stage — identify the business and its key pages."""

from __future__ import annotations

import logging
from urllib.parse import urljoin, urlsplit

from pydantic import ValidationError

from aiscan.schemas.config import ScannerConfig
from aiscan.schemas.scan import BusinessInfo, DiscoveredPage, DiscoveryOutput
from aiscan.shared.fetcher import PageFetcher
from aiscan.shared.llm_client import ReasoningClient
from aiscan.stages.base import BaseStage
from aiscan.stages.discovery.prompts import build_discovery_prompt

logger = logging.getLogger(__name__)


def homepage_fallback(base_url: str) -> DiscoveredPage:
    """The single synthetic page used when the model gives us nothing usable."""
    return DiscoveredPage(url=base_url, title="Homepage", category="homepage", priority=10)


class DiscoveryStage(BaseStage):
    """Probes for a sitemap, reads the homepage and asks the model for key pages.

    Never fails the pipeline on a bad model reply: it degrades to the
    homepage alone with placeholder business details. Errors raised by the
    reasoning client itself do propagate.
    """

    def __init__(self, client: ReasoningClient, config: ScannerConfig, fetcher: PageFetcher) -> None:
        super().__init__(client, config)
        self.fetcher = fetcher

    @property
    def name(self) -> str:
        return "Page Discovery"

    async def find_sitemap(self, base_url: str) -> str:
        """Try each conventional sitemap location; the first 2xx wins.

        Returns the sitemap body, or an empty string if none responded.
        """
        parts = urlsplit(base_url)
        origin = f"{parts.scheme}://{parts.netloc}"
        for path in self.config.fetch.sitemap_paths:
            sitemap_url = origin + path
            body = await self.fetcher.fetch_text(
                sitemap_url, timeout=self.config.fetch.sitemap_timeout,
            )
            if body is not None:
                logger.info("Sitemap found at %s (%d chars)", sitemap_url, len(body))
                return body
        logger.info("No sitemap found for %s", origin)
        return ""

    async def run(self, base_url: str, max_pages: int) -> DiscoveryOutput:
        sitemap = await self.find_sitemap(base_url)
        homepage = await self.fetcher.fetch_page(base_url, timeout=self.config.fetch.page_timeout)
        if not homepage.ok:
            logger.warning("Homepage %s could not be fetched; continuing without its content", base_url)

        limits = self.config.limits
        prompt = build_discovery_prompt(
            base_url,
            sitemap,
            homepage.content,
            max_pages,
            sitemap_chars=limits.sitemap_chars,
            homepage_chars=limits.homepage_chars,
        )
        models = self.config.models
        result = await self._complete_json(
            prompt, model=models.discovery_model, max_tokens=models.discovery_max_tokens,
        )
        return self.parse_output(result, base_url, max_pages)

    def parse_output(self, result: object, base_url: str, max_pages: int) -> DiscoveryOutput:
        """Turn the parsed model reply into a DiscoveryOutput, degrading gracefully."""
        if not isinstance(result, dict):
            logger.warning("Discovery reply unusable — falling back to the homepage only")
            return DiscoveryOutput(business=BusinessInfo(), pages=[homepage_fallback(base_url)])

        business = BusinessInfo(
            name=_text_or(result.get("businessName"), "Unknown Business"),
            industry=_text_or(result.get("industry"), "Unknown"),
        )

        pages: list[DiscoveredPage] = []
        raw_pages = result.get("pages")
        for entry in raw_pages if isinstance(raw_pages, list) else []:
            if not isinstance(entry, dict) or not entry.get("url"):
                continue
            try:
                page = DiscoveredPage.model_validate(
                    {**entry, "url": urljoin(base_url, str(entry["url"]).strip())}
                )
            except ValidationError as exc:
                logger.debug("Dropping malformed page entry %r: %s", entry, exc)
                continue
            if urlsplit(page.url).scheme not in ("http", "https"):
                continue
            pages.append(page)

        if not pages:
            logger.warning("Discovery returned no usable pages — using the homepage only")
            pages = [homepage_fallback(base_url)]

        return DiscoveryOutput(business=business, pages=pages[:max_pages])


def _text_or(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default
