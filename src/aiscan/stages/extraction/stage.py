"""Content Extraction stage — fetch each discovered page into a PageContent record."""

from __future__ import annotations

import logging

from aiscan.schemas.config import ScannerConfig
from aiscan.schemas.scan import DiscoveredPage, PageContent
from aiscan.shared.fetcher import PageFetcher

logger = logging.getLogger(__name__)


class ExtractionStage:
    """Fetches pages one at a time; failures are dropped, never raised.

    No model call and no retries here, so the output can be shorter than
    the input — that difference is what ``pagesAnalysed`` reports.
    """

    name = "Content Extraction"

    def __init__(self, config: ScannerConfig, fetcher: PageFetcher) -> None:
        self.config = config
        self.fetcher = fetcher

    async def run(self, pages: list[DiscoveredPage]) -> list[PageContent]:
        contents: list[PageContent] = []
        for page in pages:
            result = await self.fetcher.fetch_page(page.url, timeout=self.config.fetch.page_timeout)
            if not result.ok or not result.content:
                logger.debug("Skipping %s (fetch failed or empty)", page.url)
                continue
            contents.append(
                PageContent(
                    url=page.url,
                    title=page.title,
                    description=result.content[: self.config.limits.description_chars],
                    content_type=page.category,
                )
            )
        logger.info("Extracted %d/%d pages", len(contents), len(pages))
        return contents
