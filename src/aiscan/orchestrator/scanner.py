"""Pipeline orchestrator — runs the four stages and yields progress events."""

from __future__ import annotations

import logging
from typing import AsyncIterator
from urllib.parse import urlsplit

import httpx

from aiscan.errors import InvalidURLError
from aiscan.schemas.config import ScannerConfig
from aiscan.schemas.progress import ProgressEvent
from aiscan.schemas.scan import ScanResult
from aiscan.shared.fetcher import PageFetcher
from aiscan.shared.llm_client import ReasoningClient
from aiscan.stages.analysis.stage import AnalysisStage
from aiscan.stages.discovery.stage import DiscoveryStage
from aiscan.stages.extraction.stage import ExtractionStage
from aiscan.stages.synthesis.stage import SynthesisStage

logger = logging.getLogger(__name__)


def validate_target_url(target_url: str) -> str:
    """Return the URL unchanged if it is an absolute http(s) URL, else raise InvalidURLError."""
    if not isinstance(target_url, str) or not target_url.strip():
        raise InvalidURLError(str(target_url), "URL is empty")
    try:
        parts = urlsplit(target_url.strip())
        # Accessing .port validates the port number.
        _ = parts.port
    except ValueError as exc:
        raise InvalidURLError(target_url, str(exc)) from exc
    if parts.scheme not in ("http", "https"):
        raise InvalidURLError(target_url, "only http and https URLs can be scanned")
    if not parts.hostname:
        raise InvalidURLError(target_url, "URL has no host")
    return target_url.strip()


def error_event(detail: str) -> ProgressEvent:
    return ProgressEvent(stage="error", message="Analysis failed", detail=detail, progress=0)


class Scanner:
    """Coordinates one or more independent scans.

    Pipeline flow (strictly sequential):
        discovery → extraction → analysis → synthesis

    ``scan`` is an async generator, so the caller paces the work: the next
    stage does not start until the previous event has been consumed.
    """

    def __init__(
        self,
        client: ReasoningClient,
        config: ScannerConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client = client
        self.config = config or ScannerConfig()
        self._transport = transport

    async def scan(self, target_url: str, max_pages: int | None = None) -> AsyncIterator[ProgressEvent]:
        """Yield progress events for one scan, ending in exactly one ``complete`` or ``error``."""
        try:
            url = validate_target_url(target_url)
        except InvalidURLError as exc:
            logger.info("Rejected scan target: %s", exc)
            yield error_event(str(exc))
            return

        max_pages = self.config.effective_max_pages(max_pages)

        try:
            yield ProgressEvent(
                stage="initialising",
                message="Preparing to analyse your website",
                detail=url,
                progress=5,
            )

            async with PageFetcher(self.config.fetch, transport=self._transport) as fetcher:
                # ── Discovery ────────────────────────────────────────
                yield ProgressEvent(
                    stage="discovering",
                    message="Discovering your website structure",
                    detail="Looking for sitemap and key pages...",
                    progress=15,
                )
                discovery = await DiscoveryStage(self.client, self.config, fetcher).run(url, max_pages)
                business = discovery.business
                yield ProgressEvent(
                    stage="discovering",
                    message=f"Found {len(discovery.pages)} key pages",
                    detail=f"Analysing {business.name} ({business.industry})",
                    progress=30,
                )

                # ── Extraction ───────────────────────────────────────
                yield ProgressEvent(
                    stage="fetching",
                    message="Reading your website content",
                    detail=f"Extracting content from {len(discovery.pages)} pages...",
                    progress=40,
                )
                contents = await ExtractionStage(self.config, fetcher).run(discovery.pages)
                yield ProgressEvent(
                    stage="fetching",
                    message="Content extracted successfully",
                    detail=f"Processed {len(contents)} pages",
                    progress=55,
                )

            # ── Analysis ─────────────────────────────────────────────
            yield ProgressEvent(
                stage="analysing",
                message="Identifying AI opportunities",
                detail="Our AI is analysing your business for potential solutions...",
                progress=65,
            )
            opportunities = await AnalysisStage(self.client, self.config).run(business, url, contents)
            yield ProgressEvent(
                stage="analysing",
                message=f"Found {len(opportunities)} opportunities",
                detail="Ranking by impact and feasibility...",
                progress=80,
            )

            # ── Synthesis ────────────────────────────────────────────
            yield ProgressEvent(
                stage="generating",
                message="Generating your personalised insights",
                detail="Creating actionable recommendations...",
                progress=90,
            )
            summary, top = await SynthesisStage(self.client, self.config).run(business, opportunities)

            result = ScanResult(
                url=url,
                business_name=business.name,
                industry=business.industry,
                pages_analysed=len(contents),
                opportunities=opportunities,
                top_recommendation=top,
                summary=summary,
            )
        except Exception as exc:
            logger.exception("Scan of %s failed", url)
            yield error_event(str(exc) or type(exc).__name__)
            return

        logger.info(
            "Scan of %s complete: %d pages, %d opportunities",
            url, result.pages_analysed, len(result.opportunities),
        )
        yield ProgressEvent(
            stage="complete",
            message="Analysis complete",
            detail=summary,
            progress=100,
            data=result,
        )


async def run_scan(
    scanner: Scanner,
    target_url: str,
    max_pages: int | None = None,
    *,
    on_event=None,
) -> ProgressEvent:
    """Drain a scan and return its terminal event.

    ``on_event`` (if given) is called with every event, terminal included.
    """
    terminal: ProgressEvent | None = None
    async for event in scanner.scan(target_url, max_pages):
        if on_event:
            on_event(event)
        if event.is_terminal:
            terminal = event
    if terminal is None:
        raise RuntimeError("scan ended without a terminal event")
    return terminal
