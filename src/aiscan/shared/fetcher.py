"""HTTP page fetcher and HTML-to-text reduction shared by the scan stages."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from types import TracebackType

import httpx
from bs4 import BeautifulSoup

from aiscan.schemas.config import FetchSettings

logger = logging.getLogger(__name__)

_STRIP_TAGS = ("script", "style", "noscript", "template")
_WHITESPACE = re.compile(r"\s+")


def html_to_text(html: str, budget: int = 15_000) -> str:
    """Reduce raw HTML to plain text.

    Drops script/style blocks and all markup, collapses whitespace and
    truncates to ``budget`` characters.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_STRIP_TAGS):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return _WHITESPACE.sub(" ", text).strip()[:budget]


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a page fetch. ``ok`` is False for non-2xx, timeouts and network errors."""

    content: str
    ok: bool


class PageFetcher:
    """Async HTTP fetcher wrapping one ``httpx.AsyncClient``.

    One instance is opened per scan run, so no connection state or cookies
    leak between scans.

    Usage::

        async with PageFetcher(settings) as fetcher:
            result = await fetcher.fetch_page("https://example.com")
    """

    def __init__(
        self,
        settings: FetchSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or FetchSettings()
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "PageFetcher":
        self._http = httpx.AsyncClient(
            follow_redirects=True,
            transport=self._transport,
            headers={
                "User-Agent": self.settings.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    async def fetch_text(self, url: str, *, timeout: float | None = None) -> str | None:
        """GET ``url`` and return the raw body of a 2xx response, else None.

        ``timeout`` is a total deadline for the whole request, body included.
        """
        if self._http is None:
            raise RuntimeError("PageFetcher must be used inside 'async with'")
        deadline = timeout or self.settings.page_timeout
        try:
            resp = await asyncio.wait_for(self._http.get(url, timeout=deadline), deadline)
        except (httpx.TimeoutException, asyncio.TimeoutError):
            logger.debug("Timed out fetching %s", url)
            return None
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("Could not fetch %s: %s", url, exc)
            return None
        if not resp.is_success:
            logger.debug("Fetch of %s returned HTTP %d", url, resp.status_code)
            return None
        return resp.text

    async def fetch_page(self, url: str, *, timeout: float | None = None) -> FetchResult:
        """Fetch ``url`` and reduce it to plain text. Network and HTTP failures never raise."""
        html = await self.fetch_text(url, timeout=timeout)
        if html is None:
            return FetchResult(content="", ok=False)
        return FetchResult(content=html_to_text(html, self.settings.content_budget), ok=True)
