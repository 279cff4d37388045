"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from aiscan.shared.llm_client import LLMClient


class ScriptedClient:
    """Reasoning client that replays scripted replies in call order.

    A reply that is an Exception instance is raised instead of returned.
    """

    def __init__(self, *replies: str | Exception) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []
        self.calls: list[dict] = []

    async def complete(self, prompt: str, *, model: str | None = None, max_tokens: int | None = None) -> str:
        self.prompts.append(prompt)
        self.calls.append({"model": model, "max_tokens": max_tokens})
        if not self.replies:
            raise AssertionError("ScriptedClient ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def site_transport(pages: dict[str, str], *, status: int = 200) -> httpx.MockTransport:
    """MockTransport serving ``pages`` (full URL -> body); anything else is a 404.

    A bare origin key like ``https://a.test`` also matches ``https://a.test/``.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        body = pages.get(url)
        if body is None and url.endswith("/"):
            body = pages.get(url.rstrip("/"))
        if body is None:
            body = pages.get(url + "/")
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(status, text=body)

    return httpx.MockTransport(handler)


def failing_transport() -> httpx.MockTransport:
    """MockTransport whose every request fails at the connection level."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


@pytest.fixture
def scripted() -> Callable[..., ScriptedClient]:
    return ScriptedClient


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    cfg = tmp_path / "scanner-config.yml"
    cfg.write_text(
        """\
max_pages: 4
max_opportunities: 2
fetch:
  page_timeout: 3
"""
    )
    return cfg


@pytest.fixture
def mock_llm_client() -> LLMClient:
    """Return an LLMClient with a mocked OpenAI SDK underneath."""
    client = LLMClient.__new__(LLMClient)
    client._client = AsyncMock()
    client.default_model = "gpt-4o-mini"
    client.max_retries = 3
    client.on_tokens = None
    return client
