"""Tests for the LLMClient: mock the OpenAI SDK to test completion and retries."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest
from openai import APIConnectionError, RateLimitError

from aiscan.shared.llm_client import DryRunClient, _parse_retry_after
from aiscan.stages.base import extract_json


def _make_text_response(text: str | None, usage=None):
    """Create a mock OpenAI chat completion carrying ``text``."""
    message = SimpleNamespace(content=text, tool_calls=None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


def _rate_limit_error(message: str = "Rate limit reached", headers: dict | None = None) -> RateLimitError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(429, headers=headers or {}, request=request)
    return RateLimitError(message, response=response, body=None)


def _connection_error() -> APIConnectionError:
    return APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))


@pytest.fixture
def no_sleep(monkeypatch) -> AsyncMock:
    sleep = AsyncMock()
    monkeypatch.setattr("aiscan.shared.llm_client.asyncio.sleep", sleep)
    return sleep


class TestComplete:
    @pytest.mark.asyncio
    async def test_returns_text(self, mock_llm_client) -> None:
        mock_llm_client._client.chat.completions.create = AsyncMock(
            return_value=_make_text_response("Hello!")
        )
        assert await mock_llm_client.complete("hi") == "Hello!"

    @pytest.mark.asyncio
    async def test_sends_single_user_message(self, mock_llm_client) -> None:
        create = AsyncMock(return_value=_make_text_response("ok"))
        mock_llm_client._client.chat.completions.create = create

        await mock_llm_client.complete("the prompt", model="gpt-4o", max_tokens=123)

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["max_tokens"] == 123
        assert kwargs["messages"] == [{"role": "user", "content": "the prompt"}]

    @pytest.mark.asyncio
    async def test_defaults_model(self, mock_llm_client) -> None:
        create = AsyncMock(return_value=_make_text_response("ok"))
        mock_llm_client._client.chat.completions.create = create
        await mock_llm_client.complete("p")
        assert create.call_args.kwargs["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_none_content_becomes_empty(self, mock_llm_client) -> None:
        mock_llm_client._client.chat.completions.create = AsyncMock(
            return_value=_make_text_response(None)
        )
        assert await mock_llm_client.complete("p") == ""

    @pytest.mark.asyncio
    async def test_token_callback(self, mock_llm_client) -> None:
        seen: list[tuple[int, int]] = []
        mock_llm_client.on_tokens = lambda i, o: seen.append((i, o))
        usage = SimpleNamespace(prompt_tokens=11, completion_tokens=7)
        mock_llm_client._client.chat.completions.create = AsyncMock(
            return_value=_make_text_response("ok", usage=usage)
        )
        await mock_llm_client.complete("p")
        assert seen == [(11, 7)]


class TestRetry:
    @pytest.mark.asyncio
    async def test_retries_rate_limit_then_succeeds(self, mock_llm_client, no_sleep) -> None:
        mock_llm_client._client.chat.completions.create = AsyncMock(
            side_effect=[_rate_limit_error(), _make_text_response("ok")]
        )
        assert await mock_llm_client.complete("p") == "ok"
        assert no_sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self, mock_llm_client, no_sleep) -> None:
        mock_llm_client._client.chat.completions.create = AsyncMock(
            side_effect=[_connection_error(), _connection_error(), _make_text_response("ok")]
        )
        assert await mock_llm_client.complete("p") == "ok"
        assert no_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, mock_llm_client, no_sleep) -> None:
        create = AsyncMock(side_effect=_rate_limit_error())
        mock_llm_client._client.chat.completions.create = create
        with pytest.raises(RateLimitError):
            await mock_llm_client.complete("p")
        assert create.await_count == mock_llm_client.max_retries

    @pytest.mark.asyncio
    async def test_request_too_large_not_retried(self, mock_llm_client, no_sleep) -> None:
        create = AsyncMock(side_effect=_rate_limit_error("Request too large for gpt-4o"))
        mock_llm_client._client.chat.completions.create = create
        with pytest.raises(RateLimitError):
            await mock_llm_client.complete("p")
        assert create.await_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_honours_retry_after(self, mock_llm_client, no_sleep) -> None:
        mock_llm_client._client.chat.completions.create = AsyncMock(
            side_effect=[_rate_limit_error(headers={"retry-after": "20"}), _make_text_response("ok")]
        )
        await mock_llm_client.complete("p")
        delay = no_sleep.await_args.args[0]
        assert 15 <= delay <= 25


class TestParseRetryAfter:
    def test_header(self) -> None:
        assert _parse_retry_after(_rate_limit_error(headers={"retry-after": "3"})) == 3.0

    def test_message_seconds(self) -> None:
        assert _parse_retry_after(_rate_limit_error("Please try again in 1.5s.")) == 1.5

    def test_message_millis(self) -> None:
        assert _parse_retry_after(_rate_limit_error("Please try again in 250ms.")) == 0.25

    def test_missing(self) -> None:
        assert _parse_retry_after(_rate_limit_error("slow down")) is None


class TestDryRunClient:
    @pytest.mark.asyncio
    async def test_discovery_reply_uses_prompt_url(self) -> None:
        client = DryRunClient()
        reply = await client.complete(
            "Analyse this website and discover key pages.\nWebsite URL: https://shop.test\n"
        )
        data = extract_json(reply)
        assert data["pages"][0]["url"] == "https://shop.test"
        assert client.prompts and "shop.test" in client.prompts[0]

    @pytest.mark.asyncio
    async def test_analysis_and_synthesis_replies(self) -> None:
        client = DryRunClient()
        analysis = extract_json(await client.complete("Website URL: https://a.test\nFind opportunities"))
        assert [o["id"] for o in analysis["opportunities"]] == ["opp-1", "opp-2"]
        summary = await client.complete("Write a brief summary")
        assert extract_json(summary) is None
        assert summary
