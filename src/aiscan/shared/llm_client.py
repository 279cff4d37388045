"""Async OpenAI API wrapper used as the scan pipeline's reasoning client.

The pipeline only needs one operation — send a prompt, get free-form text
back — so the contract is the ``ReasoningClient`` protocol. Transport
resilience (rate-limit and connection retries) lives here, never in the
stages.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
from typing import Any, Callable, Protocol

from openai import AsyncOpenAI, APIConnectionError, APITimeoutError, RateLimitError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_TOKENS = 2_000

# Retry settings for rate-limit (429) and connection errors
_MAX_RETRIES = 5
_BASE_DELAY = 2  # seconds


class ReasoningClient(Protocol):
    """Anything that turns a prompt into model text."""

    async def complete(
        self,
        prompt: str,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> str: ...


TokensCallback = Callable[[int, int], None]
"""Called with (input_tokens, output_tokens) when a completion finishes."""


def _parse_retry_after(exc: RateLimitError) -> float | None:
    """Extract the suggested retry delay from an OpenAI rate limit error.

    Checks the ``Retry-After`` header first, then falls back to parsing
    the "Please try again in Xs / Xms" substring from the error message.
    Returns seconds as a float, or None if not found.
    """
    try:
        headers = exc.response.headers  # type: ignore[union-attr]
        if retry_after := headers.get("retry-after"):
            return float(retry_after)
    except (AttributeError, TypeError, ValueError):
        pass

    m = re.search(r"try again in (\d+(?:\.\d+)?)\s*(ms|s)\b", str(exc), re.IGNORECASE)
    if m:
        value = float(m.group(1))
        return value / 1000 if m.group(2).lower() == "ms" else value

    return None


def _backoff_delay(attempt: int, suggested: float | None = None) -> float:
    """Exponential backoff (floored by ``suggested``) with ±25% jitter, never under 1s."""
    base = max(suggested or 0.0, _BASE_DELAY * (2 ** attempt))
    return max(1.0, base + random.uniform(-0.25 * base, 0.25 * base))


class LLMClient:
    """Thin async wrapper around the OpenAI SDK.

    ``complete`` is a single request/response call: one user message in,
    the assistant's text out. No streaming, no tools, no JSON mode — the
    stages parse whatever comes back themselves.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        default_model: str = DEFAULT_MODEL,
        max_retries: int = _MAX_RETRIES,
        on_tokens: TokensCallback | None = None,
    ) -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self.default_model = default_model
        self.max_retries = max_retries
        self.on_tokens = on_tokens

    async def _call_with_retry(self, **kwargs: Any) -> Any:
        """Call chat.completions.create with exponential backoff on 429 / network errors.

        A 429 waits at least as long as OpenAI's suggested retry-after time.
        Requests that are themselves over the token limit fail immediately.
        """
        last_attempt = self.max_retries - 1
        for attempt in range(self.max_retries):
            try:
                return await self._client.chat.completions.create(**kwargs)
            except RateLimitError as exc:
                msg = str(exc).lower()
                if "request too large" in msg or "context_length_exceeded" in msg:
                    logger.error("Request exceeds token limit (not retryable): %s", exc)
                    raise
                if attempt == last_attempt:
                    raise
                delay = _backoff_delay(attempt, _parse_retry_after(exc))
                logger.warning(
                    "Rate limited (429), retrying in %.1fs (attempt %d/%d): %s",
                    delay, attempt + 1, self.max_retries, exc,
                )
            except (APIConnectionError, APITimeoutError) as exc:
                if attempt == last_attempt:
                    raise
                delay = _backoff_delay(min(attempt, 3))
                logger.warning(
                    "Connection error, retrying in %.1fs (attempt %d/%d): %s",
                    delay, attempt + 1, self.max_retries, exc,
                )
            await asyncio.sleep(delay)

    async def complete(
        self,
        prompt: str,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send ``prompt`` as a single user message and return the reply text."""
        response = await self._call_with_retry(
            model=model or self.default_model,
            max_tokens=max_tokens or DEFAULT_MAX_TOKENS,
            messages=[{"role": "user", "content": prompt}],
        )
        usage = getattr(response, "usage", None)
        if self.on_tokens and usage:
            self.on_tokens(getattr(usage, "prompt_tokens", 0), getattr(usage, "completion_tokens", 0))
        return response.choices[0].message.content or ""


# ======================================================================
# Dry-run client: canned replies, no API calls
# ======================================================================

_DRY_RUN_REPLIES: dict[str, str] = {
    "discovery": "```json\n" + json.dumps({
        "businessName": "Example Ltd",
        "industry": "Professional Services",
        "pages": [
            {"url": "{base_url}", "title": "Homepage", "category": "homepage", "priority": 10},
        ],
    }, indent=2) + "\n```",
    "analysis": json.dumps({
        "opportunities": [
            {
                "id": "opp-1",
                "title": "24/7 enquiry assistant",
                "description": "An AI assistant that answers common client questions from your service pages.",
                "category": "chatbot",
                "targetPages": ["{base_url}"],
                "painPointsSolved": ["Slow response to enquiries", "Repetitive questions"],
                "complexity": 2,
                "impact": 4,
                "implementationSketch": "Retrieval over site content behind a chat widget.",
                "icon": "MessageSquare",
            },
            {
                "id": "opp-2",
                "title": "Proposal drafting",
                "description": "Draft first-pass proposals from intake notes.",
                "category": "automation",
                "targetPages": [],
                "painPointsSolved": ["Time spent on proposals"],
                "complexity": 3,
                "impact": 4,
                "implementationSketch": "Template-guided generation reviewed by staff.",
                "icon": "Zap",
            },
        ],
    }),
    "synthesis": (
        "Example Ltd could answer enquiries around the clock and cut proposal "
        "time with two focused AI tools. The enquiry assistant is the quickest win."
    ),
}


class DryRunClient:
    """Drop-in replacement for LLMClient that makes zero API calls.

    Picks a canned reply by recognising which stage built the prompt.
    """

    def __init__(self) -> None:
        self.prompts: list[str] = []

    async def complete(
        self,
        prompt: str,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        self.prompts.append(prompt)
        key = self._detect_stage(prompt)
        reply = _DRY_RUN_REPLIES[key]
        base_url = _extract_website_url(prompt)
        logger.info("[dry-run] %s completion (%d prompt chars)", key, len(prompt))
        return reply.replace("{base_url}", base_url)

    @staticmethod
    def _detect_stage(prompt: str) -> str:
        """Guess which stage sent the prompt.

        Order matters — the summary prompt also mentions opportunities.
        """
        if "discover key pages" in prompt:
            return "discovery"
        if "Write a brief" in prompt:
            return "synthesis"
        return "analysis"


def _extract_website_url(prompt: str) -> str:
    m = re.search(r"Website URL:\s*(\S+)", prompt)
    return m.group(1) if m else "https://example.com"
