"""Base stage ABC and the best-effort JSON extractor every model-backed stage uses."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from aiscan.schemas.config import ScannerConfig
from aiscan.shared.llm_client import ReasoningClient

logger = logging.getLogger(__name__)

BRITISH_ENGLISH_INSTRUCTION = (
    "You must use British English spelling throughout "
    "(e.g., analyse, optimise, personalise, organisation, colour, centre)."
)

_JSON_FENCE = re.compile(r"```json[ \t]*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)


def _span_end(text: str, start: int) -> int:
    """Index just past the bracket that closes ``text[start]``, or -1 if it never closes."""
    depth = 0
    in_string = escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in "[{":
            depth += 1
        elif ch in "]}":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def extract_json(text: str) -> Any | None:
    """Extract a single JSON value from free-form model output.

    Tries, in order:
    1. a fenced code block explicitly marked ``json``
    2. the first top-level ``{...}`` span
    3. the first top-level ``[...]`` span

    A ``{`` inside an earlier ``[...]`` is not top-level, so a bare array of
    objects is returned whole. The first pattern that matches is parsed. If
    that parse fails, or no pattern matches, returns None. Never raises.
    """
    if not text:
        return None

    match = _JSON_FENCE.search(text)
    if match:
        try:
            return json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            return None

    decoder = json.JSONDecoder()
    obj_start = text.find("{")
    arr_start = text.find("[")

    if obj_start != -1 and text.rfind("}") > obj_start:
        nested = False
        if arr_start != -1 and arr_start < obj_start:
            arr_end = _span_end(text, arr_start)
            nested = arr_end == -1 or arr_end > obj_start
        if not nested:
            try:
                return decoder.raw_decode(text, idx=obj_start)[0]
            except json.JSONDecodeError:
                return None

    if arr_start != -1 and text.rfind("]") > arr_start:
        try:
            return decoder.raw_decode(text, idx=arr_start)[0]
        except json.JSONDecodeError:
            return None

    return None


class BaseStage(ABC):
    """Abstract base class for the model-backed pipeline stages.

    Subclasses implement:
    - ``name`` — human-readable stage name for logs
    - ``run(...)`` — the stage itself, with whatever inputs it needs
    """

    def __init__(self, client: ReasoningClient, config: ScannerConfig) -> None:
        self.client = client
        self.config = config

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for logging."""

    @abstractmethod
    async def run(self, *args: Any, **kwargs: Any) -> Any:
        """Execute the stage."""

    async def _complete(self, prompt: str, *, model: str, max_tokens: int) -> str:
        """Send a prompt to the reasoning client. Errors propagate to the orchestrator."""
        logger.debug("Stage %s prompt (%d chars)", self.name, len(prompt))
        raw = await self.client.complete(prompt, model=model, max_tokens=max_tokens)
        logger.debug("Stage %s raw output:\n%s", self.name, raw[:500])
        return raw

    async def _complete_json(self, prompt: str, *, model: str, max_tokens: int) -> Any | None:
        """Like ``_complete`` but runs the reply through ``extract_json``.

        Returns None when the reply holds no parseable JSON.
        """
        raw = await self._complete(prompt, model=model, max_tokens=max_tokens)
        result = extract_json(raw)
        if result is None:
            logger.warning(
                "Stage %s output was not valid JSON (length=%d). First 300 chars: %r",
                self.name, len(raw), raw[:300],
            )
        return result
