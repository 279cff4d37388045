"""Line-oriented wire encoding for progress events."""

from __future__ import annotations

import json
from typing import AsyncIterator, Iterable, Iterator

from aiscan.schemas.progress import ProgressEvent

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def encode_event(event: ProgressEvent) -> str:
    """One JSON object per line, newline-terminated."""
    return json.dumps(event.to_wire(), ensure_ascii=False, separators=(",", ":")) + "\n"


def encode_sse(event: ProgressEvent) -> str:
    """The same JSON as a Server-Sent Events ``data:`` frame."""
    return f"data: {json.dumps(event.to_wire(), ensure_ascii=False)}\n\n"


def decode_event(line: str) -> ProgressEvent:
    """Parse one NDJSON line back into a ProgressEvent."""
    return ProgressEvent.model_validate_json(line.strip())


def decode_stream(lines: Iterable[str]) -> Iterator[ProgressEvent]:
    """Decode every non-blank line of an NDJSON stream."""
    for line in lines:
        if line.strip():
            yield decode_event(line)


async def encode_stream(events: AsyncIterator[ProgressEvent]) -> AsyncIterator[str]:
    """Encode an event stream lazily — one line per pulled event."""
    async for event in events:
        yield encode_event(event)
