"""Progress events — the only thing a caller sees while a scan runs."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from aiscan.schemas.scan import ScanResult

ScanStage = Literal[
    "initialising", "discovering", "fetching", "analysing", "generating", "complete", "error",
]

TERMINAL_STAGES: frozenset[str] = frozenset({"complete", "error"})


class ProgressEvent(BaseModel):
    """One unit of the scan's observable output stream.

    ``data`` is only set on the terminal ``complete`` event.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    stage: ScanStage
    message: str
    detail: str | None = None
    progress: int = Field(default=0, ge=0, le=100)
    data: ScanResult | None = None

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys; absent ``detail``/``data`` are omitted."""
        payload = self.model_dump(mode="json", by_alias=True)
        for key in ("detail", "data"):
            if payload.get(key) is None:
                payload.pop(key, None)
        return payload
