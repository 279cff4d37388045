"""Pydantic models for the records flowing through the scan pipeline.

Python attributes are snake_case; the JSON names (model replies, wire
events, API bodies) are camelCase via the alias generator.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

PageCategory = Literal[
    "homepage", "product", "service", "blog", "documentation", "about", "contact", "other",
]
OpportunityCategory = Literal[
    "chatbot", "automation", "personalisation", "search", "analytics", "content", "other",
]

_PAGE_CATEGORIES = set(PageCategory.__args__)  # type: ignore[attr-defined]
_OPPORTUNITY_CATEGORIES = set(OpportunityCategory.__args__)  # type: ignore[attr-defined]


def _clamp_int(value: object, low: int, high: int) -> int:
    """Coerce a model-supplied score to an int inside [low, high]."""
    if isinstance(value, bool):
        raise ValueError("score must be a number")
    try:
        number = int(round(float(value)))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(f"score must be a number, got {value!r}")
    return max(low, min(high, number))


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class DiscoveredPage(_Record):
    """A key page picked by the discovery stage."""

    url: str
    title: str = ""
    category: PageCategory = "other"
    priority: int = 5  # 1-10

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v: object) -> object:
        v = str(v or "").strip().lower()
        return v if v in _PAGE_CATEGORIES else "other"

    @field_validator("priority", mode="before")
    @classmethod
    def clamp_priority(cls, v: object) -> int:
        return _clamp_int(v, 1, 10)

    @field_validator("title", mode="before")
    @classmethod
    def coerce_none_to_empty(cls, v: object) -> object:
        return "" if v is None else v


class PageContent(_Record):
    """Normalised content of one successfully fetched page."""

    url: str
    title: str
    description: str  # first N chars of the page text
    content_type: str


class AIOpportunity(_Record):
    """A single AI adoption opportunity proposed by the analysis stage."""

    id: str
    title: str
    description: str = ""
    category: OpportunityCategory = "other"
    target_pages: list[str] = []
    pain_points_solved: list[str] = []
    complexity: int = 3  # 1-5
    impact: int = 3      # 1-5
    implementation_sketch: str = ""
    icon: str = "Sparkles"

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v: object) -> object:
        v = str(v or "").strip().lower()
        if v == "personalization":
            v = "personalisation"
        return v if v in _OPPORTUNITY_CATEGORIES else "other"

    @field_validator("complexity", "impact", mode="before")
    @classmethod
    def clamp_score(cls, v: object) -> int:
        return _clamp_int(v, 1, 5)

    @field_validator("target_pages", "pain_points_solved", mode="before")
    @classmethod
    def coerce_list(cls, v: object) -> object:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @property
    def score(self) -> int:
        """Ranking score — favours impact, penalises complexity."""
        return self.impact * 2 - self.complexity


class BusinessInfo(_Record):
    name: str = "Unknown Business"
    industry: str = "Unknown"


class DiscoveryOutput(_Record):
    """What the discovery stage hands to extraction."""

    business: BusinessInfo
    pages: list[DiscoveredPage]


class ScanResult(_Record):
    """The terminal aggregate for one scan — built once, never mutated."""

    url: str
    business_name: str
    industry: str
    pages_analysed: int
    opportunities: list[AIOpportunity] = []
    top_recommendation: AIOpportunity | None = None
    summary: str = ""
