"""Prompt for the summary synthesis stage."""

from aiscan.schemas.scan import AIOpportunity
from aiscan.stages.base import BRITISH_ENGLISH_INSTRUCTION

SUMMARY_PROMPT = BRITISH_ENGLISH_INSTRUCTION + """

Write a brief, compelling summary (2-3 sentences) for {business_name} ({industry}) about their AI opportunities.

Opportunities found:
{opportunity_lines}

Top recommendation: {top_title}

The summary should:
- Be conversational and engaging
- Highlight the potential value
- Create urgency to explore further

Return only the summary text, nothing else."""


def build_summary_prompt(
    business_name: str,
    industry: str,
    opportunities: list[AIOpportunity],
    top: AIOpportunity | None,
) -> str:
    lines = "\n".join(f"- {o.title}: {o.description}" for o in opportunities)
    return SUMMARY_PROMPT.format(
        business_name=business_name,
        industry=industry,
        opportunity_lines=lines or "- (none identified)",
        top_title=top.title if top else "None",
    )
