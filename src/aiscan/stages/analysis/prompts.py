"""Prompt for the opportunity analysis stage."""

from aiscan.schemas.scan import PageContent
from aiscan.stages.base import BRITISH_ENGLISH_INSTRUCTION

ANALYSIS_PROMPT = BRITISH_ENGLISH_INSTRUCTION + """

You are an expert AI strategist for {business_name}, a {industry} business.

Analyse their website content and identify {count} specific, high-impact AI opportunities.

Website URL: {base_url}

Website content:
{content_summary}

For each opportunity, consider:
- What specific problem does it solve for this business?
- How would AI specifically help?
- What's the implementation complexity?
- What's the potential business impact?

Return JSON in this exact format:
{{
  "opportunities": [
    {{
      "id": "opp-1",
      "title": "Short, compelling title",
      "description": "2-3 sentences explaining the opportunity and its value",
      "category": "chatbot|automation|personalisation|search|analytics|content|other",
      "targetPages": ["relevant page URLs"],
      "painPointsSolved": ["specific pain point 1", "specific pain point 2"],
      "complexity": 1-5,
      "impact": 1-5,
      "implementationSketch": "Brief technical approach in 1-2 sentences",
      "icon": "MessageSquare|Zap|Target|Search|BarChart|FileText|Sparkles"
    }}
  ]
}}

Focus on opportunities that are:
1. Specific to THIS business (not generic)
2. Actionable and realistic
3. High impact relative to complexity

Only return the JSON, no other text."""


def summarise_contents(contents: list[PageContent]) -> str:
    return "\n\n".join(
        f"Page: {c.title} ({c.url})\nContent: {c.description.strip()}" for c in contents
    )


def build_analysis_prompt(
    business_name: str,
    industry: str,
    base_url: str,
    contents: list[PageContent],
    count: int,
) -> str:
    return ANALYSIS_PROMPT.format(
        business_name=business_name,
        industry=industry,
        base_url=base_url,
        content_summary=summarise_contents(contents) or "(no page content could be retrieved)",
        count=count,
    )
