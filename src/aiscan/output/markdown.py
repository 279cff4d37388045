"""Markdown report builder — renders a ScanResult to a structured Markdown document."""

from __future__ import annotations

from datetime import datetime

from aiscan.schemas.scan import AIOpportunity, ScanResult

_CATEGORY_LABELS = {
    "chatbot": "Chatbot",
    "automation": "Automation",
    "personalisation": "Personalisation",
    "search": "Search",
    "analytics": "Analytics",
    "content": "Content",
    "other": "Other",
}


def _stars(score: int) -> str:
    return "★" * score + "☆" * (5 - score)


def render_markdown_report(result: ScanResult, *, generated_at: str | None = None) -> str:
    """Render a ScanResult into a Markdown string."""
    sections: list[str] = []

    sections.append(f"# AI Opportunity Report: {result.business_name}\n")
    sections.append(f"*Generated: {generated_at or datetime.now().isoformat(timespec='seconds')}*\n")

    sections.append(f"- **Website:** {result.url}")
    sections.append(f"- **Industry:** {result.industry}")
    sections.append(f"- **Pages analysed:** {result.pages_analysed}")
    sections.append(f"- **Opportunities found:** {len(result.opportunities)}")
    sections.append("")

    if result.summary:
        sections.append("## Summary\n")
        sections.append(result.summary + "\n")

    if result.top_recommendation:
        top = result.top_recommendation
        sections.append("## Top Recommendation\n")
        sections.append(f"**{top.title}** — {top.description}\n")

    if not result.opportunities:
        sections.append("## Opportunities\n")
        sections.append("_No opportunities could be identified from the pages we were able to read._\n")
        return "\n".join(sections)

    sections.append("## Opportunities\n")
    sections.append("| # | Opportunity | Category | Impact | Complexity |")
    sections.append("|---|-------------|----------|--------|------------|")
    for i, opp in enumerate(result.opportunities, 1):
        sections.append(
            f"| {i} | {opp.title} | {_CATEGORY_LABELS[opp.category]} "
            f"| {opp.impact}/5 | {opp.complexity}/5 |"
        )
    sections.append("")

    for opp in result.opportunities:
        sections.append(_render_opportunity(opp))

    return "\n".join(sections)


def _render_opportunity(opp: AIOpportunity) -> str:
    lines = [f"### {opp.title}\n", f"{opp.description}\n"]
    lines.append(f"- **Impact:** {_stars(opp.impact)} ({opp.impact}/5)")
    lines.append(f"- **Complexity:** {_stars(opp.complexity)} ({opp.complexity}/5)")
    if opp.pain_points_solved:
        lines.append("- **Pain points solved:**")
        for p in opp.pain_points_solved:
            lines.append(f"  - {p}")
    if opp.target_pages:
        lines.append(f"- **Relevant pages:** {', '.join(opp.target_pages)}")
    if opp.implementation_sketch:
        lines.append(f"- **How it could work:** {opp.implementation_sketch}")
    lines.append("")
    return "\n".join(lines)
