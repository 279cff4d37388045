"""Prompt for the page discovery stage."""

from aiscan.stages.base import BRITISH_ENGLISH_INSTRUCTION

DISCOVERY_PROMPT = BRITISH_ENGLISH_INSTRUCTION + """

Analyse this website to discover key pages and understand the business.

Website URL: {base_url}
{sitemap_section}

Homepage content:
{homepage_content}

Tasks:
1. Identify the business name and industry
2. Find up to {max_pages} key pages to analyse (prioritise: services, products, about, features)
3. Categorise each page

Return JSON in this exact format:
{{
  "businessName": "Company Name",
  "industry": "e.g., E-commerce, SaaS, Healthcare, etc.",
  "pages": [
    {{
      "url": "https://example.com/page",
      "title": "Page Title",
      "category": "homepage|product|service|blog|documentation|about|contact|other",
      "priority": 1-10
    }}
  ]
}}

Only return the JSON, no other text."""


def build_discovery_prompt(
    base_url: str,
    sitemap: str,
    homepage: str,
    max_pages: int,
    *,
    sitemap_chars: int,
    homepage_chars: int,
) -> str:
    if sitemap:
        sitemap_section = f"\nSitemap content:\n{sitemap[:sitemap_chars]}"
    else:
        sitemap_section = "No sitemap found."
    return DISCOVERY_PROMPT.format(
        base_url=base_url,
        sitemap_section=sitemap_section,
        homepage_content=homepage[:homepage_chars],
        max_pages=max_pages,
    )
