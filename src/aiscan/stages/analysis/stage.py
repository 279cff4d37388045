"""Opportunity Analysis stage — ask the model for a short list of AI opportunities."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from aiscan.schemas.scan import AIOpportunity, BusinessInfo, PageContent
from aiscan.stages.analysis.prompts import build_analysis_prompt
from aiscan.stages.base import BaseStage

logger = logging.getLogger(__name__)


class AnalysisStage(BaseStage):
    """Proposes at most ``max_opportunities`` opportunities.

    An unparseable reply yields an empty list: zero opportunities is a valid
    scan outcome, not an error.
    """

    @property
    def name(self) -> str:
        return "Opportunity Analysis"

    async def run(
        self,
        business: BusinessInfo,
        base_url: str,
        contents: list[PageContent],
    ) -> list[AIOpportunity]:
        prompt = build_analysis_prompt(
            business.name,
            business.industry,
            base_url,
            contents,
            self.config.max_opportunities,
        )
        models = self.config.models
        result = await self._complete_json(
            prompt, model=models.analysis_model, max_tokens=models.analysis_max_tokens,
        )
        return self.parse_output(result)

    def parse_output(self, result: object) -> list[AIOpportunity]:
        if isinstance(result, dict):
            raw = result.get("opportunities")
        else:
            # A bare array of opportunities is accepted too.
            raw = result
        if not isinstance(raw, list):
            if result is not None:
                logger.warning("Analysis reply had no opportunities list")
            return []

        opportunities: list[AIOpportunity] = []
        for index, entry in enumerate(raw, start=1):
            if not isinstance(entry, dict):
                continue
            data = dict(entry)
            data["id"] = str(data.get("id") or "").strip() or f"opp-{index}"
            try:
                opportunities.append(AIOpportunity.model_validate(data))
            except ValidationError as exc:
                logger.debug("Dropping malformed opportunity %r: %s", entry, exc)

        return opportunities[: self.config.max_opportunities]
