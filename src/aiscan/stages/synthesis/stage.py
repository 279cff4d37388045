"""Summary Synthesis stage — local ranking plus a short model-written narrative."""

from __future__ import annotations

import logging

from aiscan.schemas.scan import AIOpportunity, BusinessInfo
from aiscan.stages.base import BaseStage
from aiscan.stages.synthesis.prompts import build_summary_prompt

logger = logging.getLogger(__name__)


def top_recommendation(opportunities: list[AIOpportunity]) -> AIOpportunity | None:
    """Highest ``impact*2 - complexity``; the first one wins a tie. No model call."""
    if not opportunities:
        return None
    return max(opportunities, key=lambda o: o.score)


class SynthesisStage(BaseStage):
    @property
    def name(self) -> str:
        return "Summary Synthesis"

    async def run(
        self,
        business: BusinessInfo,
        opportunities: list[AIOpportunity],
    ) -> tuple[str, AIOpportunity | None]:
        """Return ``(summary, top_recommendation)``.

        The summary is the model's reply verbatim, stripped of surrounding
        whitespace; it is not parsed.
        """
        top = top_recommendation(opportunities)
        prompt = build_summary_prompt(business.name, business.industry, opportunities, top)
        models = self.config.models
        raw = await self._complete(
            prompt, model=models.synthesis_model, max_tokens=models.synthesis_max_tokens,
        )
        return raw.strip(), top
