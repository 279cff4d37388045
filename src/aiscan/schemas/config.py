"""Configuration schema — validates scanner-config.yml."""

from pydantic import BaseModel, field_validator


class FetchSettings(BaseModel):
    """Outbound HTTP settings for page and sitemap fetches."""

    page_timeout: float = 10.0     # homepage + per-page fetches (seconds)
    sitemap_timeout: float = 5.0   # each sitemap probe (seconds)
    content_budget: int = 15_000   # max chars of extracted text per page
    user_agent: str = "AI-Opportunity-Scanner/1.0 (AI Opportunity Analysis)"
    sitemap_paths: list[str] = ["/sitemap.xml", "/sitemap_index.xml", "/sitemap1.xml"]

    @field_validator("page_timeout", "sitemap_timeout")
    @classmethod
    def check_positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v


class PromptLimits(BaseModel):
    """How much fetched text is fed into each prompt."""

    sitemap_chars: int = 5_000
    homepage_chars: int = 8_000
    description_chars: int = 500


class ModelSettings(BaseModel):
    """Model name and token ceiling per stage."""

    discovery_model: str = "gpt-4o-mini"
    discovery_max_tokens: int = 2_000
    analysis_model: str = "gpt-4o"
    analysis_max_tokens: int = 3_000
    synthesis_model: str = "gpt-4o-mini"
    synthesis_max_tokens: int = 500


class DeliverySettings(BaseModel):
    """Email delivery of finished reports."""

    api_url: str = "https://api.resend.com/emails"
    from_address: str = "AI Opportunity Scanner <hello@example.com>"
    lead_from_address: str = "Scanner Leads <hello@example.com>"
    contact_email: str = "office@example.com"
    reply_to: str = "hello@example.com"
    max_retries: int = 3      # total attempts per send
    base_delay: float = 1.0   # seconds
    max_delay: float = 30.0   # seconds


class RateLimitSettings(BaseModel):
    """Per-IP limit on the HTTP scan endpoint."""

    max_requests: int = 3
    window_seconds: float = 60.0


class ScannerConfig(BaseModel):
    """Top-level configuration loaded from scanner-config.yml.

    Every field has a default, so an empty file (or no file at all) yields a
    working configuration.
    """

    max_pages: int = 8
    max_opportunities: int = 3

    fetch: FetchSettings = FetchSettings()
    limits: PromptLimits = PromptLimits()
    models: ModelSettings = ModelSettings()
    delivery: DeliverySettings = DeliverySettings()
    rate_limit: RateLimitSettings = RateLimitSettings()

    @field_validator("max_pages", "max_opportunities")
    @classmethod
    def check_at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    def effective_max_pages(self, requested: int | None) -> int:
        """Resolve a caller's page ceiling; omitted or non-positive means the default."""
        if requested is None or requested <= 0:
            return self.max_pages
        return requested
