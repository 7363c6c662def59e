"""Narrative extraction service configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy, bearer_headers

EXTRACTION_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class ExtractionConfig:
    """Holds the endpoint and credentials of the extraction service."""

    url: str
    api_key: str | None
    model: str | None
    resilience: ResilienceConfig


def extraction_configured() -> bool:
    return optional_env_var("NARRAPLAN_EXTRACTION_URL") is not None


def get_extraction_config(*, resilience: ResilienceConfig | None = None) -> ExtractionConfig:
    values = require_env_vars(("NARRAPLAN_EXTRACTION_URL",))
    api_key = optional_env_var("NARRAPLAN_EXTRACTION_API_KEY")
    return ExtractionConfig(
        url=values["NARRAPLAN_EXTRACTION_URL"],
        api_key=api_key,
        model=optional_env_var("NARRAPLAN_EXTRACTION_MODEL"),
        resilience=resilience
        or ResilienceConfig(
            name="extraction",
            timeout_seconds=EXTRACTION_TIMEOUT_SECONDS,
            # extraction is a pure function of the narrative
            retry=RetryPolicy(retry_post=True),
            ratelimit=RateLimit(max_calls=2, per_seconds=1.0),
            default_headers=bearer_headers(api_key),
        ),
    )
