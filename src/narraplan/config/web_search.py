"""Web candidate lookup configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .env import optional_env_var, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, bearer_headers

if TYPE_CHECKING:
    from .http_resilience import CachePredicate

WEB_SEARCH_TIMEOUT_SECONDS = 20.0
WEB_SEARCH_CACHE_TTL_SECONDS = 24 * 60 * 60.0


@dataclass(frozen=True)
class WebSearchConfig:
    url: str
    api_key: str | None
    resilience: ResilienceConfig


def web_search_configured() -> bool:
    return optional_env_var("NARRAPLAN_WEB_SEARCH_URL") is not None


def get_web_search_config(
    *,
    resilience: ResilienceConfig | None = None,
    cache_predicate: CachePredicate | None = None,
) -> WebSearchConfig:
    values = require_env_vars(("NARRAPLAN_WEB_SEARCH_URL",))
    api_key = optional_env_var("NARRAPLAN_WEB_SEARCH_API_KEY")
    return WebSearchConfig(
        url=values["NARRAPLAN_WEB_SEARCH_URL"],
        api_key=api_key,
        resilience=resilience
        or ResilienceConfig(
            name="web-search",
            timeout_seconds=WEB_SEARCH_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=4, per_seconds=1.0),
            cache=CacheConfig(
                ttl_seconds=WEB_SEARCH_CACHE_TTL_SECONDS,
                should_cache=cache_predicate,
            ),
            default_headers=bearer_headers(api_key),
        ),
    )
