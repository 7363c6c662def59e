"""HTTP client proposing public web profiles for new organizations."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from narraplan.adapters.http_resilience import ResilientClient
from narraplan.config.web_search import WebSearchConfig, get_web_search_config
from narraplan.domain.planning.actions import WebCandidate
from narraplan.domain.ports.extraction import WebCandidateFinder

from .schema import WebResult, WebSearchResponse, has_results

if TYPE_CHECKING:
    from collections.abc import Callable

    from narraplan.config.http_resilience import ResilienceConfig
    from narraplan.domain.model import EntityKind

log = getLogger(__name__)

DEFAULT_CANDIDATE_LIMIT = 3


def _default_config() -> WebSearchConfig:
    return get_web_search_config(cache_predicate=has_results)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _to_candidate(result: WebResult) -> WebCandidate:
    return WebCandidate(
        name=result.name,
        website=result.website,
        headquarters_city=result.headquarters_city,
        headquarters_state=result.headquarters_state,
        headquarters_country=result.headquarters_country,
        summary=result.summary,
        source_urls=tuple(result.source_urls),
    )


@dataclass(slots=True)
class HttpWebCandidateFinder:
    """Looks up an organization by name; lookup failures yield no candidates."""

    config: WebSearchConfig = field(default_factory=_default_config)
    limit: int = DEFAULT_CANDIDATE_LIMIT
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def __call__(self, kind: EntityKind, name: str) -> tuple[WebCandidate, ...]:
        if not name.strip():
            return ()
        try:
            return asyncio.run(self._search_async(kind, name.strip()))
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            log.warning("Web candidate lookup for %r failed: %s", name, exc)
            return ()

    async def _search_async(self, kind: EntityKind, name: str) -> tuple[WebCandidate, ...]:
        params = httpx.QueryParams({"q": name, "kind": kind.value, "limit": self.limit})
        async with self.client_factory(self.config.resilience) as client:
            response = await client.get(self.config.url, params=params)
        response.raise_for_status()

        payload = WebSearchResponse.model_validate(response.json())
        candidates = tuple(_to_candidate(result) for result in payload.results[: self.limit])
        log.debug("Found %d web candidate(s) for %s %r", len(candidates), kind.label, name)
        return candidates


if TYPE_CHECKING:
    _finder_check: WebCandidateFinder = HttpWebCandidateFinder()
