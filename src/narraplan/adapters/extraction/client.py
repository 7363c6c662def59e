"""HTTP client for the narrative extraction service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from narraplan.adapters.http_resilience import ResilientClient
from narraplan.config.extraction import ExtractionConfig, get_extraction_config
from narraplan.domain.ports.extraction import ExtractionResult, NarrativeExtractor

from .schema import parse_extraction_payload
from .translator import translate_payload

if TYPE_CHECKING:
    from collections.abc import Callable

    from narraplan.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

EXTRACTION_FAILED_SUMMARY = "Extraction failed for this narrative."
EXTRACTION_FAILED_WARNING = (
    "The extraction service call failed. Check the service settings and try again."
)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class ExtractionServiceError(RuntimeError):
    """Raised when the extraction service answers with an unusable payload."""


@dataclass(slots=True)
class HttpNarrativeExtractor:
    """Posts a narrative to the extraction endpoint and translates the reply.

    Transport and payload failures never propagate: they produce an empty
    result carrying a warning, which makes plan building fall back to
    pattern extraction.
    """

    config: ExtractionConfig = field(default_factory=get_extraction_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def __call__(self, narrative: str) -> ExtractionResult:
        try:
            return asyncio.run(self._extract_async(narrative))
        except (httpx.HTTPError, ExtractionServiceError, ValueError) as exc:
            log.warning("Narrative extraction failed: %s", exc)
            return ExtractionResult(
                summary=EXTRACTION_FAILED_SUMMARY, warnings=[EXTRACTION_FAILED_WARNING]
            )

    async def _extract_async(self, narrative: str) -> ExtractionResult:
        request: dict[str, object] = {"narrative": narrative}
        if self.config.model:
            request["model"] = self.config.model

        async with self.client_factory(self.config.resilience) as client:
            response = await client.post(self.config.url, json=request)
        response.raise_for_status()

        body = response.json()
        if not isinstance(body, dict):
            raise ExtractionServiceError("Unexpected extraction response payload")
        result = translate_payload(parse_extraction_payload(body))
        log.info(
            "Extraction service proposed %d action(s) with %d warning(s)",
            len(result.actions),
            len(result.warnings),
        )
        return result


if TYPE_CHECKING:
    _extractor_check: NarrativeExtractor = HttpNarrativeExtractor()
