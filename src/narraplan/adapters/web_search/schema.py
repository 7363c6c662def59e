"""Pydantic models describing web search service payloads."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class WebSearchBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)


class WebResult(WebSearchBaseModel):
    name: str
    website: str | None = Field(default=None, validation_alias=AliasChoices("website", "url"))
    headquarters_city: str | None = None
    headquarters_state: str | None = None
    headquarters_country: str | None = None
    summary: str | None = Field(
        default=None, validation_alias=AliasChoices("summary", "description", "snippet")
    )
    source_urls: list[str] = Field(default_factory=list)

    _normalize_optional = field_validator(
        "website",
        "headquarters_city",
        "headquarters_state",
        "headquarters_country",
        "summary",
        mode="before",
    )(_blank_to_none)


class WebSearchResponse(WebSearchBaseModel):
    results: list[WebResult] = Field(default_factory=list)


def has_results(payload: object) -> bool:
    """Cache predicate: only keep responses that produced candidates."""

    try:
        return bool(WebSearchResponse.model_validate(payload).results)
    except ValidationError:
        return False
