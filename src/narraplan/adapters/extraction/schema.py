"""Pydantic models describing extraction service payloads.

The service is a language model behind an HTTP endpoint, so every field is
treated as untrusted: wrong types collapse to empty values instead of
failing the whole payload. Individual actions are validated one at a time
by the translator.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _clean_text(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return None


def _mapping_or_empty(value: object) -> dict[str, object]:
    if isinstance(value, Mapping):
        return dict(cast(Mapping[str, object], value))
    return {}


class ExtractionBaseModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, alias_generator=to_camel
    )


class RawAction(ExtractionBaseModel):
    """One proposed action as the service returned it."""

    kind: str | None = None
    entity_type: str | None = None
    target_type: str | None = None
    target_name: str | None = None
    parent_type: str | None = None
    parent_name: str | None = None
    company_name: str | None = None
    co_investor_name: str | None = None
    health_system_name: str | None = None
    related_name: str | None = None
    linked_name: str | None = None
    counterparty_name: str | None = None
    other_entity_name: str | None = None
    name: str | None = None
    role_type: str | None = None
    relationship_type: str | None = None
    rationale: str | None = None
    notes: str | None = None
    confidence: object = None
    investment_amount_usd: object = None
    draft: dict[str, object] = Field(default_factory=dict)
    patch: dict[str, object] = Field(default_factory=dict)
    contact: dict[str, object] = Field(default_factory=dict)

    _normalize_text = field_validator(
        "kind",
        "entity_type",
        "target_type",
        "target_name",
        "parent_type",
        "parent_name",
        "company_name",
        "co_investor_name",
        "health_system_name",
        "related_name",
        "linked_name",
        "counterparty_name",
        "other_entity_name",
        "name",
        "role_type",
        "relationship_type",
        "rationale",
        "notes",
        mode="before",
    )(_clean_text)
    _normalize_objects = field_validator("draft", "patch", "contact", mode="before")(
        _mapping_or_empty
    )


class ExtractionPayload(ExtractionBaseModel):
    summary: str = ""
    warnings: list[str] = Field(default_factory=list)
    actions: list[object] = Field(default_factory=list)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary_text(cls, value: object) -> str:
        return value.strip() if isinstance(value, str) else ""

    @field_validator("warnings", mode="before")
    @classmethod
    def _warning_texts(cls, value: object) -> list[str]:
        if not isinstance(value, list):
            return []
        return [item.strip() for item in cast(list[object], value) if isinstance(item, str) and item.strip()]

    @field_validator("actions", mode="before")
    @classmethod
    def _action_list(cls, value: object) -> list[object]:
        return cast(list[object], value) if isinstance(value, list) else []


def _load_object(text: str) -> dict[str, object]:
    try:
        loaded = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return _mapping_or_empty(loaded)


def extract_json_object(text: str) -> dict[str, object]:
    """Parse a JSON object, tolerating prose around it; ``{}`` when there is none."""

    stripped = text.strip()
    if not stripped:
        return {}
    strict = _load_object(stripped)
    if strict:
        return strict
    start = stripped.find("{")
    end = stripped.rfind("}")
    if start >= 0 and end > start:
        return _load_object(stripped[start : end + 1])
    return {}


def parse_extraction_payload(body: object) -> ExtractionPayload:
    """Read a service response body, unwrapping a model's raw text output if present."""

    data = _mapping_or_empty(body)
    for key in ("output_text", "outputText", "output"):
        raw = data.get(key)
        if isinstance(raw, str):
            data = extract_json_object(raw)
            break
    return ExtractionPayload.model_validate(data)
