"""Name normalization for matching free-text organization names.

Two forms are derived from a raw name:
- a display form with surrounding punctuation and descriptive lead-ins
  ("a company called ...") removed
- a comparison key: lowercase alphanumeric tokens separated by single spaces

Every function here is pure and idempotent.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from narraplan.domain.model import EntityKind

_EDGE_PUNCTUATION = "\"'`“”‘’(),.;:!?-"
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")

_KIND_WORDS = r"(?:company|co[\s-]?investor|health\s*system|healthcare\s*system)"

_LEAD_IN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"^(?:a|an|the)\s+{_KIND_WORDS}\s+(?:called|named)\s+", re.IGNORECASE),
    re.compile(rf"^{_KIND_WORDS}\s+(?:called|named)\s+", re.IGNORECASE),
    re.compile(r"^(?:called|named)\s+", re.IGNORECASE),
)

_KIND_PREFIX_PATTERNS: dict[EntityKind, tuple[re.Pattern[str], ...]] = {
    EntityKind.COMPANY: (
        re.compile(r"^(?:a|an|the)\s+company\s+", re.IGNORECASE),
        re.compile(r"^company\s+", re.IGNORECASE),
    ),
    EntityKind.CO_INVESTOR: (
        re.compile(r"^(?:a|an|the)\s+co[\s-]?investor\s+", re.IGNORECASE),
        re.compile(r"^co[\s-]?investor\s+", re.IGNORECASE),
        re.compile(r"^(?:a|an|the)\s+investor\s+", re.IGNORECASE),
        re.compile(r"^investor\s+", re.IGNORECASE),
    ),
    EntityKind.HEALTH_SYSTEM: (
        re.compile(r"^(?:a|an|the)\s+health\s*system\s+", re.IGNORECASE),
        re.compile(r"^(?:a|an|the)\s+healthcare\s*system\s+", re.IGNORECASE),
    ),
}

_HEALTH_SYSTEM_SUFFIX = re.compile(r"\s*\b(?:health\s*system|healthcare\s*system)$")


@dataclass(frozen=True, slots=True)
class NormalizedName:
    display: str
    key: str


def _until_stable(value: str, step: Callable[[str], str]) -> str:
    while True:
        updated = step(value)
        if updated == value:
            return value
        value = updated


def clean_name_fragment(text: str) -> str:
    """Trim surrounding quotes/punctuation and collapse internal whitespace."""

    collapsed = _WHITESPACE.sub(" ", text).strip()
    return collapsed.strip(" " + _EDGE_PUNCTUATION).strip()


def _strip_lead_ins(value: str, kind: EntityKind | None) -> str:
    for pattern in _LEAD_IN_PATTERNS:
        value = pattern.sub("", value)
    if kind is not None:
        for pattern in _KIND_PREFIX_PATTERNS[kind]:
            value = pattern.sub("", value)
    return clean_name_fragment(value)


def clean_entity_name(text: str, kind: EntityKind | None = None) -> str:
    """Display form of a name, with descriptive lead-ins removed.

    Falls back to the merely trimmed text when stripping would leave nothing.
    """

    cleaned = clean_name_fragment(text)
    if not cleaned:
        return ""
    stripped = _until_stable(cleaned, lambda value: _strip_lead_ins(value, kind))
    return stripped or cleaned


def lookup_form(text: str) -> str:
    """Lowercase, alphanumeric-only, single-spaced form of ``text``."""

    lowered = _NON_ALNUM.sub(" ", text.strip().lower())
    return _WHITESPACE.sub(" ", lowered).strip()


def _strip_generic_suffix(value: str) -> str:
    stripped = _HEALTH_SYSTEM_SUFFIX.sub("", value).strip()
    return stripped or value


def comparison_key(text: str, kind: EntityKind | None = None) -> str:
    """Key used to compare names; empty when nothing comparable remains."""

    def step(value: str) -> str:
        value = lookup_form(_strip_lead_ins(value, kind) or value)
        if kind is EntityKind.HEALTH_SYSTEM:
            value = _strip_generic_suffix(value)
        return value

    cleaned = clean_entity_name(text, kind)
    if not cleaned:
        return ""
    return _until_stable(lookup_form(cleaned), step)


def normalize_name(text: str, kind: EntityKind | None = None) -> NormalizedName:
    return NormalizedName(display=clean_entity_name(text, kind), key=comparison_key(text, kind))
