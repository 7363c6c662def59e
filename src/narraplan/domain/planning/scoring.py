"""Heuristic confidence scores for name pairs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .normalize import lookup_form

EXACT_SCORE: Final = 0.98
PREFIX_SCORE: Final = 0.86
SUBSTRING_SCORE: Final = 0.80
HIGH_OVERLAP_SCORE: Final = 0.74
MODERATE_OVERLAP_SCORE: Final = 0.64
LOW_CONFIDENCE_SCORE: Final = 0.52

HIGH_OVERLAP_RATIO: Final = 0.75
MODERATE_OVERLAP_RATIO: Final = 0.50


@dataclass(frozen=True, slots=True)
class MatchScore:
    score: float
    reason: str


NO_COMPARABLE_NAME = MatchScore(0.0, "no comparable name")


def score_name_match(query_key: str, candidate_key: str) -> MatchScore:
    """Score two comparison keys; the first matching rule wins."""

    query = lookup_form(query_key)
    candidate = lookup_form(candidate_key)
    if not query or not candidate:
        return NO_COMPARABLE_NAME

    if query == candidate:
        return MatchScore(EXACT_SCORE, "exact")
    if candidate.startswith(query) or query.startswith(candidate):
        return MatchScore(PREFIX_SCORE, "prefix")
    if query in candidate or candidate in query:
        return MatchScore(SUBSTRING_SCORE, "substring")

    query_tokens = set(query.split())
    candidate_tokens = set(candidate.split())
    shared = len(query_tokens & candidate_tokens)
    ratio = shared / max(len(query_tokens), len(candidate_tokens), 1)
    if ratio >= HIGH_OVERLAP_RATIO:
        return MatchScore(HIGH_OVERLAP_SCORE, "high overlap")
    if ratio >= MODERATE_OVERLAP_RATIO:
        return MatchScore(MODERATE_OVERLAP_SCORE, "moderate overlap")
    return MatchScore(LOW_CONFIDENCE_SCORE, "low confidence")
