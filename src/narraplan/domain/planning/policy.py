"""Match acceptance policy for hydration.

A candidate at or above ``auto_match_threshold`` is selected without asking.
One in the review band, at or above ``review_threshold`` but below the
auto-match threshold, is never selected and always yields a reviewer
question. Anything lower counts as no match.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_AUTO_MATCH_THRESHOLD = 0.80
DEFAULT_REVIEW_THRESHOLD = 0.60
DEFAULT_CANDIDATE_LIMIT = 8


@dataclass(frozen=True, slots=True)
class MatchPolicy:
    auto_match_threshold: float = DEFAULT_AUTO_MATCH_THRESHOLD
    review_threshold: float = DEFAULT_REVIEW_THRESHOLD
    candidate_limit: int = DEFAULT_CANDIDATE_LIMIT

    def __post_init__(self) -> None:
        if not 0.0 <= self.review_threshold <= self.auto_match_threshold <= 1.0:
            raise ValueError(
                "Thresholds must satisfy 0 <= review <= auto-match <= 1 "
                f"(got review={self.review_threshold}, auto={self.auto_match_threshold})"
            )
        if self.candidate_limit < 1:
            raise ValueError(f"Candidate limit must be at least 1 (got {self.candidate_limit})")

    def auto_selects(self, confidence: float) -> bool:
        return confidence >= self.auto_match_threshold

    def needs_review(self, confidence: float) -> bool:
        return self.review_threshold <= confidence < self.auto_match_threshold


__all__ = [
    "DEFAULT_AUTO_MATCH_THRESHOLD",
    "DEFAULT_CANDIDATE_LIMIT",
    "DEFAULT_REVIEW_THRESHOLD",
    "MatchPolicy",
]
