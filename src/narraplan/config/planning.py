"""Match policy overrides read from the environment."""

from __future__ import annotations

from narraplan.domain.planning.policy import (
    DEFAULT_AUTO_MATCH_THRESHOLD,
    DEFAULT_CANDIDATE_LIMIT,
    DEFAULT_REVIEW_THRESHOLD,
    MatchPolicy,
)

from .env import env_float, optional_env_var
from .errors import ConfigurationError


def env_int(name: str, default: int) -> int:
    value = optional_env_var(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a whole number, got {value!r}") from exc


def get_planning_config() -> MatchPolicy:
    """Thresholds and candidate limit, from ``NARRAPLAN_*`` variables or defaults."""
    try:
        return MatchPolicy(
            auto_match_threshold=env_float(
                "NARRAPLAN_AUTO_MATCH_THRESHOLD", DEFAULT_AUTO_MATCH_THRESHOLD
            ),
            review_threshold=env_float("NARRAPLAN_REVIEW_THRESHOLD", DEFAULT_REVIEW_THRESHOLD),
            candidate_limit=env_int("NARRAPLAN_CANDIDATE_LIMIT", DEFAULT_CANDIDATE_LIMIT),
        )
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
