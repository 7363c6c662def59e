"""Compose extraction, heuristics, hydration, and ordering into a plan.

Stages, in order:
1. extraction service, or pattern fallback when it is missing, fails, or
   proposes nothing
2. introduction heuristics
3. duplicate consolidation
4. hydration against the entity store
5. canonical kind ordering and dependency warnings
6. phase: clarification while questions are open, unless the narrative
   locks the requirements
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from narraplan.domain.model import PlanPhase

from .actions import Plan
from .clarify import clarification_summary, extract_clarifications, has_requirements_lock_signal
from .extract import apply_introduction_heuristics, canonical_order, dedupe_actions, fallback_extract
from .graph import analyze_dependencies
from .hydrate import dedupe_issues, hydrate_actions
from .policy import MatchPolicy

if TYPE_CHECKING:
    from narraplan.domain.ports import ExtractionResult, NarrativeExtractor, WebCandidateFinder

    from .matching import EntityMatcher

log = logging.getLogger(__name__)


def _extract(narrative: str, extractor: NarrativeExtractor | None) -> ExtractionResult:
    if extractor is None:
        log.info("No extraction service configured; using fallback extraction")
        return fallback_extract(narrative)

    try:
        result = extractor(narrative)
    except Exception as exc:  # noqa: BLE001
        log.warning("Extraction service failed: %s", exc)
        fallback = fallback_extract(narrative)
        fallback.warnings.insert(0, f"Extraction service failed ({exc}); used fallback extraction.")
        return fallback

    if result.actions:
        return result
    log.info("Extraction service proposed no actions; using fallback extraction")
    fallback = fallback_extract(narrative)
    fallback.warnings[:0] = result.warnings
    fallback.summary = result.summary or fallback.summary
    return fallback


def _summary(extracted: str, actions: int) -> str:
    if extracted.strip():
        return extracted.strip()
    return f"Proposed {actions} action(s) from the narrative."


def _with_phase(plan: Plan) -> Plan:
    open_questions = bool(plan.actions) and bool(extract_clarifications(plan))
    if open_questions and not has_requirements_lock_signal(plan.narrative):
        phase = PlanPhase.CLARIFICATION
    else:
        phase = PlanPhase.PLAN
    return plan.model_copy(update={"phase": phase})


def build_plan(
    narrative: str,
    *,
    matcher: EntityMatcher,
    extractor: NarrativeExtractor | None = None,
    web_finder: WebCandidateFinder | None = None,
    policy: MatchPolicy | None = None,
) -> Plan:
    """Build a reviewable plan for ``narrative``."""

    narrative = narrative.strip()
    if not narrative:
        return Plan(summary="Nothing to plan.", warnings=("The narrative is empty.",))

    extracted = _extract(narrative, extractor)
    warnings = list(extracted.warnings)

    actions, heuristic_warnings = apply_introduction_heuristics(narrative, extracted.actions)
    warnings.extend(heuristic_warnings)

    actions, merged = dedupe_actions(actions)
    if merged:
        warnings.append(f"Consolidated {merged} duplicate action(s).")

    hydrated = hydrate_actions(
        actions, matcher=matcher, policy=policy or MatchPolicy(), web_finder=web_finder
    )
    ordered = canonical_order(hydrated)
    warnings.extend(analyze_dependencies(ordered).warnings)

    plan = _with_phase(
        Plan(
            narrative=narrative,
            summary=_summary(extracted.summary, len(ordered)),
            warnings=dedupe_issues(warnings),
            actions=tuple(ordered),
        )
    )
    if plan.phase is PlanPhase.CLARIFICATION:
        plan = plan.model_copy(
            update={"summary": clarification_summary(extracted.summary, plan.actions)}
        )
    log.info(
        "Built %s plan with %d action(s) and %d warning(s)",
        plan.phase.value.lower(),
        len(plan.actions),
        len(plan.warnings),
    )
    return plan


def rehydrate_plan(
    plan: Plan,
    *,
    matcher: EntityMatcher,
    web_finder: WebCandidateFinder | None = None,
    policy: MatchPolicy | None = None,
) -> Plan:
    """Re-run hydration after reviewer edits, keeping their selections.

    The phase is recomputed, so answering the last open question moves the
    plan on to execution.
    """

    stale = set(analyze_dependencies(plan.actions).warnings)
    reset = [action.model_copy(update={"issues": ()}) for action in plan.actions]
    hydrated = hydrate_actions(
        reset, matcher=matcher, policy=policy or MatchPolicy(), web_finder=web_finder
    )
    warnings = [warning for warning in plan.warnings if warning not in stale]
    warnings.extend(analyze_dependencies(hydrated).warnings)
    return _with_phase(
        plan.model_copy(
            update={"actions": tuple(hydrated), "warnings": dedupe_issues(warnings)}
        )
    )


__all__ = ["build_plan", "rehydrate_plan"]
