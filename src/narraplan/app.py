"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from narraplan.adapters.extraction import HttpNarrativeExtractor
from narraplan.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyPlanningUnitOfWork,
    is_started,
    startup,
)
from narraplan.adapters.web_search import HttpWebCandidateFinder
from narraplan.config import extraction_configured, get_planning_config, web_search_configured
from narraplan.domain.planning import (
    EntityMatcher,
    build_plan,
    extract_clarifications,
    rehydrate_plan,
    start_session,
)
from narraplan.domain.ports.unit_of_work import PlanningUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Iterable

    from narraplan.domain.planning import (
        Clarification,
        ExecutionReport,
        MatchPolicy,
        PlanSession,
    )
    from narraplan.domain.ports import NarrativeExtractor, WebCandidateFinder

UnitOfWorkFactory = Callable[[], PlanningUnitOfWork]

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionStatus:
    execution_order: tuple[str, ...]
    completed_action_ids: tuple[str, ...]
    validation: dict[str, tuple[str, ...]]
    next_runnable: str | None
    warnings: tuple[str, ...]


def _resolve_unit_of_work(unit_of_work_factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup()
    return SqlAlchemyPlanningUnitOfWork


def _default_extractor() -> NarrativeExtractor | None:
    return HttpNarrativeExtractor() if extraction_configured() else None


def _default_web_finder() -> WebCandidateFinder | None:
    return HttpWebCandidateFinder() if web_search_configured() else None


def build_narrative_plan(
    narrative: str,
    *,
    extractor: NarrativeExtractor | None = None,
    web_finder: WebCandidateFinder | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    policy: MatchPolicy | None = None,
    use_services: bool = True,
) -> PlanSession:
    """Build a plan for ``narrative`` and wrap it in a fresh session.

    Without explicit collaborators the configured extraction and web search
    services are used; ``use_services=False`` forces pattern extraction.
    """

    effective_uow = _resolve_unit_of_work(unit_of_work_factory)
    effective_policy = policy or get_planning_config()
    effective_extractor = extractor or (_default_extractor() if use_services else None)
    effective_finder = web_finder or (_default_web_finder() if use_services else None)
    log.info(
        "Building plan: extractor=%s, web_finder=%s",
        type(effective_extractor).__name__ if effective_extractor else "fallback",
        type(effective_finder).__name__ if effective_finder else "none",
    )

    with effective_uow() as uow:
        matcher = EntityMatcher(uow.repositories.entities, limit=effective_policy.candidate_limit)
        plan = build_plan(
            narrative,
            matcher=matcher,
            extractor=effective_extractor,
            web_finder=effective_finder,
            policy=effective_policy,
        )

    for clarification in extract_clarifications(plan):
        log.info("Clarification needed: %s", clarification.question)
    return start_session(plan)


def refresh_session(
    session: PlanSession,
    *,
    web_finder: WebCandidateFinder | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    policy: MatchPolicy | None = None,
) -> PlanSession:
    """Re-hydrate the session plan against the current store after edits."""

    effective_uow = _resolve_unit_of_work(unit_of_work_factory)
    effective_policy = policy or get_planning_config()
    with effective_uow() as uow:
        matcher = EntityMatcher(uow.repositories.entities, limit=effective_policy.candidate_limit)
        plan = rehydrate_plan(
            session.plan, matcher=matcher, web_finder=web_finder, policy=effective_policy
        )
    return session.model_copy(update={"plan": plan})


def execute_session(
    session: PlanSession,
    *,
    action_ids: Iterable[str] | None = None,
    next_only: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> tuple[PlanSession, ExecutionReport | None]:
    """Run selected actions, the next runnable one, or everything runnable."""

    effective_uow = _resolve_unit_of_work(unit_of_work_factory)
    if next_only:
        updated, report = session.run_next(unit_of_work_factory=effective_uow)
    elif action_ids is not None:
        updated, report = session.run(action_ids, unit_of_work_factory=effective_uow)
    else:
        updated, report = session.run_remaining(unit_of_work_factory=effective_uow)

    if report is None:
        log.info("No runnable action left")
    else:
        log.info("Finished execution: %s", report.summary)
    return updated, report


def session_clarifications(session: PlanSession) -> list[Clarification]:
    return extract_clarifications(session.plan)


def session_status(session: PlanSession) -> SessionStatus:
    return SessionStatus(
        execution_order=session.execution_order,
        completed_action_ids=session.completed_action_ids,
        validation={
            action_id: issues for action_id, issues in session.validation.items() if issues
        },
        next_runnable=session.next_runnable,
        warnings=session.plan.warnings,
    )
