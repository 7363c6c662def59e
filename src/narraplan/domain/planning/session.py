"""Review-and-execute state carried across partial runs of one plan."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from narraplan.domain.model import ActionKind, ExecutionStatus

from .actions import ExecutionRecord, ExecutionResult, Plan, PlanModel, PlanValidationError
from .execute import execute_plan
from .graph import analyze_dependencies, next_runnable_action_id, validation_issues
from .propagate import propagate_created_records

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .execute import ExecutionReport, UnitOfWorkFactory
    from .graph import DependencyAnalysis

log = logging.getLogger(__name__)


class PlanSession(PlanModel):
    """A plan plus the results and completed actions of every run so far.

    Results are keyed by action id; a later run overwrites earlier results
    for the same action. Sessions are immutable: running actions returns a
    new session.
    """

    plan: Plan
    results: dict[str, ExecutionResult] = {}
    completed_action_ids: tuple[str, ...] = ()

    @property
    def analysis(self) -> DependencyAnalysis:
        return analyze_dependencies(self.plan.actions)

    @property
    def execution_order(self) -> tuple[str, ...]:
        return self.analysis.order

    @property
    def validation(self) -> dict[str, tuple[str, ...]]:
        return validation_issues(self.plan)

    @property
    def next_runnable(self) -> str | None:
        return next_runnable_action_id(self.plan, self.completed_action_ids)

    @property
    def pending_action_ids(self) -> tuple[str, ...]:
        completed = set(self.completed_action_ids)
        return tuple(action_id for action_id in self.execution_order if action_id not in completed)

    def created_records(self) -> dict[str, ExecutionRecord]:
        return {
            action_id: result.record
            for action_id, result in self.results.items()
            if result.kind is ActionKind.CREATE_ENTITY
            and result.status is ExecutionStatus.EXECUTED
            and result.record is not None
        }

    def run(
        self, action_ids: Iterable[str], *, unit_of_work_factory: UnitOfWorkFactory
    ) -> tuple[PlanSession, ExecutionReport]:
        """Execute ``action_ids``; already completed actions are never re-run."""

        completed = set(self.completed_action_ids)
        requested = list(dict.fromkeys(action_ids))
        if already := [action_id for action_id in requested if action_id in completed]:
            log.info("Not re-running completed action(s): %s", ", ".join(already))
        selected = [action_id for action_id in requested if action_id not in completed]

        report = execute_plan(
            self.plan,
            unit_of_work_factory=unit_of_work_factory,
            action_ids=selected,
            prior_records=self.created_records(),
        )
        recorded = [
            result for result in report.results if result.status is not ExecutionStatus.SKIPPED
        ]
        results = {**self.results, **{result.action_id: result for result in recorded}}
        executed = [
            result.action_id
            for result in report.results
            if result.status is ExecutionStatus.EXECUTED
        ]
        session = self.model_copy(
            update={
                "plan": propagate_created_records(self.plan, report.results),
                "results": results,
                "completed_action_ids": tuple(dict.fromkeys([*self.completed_action_ids, *executed])),
            }
        )
        return session, report

    def run_next(
        self, *, unit_of_work_factory: UnitOfWorkFactory
    ) -> tuple[PlanSession, ExecutionReport | None]:
        action_id = self.next_runnable
        if action_id is None:
            return self, None
        return self.run([action_id], unit_of_work_factory=unit_of_work_factory)

    def run_remaining(
        self, *, unit_of_work_factory: UnitOfWorkFactory
    ) -> tuple[PlanSession, ExecutionReport]:
        """Execute every pending action that has no blocking validation issue."""

        issues = self.validation
        runnable = [action_id for action_id in self.pending_action_ids if not issues.get(action_id)]
        return self.run(runnable, unit_of_work_factory=unit_of_work_factory)


def start_session(plan: Plan) -> PlanSession:
    return PlanSession(plan=plan)


def parse_session(payload: str | bytes) -> PlanSession:
    try:
        return PlanSession.model_validate_json(payload)
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(part) for part in error['loc']) or 'session'}: {error['msg']}"
            for error in exc.errors()
        ]
        raise PlanValidationError(
            f"Invalid session payload: {'; '.join(errors)}", errors=errors
        ) from exc


def dump_session_json(session: PlanSession, *, indent: int | None = 2) -> str:
    return json.dumps(session.model_dump(mode="json", by_alias=True), indent=indent)


__all__ = ["PlanSession", "dump_session_json", "parse_session", "start_session"]
