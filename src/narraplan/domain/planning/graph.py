"""Dependency analysis between plan actions.

An action depends on a create action when one of its reference slots has no
selected record id and points at that create through its link field. Create
actions never depend on anything.

Ordering uses Kahn's algorithm with a ready set keyed by original plan
position, so independent actions keep the order the reviewer saw. Included
actions that never become ready (a cycle, or a dependency on an excluded or
missing action) are appended in original order and flagged as degraded;
validation then blocks them until the reviewer fixes the plan.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .actions import (
    AddContactAction,
    CreateEntityAction,
    CreateFromWeb,
    LinkRelationshipAction,
    UpdateEntityAction,
    UseExisting,
    action_label,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from .actions import AnyAction, Plan

log = logging.getLogger(__name__)


def _dependency(selected_id: str | None, create_action_id: str | None) -> list[str]:
    if selected_id or not create_action_id:
        return []
    return [create_action_id]


def dependency_ids(action: AnyAction) -> tuple[str, ...]:
    """Ids of the create actions ``action`` waits for, in slot order."""

    match action:
        case CreateEntityAction():
            deps: list[str] = []
        case UpdateEntityAction():
            deps = _dependency(action.selected_target_id, action.linked_create_action_id)
        case AddContactAction():
            deps = _dependency(action.selected_parent_id, action.linked_create_action_id)
        case LinkRelationshipAction():
            deps = [
                *_dependency(action.selected_company_id, action.company_create_action_id),
                *_dependency(action.selected_co_investor_id, action.co_investor_create_action_id),
            ]
    return tuple(dict.fromkeys(deps))


@dataclass(frozen=True, slots=True)
class DependencyAnalysis:
    """Execution order over the included actions of a plan."""

    order: tuple[str, ...]
    degraded_ids: tuple[str, ...] = ()
    dependencies: dict[str, tuple[str, ...]] = field(default_factory=dict[str, tuple[str, ...]])

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_ids)

    @property
    def warnings(self) -> tuple[str, ...]:
        if not self.degraded_ids:
            return ()
        listed = ", ".join(self.degraded_ids)
        return (
            f"Dependency order could not be fully resolved for {len(self.degraded_ids)} "
            f"action(s) ({listed}); they are placed in original order and stay blocked "
            "until their dependencies are selected.",
        )


def analyze_dependencies(actions: Sequence[AnyAction]) -> DependencyAnalysis:
    """Topologically order the included actions of ``actions``."""

    included = [action for action in actions if action.include]
    position = {action.id: index for index, action in enumerate(included)}
    dependencies = {action.id: dependency_ids(action) for action in included}

    remaining = {action_id: len(deps) for action_id, deps in dependencies.items()}
    dependents: dict[str, list[str]] = {action_id: [] for action_id in position}
    for action_id, deps in dependencies.items():
        for dependency_id in deps:
            if dependency_id in dependents:
                dependents[dependency_id].append(action_id)

    ready = [position[action_id] for action_id, count in remaining.items() if count == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        action_id = included[heapq.heappop(ready)].id
        order.append(action_id)
        for dependent_id in dependents[action_id]:
            remaining[dependent_id] -= 1
            if remaining[dependent_id] == 0:
                heapq.heappush(ready, position[dependent_id])

    emitted = set(order)
    degraded = tuple(action.id for action in included if action.id not in emitted)
    if degraded:
        log.warning("Degraded dependency order for %s", ", ".join(degraded))
    return DependencyAnalysis(
        order=(*order, *degraded),
        degraded_ids=degraded,
        dependencies=dependencies,
    )


def execution_order(actions: Sequence[AnyAction]) -> tuple[str, ...]:
    return analyze_dependencies(actions).order


def _selection_issues(action: CreateEntityAction) -> list[str]:
    issues: list[str] = []
    if not action.draft.name.strip():
        issues.append("A name is required to create this record.")
    selection = action.selection
    if (
        isinstance(selection, UseExisting)
        and not selection.existing_id
        and not action.existing_matches
    ):
        issues.append("Select an existing record or switch to create new.")
    if isinstance(selection, CreateFromWeb):
        if not action.web_candidates:
            issues.append("No web candidates are available; switch to manual create.")
        elif len(action.web_candidates) > 1 and selection.web_candidate_index is None:
            issues.append("Choose one of the web candidates before executing.")
        elif (
            selection.web_candidate_index is not None
            and selection.web_candidate_index >= len(action.web_candidates)
        ):
            issues.append("The selected web candidate no longer exists.")
    return issues


def _unresolved_reference_issues(action: AnyAction) -> list[str]:
    match action:
        case CreateEntityAction():
            return _selection_issues(action)
        case UpdateEntityAction():
            if action.selected_target_id or action.linked_create_action_id:
                return []
            return [f"Select the {action.entity_kind.label} to update."]
        case AddContactAction():
            issues: list[str] = []
            if not action.contact.name.strip():
                issues.append("A contact name is required.")
            if not (action.selected_parent_id or action.linked_create_action_id):
                issues.append(f"Select the {action.parent_kind.label} for this contact.")
            return issues
        case LinkRelationshipAction():
            issues = []
            if not (action.selected_company_id or action.company_create_action_id):
                issues.append("Select the company to link.")
            if not (action.selected_co_investor_id or action.co_investor_create_action_id):
                issues.append("Select the co-investor to link.")
            return issues


def validation_issues(
    plan: Plan, *, analysis: DependencyAnalysis | None = None
) -> dict[str, tuple[str, ...]]:
    """Blocking issues per included action; empty tuples mean runnable."""

    analysis = analysis or analyze_dependencies(plan.actions)
    by_id = {action.id: action for action in plan.actions}
    degraded = set(analysis.degraded_ids)
    result: dict[str, tuple[str, ...]] = {}
    for action in plan.actions:
        if not action.include:
            continue
        issues = _unresolved_reference_issues(action)
        for dependency_id in dependency_ids(action):
            dependency = by_id.get(dependency_id)
            if dependency is None:
                issues.append(f"Dependency {dependency_id} is missing from the plan.")
            elif not dependency.include:
                issues.append(f"Dependency not selected: {action_label(dependency)}.")
        if action.id in degraded and not issues:
            issues.append("Dependency cycle detected; resolve one of the linked records manually.")
        result[action.id] = tuple(issues)
    return result


def next_runnable_action_id(
    plan: Plan,
    completed_action_ids: Collection[str],
    *,
    analysis: DependencyAnalysis | None = None,
) -> str | None:
    """First action in execution order that can run now, if any."""

    analysis = analysis or analyze_dependencies(plan.actions)
    issues = validation_issues(plan, analysis=analysis)
    completed = set(completed_action_ids)
    included = {action.id for action in plan.actions if action.include}
    for action_id in analysis.order:
        if action_id in completed or issues.get(action_id):
            continue
        pending = [
            dependency_id
            for dependency_id in analysis.dependencies.get(action_id, ())
            if dependency_id in included and dependency_id not in completed
        ]
        if not pending:
            return action_id
    return None

