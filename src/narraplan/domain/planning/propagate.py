"""Feed records produced by executed creates back into the plan."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from narraplan.domain.model import ActionKind, ExecutionStatus

from .actions import AddContactAction, LinkRelationshipAction, UpdateEntityAction

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .actions import AnyAction, ExecutionResult, Plan

log = logging.getLogger(__name__)


def created_record_ids(results: Iterable[ExecutionResult]) -> dict[str, str]:
    """Map executed create action ids to the id of the record they produced."""

    return {
        result.action_id: result.record.id
        for result in results
        if result.kind is ActionKind.CREATE_ENTITY
        and result.status is ExecutionStatus.EXECUTED
        and result.record is not None
    }


def _fill(current: str | None, create_action_id: str | None, produced: Mapping[str, str]) -> str | None:
    if current or not create_action_id:
        return None
    return produced.get(create_action_id)


def _propagate_action(action: AnyAction, produced: Mapping[str, str]) -> AnyAction:
    update: dict[str, str] = {}
    match action:
        case UpdateEntityAction():
            if record_id := _fill(action.selected_target_id, action.linked_create_action_id, produced):
                update["selected_target_id"] = record_id
        case AddContactAction():
            if record_id := _fill(action.selected_parent_id, action.linked_create_action_id, produced):
                update["selected_parent_id"] = record_id
        case LinkRelationshipAction():
            if record_id := _fill(
                action.selected_company_id, action.company_create_action_id, produced
            ):
                update["selected_company_id"] = record_id
            if record_id := _fill(
                action.selected_co_investor_id, action.co_investor_create_action_id, produced
            ):
                update["selected_co_investor_id"] = record_id
        case _:
            pass
    if not update:
        return action
    log.debug("Propagated %s into %s", ", ".join(update), action.id)
    return action.model_copy(update=update)


def propagate_created_records(plan: Plan, results: Iterable[ExecutionResult]) -> Plan:
    """Fill empty reference slots linked to creates that executed.

    Every action is considered, including ones excluded from the run that
    produced ``results``. A slot that already holds a record id is left as is.
    """

    produced = created_record_ids(results)
    if not produced:
        return plan
    return plan.with_actions(_propagate_action(action, produced) for action in plan.actions)


__all__ = ["created_record_ids", "propagate_created_records"]
