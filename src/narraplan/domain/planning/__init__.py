"""Narrative planning core: from free text to an executed, reviewed plan.

Layered flow:
1) extract draft actions (service or pattern fallback)
2) consolidate duplicates and apply introduction heuristics
3) hydrate references against existing records and same-batch creates
4) order by dependencies and validate
5) execute selected actions, one transaction each
6) propagate created records into the remaining actions
"""

from __future__ import annotations

from .actions import (
    Action,
    AddContactAction,
    AnyAction,
    ContactPayload,
    CreateEntityAction,
    CreateFromWeb,
    CreateManual,
    EntityDraft,
    EntityMatch,
    EntityPatch,
    ExecutionRecord,
    ExecutionResult,
    LinkRelationshipAction,
    Plan,
    PlanValidationError,
    UpdateEntityAction,
    UseExisting,
    WebCandidate,
    action_label,
    dump_plan,
    dump_plan_json,
    parse_plan,
)
from .builder import build_plan, rehydrate_plan
from .clarify import Clarification, extract_clarifications, operational_messages
from .execute import ActionExecutionError, ExecutionReport, execute_plan
from .graph import (
    DependencyAnalysis,
    analyze_dependencies,
    dependency_ids,
    execution_order,
    next_runnable_action_id,
    validation_issues,
)
from .hydrate import ActionHydrator, hydrate_actions
from .matching import EntityMatcher
from .normalize import clean_entity_name, comparison_key, normalize_name
from .policy import MatchPolicy
from .propagate import propagate_created_records
from .scoring import MatchScore, score_name_match
from .session import PlanSession, dump_session_json, parse_session, start_session

__all__ = [
    "Action",
    "ActionExecutionError",
    "ActionHydrator",
    "AddContactAction",
    "AnyAction",
    "Clarification",
    "ContactPayload",
    "CreateEntityAction",
    "CreateFromWeb",
    "CreateManual",
    "DependencyAnalysis",
    "EntityDraft",
    "EntityMatch",
    "EntityMatcher",
    "EntityPatch",
    "ExecutionRecord",
    "ExecutionReport",
    "ExecutionResult",
    "LinkRelationshipAction",
    "MatchPolicy",
    "MatchScore",
    "Plan",
    "PlanSession",
    "PlanValidationError",
    "UpdateEntityAction",
    "UseExisting",
    "WebCandidate",
    "action_label",
    "analyze_dependencies",
    "build_plan",
    "clean_entity_name",
    "comparison_key",
    "dependency_ids",
    "dump_plan",
    "dump_plan_json",
    "dump_session_json",
    "execute_plan",
    "execution_order",
    "extract_clarifications",
    "hydrate_actions",
    "next_runnable_action_id",
    "normalize_name",
    "operational_messages",
    "parse_plan",
    "parse_session",
    "propagate_created_records",
    "rehydrate_plan",
    "score_name_match",
    "start_session",
    "validation_issues",
]
