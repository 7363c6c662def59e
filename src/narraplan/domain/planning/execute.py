"""Sequential execution of a reviewed plan against the entity store.

Actions run in dependency order, each inside its own unit of work, so a
failure rolls back only the action that raised it. A failure never aborts
the run: dependents of a failed or excluded create are skipped and can be
retried by a later partial run once the dependency has executed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, assert_never
from uuid import UUID

from narraplan.domain.model import (
    ContactDetails,
    EntityKind,
    ExecutionStatus,
    LeadSourceType,
    LinkDetails,
    OrganizationChanges,
    default_contact_role,
)

from .actions import (
    AddContactAction,
    CreateEntityAction,
    CreateFromWeb,
    CreateManual,
    ExecutionRecord,
    ExecutionResult,
    LinkRelationshipAction,
    UpdateEntityAction,
    UseExisting,
)
from .graph import analyze_dependencies, dependency_ids
from .normalize import lookup_form

if TYPE_CHECKING:
    from collections.abc import Iterable

    from narraplan.domain.model import Organization
    from narraplan.domain.ports import EntityRepository, PlanningUnitOfWork

    from .actions import AnyAction, EntityDraft, OrganizationFields, Plan, WebCandidate

log = logging.getLogger(__name__)

type UnitOfWorkFactory = Callable[[], PlanningUnitOfWork]

NARRATIVE_INTAKE = "Narrative intake"
NOT_SELECTED_MESSAGE = "Action was not selected for execution."

_INTRODUCTION_LANGUAGE = re.compile(r"\bintroduc(?:ed|tion|ing)\b|\bintro\b", re.IGNORECASE)


class ActionExecutionError(RuntimeError):
    """Raised when an action cannot be applied as reviewed."""


@dataclass(frozen=True, slots=True)
class ExecutionReport:
    """Outcome of one execution run."""

    results: tuple[ExecutionResult, ...]
    created: Mapping[str, ExecutionRecord] = field(default_factory=dict[str, ExecutionRecord])
    warnings: tuple[str, ...] = ()

    def count(self, status: ExecutionStatus) -> int:
        return sum(1 for result in self.results if result.status is status)

    @property
    def executed(self) -> int:
        return self.count(ExecutionStatus.EXECUTED)

    @property
    def failed(self) -> int:
        return self.count(ExecutionStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self.count(ExecutionStatus.SKIPPED)

    @property
    def summary(self) -> str:
        return f"Executed {self.executed}, failed {self.failed}, skipped {self.skipped}."

    def result_for(self, action_id: str) -> ExecutionResult | None:
        return next((result for result in self.results if result.action_id == action_id), None)


def _uuid(value: str, what: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ActionExecutionError(f"Invalid {what} id {value!r}.") from exc


def _record(organization: Organization) -> ExecutionRecord:
    return ExecutionRecord(
        entity_kind=organization.kind, id=str(organization.id), name=organization.name
    )


def _resolve_id(
    selected_id: str | None,
    create_action_id: str | None,
    created: Mapping[str, ExecutionRecord],
) -> str | None:
    if selected_id:
        return selected_id
    if create_action_id and create_action_id in created:
        return created[create_action_id].id
    return None


def _lead_source_changes(kind: EntityKind, fields: OrganizationFields) -> dict[str, object]:
    """Lead-source values to write; unresolved health systems become other sources."""

    if kind is not EntityKind.COMPANY or not fields.lead_source_requested:
        return {}
    notes = fields.lead_source_notes
    if fields.lead_source_health_system_id:
        return {
            "lead_source_type": LeadSourceType.HEALTH_SYSTEM,
            "lead_source_health_system_id": _uuid(
                fields.lead_source_health_system_id, "lead source health system"
            ),
            "lead_source_notes": notes,
        }
    other = (
        fields.lead_source_other
        or fields.lead_source_health_system_name
        or NARRATIVE_INTAKE
    )
    return {
        "lead_source_type": LeadSourceType.OTHER,
        "lead_source_other": other,
        "lead_source_notes": notes,
    }


def _organization_changes(
    kind: EntityKind, fields: OrganizationFields, *, name: str | None
) -> OrganizationChanges:
    return OrganizationChanges(
        name=name,
        legal_name=fields.legal_name,
        website=fields.website,
        headquarters_city=fields.headquarters_city,
        headquarters_state=fields.headquarters_state,
        headquarters_country=fields.headquarters_country,
        description=fields.description,
        research_notes=fields.research_notes,
        investment_notes=fields.investment_notes,
        **_lead_source_changes(kind, fields),  # type: ignore[arg-type]
    )


def _selected_web_candidate(action: CreateEntityAction, selection: CreateFromWeb) -> WebCandidate:
    candidates = action.web_candidates
    if not candidates:
        raise ActionExecutionError(
            "No web candidates available for this create action. "
            "Choose manual create or select an existing record."
        )
    index = selection.web_candidate_index
    if index is None:
        if len(candidates) > 1:
            raise ActionExecutionError(
                "Multiple web candidates found. Select one candidate before execution."
            )
        index = 0
    if index >= len(candidates):
        raise ActionExecutionError(
            "Selected web candidate is invalid. Please choose a valid candidate."
        )
    return candidates[index]


def _draft_with_candidate(draft: EntityDraft, candidate: WebCandidate) -> EntityDraft:
    """Fill blank draft fields from a web candidate; reviewed values win."""

    fill = {
        "name": draft.name or candidate.name,
        "website": draft.website or candidate.website,
        "headquarters_city": draft.headquarters_city or candidate.headquarters_city,
        "headquarters_state": draft.headquarters_state or candidate.headquarters_state,
        "headquarters_country": draft.headquarters_country or candidate.headquarters_country,
        "description": draft.description or candidate.summary,
    }
    if candidate.source_urls and not draft.research_notes:
        fill["research_notes"] = "Sources: " + ", ".join(candidate.source_urls)
    return draft.model_copy(update=fill)


class ActionRunner:
    """Applies single actions through one repository."""

    def __init__(self, repository: EntityRepository, created: Mapping[str, ExecutionRecord]):
        self.repository = repository
        self.created = created

    def run(self, action: AnyAction) -> tuple[str, ExecutionRecord]:
        match action:
            case CreateEntityAction():
                return self.create(action)
            case UpdateEntityAction():
                return self.update(action)
            case AddContactAction():
                return self.add_contact(action)
            case LinkRelationshipAction():
                return self.link(action)
            case _:
                assert_never(action)

    def create(self, action: CreateEntityAction) -> tuple[str, ExecutionRecord]:
        kind = action.entity_kind
        selection = action.selection
        match selection:
            case UseExisting():
                existing_id = selection.existing_id or (
                    action.existing_matches[0].id if action.existing_matches else None
                )
                if not existing_id:
                    raise ActionExecutionError(
                        "Create action is set to use an existing record, "
                        "but no existing record was selected."
                    )
                existing = self.repository.get(kind, _uuid(existing_id, kind.label))
                return f"Using existing {kind.label} {existing.name}.", _record(existing)
            case CreateFromWeb():
                draft = _draft_with_candidate(
                    action.draft, _selected_web_candidate(action, selection)
                )
            case CreateManual():
                draft = action.draft
            case _:
                assert_never(selection)

        name = draft.name.strip()
        if not name:
            raise ActionExecutionError(f"A name is required to create a {kind.label}.")
        organization = self.repository.create(kind, _organization_changes(kind, draft, name=name))
        return f"Created {kind.label} {organization.name}.", _record(organization)

    def update(self, action: UpdateEntityAction) -> tuple[str, ExecutionRecord]:
        kind = action.entity_kind
        target_id = _resolve_id(
            action.selected_target_id, action.linked_create_action_id, self.created
        )
        if not target_id:
            raise ActionExecutionError("No target record selected for update.")
        patch = action.patch
        if patch.name is not None and not patch.name.strip():
            raise ActionExecutionError("Name patch cannot be empty.")
        changes = _organization_changes(kind, patch, name=patch.name)
        organization = self.repository.update(kind, _uuid(target_id, kind.label), changes)
        return f"Updated {kind.label} {organization.name}.", _record(organization)

    def add_contact(self, action: AddContactAction) -> tuple[str, ExecutionRecord]:
        kind = action.parent_kind
        parent_id = _resolve_id(
            action.selected_parent_id, action.linked_create_action_id, self.created
        )
        if not parent_id:
            raise ActionExecutionError("No parent record selected for contact action.")
        name = action.contact.name.strip()
        if not name:
            raise ActionExecutionError("A contact name is required.")
        payload = action.contact
        details = ContactDetails(
            name=name,
            title=payload.title,
            relationship_title=payload.relationship_title,
            email=payload.email,
            phone=payload.phone,
            linkedin_url=payload.linkedin_url,
        )
        parent_uuid = _uuid(parent_id, kind.label)
        parent = self.repository.get(kind, parent_uuid)
        contact = self.repository.add_contact(
            kind,
            parent_uuid,
            details,
            role_type=action.role_type or default_contact_role(kind),
        )
        return (
            f"Linked contact {contact.name} to {kind.label} {parent.name}.",
            _record(parent),
        )

    def link(self, action: LinkRelationshipAction) -> tuple[str, ExecutionRecord]:
        company_id = _resolve_id(
            action.selected_company_id, action.company_create_action_id, self.created
        )
        if not company_id:
            raise ActionExecutionError("No company selected for co-investor relationship.")
        co_investor_id = _resolve_id(
            action.selected_co_investor_id, action.co_investor_create_action_id, self.created
        )
        if not co_investor_id:
            raise ActionExecutionError("No co-investor selected for relationship.")

        company_uuid = _uuid(company_id, "company")
        co_investor_uuid = _uuid(co_investor_id, "co-investor")
        self.repository.create_link(
            company_uuid,
            co_investor_uuid,
            LinkDetails(
                relationship_type=action.relationship_type,
                notes=action.notes,
                investment_amount_usd=action.investment_amount_usd,
            ),
        )
        company = self._backfill_introduction_lead_source(action, company_uuid)
        return (
            f"Linked {company.name} and {action.co_investor_name}.",
            _record(company),
        )

    def _backfill_introduction_lead_source(
        self, action: LinkRelationshipAction, company_id: UUID
    ) -> Organization:
        company = self.repository.get(EntityKind.COMPANY, company_id)
        introduced = any(
            _INTRODUCTION_LANGUAGE.search(text or "") for text in (action.notes, action.rationale)
        )
        if not introduced or company.lead_source_health_system_id:
            return company
        if company.lead_source_other and lookup_form(company.lead_source_other) != lookup_form(
            NARRATIVE_INTAKE
        ):
            return company
        log.debug("Recording %s as lead source of %s", action.co_investor_name, company.name)
        return self.repository.update(
            EntityKind.COMPANY,
            company_id,
            OrganizationChanges(
                lead_source_type=LeadSourceType.OTHER,
                lead_source_other=action.co_investor_name,
                lead_source_notes=action.notes
                or f"Introduced by {action.co_investor_name} (narrative intake).",
            ),
        )


def _blocked_message(action: AnyAction, dependency_id: str) -> str:
    match action:
        case UpdateEntityAction():
            subject = f"Cannot update {action.target_name}"
        case AddContactAction():
            subject = f"Cannot link contact {action.contact.name}"
        case LinkRelationshipAction():
            subject = f"Cannot link {action.company_name} and {action.co_investor_name}"
        case _:
            return f"Dependency {dependency_id} did not execute successfully."
    return f"{subject} because dependency {dependency_id} did not execute successfully."


def _result(
    action: AnyAction,
    status: ExecutionStatus,
    message: str,
    record: ExecutionRecord | None = None,
) -> ExecutionResult:
    return ExecutionResult(
        action_id=action.id, kind=action.kind, status=status, message=message, record=record
    )


def execute_plan(
    plan: Plan,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    action_ids: Iterable[str] | None = None,
    prior_records: Mapping[str, ExecutionRecord] | None = None,
) -> ExecutionReport:
    """Execute the included actions of ``plan`` in dependency order.

    ``action_ids`` restricts the run to exactly those actions without touching
    the caller's plan. ``prior_records`` maps create action ids executed by an
    earlier run to the record they produced, so dependents can run now.
    """

    run_plan = plan.restricted_to(action_ids) if action_ids is not None else plan
    analysis = analyze_dependencies(run_plan.actions)
    by_id = {action.id: action for action in run_plan.actions}
    created: dict[str, ExecutionRecord] = dict(prior_records or {})

    results: list[ExecutionResult] = []
    for action_id in analysis.order:
        action = by_id[action_id]
        blocking = next(
            (dependency for dependency in dependency_ids(action) if dependency not in created),
            None,
        )
        if blocking is not None:
            log.info("Skipping %s: dependency %s has no record", action.id, blocking)
            results.append(
                _result(action, ExecutionStatus.SKIPPED, _blocked_message(action, blocking))
            )
            continue

        try:
            with unit_of_work_factory() as uow:
                runner = ActionRunner(uow.repositories.entities, created)
                message, record = runner.run(action)
                uow.commit()
        except Exception as exc:  # noqa: BLE001
            log.warning("Action %s failed: %s", action.id, exc)
            results.append(
                _result(action, ExecutionStatus.FAILED, str(exc) or type(exc).__name__)
            )
            continue

        if isinstance(action, CreateEntityAction):
            created[action.id] = record
        log.info("Executed %s: %s", action.id, message)
        results.append(_result(action, ExecutionStatus.EXECUTED, message, record))

    results.extend(
        _result(action, ExecutionStatus.SKIPPED, NOT_SELECTED_MESSAGE)
        for action in run_plan.actions
        if not action.include
    )

    report = ExecutionReport(
        results=tuple(results),
        created={
            action_id: record
            for action_id, record in created.items()
            if prior_records is None or action_id not in prior_records
        },
        warnings=analysis.warnings,
    )
    log.info("Execution finished: %s", report.summary)
    return report


__all__ = [
    "NARRATIVE_INTAKE",
    "ActionExecutionError",
    "ActionRunner",
    "ExecutionReport",
    "UnitOfWorkFactory",
    "execute_plan",
]
