"""Plan and action models exchanged between extraction, review, and execution.

Every model is frozen: hydration, propagation, and reviewer edits produce new
values through ``model_copy(update=...)`` instead of mutating in place. The
JSON form uses camelCase aliases so a plan can be handed to a review surface
and parsed back without losing fields.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from narraplan.domain.model import (
    ActionKind,
    ContactRole,
    CreateMode,
    EntityKind,
    ExecutionStatus,
    LeadSourceType,
    PlanPhase,
    RelationshipType,
)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _strip_text(value: object) -> object:
    if isinstance(value, str):
        return " ".join(value.split())
    return value


class PlanModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class EntityMatch(PlanModel):
    """Existing record proposed for a free-text name, with its match score."""

    id: str
    entity_kind: EntityKind
    name: str
    website: str | None = None
    headquarters_city: str | None = None
    headquarters_state: str | None = None
    headquarters_country: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str


class WebCandidate(PlanModel):
    name: str
    website: str | None = None
    headquarters_city: str | None = None
    headquarters_state: str | None = None
    headquarters_country: str | None = None
    summary: str | None = None
    source_urls: tuple[str, ...] = ()


_ORGANIZATION_TEXT_FIELDS = (
    "legal_name",
    "website",
    "headquarters_city",
    "headquarters_state",
    "headquarters_country",
    "description",
    "research_notes",
    "investment_notes",
    "lead_source_health_system_id",
    "lead_source_health_system_name",
    "lead_source_other",
    "lead_source_notes",
)


class OrganizationFields(PlanModel):
    legal_name: str | None = None
    website: str | None = None
    headquarters_city: str | None = None
    headquarters_state: str | None = None
    headquarters_country: str | None = None
    description: str | None = None
    research_notes: str | None = None
    investment_notes: str | None = None
    lead_source_type: LeadSourceType | None = None
    lead_source_health_system_id: str | None = None
    lead_source_health_system_name: str | None = None
    lead_source_other: str | None = None
    lead_source_notes: str | None = None

    _normalize_text = field_validator(*_ORGANIZATION_TEXT_FIELDS, mode="before")(_blank_to_none)

    def detail_fields(self) -> dict[str, object]:
        """Return the populated fields other than the name."""

        return {
            key: value
            for key, value in self.model_dump(exclude={"name"}).items()
            if value is not None
        }

    @property
    def lead_source_requested(self) -> bool:
        return (
            self.lead_source_type is not None
            or self.lead_source_health_system_name is not None
            or self.lead_source_health_system_id is not None
            or self.lead_source_other is not None
        )


class EntityDraft(OrganizationFields):
    name: str = ""

    _normalize_name = field_validator("name", mode="before")(_strip_text)


class EntityPatch(OrganizationFields):
    name: str | None = None

    _normalize_name = field_validator("name", mode="before")(_blank_to_none)


class ContactPayload(PlanModel):
    name: str
    title: str | None = None
    relationship_title: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None

    _normalize_name = field_validator("name", mode="before")(_strip_text)
    _normalize_optional = field_validator(
        "title", "relationship_title", "email", "phone", "linkedin_url", mode="before"
    )(_blank_to_none)


class UseExisting(PlanModel):
    mode: Literal[CreateMode.USE_EXISTING] = CreateMode.USE_EXISTING
    existing_id: str | None = None


class CreateManual(PlanModel):
    mode: Literal[CreateMode.CREATE_MANUAL] = CreateMode.CREATE_MANUAL


class CreateFromWeb(PlanModel):
    mode: Literal[CreateMode.CREATE_FROM_WEB] = CreateMode.CREATE_FROM_WEB
    web_candidate_index: int | None = Field(default=None, ge=0)


CreateSelection = Annotated[
    UseExisting | CreateManual | CreateFromWeb,
    Field(discriminator="mode"),
]


class ActionBase(PlanModel):
    id: str = Field(min_length=1)
    include: bool = True
    issues: tuple[str, ...] = ()
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    rationale: str | None = None


class CreateEntityAction(ActionBase):
    kind: Literal[ActionKind.CREATE_ENTITY] = ActionKind.CREATE_ENTITY
    entity_kind: EntityKind
    draft: EntityDraft
    existing_matches: tuple[EntityMatch, ...] = ()
    web_candidates: tuple[WebCandidate, ...] = ()
    selection: CreateSelection = Field(default_factory=CreateManual)


class UpdateEntityAction(ActionBase):
    kind: Literal[ActionKind.UPDATE_ENTITY] = ActionKind.UPDATE_ENTITY
    entity_kind: EntityKind
    target_name: str
    patch: EntityPatch = Field(default_factory=EntityPatch)
    target_matches: tuple[EntityMatch, ...] = ()
    selected_target_id: str | None = None
    linked_create_action_id: str | None = None


class AddContactAction(ActionBase):
    kind: Literal[ActionKind.ADD_CONTACT] = ActionKind.ADD_CONTACT
    parent_kind: EntityKind
    parent_name: str
    role_type: ContactRole | None = None
    contact: ContactPayload
    parent_matches: tuple[EntityMatch, ...] = ()
    selected_parent_id: str | None = None
    linked_create_action_id: str | None = None


class LinkRelationshipAction(ActionBase):
    kind: Literal[ActionKind.LINK_COMPANY_CO_INVESTOR] = ActionKind.LINK_COMPANY_CO_INVESTOR
    company_name: str
    co_investor_name: str
    relationship_type: RelationshipType = RelationshipType.INVESTOR
    notes: str | None = None
    investment_amount_usd: float | None = Field(default=None, ge=0.0)
    company_matches: tuple[EntityMatch, ...] = ()
    co_investor_matches: tuple[EntityMatch, ...] = ()
    selected_company_id: str | None = None
    selected_co_investor_id: str | None = None
    company_create_action_id: str | None = None
    co_investor_create_action_id: str | None = None


Action = Annotated[
    CreateEntityAction | UpdateEntityAction | AddContactAction | LinkRelationshipAction,
    Field(discriminator="kind"),
]

type AnyAction = CreateEntityAction | UpdateEntityAction | AddContactAction | LinkRelationshipAction


def action_label(action: AnyAction) -> str:
    """Short human-readable description used in issues and messages."""

    match action:
        case CreateEntityAction():
            return f"Create {action.entity_kind.label} {action.draft.name or '(unnamed)'}"
        case UpdateEntityAction():
            return f"Update {action.entity_kind.label} {action.target_name}"
        case AddContactAction():
            return f"Add contact {action.contact.name} to {action.parent_name}"
        case LinkRelationshipAction():
            return f"Link {action.company_name} to {action.co_investor_name}"


class Plan(PlanModel):
    """Ordered, reviewable collection of proposed actions."""

    narrative: str = ""
    summary: str = ""
    phase: PlanPhase = PlanPhase.PLAN
    warnings: tuple[str, ...] = ()
    actions: tuple[Action, ...] = ()

    @model_validator(mode="after")
    def _unique_action_ids(self) -> Plan:
        seen: set[str] = set()
        for action in self.actions:
            if action.id in seen:
                raise ValueError(f"Duplicate action id {action.id!r}")
            seen.add(action.id)
        return self

    def action_for(self, action_id: str) -> AnyAction | None:
        return next((action for action in self.actions if action.id == action_id), None)

    def with_actions(self, actions: Iterable[AnyAction]) -> Plan:
        return self.model_copy(update={"actions": tuple(actions)})

    def replace_action(self, action: AnyAction) -> Plan:
        if self.action_for(action.id) is None:
            raise KeyError(action.id)
        return self.with_actions(
            action if existing.id == action.id else existing for existing in self.actions
        )

    def with_include(self, action_id: str, include: bool) -> Plan:  # noqa: FBT001
        action = self.action_for(action_id)
        if action is None:
            raise KeyError(action_id)
        return self.replace_action(action.model_copy(update={"include": include}))

    def restricted_to(self, action_ids: Iterable[str]) -> Plan:
        """Copy of the plan where exactly ``action_ids`` are included."""

        allowed = set(action_ids)
        return self.with_actions(
            action
            if action.include == (action.id in allowed)
            else action.model_copy(update={"include": action.id in allowed})
            for action in self.actions
        )


class ExecutionRecord(PlanModel):
    entity_kind: EntityKind | None = None
    id: str
    name: str


class ExecutionResult(PlanModel):
    action_id: str
    kind: ActionKind
    status: ExecutionStatus
    message: str
    record: ExecutionRecord | None = None


class PlanValidationError(ValueError):
    """Raised when a plan payload does not describe a well-formed plan."""

    def __init__(self, message: str, *, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def _describe_errors(exc: ValidationError) -> list[str]:
    described: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "plan"
        described.append(f"{location}: {error['msg']}")
    return described


def parse_plan(payload: Mapping[str, object] | str | bytes) -> Plan:
    """Validate a plan payload, rejecting malformed input before any processing."""

    try:
        if isinstance(payload, str | bytes):
            return Plan.model_validate_json(payload)
        return Plan.model_validate(payload)
    except ValidationError as exc:
        errors = _describe_errors(exc)
        raise PlanValidationError(
            f"Invalid plan payload: {'; '.join(errors)}", errors=errors
        ) from exc


def dump_plan(plan: Plan) -> dict[str, object]:
    return plan.model_dump(mode="json", by_alias=True)


def dump_plan_json(plan: Plan, *, indent: int | None = 2) -> str:
    return json.dumps(dump_plan(plan), indent=indent)
