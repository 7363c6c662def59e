"""Translate extraction service payloads into draft plan actions.

Conversion is tolerant: kinds are parsed fuzzily, numbers and booleans are
cleaned from strings, and an entry that cannot become a valid action is
dropped rather than failing the batch.
"""

from __future__ import annotations

import math
import re
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from narraplan.domain.model import (
    ActionKind,
    ContactRole,
    EntityKind,
    LeadSourceType,
    RelationshipType,
)
from narraplan.domain.planning.actions import (
    AddContactAction,
    ContactPayload,
    CreateEntityAction,
    CreateFromWeb,
    EntityDraft,
    EntityPatch,
    LinkRelationshipAction,
    UpdateEntityAction,
)
from narraplan.domain.planning.extract import (
    build_action_id,
    looks_like_health_system,
    unique_action_id,
)
from narraplan.domain.planning.normalize import clean_entity_name
from narraplan.domain.ports.extraction import ExtractionResult

from .schema import RawAction

if TYPE_CHECKING:
    from collections.abc import Mapping

    from narraplan.domain.planning.actions import AnyAction

    from .schema import ExtractionPayload

log = getLogger(__name__)

HEALTH_SYSTEM_LINK_ISSUE = (
    "A company and health system link request was recorded as a company "
    "lead-source update."
)

_ORGANIZATION_TEXT_FIELDS = (
    "legal_name",
    "website",
    "headquarters_city",
    "headquarters_state",
    "headquarters_country",
    "description",
    "investment_notes",
    "lead_source_health_system_id",
    "lead_source_health_system_name",
    "lead_source_other",
    "lead_source_notes",
)


def _token(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return re.sub(r"[^A-Z0-9]+", "_", value.upper()).strip("_")


def clean_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def clean_number(value: object) -> float | None:
    """Parse amounts such as ``12``, ``"1,500"``, ``"$2.5M"``, or ``"750k"``."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int | float):
        return float(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower().replace(",", "")
    if not normalized:
        return None
    multiplier = 1_000_000 if "m" in normalized else 1_000 if "k" in normalized else 1
    digits = re.sub(r"[^0-9.+-]", "", normalized)
    try:
        number = float(digits)
    except ValueError:
        return None
    return number * multiplier if math.isfinite(number) else None


def clean_boolean(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    if normalized in {"true", "yes", "1"}:
        return True
    if normalized in {"false", "no", "0"}:
        return False
    return None


def clean_confidence(value: object) -> float | None:
    number = clean_number(value)
    if number is None:
        return None
    return max(0.0, min(1.0, number))


# kind parsing -----------------------------------------------------------------


def parse_entity_kind(value: object) -> EntityKind | None:
    match _token(value):
        case "HEALTH_SYSTEM" | "HEALTHSYSTEM" | "HEALTH_SYSTEMS":
            return EntityKind.HEALTH_SYSTEM
        case "COMPANY" | "COMPANIES":
            return EntityKind.COMPANY
        case "CO_INVESTOR" | "COINVESTOR" | "CO_INVESTORS" | "INVESTOR" | "CO_INVESTMENT_FIRM":
            return EntityKind.CO_INVESTOR
        case _:
            return None


def entity_kind_from_action_kind(value: object) -> EntityKind | None:
    """Kind embedded in an action kind such as ``CREATE_HEALTH_SYSTEM``."""

    raw = _token(value)
    if "HEALTH" in raw and "SYSTEM" in raw:
        return EntityKind.HEALTH_SYSTEM
    if "COMPANY" in raw:
        return EntityKind.COMPANY
    if "INVESTOR" in raw:
        return EntityKind.CO_INVESTOR
    return None


def parse_action_kind(value: object) -> ActionKind | None:
    raw = _token(value)
    if not raw:
        return None
    if raw in {"ADD_CONTACT", "CREATE_CONTACT", "LINK_CONTACT"} or (
        "CONTACT" in raw and any(verb in raw for verb in ("ADD", "CREATE", "LINK"))
    ):
        return ActionKind.ADD_CONTACT
    if raw in {
        "LINK_COMPANY_CO_INVESTOR",
        "LINK_COMPANY_COINVESTOR",
        "CREATE_INVESTOR_RELATIONSHIP",
        "CREATE_CO_INVESTOR_RELATIONSHIP",
    } or ("LINK" in raw and "CO" in raw and "INVESTOR" in raw):
        return ActionKind.LINK_COMPANY_CO_INVESTOR
    if raw in {"UPDATE_ENTITY", "UPDATE", "EDIT_ENTITY", "PATCH_ENTITY"} or raw.startswith(
        "UPDATE_"
    ):
        return ActionKind.UPDATE_ENTITY
    if raw in {"CREATE_ENTITY", "CREATE", "ADD_ENTITY", "NEW_ENTITY"} or raw.startswith(
        ("CREATE_", "ADD_")
    ):
        return ActionKind.CREATE_ENTITY
    return None


def is_company_health_system_link(value: object) -> bool:
    raw = _token(value)
    return all(part in raw for part in ("LINK", "COMPANY", "HEALTH", "SYSTEM"))


def parse_role_type(value: object) -> ContactRole | None:
    raw = _token(value)
    if not raw:
        return None
    try:
        return ContactRole(raw)
    except ValueError:
        return ContactRole.OTHER


def parse_relationship_type(value: object) -> RelationshipType:
    raw = _token(value)
    try:
        return RelationshipType(raw)
    except ValueError:
        return RelationshipType.PARTNER if "PARTNER" in raw else RelationshipType.INVESTOR


def parse_lead_source_type(value: object) -> LeadSourceType | None:
    match _token(value):
        case "HEALTH_SYSTEM":
            return LeadSourceType.HEALTH_SYSTEM
        case "OTHER":
            return LeadSourceType.OTHER
        case _:
            return None


def _infer_entity_kind(raw: RawAction, action_kind: ActionKind) -> EntityKind | None:
    direct = (
        parse_entity_kind(raw.entity_type)
        or parse_entity_kind(raw.parent_type)
        or parse_entity_kind(raw.target_type)
        or parse_entity_kind(raw.kind)
        or entity_kind_from_action_kind(raw.kind)
    )
    if direct is not None:
        return direct
    if clean_text(_lookup(raw.patch, "lead_source_type")) or clean_text(
        _lookup(raw.patch, "lead_source_health_system_name")
    ):
        return EntityKind.COMPANY
    if action_kind is ActionKind.UPDATE_ENTITY:
        if raw.company_name:
            return EntityKind.COMPANY
        if raw.co_investor_name:
            return EntityKind.CO_INVESTOR
        if raw.health_system_name:
            return EntityKind.HEALTH_SYSTEM
    return None


# field objects ----------------------------------------------------------------


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _lookup(source: Mapping[str, object], name: str) -> object:
    """Read a field by its camelCase or snake_case key."""

    value = source.get(_camel(name))
    return value if value is not None else source.get(name)


def _organization_values(source: Mapping[str, object]) -> dict[str, object]:
    values: dict[str, object] = {
        name: clean_text(_lookup(source, name)) for name in _ORGANIZATION_TEXT_FIELDS
    }
    values["research_notes"] = clean_text(_lookup(source, "research_notes")) or clean_text(
        source.get("notes")
    )
    values["lead_source_type"] = parse_lead_source_type(_lookup(source, "lead_source_type"))
    return {key: value for key, value in values.items() if value is not None}


def _first_text(*values: object) -> str:
    return next((text for value in values if (text := clean_text(value))), "")


# conversion -------------------------------------------------------------------


def _health_system_link_update(raw: RawAction, index: int) -> UpdateEntityAction | None:
    company = clean_entity_name(
        _first_text(raw.company_name, raw.target_name, raw.parent_name, raw.name),
        EntityKind.COMPANY,
    )
    health_system = clean_entity_name(
        _first_text(
            raw.health_system_name,
            raw.related_name,
            raw.linked_name,
            raw.counterparty_name,
            raw.other_entity_name,
        ),
        EntityKind.HEALTH_SYSTEM,
    )
    if not company or not health_system:
        return None
    return UpdateEntityAction(
        id=build_action_id(ActionKind.UPDATE_ENTITY, index, company),
        rationale=raw.rationale,
        confidence=clean_confidence(raw.confidence),
        issues=(HEALTH_SYSTEM_LINK_ISSUE,),
        entity_kind=EntityKind.COMPANY,
        target_name=company,
        patch=EntityPatch(
            lead_source_type=LeadSourceType.HEALTH_SYSTEM,
            lead_source_health_system_name=health_system,
            lead_source_notes=raw.notes
            or f"{health_system} referenced as linked health system for {company}.",
        ),
    )


def _convert(raw: RawAction, index: int) -> AnyAction | None:
    kind = parse_action_kind(raw.kind)
    if kind is None:
        return _health_system_link_update(raw, index) if is_company_health_system_link(raw.kind) else None

    confidence = clean_confidence(raw.confidence)
    match kind:
        case ActionKind.CREATE_ENTITY:
            entity_kind = _infer_entity_kind(raw, kind) or parse_entity_kind(raw.target_name)
            if entity_kind is None:
                return None
            name = clean_entity_name(
                _first_text(
                    raw.draft.get("name"),
                    raw.target_name,
                    raw.parent_name,
                    raw.company_name,
                    raw.co_investor_name,
                ),
                entity_kind,
            )
            if not name:
                return None
            if entity_kind is EntityKind.CO_INVESTOR and looks_like_health_system(name):
                return None
            return CreateEntityAction(
                id=build_action_id(kind, index, name),
                rationale=raw.rationale,
                confidence=confidence,
                entity_kind=entity_kind,
                draft=EntityDraft(name=name, **_organization_values(raw.draft)),
                selection=CreateFromWeb(),
            )

        case ActionKind.UPDATE_ENTITY:
            entity_kind = _infer_entity_kind(raw, kind)
            if entity_kind is None:
                return None
            target = clean_entity_name(
                _first_text(
                    raw.target_name,
                    raw.company_name,
                    raw.co_investor_name,
                    raw.health_system_name,
                    raw.patch.get("name"),
                    raw.parent_name,
                    raw.name,
                ),
                entity_kind,
            )
            if not target:
                return None
            return UpdateEntityAction(
                id=build_action_id(kind, index, target),
                rationale=raw.rationale,
                confidence=confidence,
                entity_kind=entity_kind,
                target_name=target,
                patch=EntityPatch(
                    name=clean_text(raw.patch.get("name")), **_organization_values(raw.patch)
                ),
            )

        case ActionKind.ADD_CONTACT:
            parent_kind = (
                parse_entity_kind(raw.parent_type)
                or parse_entity_kind(raw.entity_type)
                or parse_entity_kind(raw.kind)
            )
            if parent_kind is None:
                return None
            parent = clean_entity_name(_first_text(raw.parent_name, raw.target_name), parent_kind)
            contact_name = _first_text(raw.contact.get("name"), raw.target_name)
            if not parent or not contact_name:
                return None
            return AddContactAction(
                id=build_action_id(kind, index, f"{parent}-{contact_name}"),
                rationale=raw.rationale,
                confidence=confidence,
                parent_kind=parent_kind,
                parent_name=parent,
                role_type=parse_role_type(raw.role_type),
                contact=ContactPayload(
                    name=contact_name,
                    title=clean_text(raw.contact.get("title")),
                    relationship_title=clean_text(_lookup(raw.contact, "relationship_title")),
                    email=clean_text(raw.contact.get("email")),
                    phone=clean_text(raw.contact.get("phone")),
                    linkedin_url=clean_text(_lookup(raw.contact, "linkedin_url"))
                    or clean_text(raw.contact.get("url")),
                ),
            )

        case ActionKind.LINK_COMPANY_CO_INVESTOR:
            company = clean_entity_name(raw.company_name or "", EntityKind.COMPANY)
            co_investor = clean_entity_name(raw.co_investor_name or "", EntityKind.CO_INVESTOR)
            if not company or not co_investor or looks_like_health_system(co_investor):
                return None
            amount = clean_number(raw.investment_amount_usd)
            return LinkRelationshipAction(
                id=build_action_id(kind, index, f"{company}-{co_investor}"),
                rationale=raw.rationale,
                confidence=confidence,
                company_name=company,
                co_investor_name=co_investor,
                relationship_type=parse_relationship_type(raw.relationship_type),
                notes=raw.notes,
                investment_amount_usd=amount if amount is not None and amount >= 0 else None,
            )


def convert_raw_action(raw_action: object, index: int) -> AnyAction | None:
    """Convert one raw service entry, or ``None`` when it is unusable."""

    try:
        raw = RawAction.model_validate(raw_action)
        return _convert(raw, index)
    except ValidationError as exc:
        log.debug("Dropping extraction entry %d: %s", index, exc)
        return None


def translate_payload(payload: ExtractionPayload) -> ExtractionResult:
    actions: list[AnyAction] = []
    taken: set[str] = set()
    for index, raw_action in enumerate(payload.actions):
        action = convert_raw_action(raw_action, index)
        if action is None:
            continue
        unique = unique_action_id(action.id, taken)
        actions.append(action if unique == action.id else action.model_copy(update={"id": unique}))

    dropped = len(payload.actions) - len(actions)
    if dropped:
        log.info("Dropped %d unusable extraction entr%s", dropped, "y" if dropped == 1 else "ies")
    return ExtractionResult(summary=payload.summary, warnings=list(payload.warnings), actions=actions)
