"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityKind(StrEnum):
    """Organization kinds the planner can match, create, and update."""

    HEALTH_SYSTEM = "HEALTH_SYSTEM"
    COMPANY = "COMPANY"
    CO_INVESTOR = "CO_INVESTOR"

    @property
    def label(self) -> str:
        return _ENTITY_LABELS[self]


_ENTITY_LABELS: dict[EntityKind, str] = {
    EntityKind.HEALTH_SYSTEM: "health system",
    EntityKind.COMPANY: "company",
    EntityKind.CO_INVESTOR: "co-investor",
}


class ActionKind(StrEnum):
    CREATE_ENTITY = "CREATE_ENTITY"
    UPDATE_ENTITY = "UPDATE_ENTITY"
    ADD_CONTACT = "ADD_CONTACT"
    LINK_COMPANY_CO_INVESTOR = "LINK_COMPANY_CO_INVESTOR"


class CreateMode(StrEnum):
    USE_EXISTING = "USE_EXISTING"
    CREATE_MANUAL = "CREATE_MANUAL"
    CREATE_FROM_WEB = "CREATE_FROM_WEB"


class PlanPhase(StrEnum):
    """Whether a plan still waits on reviewer answers or is ready to execute."""

    CLARIFICATION = "CLARIFICATION"
    PLAN = "PLAN"


class ExecutionStatus(StrEnum):
    EXECUTED = "EXECUTED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class RelationshipType(StrEnum):
    INVESTOR = "INVESTOR"
    PARTNER = "PARTNER"
    OTHER = "OTHER"


class ContactRole(StrEnum):
    EXECUTIVE = "EXECUTIVE"
    VENTURE_PARTNER = "VENTURE_PARTNER"
    INVESTOR_PARTNER = "INVESTOR_PARTNER"
    COMPANY_CONTACT = "COMPANY_CONTACT"
    OTHER = "OTHER"


class LeadSourceType(StrEnum):
    HEALTH_SYSTEM = "HEALTH_SYSTEM"
    OTHER = "OTHER"


def default_contact_role(parent_kind: EntityKind) -> ContactRole:
    match parent_kind:
        case EntityKind.HEALTH_SYSTEM:
            return ContactRole.EXECUTIVE
        case EntityKind.COMPANY:
            return ContactRole.COMPANY_CONTACT
        case EntityKind.CO_INVESTOR:
            return ContactRole.INVESTOR_PARTNER
