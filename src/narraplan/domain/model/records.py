"""
Persistent records of the relationship-management dataset:
organizations of every kind, contacts, and the links between them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from uuid import UUID, uuid4

from .enums import ContactRole, EntityKind, LeadSourceType, RelationshipType


def new_id() -> UUID:
    return uuid4()


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False, kw_only=True)
class Organization:
    """A health system, company, or co-investor, discriminated by ``kind``."""

    id: UUID = field(default_factory=new_id)
    kind: EntityKind
    name: str
    legal_name: str | None = None
    website: str | None = None
    headquarters_city: str | None = None
    headquarters_state: str | None = None
    headquarters_country: str | None = None
    description: str | None = None
    research_notes: str | None = None
    investment_notes: str | None = None

    # company only
    lead_source_type: LeadSourceType | None = None
    lead_source_health_system_id: UUID | None = None
    lead_source_other: str | None = None
    lead_source_notes: str | None = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(eq=False, kw_only=True)
class Contact:
    id: UUID = field(default_factory=new_id)
    name: str
    title: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(eq=False, kw_only=True)
class ContactLink:
    """Attaches a contact to one organization with a role."""

    id: UUID = field(default_factory=new_id)
    contact_id: UUID
    parent_kind: EntityKind
    parent_id: UUID
    role_type: ContactRole
    title: str | None = None


@dataclass(eq=False, kw_only=True)
class CompanyCoInvestorLink:
    id: UUID = field(default_factory=new_id)
    company_id: UUID
    co_investor_id: UUID
    relationship_type: RelationshipType = RelationshipType.INVESTOR
    notes: str | None = None
    investment_amount_usd: float | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True, kw_only=True)
class OrganizationChanges:
    """Field values to write on create or update; ``None`` leaves a field untouched."""

    name: str | None = None
    legal_name: str | None = None
    website: str | None = None
    headquarters_city: str | None = None
    headquarters_state: str | None = None
    headquarters_country: str | None = None
    description: str | None = None
    research_notes: str | None = None
    investment_notes: str | None = None
    lead_source_type: LeadSourceType | None = None
    lead_source_health_system_id: UUID | None = None
    lead_source_other: str | None = None
    lead_source_notes: str | None = None

    def populated(self) -> dict[str, object]:
        return {
            item.name: value
            for item in fields(self)
            if (value := getattr(self, item.name)) is not None
        }


@dataclass(frozen=True, slots=True, kw_only=True)
class ContactDetails:
    name: str
    title: str | None = None
    relationship_title: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class LinkDetails:
    relationship_type: RelationshipType = RelationshipType.INVESTOR
    notes: str | None = None
    investment_amount_usd: float | None = None
