"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select

from narraplan.adapters.sqlalchemy.mappings import (
    company_co_investor_link_table,
    contact_link_table,
    contact_table,
    organization_table,
)
from narraplan.domain.model import (
    CompanyCoInvestorLink,
    Contact,
    ContactLink,
    EntityKind,
    LeadSourceType,
    Organization,
)
from narraplan.domain.model.records import utcnow
from narraplan.domain.ports import RecordNotFoundError, RepositoryError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.orm import Session

    from narraplan.domain.model import ContactDetails, ContactRole, LinkDetails, OrganizationChanges

log = logging.getLogger(__name__)

_CONTACT_FIELDS = ("title", "email", "phone", "linkedin_url")


class SqlAlchemyEntityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    # lookups -----------------------------------------------------------------

    def find_by_name_like(
        self, kind: EntityKind, text: str, *, limit: int = 8
    ) -> Sequence[Organization]:
        query = text.strip().lower()
        if not query:
            return []
        name = func.lower(organization_table.c.name)
        stmt = (
            select(Organization)
            .where(organization_table.c.kind == kind)
            .where(or_(name == query, name.contains(query, autoescape=True)))
            .order_by(organization_table.c.name)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())

    def find_contacts_by_name_like(
        self,
        text: str,
        *,
        parent_kind: EntityKind | None = None,
        parent_id: UUID | None = None,
        limit: int = 8,
    ) -> Sequence[Contact]:
        query = text.strip().lower()
        if not query:
            return []
        stmt = select(Contact).where(
            func.lower(contact_table.c.name).contains(query, autoescape=True)
        )
        if parent_kind is not None or parent_id is not None:
            stmt = stmt.join(contact_link_table, contact_link_table.c.contact_id == contact_table.c.id)
            if parent_kind is not None:
                stmt = stmt.where(contact_link_table.c.parent_kind == parent_kind)
            if parent_id is not None:
                stmt = stmt.where(contact_link_table.c.parent_id == parent_id)
        stmt = stmt.distinct().order_by(contact_table.c.name).limit(limit)
        return list(self.session.execute(stmt).scalars())

    def get(self, kind: EntityKind, record_id: UUID) -> Organization:
        organization = self.session.get(Organization, record_id)
        if organization is None or organization.kind is not kind:
            raise RecordNotFoundError(f"No {kind.label} record with id {record_id}.")
        return organization

    # mutations ---------------------------------------------------------------

    def create(self, kind: EntityKind, changes: OrganizationChanges) -> Organization:
        values = changes.populated()
        name = str(values.pop("name", "") or "").strip()
        if not name:
            raise RepositoryError(f"A name is required to create a {kind.label}.")
        if kind is not EntityKind.COMPANY:
            values = {key: value for key, value in values.items() if not key.startswith("lead_source")}
        self._check_lead_source(values)
        organization = Organization(kind=kind, name=name, **values)  # type: ignore[arg-type]
        self.session.add(organization)
        self.session.flush()
        log.debug("Created %s %s (%s)", kind.label, name, organization.id)
        return organization

    def update(
        self, kind: EntityKind, record_id: UUID, changes: OrganizationChanges
    ) -> Organization:
        organization = self.get(kind, record_id)
        values = changes.populated()
        if kind is not EntityKind.COMPANY:
            values = {key: value for key, value in values.items() if not key.startswith("lead_source")}
        self._check_lead_source(values)
        match values.get("lead_source_type"):
            case LeadSourceType.HEALTH_SYSTEM:
                values.setdefault("lead_source_other", None)
            case LeadSourceType.OTHER:
                values.setdefault("lead_source_health_system_id", None)
            case _:
                pass
        for key, value in values.items():
            setattr(organization, key, value)
        organization.updated_at = utcnow()
        self.session.flush()
        return organization

    def add_contact(
        self,
        parent_kind: EntityKind,
        parent_id: UUID,
        details: ContactDetails,
        *,
        role_type: ContactRole,
    ) -> Contact:
        self.get(parent_kind, parent_id)
        contact = self._resolve_contact(details)
        title = details.relationship_title or details.title
        stmt = (
            select(ContactLink)
            .where(contact_link_table.c.contact_id == contact.id)
            .where(contact_link_table.c.parent_id == parent_id)
            .where(contact_link_table.c.role_type == role_type)
        )
        link = self.session.execute(stmt).scalar_one_or_none()
        if link is None:
            self.session.add(
                ContactLink(
                    contact_id=contact.id,
                    parent_kind=parent_kind,
                    parent_id=parent_id,
                    role_type=role_type,
                    title=title,
                )
            )
        else:
            link.title = title
        self.session.flush()
        return contact

    def create_link(
        self, company_id: UUID, co_investor_id: UUID, details: LinkDetails
    ) -> CompanyCoInvestorLink:
        self.get(EntityKind.COMPANY, company_id)
        self.get(EntityKind.CO_INVESTOR, co_investor_id)
        stmt = (
            select(CompanyCoInvestorLink)
            .where(company_co_investor_link_table.c.company_id == company_id)
            .where(company_co_investor_link_table.c.co_investor_id == co_investor_id)
        )
        link = self.session.execute(stmt).scalar_one_or_none()
        if link is None:
            link = CompanyCoInvestorLink(
                company_id=company_id,
                co_investor_id=co_investor_id,
                relationship_type=details.relationship_type,
                notes=details.notes,
                investment_amount_usd=details.investment_amount_usd,
            )
            self.session.add(link)
        else:
            link.relationship_type = details.relationship_type
            link.notes = details.notes
            link.investment_amount_usd = details.investment_amount_usd
        self.session.flush()
        return link

    # helpers -----------------------------------------------------------------

    def _check_lead_source(self, values: dict[str, object]) -> None:
        health_system_id = values.get("lead_source_health_system_id")
        if health_system_id is not None:
            self.get(EntityKind.HEALTH_SYSTEM, health_system_id)  # type: ignore[arg-type]

    def _resolve_contact(self, details: ContactDetails) -> Contact:
        name = details.name.strip()
        if not name:
            raise RepositoryError("Contact name is required.")

        identities = []
        if details.email:
            identities.append(func.lower(contact_table.c.email) == details.email.strip().lower())
        if details.linkedin_url:
            identities.append(contact_table.c.linkedin_url == details.linkedin_url.strip())
        contact: Contact | None = None
        if identities:
            stmt = select(Contact).where(or_(*identities)).limit(1)
            contact = self.session.execute(stmt).scalar_one_or_none()
        if contact is None:
            stmt = select(Contact).where(func.lower(contact_table.c.name) == name.lower()).limit(1)
            contact = self.session.execute(stmt).scalar_one_or_none()

        if contact is None:
            contact = Contact(
                name=name,
                title=details.title,
                email=details.email,
                phone=details.phone,
                linkedin_url=details.linkedin_url,
            )
            self.session.add(contact)
            self.session.flush()
            return contact

        for key in _CONTACT_FIELDS:
            if getattr(contact, key) is None and getattr(details, key) is not None:
                setattr(contact, key, getattr(details, key))
        return contact
