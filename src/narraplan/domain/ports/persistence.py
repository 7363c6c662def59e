"""Ports for reading and mutating the relationship-management dataset."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from narraplan.domain.model import (
        CompanyCoInvestorLink,
        Contact,
        ContactRole,
        EntityKind,
        Organization,
    )
    from narraplan.domain.model.records import ContactDetails, LinkDetails, OrganizationChanges


class RepositoryError(RuntimeError):
    """Raised when the entity store rejects a read or mutation."""


class RecordNotFoundError(RepositoryError):
    """Raised when a referenced record does not exist."""


@runtime_checkable
class EntityRepository(Protocol):
    """Persistence contract used by matching and plan execution."""

    def find_by_name_like(
        self, kind: EntityKind, text: str, *, limit: int = 8
    ) -> Sequence[Organization]:
        """Case-insensitive equality or substring lookup on organization names."""
        ...

    def find_contacts_by_name_like(
        self,
        text: str,
        *,
        parent_kind: EntityKind | None = None,
        parent_id: UUID | None = None,
        limit: int = 8,
    ) -> Sequence[Contact]: ...

    def get(self, kind: EntityKind, record_id: UUID) -> Organization: ...

    def create(self, kind: EntityKind, changes: OrganizationChanges) -> Organization: ...

    def update(
        self, kind: EntityKind, record_id: UUID, changes: OrganizationChanges
    ) -> Organization: ...

    def add_contact(
        self,
        parent_kind: EntityKind,
        parent_id: UUID,
        details: ContactDetails,
        *,
        role_type: ContactRole,
    ) -> Contact: ...

    def create_link(
        self, company_id: UUID, co_investor_id: UUID, details: LinkDetails
    ) -> CompanyCoInvestorLink: ...
