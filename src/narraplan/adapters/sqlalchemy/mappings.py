"""SQLAlchemy mapping metadata for the relationship-management records."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from narraplan.domain.model import (
    CompanyCoInvestorLink,
    Contact,
    ContactLink,
    ContactRole,
    EntityKind,
    LeadSourceType,
    Organization,
    RelationshipType,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    """Stores aware datetimes; naive values read back from SQLite are taken as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Core tables -----------------------------------------------------------------

organization_table = Table(
    "organization",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("kind", Enum(EntityKind, native_enum=False), nullable=False),
    Column("name", String, nullable=False),
    Column("legal_name", String, nullable=True),
    Column("website", String, nullable=True),
    Column("headquarters_city", String, nullable=True),
    Column("headquarters_state", String, nullable=True),
    Column("headquarters_country", String, nullable=True),
    Column("description", Text, nullable=True),
    Column("research_notes", Text, nullable=True),
    Column("investment_notes", Text, nullable=True),
    Column("lead_source_type", Enum(LeadSourceType, native_enum=False), nullable=True),
    Column(
        "lead_source_health_system_id",
        UUIDColumnType,
        ForeignKey("organization.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("lead_source_other", String, nullable=True),
    Column("lead_source_notes", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index("ix_organization_kind_name", "kind", "name"),
)

contact_table = Table(
    "contact",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("name", String, nullable=False),
    Column("title", String, nullable=True),
    Column("email", String, nullable=True, unique=True),
    Column("phone", String, nullable=True),
    Column("linkedin_url", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
)

contact_link_table = Table(
    "contact_link",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "contact_id", UUIDColumnType, ForeignKey("contact.id", ondelete="CASCADE"), nullable=False
    ),
    Column("parent_kind", Enum(EntityKind, native_enum=False), nullable=False),
    Column(
        "parent_id",
        UUIDColumnType,
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("role_type", Enum(ContactRole, native_enum=False), nullable=False),
    Column("title", String, nullable=True),
    UniqueConstraint(
        "contact_id", "parent_id", "role_type", name="uq_contact_link_contact_parent_role"
    ),
)

company_co_investor_link_table = Table(
    "company_co_investor_link",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "company_id",
        UUIDColumnType,
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "co_investor_id",
        UUIDColumnType,
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("relationship_type", Enum(RelationshipType, native_enum=False), nullable=False),
    Column("notes", Text, nullable=True),
    Column("investment_amount_usd", Float, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    UniqueConstraint(
        "company_id", "co_investor_id", name="uq_company_co_investor_link_pair"
    ),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain records."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Organization, organization_table)
    mapper_registry.map_imperatively(Contact, contact_table)
    mapper_registry.map_imperatively(ContactLink, contact_link_table)
    mapper_registry.map_imperatively(CompanyCoInvestorLink, company_co_investor_link_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
