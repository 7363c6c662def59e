"""Domain model package."""

from __future__ import annotations

from .enums import (
    ActionKind,
    ContactRole,
    CreateMode,
    EntityKind,
    ExecutionStatus,
    LeadSourceType,
    PlanPhase,
    RelationshipType,
    default_contact_role,
)
from .records import (
    CompanyCoInvestorLink,
    Contact,
    ContactDetails,
    ContactLink,
    LinkDetails,
    Organization,
    OrganizationChanges,
)

__all__ = [
    "ActionKind",
    "CompanyCoInvestorLink",
    "Contact",
    "ContactDetails",
    "ContactLink",
    "ContactRole",
    "CreateMode",
    "EntityKind",
    "ExecutionStatus",
    "LeadSourceType",
    "LinkDetails",
    "Organization",
    "OrganizationChanges",
    "PlanPhase",
    "RelationshipType",
    "default_contact_role",
]
