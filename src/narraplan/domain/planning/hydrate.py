"""Resolution of draft actions against existing records.

Responsibilities of this stage:
- attach fresh candidate matches to every name an action references
- decide each reference slot: existing record, same-batch create, or an issue
- choose the create strategy (use existing / create manually / create from web)
- resolve company lead-source names to health-system records

Each reference slot ends with at most one resolution path: a selected record
id, a link to the create action that will produce the record, or an issue
explaining why it is unresolved.

Out of scope for this stage:
- dependency ordering
- repository mutation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from narraplan.domain.model import EntityKind, LeadSourceType, default_contact_role

from .actions import (
    AddContactAction,
    CreateEntityAction,
    CreateFromWeb,
    CreateManual,
    EntityPatch,
    LinkRelationshipAction,
    UpdateEntityAction,
    UseExisting,
)
from .extract import looks_like_health_system
from .normalize import comparison_key
from .policy import MatchPolicy
from .scoring import EXACT_SCORE

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from narraplan.domain.ports import WebCandidateFinder

    from .actions import (
        AnyAction,
        CreateSelection,
        EntityDraft,
        EntityMatch,
        WebCandidate,
    )
    from .matching import EntityMatcher

log = logging.getLogger(__name__)


def dedupe_issues(issues: Iterable[str]) -> tuple[str, ...]:
    """Drop case-insensitive duplicates, keeping the first occurrence."""

    seen: set[str] = set()
    unique: list[str] = []
    for issue in issues:
        text = issue.strip()
        marker = text.casefold()
        if not text or marker in seen:
            continue
        seen.add(marker)
        unique.append(text)
    return tuple(unique)


def _percent(confidence: float) -> str:
    return f"{confidence:.0%}"


@dataclass(frozen=True, slots=True)
class CreateLookup:
    """Same-batch create actions indexed by kind and comparison key."""

    by_key: Mapping[tuple[EntityKind, str], str]
    kind_by_id: Mapping[str, EntityKind]

    @classmethod
    def from_actions(cls, actions: Iterable[AnyAction]) -> CreateLookup:
        by_key: dict[tuple[EntityKind, str], str] = {}
        kind_by_id: dict[str, EntityKind] = {}
        for action in actions:
            if not isinstance(action, CreateEntityAction):
                continue
            kind_by_id[action.id] = action.entity_kind
            key = comparison_key(action.draft.name, action.entity_kind)
            if key:
                by_key.setdefault((action.entity_kind, key), action.id)
        return cls(by_key=by_key, kind_by_id=kind_by_id)

    def find(self, kind: EntityKind, name: str) -> str | None:
        key = comparison_key(name, kind)
        return self.by_key.get((kind, key)) if key else None

    def creates(self, action_id: str, kind: EntityKind) -> bool:
        return self.kind_by_id.get(action_id) is kind


@dataclass(frozen=True, slots=True)
class ReferenceResolution:
    matches: tuple[EntityMatch, ...]
    selected_id: str | None = None
    create_action_id: str | None = None
    issues: tuple[str, ...] = ()


@dataclass(slots=True)
class ActionHydrator:
    """Resolve every action of one batch; build a fresh hydrator per pass."""

    matcher: EntityMatcher
    policy: MatchPolicy = field(default_factory=MatchPolicy)
    web_finder: WebCandidateFinder | None = None

    def hydrate(self, actions: Sequence[AnyAction]) -> list[AnyAction]:
        promoted = [self._promote_matched_create(action) for action in actions]
        lookup = CreateLookup.from_actions(promoted)
        hydrated = [self.hydrate_action(action, lookup) for action in promoted]
        log.info("Hydrated %d action(s)", len(hydrated))
        return hydrated

    def hydrate_action(self, action: AnyAction, lookup: CreateLookup) -> AnyAction:
        match action:
            case CreateEntityAction():
                hydrated: AnyAction = self._hydrate_create(action)
            case UpdateEntityAction():
                hydrated = self._hydrate_update(action, lookup)
            case AddContactAction():
                hydrated = self._hydrate_contact(action, lookup)
            case LinkRelationshipAction():
                hydrated = self._hydrate_link(action, lookup)
        return hydrated.model_copy(update={"issues": dedupe_issues(hydrated.issues)})

    # create-or-update ----------------------------------------------------------

    def _promote_matched_create(self, action: AnyAction) -> AnyAction:
        """Turn a create that duplicates an existing record into an update of it.

        Applies only when the draft carries details beyond the name, which a
        plain "use existing" selection would discard.
        """

        if not isinstance(action, CreateEntityAction):
            return action
        details = action.draft.detail_fields()
        if not details:
            return action

        selection = action.selection
        target_id: str | None = None
        target_name = action.draft.name
        if isinstance(selection, UseExisting) and selection.existing_id:
            target_id = selection.existing_id
        else:
            top = self.matcher.best_match(action.entity_kind, action.draft.name)
            if top is None or not self.policy.auto_selects(top.confidence):
                return action
            target_id = top.id
            target_name = top.name

        log.debug("Promoting %s to an update of %s", action.id, target_id)
        return UpdateEntityAction(
            id=action.id,
            include=action.include,
            issues=(
                *action.issues,
                f"{target_name} already exists as a {action.entity_kind.label}; "
                "the proposed details will update it instead of creating a duplicate.",
            ),
            confidence=action.confidence,
            rationale=action.rationale,
            entity_kind=action.entity_kind,
            target_name=action.draft.name,
            patch=EntityPatch(**details),
            selected_target_id=target_id,
        )

    # per-kind resolution -------------------------------------------------------

    def _hydrate_create(self, action: CreateEntityAction) -> CreateEntityAction:
        issues = list(action.issues)
        kind = action.entity_kind
        matches = self.matcher.match(kind, action.draft.name)
        top = matches[0] if matches else None
        selection: CreateSelection = action.selection
        web_candidates = action.web_candidates

        if top is not None and self.policy.auto_selects(top.confidence):
            if not (isinstance(selection, UseExisting) and selection.existing_id):
                selection = UseExisting(existing_id=top.id)
            issues.append(
                f"Auto-selected existing {kind.label} {top.name} ({_percent(top.confidence)}) "
                "instead of creating a duplicate."
            )
        else:
            if top is not None and self.policy.needs_review(top.confidence):
                issues.append(
                    f"Possible existing {kind.label} match: {top.name} "
                    f"({_percent(top.confidence)}), below the "
                    f"{_percent(self.policy.auto_match_threshold)} auto-select threshold. "
                    "Should I use the existing record or create a new one?"
                )
            if isinstance(selection, UseExisting) and not selection.existing_id:
                selection = CreateManual()
            if not isinstance(selection, UseExisting):
                selection, web_candidates, web_issues = self._choose_web_selection(
                    action, selection
                )
                issues.extend(web_issues)

        if (
            kind is EntityKind.CO_INVESTOR
            and looks_like_health_system(action.draft.name)
            and not (isinstance(selection, UseExisting) and selection.existing_id)
        ):
            issues.append(
                f'"{action.draft.name}" looks like a health system, not a co-investor. '
                "Should I treat it as a health-system lead source instead of creating a co-investor?"
            )

        draft = action.draft
        if kind is EntityKind.COMPANY:
            draft, lead_issues = self._resolve_lead_source(draft)
            issues.extend(lead_issues)

        return action.model_copy(
            update={
                "draft": draft,
                "existing_matches": matches,
                "web_candidates": web_candidates,
                "selection": selection,
                "issues": tuple(issues),
            }
        )

    def _choose_web_selection(
        self, action: CreateEntityAction, selection: CreateSelection
    ) -> tuple[CreateSelection, tuple[WebCandidate, ...], list[str]]:
        candidates = action.web_candidates
        issues: list[str] = []
        if not candidates and self.web_finder is not None and action.draft.name:
            candidates = tuple(self.web_finder(action.entity_kind, action.draft.name))
            if not candidates:
                issues.append("No web match found. Manual create is selected.")
                return CreateManual(), candidates, issues
            selection = CreateFromWeb()

        if not isinstance(selection, CreateFromWeb):
            return selection, candidates, issues
        if not candidates:
            return CreateManual(), candidates, issues
        if len(candidates) == 1:
            return CreateFromWeb(web_candidate_index=0), candidates, issues

        index = selection.web_candidate_index
        if index is not None and index < len(candidates):
            return selection, candidates, issues
        names = ", ".join(candidate.name for candidate in candidates[:3])
        issues.append(
            f"Multiple web matches found for {action.draft.name} ({names}). "
            "Which one should I use?"
        )
        return CreateFromWeb(), candidates, issues

    def _hydrate_update(self, action: UpdateEntityAction, lookup: CreateLookup) -> UpdateEntityAction:
        resolution = self._resolve_reference(
            action.entity_kind,
            action.target_name,
            role="update target",
            ask="Which record should be updated?",
            selected_id=action.selected_target_id,
            create_action_id=action.linked_create_action_id,
            lookup=lookup,
        )
        issues = [*action.issues, *resolution.issues]
        patch = action.patch
        if action.entity_kind is EntityKind.COMPANY:
            patch, lead_issues = self._resolve_lead_source(patch)
            issues.extend(lead_issues)
        if not patch.detail_fields() and patch.name is None:
            issues.append(f"No field changes were proposed for {action.target_name}.")
        return action.model_copy(
            update={
                "patch": patch,
                "target_matches": resolution.matches,
                "selected_target_id": resolution.selected_id,
                "linked_create_action_id": resolution.create_action_id,
                "issues": tuple(issues),
            }
        )

    def _hydrate_contact(self, action: AddContactAction, lookup: CreateLookup) -> AddContactAction:
        resolution = self._resolve_reference(
            action.parent_kind,
            action.parent_name,
            role="contact parent",
            ask="Which record should I attach the contact to?",
            selected_id=action.selected_parent_id,
            create_action_id=action.linked_create_action_id,
            lookup=lookup,
        )
        issues = [*action.issues, *resolution.issues]
        if resolution.selected_id is not None:
            issues.extend(self._existing_contact_issues(action, resolution.selected_id))
        return action.model_copy(
            update={
                "role_type": action.role_type or default_contact_role(action.parent_kind),
                "parent_matches": resolution.matches,
                "selected_parent_id": resolution.selected_id,
                "linked_create_action_id": resolution.create_action_id,
                "issues": tuple(issues),
            }
        )

    def _existing_contact_issues(self, action: AddContactAction, parent_id: str) -> list[str]:
        parent_uuid = _as_uuid(parent_id)
        if parent_uuid is None:
            return []
        existing = self.matcher.match_contacts(
            action.contact.name, parent_kind=action.parent_kind, parent_id=parent_uuid
        )
        if existing and existing[0].score.score >= EXACT_SCORE:
            return [
                f"{existing[0].contact.name} is already a contact of this "
                f"{action.parent_kind.label}; executing will update the existing contact link."
            ]
        return []

    def _hydrate_link(
        self, action: LinkRelationshipAction, lookup: CreateLookup
    ) -> LinkRelationshipAction:
        company = self._resolve_reference(
            EntityKind.COMPANY,
            action.company_name,
            role="company",
            ask="Which company should I use?",
            selected_id=action.selected_company_id,
            create_action_id=action.company_create_action_id,
            lookup=lookup,
        )
        co_investor = self._resolve_reference(
            EntityKind.CO_INVESTOR,
            action.co_investor_name,
            role="co-investor",
            ask="Which co-investor should I use?",
            selected_id=action.selected_co_investor_id,
            create_action_id=action.co_investor_create_action_id,
            lookup=lookup,
        )
        co_investor_issues = list(co_investor.issues)
        if co_investor.selected_id is None and co_investor.create_action_id is None:
            health_system = self.matcher.best_match(EntityKind.HEALTH_SYSTEM, action.co_investor_name)
            if (
                health_system is not None
                and self.policy.auto_selects(health_system.confidence)
            ):
                # replaces the generic unresolved co-investor question
                co_investor_issues = [
                    f'"{action.co_investor_name}" appears to be a health system '
                    f"({health_system.name}), not a co-investor. "
                    "Should it be recorded as the company's lead source instead?"
                ]
        issues = [*action.issues, *company.issues, *co_investor_issues]
        return action.model_copy(
            update={
                "company_matches": company.matches,
                "co_investor_matches": co_investor.matches,
                "selected_company_id": company.selected_id,
                "selected_co_investor_id": co_investor.selected_id,
                "company_create_action_id": company.create_action_id,
                "co_investor_create_action_id": co_investor.create_action_id,
                "issues": tuple(issues),
            }
        )

    # shared resolution ---------------------------------------------------------

    def _resolve_reference(
        self,
        kind: EntityKind,
        name: str,
        *,
        role: str,
        ask: str,
        selected_id: str | None,
        create_action_id: str | None,
        lookup: CreateLookup,
    ) -> ReferenceResolution:
        matches = self.matcher.match(kind, name)
        if selected_id:
            return ReferenceResolution(matches=matches, selected_id=selected_id)

        top = matches[0] if matches else None
        if top is not None and self.policy.auto_selects(top.confidence):
            return ReferenceResolution(matches=matches, selected_id=top.id)

        if create_action_id and lookup.creates(create_action_id, kind):
            return ReferenceResolution(matches=matches, create_action_id=create_action_id)
        linked = lookup.find(kind, name)
        if linked is not None:
            return ReferenceResolution(matches=matches, create_action_id=linked)

        if top is not None and self.policy.needs_review(top.confidence):
            issue = (
                f'Possible {kind.label} match for {role} "{name}": {top.name} '
                f"({_percent(top.confidence)}). Should I use this record?"
            )
        else:
            issue = f'No matching {kind.label} record found for {role} "{name}". {ask}'
        return ReferenceResolution(matches=matches, issues=(issue,))

    def _resolve_lead_source[TFields: (EntityDraft, EntityPatch)](
        self, fields: TFields
    ) -> tuple[TFields, list[str]]:
        name = fields.lead_source_health_system_name
        if not name or fields.lead_source_health_system_id:
            return fields, []
        if fields.lead_source_type not in (None, LeadSourceType.HEALTH_SYSTEM):
            return fields, []

        top = self.matcher.best_match(EntityKind.HEALTH_SYSTEM, name)
        if top is not None and self.policy.auto_selects(top.confidence):
            resolved = fields.model_copy(
                update={
                    "lead_source_type": LeadSourceType.HEALTH_SYSTEM,
                    "lead_source_health_system_id": top.id,
                }
            )
            return resolved, []
        if top is not None and self.policy.needs_review(top.confidence):
            return fields, [
                f'Lead source "{name}" may be the health system {top.name} '
                f"({_percent(top.confidence)}). Should I use it as the lead source?"
            ]
        return fields, [
            f'No existing health system match found for lead source "{name}"; '
            "it will be recorded as an other lead source."
        ]


def _as_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None


def hydrate_actions(
    actions: Sequence[AnyAction],
    *,
    matcher: EntityMatcher,
    policy: MatchPolicy | None = None,
    web_finder: WebCandidateFinder | None = None,
) -> list[AnyAction]:
    hydrator = ActionHydrator(
        matcher=matcher, policy=policy or MatchPolicy(), web_finder=web_finder
    )
    return hydrator.hydrate(actions)


__all__ = [
    "ActionHydrator",
    "CreateLookup",
    "ReferenceResolution",
    "dedupe_issues",
    "hydrate_actions",
]
