"""Candidate lookup for free-text names against existing records.

Responsibilities of this stage:
- query the repository by the trimmed and the cleaned form of a name
- score every candidate against the comparison key of the query
- drop unscorable candidates and rank the rest by confidence

A matcher memoizes results for its own lifetime, which is one hydration
pass; build a fresh matcher per pass so later edits to the store are seen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .actions import EntityMatch
from .normalize import clean_name_fragment, comparison_key, normalize_name
from .policy import DEFAULT_CANDIDATE_LIMIT
from .scoring import MatchScore, score_name_match

if TYPE_CHECKING:
    from uuid import UUID

    from narraplan.domain.model import Contact, EntityKind, Organization
    from narraplan.domain.ports import EntityRepository

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ContactMatch:
    contact: Contact
    score: MatchScore


def _to_entity_match(organization: Organization, kind: EntityKind, score: MatchScore) -> EntityMatch:
    return EntityMatch(
        id=str(organization.id),
        entity_kind=kind,
        name=organization.name,
        website=organization.website,
        headquarters_city=organization.headquarters_city,
        headquarters_state=organization.headquarters_state,
        headquarters_country=organization.headquarters_country,
        confidence=score.score,
        reason=score.reason,
    )


@dataclass(slots=True)
class EntityMatcher:
    repository: EntityRepository
    limit: int = DEFAULT_CANDIDATE_LIMIT
    _entity_cache: dict[tuple[EntityKind, str], tuple[EntityMatch, ...]] = field(
        default_factory=dict["tuple[EntityKind, str]", "tuple[EntityMatch, ...]"], repr=False
    )

    def match(self, kind: EntityKind, name: str) -> tuple[EntityMatch, ...]:
        """Return scored candidates of ``kind`` for ``name``, best first."""

        fragment = clean_name_fragment(name)
        if not fragment:
            return ()
        normalized = normalize_name(fragment, kind)
        cache_key = (kind, normalized.key)
        cached = self._entity_cache.get(cache_key)
        if cached is not None:
            return cached

        candidates: dict[str, Organization] = {}
        for query in dict.fromkeys(value for value in (fragment, normalized.display) if value):
            for organization in self.repository.find_by_name_like(kind, query, limit=self.limit):
                candidates.setdefault(str(organization.id), organization)

        matches = [
            _to_entity_match(
                organization,
                kind,
                score_name_match(normalized.key, comparison_key(organization.name, kind)),
            )
            for organization in candidates.values()
        ]
        ranked = sorted(
            (match for match in matches if match.confidence > 0),
            key=lambda match: match.confidence,
            reverse=True,
        )
        result = tuple(ranked[: self.limit])
        log.debug("Matched %s %r against %d candidate(s)", kind.label, fragment, len(result))
        self._entity_cache[cache_key] = result
        return result

    def best_match(self, kind: EntityKind, name: str) -> EntityMatch | None:
        matches = self.match(kind, name)
        return matches[0] if matches else None

    def match_contacts(
        self,
        name: str,
        *,
        parent_kind: EntityKind | None = None,
        parent_id: UUID | None = None,
    ) -> tuple[ContactMatch, ...]:
        """Return contacts resembling ``name``, optionally scoped to one parent record."""

        fragment = clean_name_fragment(name)
        if not fragment:
            return ()
        key = comparison_key(fragment)
        contacts = self.repository.find_contacts_by_name_like(
            fragment, parent_kind=parent_kind, parent_id=parent_id, limit=self.limit
        )
        scored = [
            ContactMatch(contact=contact, score=score_name_match(key, comparison_key(contact.name)))
            for contact in contacts
        ]
        return tuple(
            sorted(
                (match for match in scored if match.score.score > 0),
                key=lambda match: match.score.score,
                reverse=True,
            )
        )
