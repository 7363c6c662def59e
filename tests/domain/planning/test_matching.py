from __future__ import annotations

from typing import TYPE_CHECKING

from narraplan.domain.model import ContactDetails, ContactRole, EntityKind
from narraplan.domain.planning import EntityMatcher
from tests.support.planning import FakeEntityRepository

if TYPE_CHECKING:
    from collections.abc import Sequence

    from narraplan.domain.model import Organization


class _CountingRepository(FakeEntityRepository):
    def __init__(self) -> None:
        super().__init__()
        self.lookups = 0

    def find_by_name_like(
        self, kind: EntityKind, text: str, *, limit: int = 8
    ) -> Sequence[Organization]:
        self.lookups += 1
        return super().find_by_name_like(kind, text, limit=limit)


def test_match_ranks_candidates_by_confidence() -> None:
    repository = FakeEntityRepository()
    repository.add(EntityKind.COMPANY, "RoundCo Labs")
    exact = repository.add(EntityKind.COMPANY, "RoundCo")
    matcher = EntityMatcher(repository)

    matches = matcher.match(EntityKind.COMPANY, "  roundco ")

    assert [match.name for match in matches] == ["RoundCo", "RoundCo Labs"]
    assert matches[0].id == str(exact.id)
    assert matches[0].confidence == 0.98
    assert matches[0].reason == "exact"
    assert matches[1].reason == "prefix"


def test_match_only_returns_requested_kind() -> None:
    repository = FakeEntityRepository()
    repository.add(EntityKind.CO_INVESTOR, "RoundCo Ventures")

    assert EntityMatcher(repository).match(EntityKind.COMPANY, "RoundCo") == ()


def test_match_strips_descriptive_lead_in() -> None:
    repository = FakeEntityRepository()
    repository.add(EntityKind.COMPANY, "RoundCo")

    best = EntityMatcher(repository).best_match(EntityKind.COMPANY, "a company called RoundCo")

    assert best is not None
    assert best.name == "RoundCo"
    assert best.confidence == 0.98


def test_match_respects_limit() -> None:
    repository = FakeEntityRepository()
    for suffix in ("A", "B", "C"):
        repository.add(EntityKind.CO_INVESTOR, f"Oak Fund {suffix}")

    matches = EntityMatcher(repository, limit=2).match(EntityKind.CO_INVESTOR, "Oak Fund")

    assert len(matches) == 2


def test_match_is_memoized_per_matcher() -> None:
    repository = _CountingRepository()
    repository.add(EntityKind.COMPANY, "RoundCo")
    matcher = EntityMatcher(repository)

    matcher.match(EntityKind.COMPANY, "RoundCo")
    lookups = repository.lookups
    matcher.match(EntityKind.COMPANY, "roundco.")

    assert repository.lookups == lookups


def test_blank_name_has_no_matches() -> None:
    assert EntityMatcher(FakeEntityRepository()).match(EntityKind.COMPANY, " , ") == ()


def test_match_contacts_scoped_to_parent(fake_repository: FakeEntityRepository) -> None:
    company = fake_repository.named("RoundCo")
    fake_repository.add_contact(
        EntityKind.COMPANY,
        company.id,
        ContactDetails(name="Jane Doe"),
        role_type=ContactRole.COMPANY_CONTACT,
    )
    matcher = EntityMatcher(fake_repository)

    scoped = matcher.match_contacts("jane doe", parent_kind=EntityKind.COMPANY, parent_id=company.id)
    elsewhere = matcher.match_contacts(
        "Jane Doe",
        parent_kind=EntityKind.HEALTH_SYSTEM,
        parent_id=fake_repository.named("Acme Health").id,
    )

    assert [match.contact.name for match in scoped] == ["Jane Doe"]
    assert scoped[0].score.score == 0.98
    assert elsewhere == ()
