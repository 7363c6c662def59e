from __future__ import annotations

from narraplan.domain.model import ContactRole, EntityKind, LeadSourceType
from narraplan.domain.planning import (
    AddContactAction,
    ContactPayload,
    CreateEntityAction,
    CreateFromWeb,
    CreateManual,
    EntityDraft,
    EntityMatcher,
    EntityPatch,
    LinkRelationshipAction,
    MatchPolicy,
    UpdateEntityAction,
    UseExisting,
    WebCandidate,
    hydrate_actions,
)
from tests.support.planning import FakeEntityRepository, StaticWebFinder


def _create(name: str, kind: EntityKind = EntityKind.COMPANY, **draft: object) -> CreateEntityAction:
    return CreateEntityAction(
        id=f"create-{name.lower().replace(' ', '-')}",
        entity_kind=kind,
        draft=EntityDraft(name=name, **draft),
    )


def test_create_matching_existing_record_uses_it(fake_repository: FakeEntityRepository) -> None:
    [action] = hydrate_actions([_create("roundco")], matcher=EntityMatcher(fake_repository))

    assert isinstance(action, CreateEntityAction)
    assert action.selection == UseExisting(existing_id=str(fake_repository.named("RoundCo").id))
    assert action.issues == (
        "Auto-selected existing company RoundCo (98%) instead of creating a duplicate.",
    )


def test_create_below_auto_threshold_asks_for_review() -> None:
    repository = FakeEntityRepository()
    repository.add(EntityKind.COMPANY, "RoundCo Labs")
    policy = MatchPolicy(auto_match_threshold=0.9, review_threshold=0.6)

    [action] = hydrate_actions(
        [_create("RoundCo")], matcher=EntityMatcher(repository), policy=policy
    )

    assert isinstance(action, CreateEntityAction)
    assert action.selection == CreateManual()
    assert action.existing_matches[0].name == "RoundCo Labs"
    assert action.issues == (
        "Possible existing company match: RoundCo Labs (86%), below the 90% auto-select "
        "threshold. Should I use the existing record or create a new one?",
    )


def test_create_without_matches_uses_single_web_candidate(
    fake_repository: FakeEntityRepository,
) -> None:
    finder = StaticWebFinder({"Norwest": [WebCandidate(name="Norwest", website="norwest.example")]})

    [action] = hydrate_actions(
        [_create("Norwest", EntityKind.CO_INVESTOR)],
        matcher=EntityMatcher(fake_repository),
        web_finder=finder,
    )

    assert isinstance(action, CreateEntityAction)
    assert action.selection == CreateFromWeb(web_candidate_index=0)
    assert action.web_candidates[0].website == "norwest.example"
    assert finder.calls == [(EntityKind.CO_INVESTOR, "Norwest")]


def test_create_with_several_web_candidates_asks_which(
    fake_repository: FakeEntityRepository,
) -> None:
    finder = StaticWebFinder(
        {"Norwest": [WebCandidate(name="Norwest Partners"), WebCandidate(name="Norwest Capital")]}
    )

    [action] = hydrate_actions(
        [_create("Norwest", EntityKind.CO_INVESTOR)],
        matcher=EntityMatcher(fake_repository),
        web_finder=finder,
    )

    assert isinstance(action, CreateEntityAction)
    assert action.selection == CreateFromWeb()
    assert action.issues == (
        "Multiple web matches found for Norwest (Norwest Partners, Norwest Capital). "
        "Which one should I use?",
    )


def test_create_falls_back_to_manual_without_web_candidates(
    fake_repository: FakeEntityRepository,
) -> None:
    [action] = hydrate_actions(
        [_create("Norwest", EntityKind.CO_INVESTOR)],
        matcher=EntityMatcher(fake_repository),
        web_finder=StaticWebFinder(),
    )

    assert isinstance(action, CreateEntityAction)
    assert action.selection == CreateManual()
    assert action.issues == ("No web match found. Manual create is selected.",)


def test_create_with_details_for_existing_record_becomes_update(
    fake_repository: FakeEntityRepository,
) -> None:
    actions = hydrate_actions(
        [_create("RoundCo", website="roundco.example")],
        matcher=EntityMatcher(fake_repository),
    )

    [action] = actions
    assert isinstance(action, UpdateEntityAction)
    assert action.id == "create-roundco"
    assert action.selected_target_id == str(fake_repository.named("RoundCo").id)
    assert action.patch.website == "roundco.example"
    assert "already exists as a company" in action.issues[0]


def test_company_lead_source_resolves_to_health_system(
    fake_repository: FakeEntityRepository,
) -> None:
    [action] = hydrate_actions(
        [_create("NewCo", lead_source_health_system_name="Acme Health")],
        matcher=EntityMatcher(fake_repository),
    )

    assert isinstance(action, CreateEntityAction)
    assert action.draft.lead_source_type is LeadSourceType.HEALTH_SYSTEM
    assert action.draft.lead_source_health_system_id == str(
        fake_repository.named("Acme Health").id
    )


def test_unknown_lead_source_is_reported(fake_repository: FakeEntityRepository) -> None:
    [action] = hydrate_actions(
        [_create("NewCo", lead_source_health_system_name="Mercy Clinic")],
        matcher=EntityMatcher(fake_repository),
    )

    assert isinstance(action, CreateEntityAction)
    assert action.draft.lead_source_health_system_id is None
    assert action.issues == (
        'No existing health system match found for lead source "Mercy Clinic"; '
        "it will be recorded as an other lead source.",
    )


def test_link_references_same_batch_create(fake_repository: FakeEntityRepository) -> None:
    link = LinkRelationshipAction(id="link", company_name="RoundCo", co_investor_name="oak fund")

    create, hydrated = hydrate_actions(
        [_create("Oak Fund", EntityKind.CO_INVESTOR), link],
        matcher=EntityMatcher(fake_repository),
    )

    assert isinstance(hydrated, LinkRelationshipAction)
    assert hydrated.selected_company_id == str(fake_repository.named("RoundCo").id)
    assert hydrated.selected_co_investor_id is None
    assert hydrated.co_investor_create_action_id == create.id
    assert hydrated.issues == ()


def test_link_to_health_system_name_raises_question(
    fake_repository: FakeEntityRepository,
) -> None:
    link = LinkRelationshipAction(id="link", company_name="RoundCo", co_investor_name="Acme Health")

    [hydrated] = hydrate_actions([link], matcher=EntityMatcher(fake_repository))

    assert isinstance(hydrated, LinkRelationshipAction)
    assert hydrated.issues == (
        '"Acme Health" appears to be a health system (Acme Health), not a co-investor. '
        "Should it be recorded as the company's lead source instead?",
    )


def test_update_without_target_is_reported(fake_repository: FakeEntityRepository) -> None:
    update = UpdateEntityAction(id="update", entity_kind=EntityKind.COMPANY, target_name="Ghost Co")

    [hydrated] = hydrate_actions([update], matcher=EntityMatcher(fake_repository))

    assert hydrated.issues == (
        'No matching company record found for update target "Ghost Co". '
        "Which record should be updated?",
        "No field changes were proposed for Ghost Co.",
    )


def test_contact_defaults_role_by_parent_kind(fake_repository: FakeEntityRepository) -> None:
    contact = AddContactAction(
        id="contact",
        parent_kind=EntityKind.HEALTH_SYSTEM,
        parent_name="Acme Health",
        contact=ContactPayload(name="Jane Doe", title="CIO"),
    )

    [hydrated] = hydrate_actions([contact], matcher=EntityMatcher(fake_repository))

    assert isinstance(hydrated, AddContactAction)
    assert hydrated.role_type is ContactRole.EXECUTIVE
    assert hydrated.selected_parent_id == str(fake_repository.named("Acme Health").id)
    assert hydrated.issues == ()


def test_co_investor_create_with_health_system_name_asks(
    fake_repository: FakeEntityRepository,
) -> None:
    [action] = hydrate_actions(
        [_create("Mercy Hospital", EntityKind.CO_INVESTOR)], matcher=EntityMatcher(fake_repository)
    )

    assert action.issues == (
        '"Mercy Hospital" looks like a health system, not a co-investor. '
        "Should I treat it as a health-system lead source instead of creating a co-investor?",
    )


def test_unresolved_contact_parent_asks_which_record(
    fake_repository: FakeEntityRepository,
) -> None:
    contact = AddContactAction(
        id="contact",
        parent_kind=EntityKind.COMPANY,
        parent_name="Ghost Co",
        contact=ContactPayload(name="Jane Doe"),
    )

    [hydrated] = hydrate_actions([contact], matcher=EntityMatcher(fake_repository))

    assert hydrated.issues == (
        'No matching company record found for contact parent "Ghost Co". '
        "Which record should I attach the contact to?",
    )


# review band at the default thresholds ---------------------------------------------


def _fuzzy_repository() -> FakeEntityRepository:
    repository = FakeEntityRepository(token_search=True)
    repository.add(EntityKind.COMPANY, "Acme Group Robotics")
    repository.add(EntityKind.CO_INVESTOR, "Oak Partners Fund")
    return repository


def test_update_target_in_review_band_is_not_selected() -> None:
    update = UpdateEntityAction(
        id="update",
        entity_kind=EntityKind.COMPANY,
        target_name="Acme Robotics",
        patch=EntityPatch(website="acme.example"),
    )

    [hydrated] = hydrate_actions([update], matcher=EntityMatcher(_fuzzy_repository()))

    assert isinstance(hydrated, UpdateEntityAction)
    assert hydrated.target_matches[0].confidence == 0.64
    assert hydrated.selected_target_id is None
    assert hydrated.issues == (
        'Possible company match for update target "Acme Robotics": Acme Group Robotics (64%). '
        "Should I use this record?",
    )


def test_contact_parent_in_review_band_is_not_selected() -> None:
    contact = AddContactAction(
        id="contact",
        parent_kind=EntityKind.COMPANY,
        parent_name="Acme Robotics",
        contact=ContactPayload(name="Jane Doe"),
    )

    [hydrated] = hydrate_actions([contact], matcher=EntityMatcher(_fuzzy_repository()))

    assert isinstance(hydrated, AddContactAction)
    assert hydrated.selected_parent_id is None
    assert hydrated.linked_create_action_id is None
    assert hydrated.issues == (
        'Possible company match for contact parent "Acme Robotics": Acme Group Robotics (64%). '
        "Should I use this record?",
    )


def test_link_slots_in_review_band_are_not_selected() -> None:
    link = LinkRelationshipAction(id="link", company_name="Acme Robotics", co_investor_name="Oak Fund")

    [hydrated] = hydrate_actions([link], matcher=EntityMatcher(_fuzzy_repository()))

    assert isinstance(hydrated, LinkRelationshipAction)
    assert hydrated.selected_company_id is None
    assert hydrated.selected_co_investor_id is None
    assert hydrated.issues == (
        'Possible company match for company "Acme Robotics": Acme Group Robotics (64%). '
        "Should I use this record?",
        'Possible co-investor match for co-investor "Oak Fund": Oak Partners Fund (64%). '
        "Should I use this record?",
    )


def test_match_below_review_band_is_reported_as_unresolved() -> None:
    repository = FakeEntityRepository(token_search=True)
    repository.add(EntityKind.COMPANY, "Acme Health Partners Group")
    update = UpdateEntityAction(
        id="update",
        entity_kind=EntityKind.COMPANY,
        target_name="Acme Robotics",
        patch=EntityPatch(website="acme.example"),
    )

    [hydrated] = hydrate_actions([update], matcher=EntityMatcher(repository))

    assert isinstance(hydrated, UpdateEntityAction)
    assert hydrated.target_matches[0].confidence == 0.52
    assert hydrated.selected_target_id is None
    assert hydrated.issues == (
        'No matching company record found for update target "Acme Robotics". '
        "Which record should be updated?",
    )


def test_reference_prefers_same_batch_create_over_review_band_match() -> None:
    create = _create("Oak Fund", EntityKind.CO_INVESTOR)
    link = LinkRelationshipAction(
        id="link", company_name="Acme Group Robotics", co_investor_name="Oak Fund"
    )

    _, hydrated = hydrate_actions([create, link], matcher=EntityMatcher(_fuzzy_repository()))

    assert isinstance(hydrated, LinkRelationshipAction)
    assert hydrated.co_investor_matches[0].confidence == 0.64
    assert hydrated.selected_co_investor_id is None
    assert hydrated.co_investor_create_action_id == create.id
    assert hydrated.issues == ()


def test_use_existing_without_id_falls_back_to_manual_create() -> None:
    create = _create("Acme Robotics").model_copy(update={"selection": UseExisting()})

    [hydrated] = hydrate_actions([create], matcher=EntityMatcher(_fuzzy_repository()))

    assert isinstance(hydrated, CreateEntityAction)
    assert hydrated.selection == CreateManual()
    assert hydrated.issues == (
        "Possible existing company match: Acme Group Robotics (64%), below the 80% "
        "auto-select threshold. Should I use the existing record or create a new one?",
    )
