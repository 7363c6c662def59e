from __future__ import annotations

from narraplan.domain.model import ActionKind, EntityKind, LeadSourceType, RelationshipType
from narraplan.domain.planning import (
    AddContactAction,
    CreateEntityAction,
    EntityDraft,
    LinkRelationshipAction,
    UpdateEntityAction,
)
from narraplan.domain.planning.extract import (
    FALLBACK_WARNING,
    INTRO_HEURISTIC_WARNING,
    apply_introduction_heuristics,
    build_action_id,
    canonical_order,
    dedupe_actions,
    fallback_extract,
    unique_action_id,
)

ROUNDCO_NARRATIVE = (
    "Acme Health introduced us to RoundCo. Co-investors include Oak Fund and Norwest."
)


def test_build_action_id_slugifies_label() -> None:
    assert (
        build_action_id(ActionKind.LINK_COMPANY_CO_INVESTOR, 0, "RoundCo & Oak Fund!")
        == "link_company_co_investor-1-roundco-oak-fund"
    )
    assert build_action_id(ActionKind.CREATE_ENTITY, 2) == "create_entity-3"


def test_unique_action_id_appends_suffix() -> None:
    taken = {"create"}

    assert unique_action_id("create", taken) == "create-2"
    assert unique_action_id("create", taken) == "create-3"
    assert taken == {"create", "create-2", "create-3"}


def test_fallback_extracts_co_investor_list_for_introduced_company() -> None:
    result = fallback_extract(ROUNDCO_NARRATIVE)

    creates = [action for action in result.actions if isinstance(action, CreateEntityAction)]
    links = [action for action in result.actions if isinstance(action, LinkRelationshipAction)]
    assert [(action.entity_kind, action.draft.name) for action in creates] == [
        (EntityKind.CO_INVESTOR, "Oak Fund"),
        (EntityKind.CO_INVESTOR, "Norwest"),
    ]
    assert [(link.company_name, link.co_investor_name) for link in links] == [
        ("RoundCo", "Oak Fund"),
        ("RoundCo", "Norwest"),
    ]
    assert result.warnings[0] == FALLBACK_WARNING
    assert result.summary == "Fallback extraction proposed 4 action(s)."


def test_fallback_skips_health_systems_in_co_investor_list() -> None:
    result = fallback_extract("RoundCo's co-investors include Oak Fund and Mercy Hospital.")

    assert [action.id for action in result.actions] == [
        "create_entity-1-oak-fund",
        "link_company_co_investor-2-roundco-oak-fund",
    ]
    assert (
        '"Mercy Hospital" looks like a health system and was not added as a co-investor.'
        in result.warnings
    )


def test_fallback_asks_for_company_of_orphan_co_investors() -> None:
    result = fallback_extract("Co-investors include Oak Fund.")

    assert all(isinstance(action, CreateEntityAction) for action in result.actions)
    assert any(warning.startswith("Which company") for warning in result.warnings)


def test_fallback_extracts_contacts_and_explicit_creates() -> None:
    result = fallback_extract(
        "Create a new co-investor named Pine Capital. Please add contact Jane Doe (CFO) to RoundCo."
    )

    create, contact = result.actions
    assert isinstance(create, CreateEntityAction)
    assert create.entity_kind is EntityKind.CO_INVESTOR
    assert create.draft.name == "Pine Capital"
    assert isinstance(contact, AddContactAction)
    assert contact.parent_kind is EntityKind.COMPANY
    assert contact.parent_name == "RoundCo"
    assert contact.contact.name == "Jane Doe"
    assert contact.contact.title == "CFO"


def test_fallback_reports_when_nothing_is_recognized() -> None:
    result = fallback_extract("Great meeting today.")

    assert result.actions == []
    assert result.warnings == ["No actionable changes were recognized in the narrative."]


def test_health_system_introduction_sets_company_lead_source() -> None:
    actions, warnings = apply_introduction_heuristics(ROUNDCO_NARRATIVE, [])

    [create] = actions
    assert isinstance(create, CreateEntityAction)
    assert create.entity_kind is EntityKind.COMPANY
    assert create.draft.name == "RoundCo"
    assert create.draft.lead_source_type is LeadSourceType.HEALTH_SYSTEM
    assert create.draft.lead_source_health_system_name == "Acme Health"
    assert warnings == [INTRO_HEURISTIC_WARNING]


def test_co_investor_introduction_adds_investor_link() -> None:
    actions, _ = apply_introduction_heuristics("Oak Fund introduced us to RoundCo.", [])

    company, co_investor, link = actions
    assert isinstance(company, CreateEntityAction)
    assert company.draft.lead_source_type is LeadSourceType.OTHER
    assert company.draft.lead_source_other == "Oak Fund"
    assert isinstance(co_investor, CreateEntityAction)
    assert co_investor.entity_kind is EntityKind.CO_INVESTOR
    assert isinstance(link, LinkRelationshipAction)
    assert link.relationship_type is RelationshipType.INVESTOR
    assert link.notes == "Oak Fund introduced us to RoundCo."


def test_introduction_updates_existing_company_draft() -> None:
    existing = CreateEntityAction(
        id="create-roundco", entity_kind=EntityKind.COMPANY, draft=EntityDraft(name="RoundCo")
    )

    actions, _ = apply_introduction_heuristics(ROUNDCO_NARRATIVE, [existing])

    [updated] = actions
    assert isinstance(updated, CreateEntityAction)
    assert updated.id == "create-roundco"
    assert updated.draft.lead_source_health_system_name == "Acme Health"


def test_narrative_without_introduction_is_untouched() -> None:
    assert apply_introduction_heuristics("Co-investors include Oak Fund.", []) == ([], [])


def test_dedupe_merges_same_create_and_keeps_shorter_name() -> None:
    first = CreateEntityAction(
        id="a",
        entity_kind=EntityKind.CO_INVESTOR,
        rationale="Listed as co-investor.",
        draft=EntityDraft(name="the co-investor Oak Fund"),
    )
    second = CreateEntityAction(
        id="b",
        entity_kind=EntityKind.CO_INVESTOR,
        confidence=0.9,
        rationale="Mentioned again.",
        draft=EntityDraft(name="Oak Fund", website="oak.example"),
    )

    deduped, merged = dedupe_actions([first, second])

    assert merged == 1
    [action] = deduped
    assert isinstance(action, CreateEntityAction)
    assert action.id == "a"
    assert action.draft.name == "Oak Fund"
    assert action.draft.website == "oak.example"
    assert action.confidence == 0.9
    assert action.rationale == "Listed as co-investor. Mentioned again."


def test_canonical_order_groups_by_kind_stably() -> None:
    actions = [
        LinkRelationshipAction(id="link", company_name="RoundCo", co_investor_name="Oak Fund"),
        UpdateEntityAction(id="update", entity_kind=EntityKind.COMPANY, target_name="RoundCo"),
        CreateEntityAction(id="create-2", entity_kind=EntityKind.COMPANY, draft=EntityDraft(name="B")),
        CreateEntityAction(id="create-1", entity_kind=EntityKind.COMPANY, draft=EntityDraft(name="A")),
    ]

    assert [action.id for action in canonical_order(actions)] == [
        "create-2",
        "create-1",
        "update",
        "link",
    ]
