from __future__ import annotations

from narraplan.domain.model import EntityKind, LeadSourceType, PlanPhase
from narraplan.domain.planning import (
    CreateEntityAction,
    EntityDraft,
    EntityMatcher,
    EntityPatch,
    LinkRelationshipAction,
    UpdateEntityAction,
    UseExisting,
    build_plan,
    dependency_ids,
    rehydrate_plan,
)
from narraplan.domain.planning.extract import FALLBACK_WARNING, INTRO_HEURISTIC_WARNING
from tests.support.planning import FakeEntityRepository, StaticExtractor, extraction_of

ROUNDCO_NARRATIVE = (
    "Acme Health introduced us to RoundCo. Co-investors include Oak Fund and Norwest."
)


def test_empty_narrative_yields_empty_plan(fake_repository: FakeEntityRepository) -> None:
    plan = build_plan("   ", matcher=EntityMatcher(fake_repository))

    assert plan.actions == ()
    assert plan.summary == "Nothing to plan."
    assert plan.warnings == ("The narrative is empty.",)


def test_roundco_plan_from_fallback_extraction(fake_repository: FakeEntityRepository) -> None:
    plan = build_plan(ROUNDCO_NARRATIVE, matcher=EntityMatcher(fake_repository))

    kinds = [type(action) for action in plan.actions]
    assert kinds == [
        CreateEntityAction,
        CreateEntityAction,
        UpdateEntityAction,
        LinkRelationshipAction,
        LinkRelationshipAction,
    ]
    oak, norwest, update, oak_link, norwest_link = plan.actions
    assert isinstance(update, UpdateEntityAction)
    assert update.selected_target_id == str(fake_repository.named("RoundCo").id)
    assert update.patch.lead_source_type is LeadSourceType.HEALTH_SYSTEM
    assert update.patch.lead_source_health_system_id == str(
        fake_repository.named("Acme Health").id
    )
    assert dependency_ids(oak_link) == (oak.id,)
    assert dependency_ids(norwest_link) == (norwest.id,)
    assert plan.warnings == (FALLBACK_WARNING, INTRO_HEURISTIC_WARNING)
    assert plan.narrative == ROUNDCO_NARRATIVE


def test_service_actions_are_used_when_present(fake_repository: FakeEntityRepository) -> None:
    extractor = StaticExtractor(
        extraction_of(
            CreateEntityAction(
                id="create-pine",
                entity_kind=EntityKind.CO_INVESTOR,
                draft=EntityDraft(name="Pine Capital"),
            ),
            summary="One new co-investor.",
        )
    )

    plan = build_plan(
        "We met Pine Capital.", matcher=EntityMatcher(fake_repository), extractor=extractor
    )

    assert [action.id for action in plan.actions] == ["create-pine"]
    assert plan.summary == "One new co-investor."
    assert extractor.calls == ["We met Pine Capital."]


def test_failing_service_falls_back_with_warning(fake_repository: FakeEntityRepository) -> None:
    extractor = StaticExtractor(error=RuntimeError("boom"))

    plan = build_plan(
        "Co-investors include Oak Fund.", matcher=EntityMatcher(fake_repository), extractor=extractor
    )

    assert plan.warnings[0] == "Extraction service failed (boom); used fallback extraction."
    assert [action.id for action in plan.actions] == ["create_entity-1-oak-fund"]


def test_empty_service_result_falls_back_keeping_warnings(
    fake_repository: FakeEntityRepository,
) -> None:
    extractor = StaticExtractor(extraction_of(warnings=["Service was unsure."]))

    plan = build_plan(
        "Co-investors include Oak Fund.", matcher=EntityMatcher(fake_repository), extractor=extractor
    )

    assert plan.warnings[:2] == ("Service was unsure.", FALLBACK_WARNING)
    assert len(plan.actions) == 1


def test_duplicate_actions_are_consolidated(fake_repository: FakeEntityRepository) -> None:
    duplicate = CreateEntityAction(
        id="create-oak", entity_kind=EntityKind.CO_INVESTOR, draft=EntityDraft(name="Oak Fund")
    )
    extractor = StaticExtractor(
        extraction_of(duplicate, duplicate.model_copy(update={"id": "create-oak-again"}))
    )

    plan = build_plan("Oak Fund.", matcher=EntityMatcher(fake_repository), extractor=extractor)

    assert [action.id for action in plan.actions] == ["create-oak"]
    assert "Consolidated 1 duplicate action(s)." in plan.warnings


def test_rehydrate_picks_up_records_created_since(fake_repository: FakeEntityRepository) -> None:
    plan = build_plan(ROUNDCO_NARRATIVE, matcher=EntityMatcher(fake_repository))
    oak = fake_repository.add(EntityKind.CO_INVESTOR, "Oak Fund")

    refreshed = rehydrate_plan(plan, matcher=EntityMatcher(fake_repository))

    create = refreshed.actions[0]
    assert isinstance(create, CreateEntityAction)
    assert create.selection == UseExisting(existing_id=str(oak.id))
    link = refreshed.actions[3]
    assert isinstance(link, LinkRelationshipAction)
    assert link.selected_co_investor_id == str(oak.id)
    assert dependency_ids(link) == ()


def _ghost_update_extractor() -> StaticExtractor:
    return StaticExtractor(
        extraction_of(
            UpdateEntityAction(
                id="update-ghost",
                entity_kind=EntityKind.COMPANY,
                target_name="Ghost Co",
                patch=EntityPatch(website="ghost.example"),
            ),
            summary="Update Ghost Co.",
        )
    )


def test_open_questions_put_plan_in_clarification(fake_repository: FakeEntityRepository) -> None:
    plan = build_plan(
        "Ghost Co has a new website.",
        matcher=EntityMatcher(fake_repository),
        extractor=_ghost_update_extractor(),
    )

    assert plan.phase is PlanPhase.CLARIFICATION
    assert plan.summary == (
        "Update Ghost Co. I will confirm one detail at a time before drafting the first "
        "execution plan. Candidate requirements so far: Update company Ghost Co."
    )


def test_requirements_lock_skips_clarification(fake_repository: FakeEntityRepository) -> None:
    plan = build_plan(
        "Ghost Co has a new website. Requirements confirmed.",
        matcher=EntityMatcher(fake_repository),
        extractor=_ghost_update_extractor(),
    )

    assert plan.phase is PlanPhase.PLAN
    assert plan.summary == "Update Ghost Co."
    [update] = plan.actions
    assert "Which record should be updated?" in update.issues[0]


def test_plan_without_questions_starts_in_plan_phase(fake_repository: FakeEntityRepository) -> None:
    plan = build_plan(ROUNDCO_NARRATIVE, matcher=EntityMatcher(fake_repository))

    assert plan.phase is PlanPhase.PLAN


def test_rehydrate_leaves_clarification_once_answered(
    fake_repository: FakeEntityRepository,
) -> None:
    plan = build_plan(
        "Ghost Co has a new website.",
        matcher=EntityMatcher(fake_repository),
        extractor=_ghost_update_extractor(),
    )
    ghost = fake_repository.add(EntityKind.COMPANY, "Ghost Co")

    refreshed = rehydrate_plan(plan, matcher=EntityMatcher(fake_repository))

    assert refreshed.phase is PlanPhase.PLAN
    [update] = refreshed.actions
    assert isinstance(update, UpdateEntityAction)
    assert update.selected_target_id == str(ghost.id)
    assert update.issues == ()
