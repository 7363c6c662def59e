from __future__ import annotations

from typing import TYPE_CHECKING

from narraplan.domain.model import ContactRole, EntityKind, ExecutionStatus, LeadSourceType
from narraplan.domain.planning import (
    AddContactAction,
    ContactPayload,
    CreateEntityAction,
    CreateFromWeb,
    EntityDraft,
    EntityPatch,
    ExecutionRecord,
    LinkRelationshipAction,
    Plan,
    UpdateEntityAction,
    UseExisting,
    WebCandidate,
    execute_plan,
)
from tests.support.planning import FakeEntityRepository, FakePlanningUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable


def _factory(repository: FakeEntityRepository) -> Callable[[], FakePlanningUnitOfWork]:
    return lambda: FakePlanningUnitOfWork(repository)


def _create_oak(**update: object) -> CreateEntityAction:
    action = CreateEntityAction(
        id="create-oak", entity_kind=EntityKind.CO_INVESTOR, draft=EntityDraft(name="Oak Fund")
    )
    return action.model_copy(update=update) if update else action


def _link_oak(repository: FakeEntityRepository, **update: object) -> LinkRelationshipAction:
    action = LinkRelationshipAction(
        id="link-oak",
        company_name="RoundCo",
        co_investor_name="Oak Fund",
        selected_company_id=str(repository.named("RoundCo").id),
        co_investor_create_action_id="create-oak",
    )
    return action.model_copy(update=update) if update else action


def test_create_then_dependent_link(fake_repository: FakeEntityRepository) -> None:
    plan = Plan(actions=(_link_oak(fake_repository), _create_oak()))

    report = execute_plan(plan, unit_of_work_factory=_factory(fake_repository))

    assert [result.action_id for result in report.results] == ["create-oak", "link-oak"]
    create, link = report.results
    assert create.status is ExecutionStatus.EXECUTED
    assert create.message == "Created co-investor Oak Fund."
    assert link.status is ExecutionStatus.EXECUTED
    assert link.message == "Linked RoundCo and Oak Fund."
    oak = fake_repository.named("Oak Fund")
    assert report.created == {
        "create-oak": ExecutionRecord(
            entity_kind=EntityKind.CO_INVESTOR, id=str(oak.id), name="Oak Fund"
        )
    }
    [stored] = fake_repository.links
    assert stored.co_investor_id == oak.id
    assert report.summary == "Executed 2, failed 0, skipped 0."


def test_failed_create_skips_dependents(fake_repository: FakeEntityRepository) -> None:
    fake_repository.fail_on_create = {"oak fund"}
    plan = Plan(actions=(_create_oak(), _link_oak(fake_repository)))

    report = execute_plan(plan, unit_of_work_factory=_factory(fake_repository))

    create, link = report.results
    assert create.status is ExecutionStatus.FAILED
    assert create.message == "Store rejected Oak Fund."
    assert link.status is ExecutionStatus.SKIPPED
    assert link.message == (
        "Cannot link RoundCo and Oak Fund because dependency create-oak "
        "did not execute successfully."
    )
    assert fake_repository.links == []


def test_excluded_create_is_reported_and_blocks_dependents(
    fake_repository: FakeEntityRepository,
) -> None:
    plan = Plan(actions=(_create_oak(include=False), _link_oak(fake_repository)))

    report = execute_plan(plan, unit_of_work_factory=_factory(fake_repository))

    assert [(result.action_id, result.status) for result in report.results] == [
        ("link-oak", ExecutionStatus.SKIPPED),
        ("create-oak", ExecutionStatus.SKIPPED),
    ]
    assert report.result_for("create-oak").message == "Action was not selected for execution."
    assert len(report.warnings) == 1
    assert "Oak Fund" not in {item.name for item in fake_repository.organizations.values()}


def test_action_ids_restrict_the_run(fake_repository: FakeEntityRepository) -> None:
    plan = Plan(actions=(_create_oak(), _link_oak(fake_repository)))

    report = execute_plan(
        plan, unit_of_work_factory=_factory(fake_repository), action_ids=["create-oak"]
    )

    assert report.result_for("create-oak").status is ExecutionStatus.EXECUTED
    assert report.result_for("link-oak").status is ExecutionStatus.SKIPPED
    assert plan.action_for("link-oak").include


def test_prior_records_satisfy_dependencies(fake_repository: FakeEntityRepository) -> None:
    oak = fake_repository.add(EntityKind.CO_INVESTOR, "Oak Fund")
    prior = {
        "create-oak": ExecutionRecord(
            entity_kind=EntityKind.CO_INVESTOR, id=str(oak.id), name="Oak Fund"
        )
    }
    plan = Plan(actions=(_create_oak(include=False), _link_oak(fake_repository)))

    report = execute_plan(
        plan,
        unit_of_work_factory=_factory(fake_repository),
        action_ids=["link-oak"],
        prior_records=prior,
    )

    assert report.result_for("link-oak").status is ExecutionStatus.EXECUTED
    assert report.created == {}
    assert fake_repository.links[0].co_investor_id == oak.id


def test_use_existing_creates_nothing(fake_repository: FakeEntityRepository) -> None:
    roundco = fake_repository.named("RoundCo")
    action = CreateEntityAction(
        id="create-roundco",
        entity_kind=EntityKind.COMPANY,
        draft=EntityDraft(name="RoundCo"),
        selection=UseExisting(existing_id=str(roundco.id)),
    )
    before = len(fake_repository.organizations)

    report = execute_plan(Plan(actions=(action,)), unit_of_work_factory=_factory(fake_repository))

    [result] = report.results
    assert result.status is ExecutionStatus.EXECUTED
    assert result.message == "Using existing company RoundCo."
    assert result.record is not None
    assert result.record.id == str(roundco.id)
    assert len(fake_repository.organizations) == before


def test_create_from_web_fills_blank_fields(fake_repository: FakeEntityRepository) -> None:
    action = _create_oak(
        selection=CreateFromWeb(web_candidate_index=1),
        web_candidates=(
            WebCandidate(name="Oak Fund I"),
            WebCandidate(
                name="Oak Fund",
                website="oak.example",
                summary="Growth investor.",
                source_urls=("https://oak.example/about",),
            ),
        ),
    )

    report = execute_plan(Plan(actions=(action,)), unit_of_work_factory=_factory(fake_repository))

    assert report.results[0].status is ExecutionStatus.EXECUTED
    oak = fake_repository.named("Oak Fund")
    assert oak.website == "oak.example"
    assert oak.description == "Growth investor."
    assert oak.research_notes == "Sources: https://oak.example/about"


def test_ambiguous_web_selection_fails(fake_repository: FakeEntityRepository) -> None:
    action = _create_oak(
        selection=CreateFromWeb(),
        web_candidates=(WebCandidate(name="Oak Fund I"), WebCandidate(name="Oak Fund II")),
    )

    report = execute_plan(Plan(actions=(action,)), unit_of_work_factory=_factory(fake_repository))

    [result] = report.results
    assert result.status is ExecutionStatus.FAILED
    assert result.message.startswith("Multiple web candidates found.")


def test_update_sets_health_system_lead_source(fake_repository: FakeEntityRepository) -> None:
    roundco = fake_repository.named("RoundCo")
    acme = fake_repository.named("Acme Health")
    action = UpdateEntityAction(
        id="update-roundco",
        entity_kind=EntityKind.COMPANY,
        target_name="RoundCo",
        selected_target_id=str(roundco.id),
        patch=EntityPatch(
            lead_source_type=LeadSourceType.HEALTH_SYSTEM,
            lead_source_health_system_id=str(acme.id),
        ),
    )

    report = execute_plan(Plan(actions=(action,)), unit_of_work_factory=_factory(fake_repository))

    assert report.results[0].message == "Updated company RoundCo."
    assert roundco.lead_source_type is LeadSourceType.HEALTH_SYSTEM
    assert roundco.lead_source_health_system_id == acme.id


def test_unresolved_health_system_lead_source_is_recorded_as_other(
    fake_repository: FakeEntityRepository,
) -> None:
    action = CreateEntityAction(
        id="create-newco",
        entity_kind=EntityKind.COMPANY,
        draft=EntityDraft(
            name="NewCo",
            lead_source_type=LeadSourceType.HEALTH_SYSTEM,
            lead_source_health_system_name="Mercy Clinic",
        ),
    )

    execute_plan(Plan(actions=(action,)), unit_of_work_factory=_factory(fake_repository))

    newco = fake_repository.named("NewCo")
    assert newco.lead_source_type is LeadSourceType.OTHER
    assert newco.lead_source_other == "Mercy Clinic"


def test_add_contact_links_parent(fake_repository: FakeEntityRepository) -> None:
    roundco = fake_repository.named("RoundCo")
    action = AddContactAction(
        id="contact",
        parent_kind=EntityKind.COMPANY,
        parent_name="RoundCo",
        selected_parent_id=str(roundco.id),
        contact=ContactPayload(name="Jane Doe", title="CFO"),
    )

    report = execute_plan(Plan(actions=(action,)), unit_of_work_factory=_factory(fake_repository))

    assert report.results[0].message == "Linked contact Jane Doe to company RoundCo."
    [link] = fake_repository.contact_links
    assert link.parent_id == roundco.id
    assert link.role_type is ContactRole.COMPANY_CONTACT


def test_introduction_link_backfills_lead_source(fake_repository: FakeEntityRepository) -> None:
    oak = fake_repository.add(EntityKind.CO_INVESTOR, "Oak Fund")
    link = _link_oak(
        fake_repository,
        selected_co_investor_id=str(oak.id),
        notes="Oak Fund introduced us to RoundCo.",
    )

    execute_plan(Plan(actions=(link,)), unit_of_work_factory=_factory(fake_repository))

    roundco = fake_repository.named("RoundCo")
    assert roundco.lead_source_type is LeadSourceType.OTHER
    assert roundco.lead_source_other == "Oak Fund"
    assert roundco.lead_source_notes == "Oak Fund introduced us to RoundCo."


def test_link_without_introduction_keeps_lead_source(fake_repository: FakeEntityRepository) -> None:
    oak = fake_repository.add(EntityKind.CO_INVESTOR, "Oak Fund")

    execute_plan(
        Plan(actions=(_link_oak(fake_repository, selected_co_investor_id=str(oak.id)),)),
        unit_of_work_factory=_factory(fake_repository),
    )

    assert fake_repository.named("RoundCo").lead_source_type is None
