from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from narraplan.adapters.sqlalchemy import create_all_tables, start_mappers
from narraplan.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyPlanningUnitOfWork,
    shutdown,
    startup,
)
from narraplan.domain.model import EntityKind, Organization
from tests.support.planning import FakeEntityRepository, FakePlanningUnitOfWork

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    start_mappers()
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyPlanningUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyPlanningUnitOfWork:
        return SqlAlchemyPlanningUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def seeded_unit_of_work(
    sqlite_unit_of_work: Callable[[], SqlAlchemyPlanningUnitOfWork],
) -> Callable[[], SqlAlchemyPlanningUnitOfWork]:
    """SQLite store holding the RoundCo company and the Acme Health system."""

    with sqlite_unit_of_work() as uow:
        uow.session.add_all(
            [
                Organization(kind=EntityKind.COMPANY, name="RoundCo"),
                Organization(kind=EntityKind.HEALTH_SYSTEM, name="Acme Health"),
            ]
        )
        uow.commit()
    return sqlite_unit_of_work


@pytest.fixture
def fake_repository() -> FakeEntityRepository:
    repository = FakeEntityRepository()
    repository.add(EntityKind.COMPANY, "RoundCo")
    repository.add(EntityKind.HEALTH_SYSTEM, "Acme Health")
    return repository


@pytest.fixture
def fake_unit_of_work(
    fake_repository: FakeEntityRepository,
) -> Callable[[], FakePlanningUnitOfWork]:
    return lambda: FakePlanningUnitOfWork(fake_repository)
