"""SQLAlchemy unit of work for plan hydration and execution.

The adapter holds one engine per process. ``startup`` binds it and creates
the entity tables; each unit of work then opens its own session on it and
``shutdown`` disposes it again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from narraplan.adapters.sqlalchemy.mappings import create_all_tables, start_mappers
from narraplan.adapters.sqlalchemy.repositories import SqlAlchemyEntityRepository
from narraplan.config.storage import get_database_config
from narraplan.domain.ports.unit_of_work import PlanningRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """The adapter is used before ``startup`` or configured twice."""


@dataclass(slots=True)
class _AdapterState:
    engine: Engine | None = None
    session_factory: sessionmaker[Session] | None = None

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        self.session_factory = (
            None if engine is None else sessionmaker(bind=engine, expire_on_commit=False)
        )

    def require_session_factory(self) -> sessionmaker[Session]:
        if self.session_factory is None:
            raise StartupError(
                "Entity store is not started; call "
                "narraplan.adapters.sqlalchemy.startup() before opening a unit of work."
            )
        return self.session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the adapter to ``engine`` (or a new one for ``database_uri``)."""
    if _STATE.engine is not None and not force:
        raise StartupError("Entity store already started. Pass force=True to rebind it.")
    if engine is None:
        engine = create_engine(database_uri or get_database_config().uri, future=True)
    start_mappers()
    create_all_tables(engine)
    _STATE.bind(engine)
    log.debug("Entity store bound to %s", engine.url.render_as_string(hide_password=True))


def configured_engine() -> Engine | None:
    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.bind(None)


class SqlAlchemyPlanningUnitOfWork:
    """Session-per-block unit of work over the entity tables.

    Sessions keep loaded records usable after commit, so an executed action
    can still read the ids of what it created.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self.session_factory = session_factory or _STATE.require_session_factory()
        self._session: Session | None = None
        self._repositories: PlanningRepositories | None = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._session

    @property
    def repositories(self) -> PlanningRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._repositories

    def __enter__(self) -> SqlAlchemyPlanningUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        self._session = self.session_factory()
        self._repositories = PlanningRepositories(
            entities=SqlAlchemyEntityRepository(self._session)
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            self.session.close()
            self._session = None
            self._repositories = None
        return False

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from narraplan.domain.ports import PlanningUnitOfWork

    _uow_check: PlanningUnitOfWork = SqlAlchemyPlanningUnitOfWork()
