"""Transaction boundary used by plan hydration and execution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from narraplan.domain.ports.persistence import EntityRepository


@dataclass(slots=True)
class PlanningRepositories:
    entities: EntityRepository


@runtime_checkable
class PlanningUnitOfWork(Protocol):
    """One transaction around the repositories a plan touches.

    The executor opens one per action and commits only when the action
    succeeded; leaving the block without ``commit`` discards the work.
    """

    @property
    def repositories(self) -> PlanningRepositories: ...

    def __enter__(self) -> PlanningUnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
