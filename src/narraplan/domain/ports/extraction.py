"""Ports for the external services that feed plan building."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from narraplan.domain.model import EntityKind
    from narraplan.domain.planning.actions import AnyAction, WebCandidate


@dataclass(slots=True)
class ExtractionResult:
    """Draft actions proposed for a narrative, before any matching."""

    summary: str = ""
    warnings: list[str] = field(default_factory=list)
    actions: list[AnyAction] = field(default_factory=list)


@runtime_checkable
class NarrativeExtractor(Protocol):
    """Callable port turning narrative text into draft actions.

    Implementations may return zero actions; plan building then falls back to
    pattern extraction.
    """

    def __call__(self, narrative: str) -> ExtractionResult: ...


@runtime_checkable
class WebCandidateFinder(Protocol):
    """Callable port proposing public web profiles for a new organization."""

    def __call__(self, kind: EntityKind, name: str) -> Sequence[WebCandidate]: ...
