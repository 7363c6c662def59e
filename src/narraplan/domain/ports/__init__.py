"""Domain port definitions for adapters."""

from __future__ import annotations

from .extraction import ExtractionResult, NarrativeExtractor, WebCandidateFinder
from .persistence import EntityRepository, RecordNotFoundError, RepositoryError
from .unit_of_work import PlanningRepositories, PlanningUnitOfWork

__all__ = [
    "EntityRepository",
    "ExtractionResult",
    "NarrativeExtractor",
    "PlanningRepositories",
    "PlanningUnitOfWork",
    "RecordNotFoundError",
    "RepositoryError",
    "WebCandidateFinder",
]
