"""Turn plan state into reviewer-facing questions and notes.

A freshly built plan starts in the clarification phase while any question is
open, unless the narrative says the requirements are settled (see
``REQUIREMENTS_LOCK_PHRASES``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .actions import (
    AddContactAction,
    CreateEntityAction,
    LinkRelationshipAction,
    UpdateEntityAction,
    UseExisting,
    action_label,
)
from .normalize import lookup_form

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .actions import AnyAction, EntityMatch, Plan

_QUESTION_PREFIXES = ("please confirm", "do you want", "should i", "which ")

REQUIREMENTS_LOCK_PHRASES = (
    "build execution plan",
    "create execution plan",
    "draft execution plan",
    "generate execution plan",
    "finalize requirements",
    "requirements are final",
    "requirements confirmed",
    "proceed with plan",
    "go ahead with plan",
    "ready for execution plan",
    "plan is approved",
)
_PREVIEW_LIMIT = 5
_NOTE_PREVIEW_LIMIT = 2


@dataclass(frozen=True, slots=True)
class Clarification:
    question: str
    action_ids: tuple[str, ...] = ()


def _marker(text: str) -> str:
    return " ".join(text.split()).casefold()


def is_question(text: str) -> bool:
    marker = _marker(text)
    return "?" in marker or marker.startswith(_QUESTION_PREFIXES)


def _messages(plan: Plan) -> list[tuple[str, str | None]]:
    messages: list[tuple[str, str | None]] = [(warning, None) for warning in plan.warnings]
    for action in plan.actions:
        messages.extend((issue, action.id) for issue in action.issues)
    return messages


def extract_clarifications(plan: Plan) -> list[Clarification]:
    """Distinct question-like messages in first-seen order, with affected actions."""

    questions: dict[str, str] = {}
    affected: dict[str, list[str]] = {}
    for text, action_id in _messages(plan):
        if not text.strip() or not is_question(text):
            continue
        marker = _marker(text)
        questions.setdefault(marker, " ".join(text.split()))
        ids = affected.setdefault(marker, [])
        if action_id is not None and action_id not in ids:
            ids.append(action_id)
    return [
        Clarification(question=question, action_ids=tuple(affected[marker]))
        for marker, question in questions.items()
    ]


def operational_messages(plan: Plan) -> list[str]:
    """Distinct warnings and issues that are not questions, for direct display."""

    seen: set[str] = set()
    messages: list[str] = []
    for text, _ in _messages(plan):
        marker = _marker(text)
        if not marker or marker in seen or is_question(text):
            continue
        seen.add(marker)
        messages.append(" ".join(text.split()))
    return messages


def has_requirements_lock_signal(narrative: str) -> bool:
    """True when the narrative says to go straight to the execution plan."""
    text = f" {lookup_form(narrative)} "
    return bool(text.strip()) and any(f" {phrase} " in text for phrase in REQUIREMENTS_LOCK_PHRASES)


def _percent(confidence: float) -> str:
    return f"{confidence:.0%}"


def _selected(matches: Sequence[EntityMatch], record_id: str | None) -> EntityMatch | None:
    if not record_id:
        return None
    return next((match for match in matches if match.id == record_id), None)


def auto_resolved_note(action: AnyAction) -> str | None:
    """Describe an existing record the hydrator picked for ``action``, if any."""

    match action:
        case CreateEntityAction(selection=UseExisting(existing_id=existing_id)):
            chosen = _selected(action.existing_matches, existing_id) or next(
                iter(action.existing_matches), None
            )
            if chosen is None:
                return None
            return (
                f"Using existing {action.entity_kind.label} record {chosen.name} "
                f"({_percent(chosen.confidence)})."
            )
        case UpdateEntityAction():
            chosen = _selected(action.target_matches, action.selected_target_id)
            if chosen is None:
                return None
            return (
                f"Update target resolved to existing {action.entity_kind.label} {chosen.name} "
                f"({_percent(chosen.confidence)})."
            )
        case AddContactAction():
            chosen = _selected(action.parent_matches, action.selected_parent_id)
            if chosen is None:
                return None
            return (
                f"Contact parent resolved to existing {action.parent_kind.label} {chosen.name} "
                f"({_percent(chosen.confidence)})."
            )
        case LinkRelationshipAction():
            company = _selected(action.company_matches, action.selected_company_id)
            co_investor = _selected(action.co_investor_matches, action.selected_co_investor_id)
            if company is not None and co_investor is not None:
                return (
                    f"Relationship resolved to existing company {company.name} "
                    f"and co-investor {co_investor.name}."
                )
            if company is not None:
                return (
                    f"Relationship company resolved to existing record {company.name} "
                    f"({_percent(company.confidence)})."
                )
            if co_investor is not None:
                return (
                    f"Relationship co-investor resolved to existing record {co_investor.name} "
                    f"({_percent(co_investor.confidence)})."
                )
            return None
        case _:
            return None


def clarification_summary(summary: str, actions: Sequence[AnyAction]) -> str:
    """Summary shown while questions are open: matches already settled, then a preview."""

    base = summary.strip() or f"I identified {len(actions)} candidate change(s)."
    notes = [note for note in map(auto_resolved_note, actions) if note]
    if notes:
        extra = len(notes) - _NOTE_PREVIEW_LIMIT
        parts = [
            base,
            f"I already resolved {len(notes)} existing match(es).",
            *notes[:_NOTE_PREVIEW_LIMIT],
        ]
        if extra > 0:
            parts.append(f"(+{extra} additional auto-match(es).)")
    else:
        parts = [
            base,
            "I will confirm one detail at a time before drafting the first execution plan.",
        ]
    if actions:
        preview = " ".join(f"{action_label(action)}." for action in actions[:_PREVIEW_LIMIT])
        parts.append(f"Candidate requirements so far: {preview}")
    return " ".join(parts)


__all__ = [
    "REQUIREMENTS_LOCK_PHRASES",
    "Clarification",
    "auto_resolved_note",
    "clarification_summary",
    "extract_clarifications",
    "has_requirements_lock_signal",
    "is_question",
    "operational_messages",
]
