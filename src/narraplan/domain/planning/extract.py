"""Draft-action extraction helpers that run without the extraction service.

Responsibilities of this module:
- pattern-based fallback extraction for narratives the service cannot handle
- "X introduced us to Y" heuristics layered over any extraction result
- consolidation of duplicate draft actions
- stable, readable action ids

Nothing here touches the repository; matching happens during hydration.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from narraplan.domain.model import ActionKind, EntityKind, LeadSourceType, RelationshipType
from narraplan.domain.ports.extraction import ExtractionResult

from .actions import (
    AddContactAction,
    ContactPayload,
    CreateEntityAction,
    CreateManual,
    EntityDraft,
    LinkRelationshipAction,
    UpdateEntityAction,
)
from .normalize import clean_entity_name, clean_name_fragment, comparison_key, lookup_form

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .actions import AnyAction

log = logging.getLogger(__name__)

INTRO_HEURISTIC_WARNING = (
    "Applied intro heuristic: mapped 'introduced us to' phrasing into investor "
    "relationship and lead-source signals."
)
FALLBACK_WARNING = "Used pattern-based fallback extraction; review each action carefully."

_ID_SLUG_LIMIT = 36
_FALLBACK_CONFIDENCE = 0.6

_CO_INVESTOR_SIGNALS = re.compile(
    r"\b(?:innovation fund|fund|ventures?|venture arm|venture fund|capital|vc|investors?|investments?)\b"
)
_HEALTH_SYSTEM_SIGNALS = re.compile(
    r"\b(?:health system|healthcare system|health|healthcare|hospitals?|medical center|clinic)\b"
)
_INVESTMENT_WORDS = re.compile(
    r"\b(?:innovation\s+fund|innovation|ventures?|venture\s+fund|venture\s+arm|capital|vc|fund"
    r"|strategic\s+investments?|investments?|investor)\b",
    re.IGNORECASE,
)

_SENTENCE_SPLIT = re.compile(r"\r?\n|(?<=[.!?])\s+")
_INTRODUCTION = re.compile(
    r"\b(?P<introducer>.{2,120}?)\s+introduced\s+(?:us|me|our\s+team|the\s+team)?\s*to\s+"
    r"(?P<company>.{2,120})$",
    re.IGNORECASE,
)
_CO_INVESTOR_LIST = re.compile(
    r"^(?:(?P<owner>.+?)(?:'s|’s)\s+)?co[\s-]?investors?"
    r"(?:\s+(?:in|on|for)\s+(?P<target>.+?))?"
    r"\s*(?:include|includes|included|are|were|:)\s+(?P<names>.+)$",
    re.IGNORECASE,
)
_ADD_CONTACT = re.compile(
    r"\b(?:add|adding)\s+(?:a\s+)?(?:new\s+)?contact\s+(?P<name>[^,(]+?)"
    r"(?:\s*\((?P<paren_title>[^)]+)\)|,\s*(?P<comma_title>[^,]+?),)?"
    r"\s+(?:to|at|for)\s+(?P<parent>.+)$",
    re.IGNORECASE,
)
_EXPLICIT_CREATE = re.compile(
    r"\b(?:create|add)\s+(?:an?\s+)?(?:new\s+)?"
    r"(?P<kind>company|co[\s-]?investor|health\s*system|healthcare\s*system)\s+"
    r"(?:called\s+|named\s+)?(?P<name>.+)$",
    re.IGNORECASE,
)
_LIST_SEPARATOR = re.compile(r",\s*(?:and\s+)?|\s+and\s+|\s*&\s*|;\s*", re.IGNORECASE)

_KIND_ORDER: dict[ActionKind, int] = {
    ActionKind.CREATE_ENTITY: 0,
    ActionKind.UPDATE_ENTITY: 1,
    ActionKind.ADD_CONTACT: 2,
    ActionKind.LINK_COMPANY_CO_INVESTOR: 3,
}


def build_action_id(kind: ActionKind, index: int, label: str = "") -> str:
    """Readable action id such as ``create_entity-1-acme-health``."""

    slug = re.sub(r"[^a-z0-9]+", "-", label.lower()).strip("-")[:_ID_SLUG_LIMIT].strip("-")
    base = f"{kind.lower()}-{index + 1}"
    return f"{base}-{slug}" if slug else base


def unique_action_id(candidate: str, taken: set[str]) -> str:
    unique = candidate
    suffix = 2
    while unique in taken:
        unique = f"{candidate}-{suffix}"
        suffix += 1
    taken.add(unique)
    return unique


def has_co_investor_signals(name: str) -> bool:
    return bool(_CO_INVESTOR_SIGNALS.search(lookup_form(name)))


def has_health_system_signals(name: str) -> bool:
    return bool(_HEALTH_SYSTEM_SIGNALS.search(lookup_form(name)))


def looks_like_health_system(name: str) -> bool:
    return has_health_system_signals(name) and not has_co_investor_signals(name)


def infer_organization_kind(name: str) -> EntityKind:
    """Best-effort kind for a bare organization name."""

    if looks_like_health_system(name):
        return EntityKind.HEALTH_SYSTEM
    if has_co_investor_signals(name):
        return EntityKind.CO_INVESTOR
    return EntityKind.COMPANY


def kind_rank(action: AnyAction) -> int:
    return _KIND_ORDER[action.kind]


def canonical_order(actions: Iterable[AnyAction]) -> list[AnyAction]:
    """Creates, then updates, contacts, and links; stable within each kind."""

    return sorted(actions, key=kind_rank)


def split_sentences(narrative: str) -> list[str]:
    return [part.strip() for part in _SENTENCE_SPLIT.split(narrative) if part.strip()]


def _split_names(value: str) -> list[str]:
    names = [clean_name_fragment(part) for part in _LIST_SEPARATOR.split(value)]
    return [name for name in names if name]


# Introductions -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class IntroductionSignal:
    introducer_name: str
    introducer_kind: EntityKind
    company_name: str
    health_system_hint: str


def _health_system_name_from_introducer(introducer: str) -> str:
    cleaned = re.sub(r"^the\s+", "", clean_name_fragment(introducer), flags=re.IGNORECASE)
    if not cleaned:
        return ""
    stripped = " ".join(_INVESTMENT_WORDS.sub(" ", cleaned).split())
    return clean_entity_name(stripped or cleaned, EntityKind.HEALTH_SYSTEM)


def extract_introduction_signals(narrative: str) -> list[IntroductionSignal]:
    signals: list[IntroductionSignal] = []
    for sentence in split_sentences(narrative):
        match = _INTRODUCTION.search(sentence)
        if match is None:
            continue
        introducer = clean_name_fragment(match["introducer"])
        company = clean_entity_name(match["company"], EntityKind.COMPANY)
        if not introducer or not company:
            continue
        hint = _health_system_name_from_introducer(introducer)
        if not hint:
            continue
        introducer_kind = (
            EntityKind.HEALTH_SYSTEM
            if looks_like_health_system(introducer)
            else EntityKind.CO_INVESTOR
        )
        signals.append(
            IntroductionSignal(
                introducer_name=introducer,
                introducer_kind=introducer_kind,
                company_name=company,
                health_system_hint=hint,
            )
        )
    return signals


def _find_create(
    actions: Sequence[AnyAction], kind: EntityKind, key: str
) -> CreateEntityAction | None:
    for action in actions:
        if (
            isinstance(action, CreateEntityAction)
            and action.entity_kind is kind
            and comparison_key(action.draft.name, kind) == key
        ):
            return action
    return None


def _replace(actions: list[AnyAction], updated: AnyAction) -> None:
    for position, action in enumerate(actions):
        if action.id == updated.id:
            actions[position] = updated
            return


def apply_introduction_heuristics(
    narrative: str, actions: Sequence[AnyAction]
) -> tuple[list[AnyAction], list[str]]:
    """Turn introduction phrasing into lead-source and investor-link actions.

    A health-system introducer becomes the introduced company's lead source; a
    co-investor introducer becomes a co-investor create plus an investor link.
    """

    signals = extract_introduction_signals(narrative)
    next_actions = list(actions)
    if not signals:
        return next_actions, []

    taken = {action.id for action in next_actions}
    changed = False
    for signal in signals:
        company_key = comparison_key(signal.company_name, EntityKind.COMPANY)
        introducer_key = comparison_key(signal.introducer_name, signal.introducer_kind)
        if not company_key or not introducer_key:
            continue

        lead_source: dict[str, object] = (
            {
                "lead_source_type": LeadSourceType.HEALTH_SYSTEM,
                "lead_source_health_system_name": signal.health_system_hint,
                "lead_source_other": None,
            }
            if signal.introducer_kind is EntityKind.HEALTH_SYSTEM
            else {
                "lead_source_type": LeadSourceType.OTHER,
                "lead_source_other": signal.introducer_name,
            }
        )
        company_create = _find_create(next_actions, EntityKind.COMPANY, company_key)
        if company_create is not None:
            if company_create.draft.lead_source_type is None or (
                signal.introducer_kind is EntityKind.HEALTH_SYSTEM
            ):
                draft = company_create.draft.model_copy(update=lead_source)
                _replace(next_actions, company_create.model_copy(update={"draft": draft}))
                changed = True
        else:
            next_actions.append(
                CreateEntityAction(
                    id=unique_action_id(
                        build_action_id(
                            ActionKind.CREATE_ENTITY, len(next_actions), signal.company_name
                        ),
                        taken,
                    ),
                    rationale="Added from narrative introduction phrasing.",
                    confidence=0.62,
                    entity_kind=EntityKind.COMPANY,
                    draft=EntityDraft(name=signal.company_name).model_copy(update=lead_source),
                    selection=CreateManual(),
                )
            )
            changed = True

        if signal.introducer_kind is EntityKind.HEALTH_SYSTEM:
            continue

        if _find_create(next_actions, EntityKind.CO_INVESTOR, introducer_key) is None:
            next_actions.append(
                CreateEntityAction(
                    id=unique_action_id(
                        build_action_id(
                            ActionKind.CREATE_ENTITY, len(next_actions), signal.introducer_name
                        ),
                        taken,
                    ),
                    rationale="Added from narrative introduction phrasing.",
                    confidence=0.58,
                    entity_kind=EntityKind.CO_INVESTOR,
                    draft=EntityDraft(name=signal.introducer_name),
                    selection=CreateManual(),
                )
            )
            changed = True

        intro_note = f"{signal.introducer_name} introduced us to {signal.company_name}."
        existing_link = next(
            (
                action
                for action in next_actions
                if isinstance(action, LinkRelationshipAction)
                and comparison_key(action.company_name, EntityKind.COMPANY) == company_key
                and comparison_key(action.co_investor_name, EntityKind.CO_INVESTOR)
                == introducer_key
            ),
            None,
        )
        if existing_link is not None:
            if "introduced" not in (existing_link.notes or "").lower():
                notes = f"{existing_link.notes or ''} {intro_note}".strip()
                _replace(next_actions, existing_link.model_copy(update={"notes": notes}))
                changed = True
            continue

        next_actions.append(
            LinkRelationshipAction(
                id=unique_action_id(
                    build_action_id(
                        ActionKind.LINK_COMPANY_CO_INVESTOR,
                        len(next_actions),
                        f"{signal.company_name}-{signal.introducer_name}",
                    ),
                    taken,
                ),
                rationale="Added from narrative introduction phrasing.",
                confidence=0.65,
                company_name=signal.company_name,
                co_investor_name=signal.introducer_name,
                relationship_type=RelationshipType.INVESTOR,
                notes=intro_note,
            )
        )
        changed = True

    if not changed:
        return next_actions, []
    log.info("Introduction heuristics produced %d signal(s)", len(signals))
    return next_actions, [INTRO_HEURISTIC_WARNING]


# Fallback extraction -----------------------------------------------------------


def _kind_from_phrase(phrase: str) -> EntityKind:
    normalized = lookup_form(phrase)
    if normalized.startswith("health"):
        return EntityKind.HEALTH_SYSTEM
    if normalized.startswith("co"):
        if normalized.startswith("company"):
            return EntityKind.COMPANY
        return EntityKind.CO_INVESTOR
    return EntityKind.COMPANY


@dataclass(slots=True)
class _FallbackDrafts:
    creates: list[tuple[EntityKind, str]]
    contacts: list[tuple[EntityKind, str, ContactPayload]]
    links: list[tuple[str, str]]


def _collect_fallback_drafts(narrative: str) -> tuple[_FallbackDrafts, list[str]]:
    drafts = _FallbackDrafts(creates=[], contacts=[], links=[])
    warnings: list[str] = []
    introductions = {
        index: signal
        for index, sentence in enumerate(split_sentences(narrative))
        for signal in extract_introduction_signals(sentence)
    }
    subject_company: str | None = None

    for index, sentence in enumerate(split_sentences(narrative)):
        if index in introductions:
            subject_company = introductions[index].company_name
            continue

        if (created := _EXPLICIT_CREATE.search(sentence)) is not None:
            kind = _kind_from_phrase(created["kind"])
            name = clean_entity_name(created["name"], kind)
            if name:
                drafts.creates.append((kind, name))
                if kind is EntityKind.COMPANY:
                    subject_company = name
            continue

        if (listed := _CO_INVESTOR_LIST.search(sentence)) is not None:
            owner = listed["owner"] or listed["target"]
            company = clean_entity_name(owner, EntityKind.COMPANY) if owner else subject_company
            names = [
                clean_entity_name(name, EntityKind.CO_INVESTOR)
                for name in _split_names(listed["names"])
            ]
            for name in names:
                if not name:
                    continue
                if looks_like_health_system(name):
                    warnings.append(
                        f'"{name}" looks like a health system and was not added as a co-investor.'
                    )
                    continue
                drafts.creates.append((EntityKind.CO_INVESTOR, name))
                if company:
                    drafts.links.append((company, name))
            if company is None and names:
                warnings.append(
                    "Which company do the listed co-investors belong to? "
                    "No investment links were proposed."
                )
            continue

        if (contact := _ADD_CONTACT.search(sentence)) is not None:
            parent = clean_name_fragment(contact["parent"])
            parent_kind = infer_organization_kind(parent)
            name = clean_name_fragment(contact["name"])
            title = contact["paren_title"] or contact["comma_title"]
            if parent and name:
                drafts.contacts.append(
                    (
                        parent_kind,
                        clean_entity_name(parent, parent_kind),
                        ContactPayload(name=name, title=title),
                    )
                )

    return drafts, warnings


def fallback_extract(narrative: str) -> ExtractionResult:
    """Pattern-based extraction used when the extraction service yields nothing.

    Introductions are left to ``apply_introduction_heuristics``, which runs on
    every extraction result.
    """

    drafts, warnings = _collect_fallback_drafts(narrative)
    actions: list[AnyAction] = []
    taken: set[str] = set()

    def next_id(kind: ActionKind, label: str) -> str:
        return unique_action_id(build_action_id(kind, len(actions), label), taken)

    for kind, name in drafts.creates:
        actions.append(
            CreateEntityAction(
                id=next_id(ActionKind.CREATE_ENTITY, name),
                confidence=_FALLBACK_CONFIDENCE,
                rationale="Matched a creation or co-investor phrase in the narrative.",
                entity_kind=kind,
                draft=EntityDraft(name=name),
            )
        )
    for parent_kind, parent_name, contact in drafts.contacts:
        actions.append(
            AddContactAction(
                id=next_id(ActionKind.ADD_CONTACT, f"{parent_name}-{contact.name}"),
                confidence=_FALLBACK_CONFIDENCE,
                rationale="Matched an add-contact phrase in the narrative.",
                parent_kind=parent_kind,
                parent_name=parent_name,
                contact=contact,
            )
        )
    for company, co_investor in drafts.links:
        actions.append(
            LinkRelationshipAction(
                id=next_id(ActionKind.LINK_COMPANY_CO_INVESTOR, f"{company}-{co_investor}"),
                confidence=_FALLBACK_CONFIDENCE,
                rationale="Matched a co-investor list in the narrative.",
                company_name=company,
                co_investor_name=co_investor,
            )
        )

    if not actions and not extract_introduction_signals(narrative):
        warnings.append("No actionable changes were recognized in the narrative.")
    else:
        warnings.insert(0, FALLBACK_WARNING)
    log.info("Fallback extraction produced %d action(s)", len(actions))
    return ExtractionResult(
        summary=f"Fallback extraction proposed {len(actions)} action(s).",
        warnings=warnings,
        actions=actions,
    )


# Consolidation -----------------------------------------------------------------


def action_key(action: AnyAction) -> str:
    match action:
        case CreateEntityAction():
            return f"CREATE:{action.entity_kind}:{comparison_key(action.draft.name, action.entity_kind)}"
        case UpdateEntityAction():
            return f"UPDATE:{action.entity_kind}:{comparison_key(action.target_name, action.entity_kind)}"
        case AddContactAction():
            parent = comparison_key(action.parent_name, action.parent_kind)
            return f"CONTACT:{action.parent_kind}:{parent}:{comparison_key(action.contact.name)}"
        case LinkRelationshipAction():
            company = comparison_key(action.company_name, EntityKind.COMPANY)
            co_investor = comparison_key(action.co_investor_name, EntityKind.CO_INVESTOR)
            return f"LINK:{company}:{co_investor}:{action.relationship_type}"


def _merge_text(*values: str | None) -> str | None:
    merged = " ".join(" ".join(value.split()) for value in values if value and value.strip())
    return merged or None


def _merge_issues(*groups: Sequence[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(issue for group in groups for issue in group))


def _fill_missing[T: (EntityDraft, ContactPayload)](current: T, incoming: T) -> T:
    current_values = current.model_dump()
    update = {
        key: value
        for key, value in incoming.model_dump().items()
        if value not in (None, "") and current_values.get(key) in (None, "")
    }
    return current.model_copy(update=update) if update else current


def _merge_pair(current: AnyAction, incoming: AnyAction) -> AnyAction:
    common: dict[str, object] = {
        "include": current.include or incoming.include,
        "confidence": max(current.confidence or 0.0, incoming.confidence or 0.0) or None,
        "rationale": _merge_text(current.rationale, incoming.rationale),
        "issues": _merge_issues(current.issues, incoming.issues),
    }
    match current, incoming:
        case CreateEntityAction(), CreateEntityAction():
            draft = _fill_missing(current.draft, incoming.draft)
            if len(incoming.draft.name) < len(draft.name):
                name = clean_entity_name(incoming.draft.name, incoming.entity_kind)
                draft = draft.model_copy(update={"name": name or draft.name})
            return current.model_copy(update={**common, "draft": draft})
        case UpdateEntityAction(), UpdateEntityAction():
            patch = incoming.patch.model_copy(
                update={
                    key: value
                    for key, value in current.patch.model_dump().items()
                    if value is not None
                }
            )
            return current.model_copy(update={**common, "patch": patch})
        case AddContactAction(), AddContactAction():
            contact = _fill_missing(current.contact, incoming.contact)
            return current.model_copy(update={**common, "contact": contact})
        case LinkRelationshipAction(), LinkRelationshipAction():
            return current.model_copy(
                update={
                    **common,
                    "notes": _merge_text(current.notes, incoming.notes),
                    "investment_amount_usd": current.investment_amount_usd
                    if current.investment_amount_usd is not None
                    else incoming.investment_amount_usd,
                }
            )
        case _:
            return current


def dedupe_actions(actions: Iterable[AnyAction]) -> tuple[list[AnyAction], int]:
    """Merge actions describing the same change; returns the list and merge count."""

    deduped: list[AnyAction] = []
    position_by_key: dict[str, int] = {}
    merged = 0
    for action in actions:
        key = action_key(action)
        position = position_by_key.get(key)
        if position is None:
            position_by_key[key] = len(deduped)
            deduped.append(action)
            continue
        deduped[position] = _merge_pair(deduped[position], action)
        merged += 1
    return deduped, merged
