"""
Duplicate Resolution Engine

Detects collisions between incoming glossary terms and existing terms
across the three language fields, and applies a bulk resolution
(override existing / ignore incoming) to the colliding set while
inserting everything that did not collide.

A candidate collides with an existing term when ANY single field pair is
equal after trimming; source and target_a compare case-insensitively,
target_b (typically a script without case) compares exactly. Empty fields
never match. The first existing term in list order wins, and the reported
field is the first equal one in the order source, target_a, target_b.
"""
import asyncio
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from config import settings
from .errors import ErrorKind, GlossaryError, InvalidInputError
from .models import (
    CandidateTerm,
    DetectionResult,
    DuplicateMatch,
    ItemFailure,
    MatchedField,
    ResolutionAction,
    ResolutionRequest,
    ResolutionResult,
    Term,
)
from .store import TermStore

# Match rules in priority order: (field, fold case)
MATCH_RULES: Tuple[Tuple[MatchedField, bool], ...] = (
    (MatchedField.SOURCE, True),
    (MatchedField.TARGET_A, True),
    (MatchedField.TARGET_B, False),
)

# Fields an override copies from the candidate when non-empty
OVERRIDE_FIELDS = ("source", "target_a", "target_b", "category", "remark")


def _match_key(value: Optional[str], fold_case: bool) -> str:
    text = (value or "").strip()
    return text.lower() if fold_case else text


def matched_field(candidate: CandidateTerm, existing: Term) -> Optional[MatchedField]:
    """Return the highest-priority field on which the two terms are equal"""
    for field, fold_case in MATCH_RULES:
        key = _match_key(getattr(candidate, field.value), fold_case)
        if key and key == _match_key(getattr(existing, field.value), fold_case):
            return field
    return None


def _build_index(existing: List[Term]) -> Dict[MatchedField, Dict[str, int]]:
    """Map each normalized field value to the position of its first term"""
    index: Dict[MatchedField, Dict[str, int]] = {field: {} for field, _ in MATCH_RULES}
    for position, term in enumerate(existing):
        for field, fold_case in MATCH_RULES:
            key = _match_key(getattr(term, field.value), fold_case)
            if key:
                index[field].setdefault(key, position)
    return index


def detect_duplicates(
    candidates: Iterable[CandidateTerm],
    existing: Iterable[Term],
) -> DetectionResult:
    """
    Partition candidates into duplicates and uniques.

    Args:
        candidates: Proposed terms, in import order
        existing: Current glossary terms, in store order

    Returns:
        DetectionResult with duplicates, uniques (input order preserved) and
        candidates rejected for an empty source
    """
    if candidates is None or existing is None:
        raise InvalidInputError("candidates and existing terms are required")

    existing = list(existing)
    index = _build_index(existing)
    result = DetectionResult()

    for candidate in candidates:
        if not (candidate.source or "").strip():
            logger.warning("Skipping import candidate without source text")
            result.invalid.append(candidate)
            continue

        positions = []
        for field, fold_case in MATCH_RULES:
            key = _match_key(getattr(candidate, field.value), fold_case)
            if key and key in index[field]:
                positions.append(index[field][key])

        if not positions:
            result.uniques.append(candidate)
            continue

        term = existing[min(positions)]
        result.duplicates.append(DuplicateMatch(
            candidate=candidate,
            existing=term,
            matched_field=matched_field(candidate, term),
        ))

    logger.info(
        f"Duplicate check: {len(result.duplicates)} duplicates, "
        f"{len(result.uniques)} unique, {len(result.invalid)} invalid"
    )
    return result


def override_fields(candidate: CandidateTerm) -> Dict[str, Any]:
    """Partial update carrying only the candidate's non-empty fields"""
    fields = {}
    for name in OVERRIDE_FIELDS:
        value = (getattr(candidate, name) or "").strip()
        if value:
            fields[name] = value
    return fields


def _item_failure(
    operation: str,
    error: BaseException,
    source: str,
    term_id: Optional[str] = None,
) -> ItemFailure:
    if not isinstance(error, Exception):
        # Cancellation and interpreter exits are not item failures
        raise error
    if isinstance(error, GlossaryError):
        kind = error.kind
    else:
        kind = ErrorKind.STORE_UNAVAILABLE
    logger.warning(f"Glossary {operation} failed for {source!r} ({kind.value}): {error}")
    return ItemFailure(
        operation=operation,
        kind=kind,
        message=str(error),
        source=source,
        term_id=term_id,
    )


async def resolve(
    duplicates: List[DuplicateMatch],
    request: ResolutionRequest,
    uniques: List[CandidateTerm],
    store: TermStore,
    concurrency: Optional[int] = None,
) -> ResolutionResult:
    """
    Apply a resolution to the duplicates and insert all uniques.

    Only matches whose existing id is in ``request.selected_existing_ids``
    are acted on; unselected matches are left alone and counted nowhere.
    Writes are issued concurrently and every failure is reported per item,
    so one rejected write never stops the rest of the batch.

    Args:
        duplicates: Matches from detect_duplicates
        request: Action and the selected existing ids
        uniques: Candidates to insert as new terms
        store: Term store receiving the writes
        concurrency: Max parallel writes (defaults to TERM_WRITE_CONCURRENCY)

    Returns:
        ResolutionResult with overridden/ignored/inserted/skipped counts
    """
    if duplicates is None or request is None or uniques is None or store is None:
        raise InvalidInputError("duplicates, request, uniques and store are required")

    try:
        action = ResolutionAction(request.action)
    except ValueError:
        raise InvalidInputError(f"Unknown resolution action: {request.action!r}")

    selected = set(request.selected_existing_ids or ())
    result = ResolutionResult()

    unknown_ids = selected - {match.existing.id for match in duplicates}
    if unknown_ids:
        logger.warning(f"Ignoring {len(unknown_ids)} selected ids that are not duplicates")
        result.skipped += len(unknown_ids)

    overrides: List[Tuple[DuplicateMatch, Dict[str, Any]]] = []
    handled_ids = set()
    for match in duplicates:
        term_id = match.existing.id
        if term_id not in selected:
            continue
        if action is ResolutionAction.IGNORE:
            # Every colliding row is dropped, repeats included
            result.ignored += 1
            continue

        if term_id in handled_ids:
            # One write per existing term per batch
            logger.warning(f"Skipping repeated duplicate match for term {term_id}")
            result.skipped += 1
            continue
        handled_ids.add(term_id)

        if not (match.candidate.source or "").strip():
            result.skipped += 1
            continue
        overrides.append((match, override_fields(match.candidate)))

    inserts: List[CandidateTerm] = []
    for candidate in uniques:
        if (candidate.source or "").strip():
            inserts.append(candidate)
        else:
            result.skipped += 1

    semaphore = asyncio.Semaphore(concurrency or settings.TERM_WRITE_CONCURRENCY)

    async def _bounded(call: Awaitable[Term]) -> Term:
        async with semaphore:
            return await call

    calls = [
        _bounded(store.update_term(match.existing.id, fields))
        for match, fields in overrides
    ]
    calls += [_bounded(store.insert_term(candidate)) for candidate in inserts]
    outcomes = await asyncio.gather(*calls, return_exceptions=True)

    for (match, _), outcome in zip(overrides, outcomes[:len(overrides)]):
        if isinstance(outcome, BaseException):
            result.failures.append(
                _item_failure("update", outcome, match.candidate.source, match.existing.id)
            )
        else:
            result.overridden += 1
            result.overridden_terms.append(outcome)

    for candidate, outcome in zip(inserts, outcomes[len(overrides):]):
        if isinstance(outcome, BaseException):
            result.failures.append(_item_failure("insert", outcome, candidate.source))
        else:
            result.inserted += 1
            result.inserted_terms.append(outcome)

    logger.info(
        f"Import applied ({action.value}): {result.inserted} new, "
        f"{result.overridden} updated, {result.ignored} ignored, "
        f"{result.skipped} skipped, {result.failed} failed"
    )
    return result
