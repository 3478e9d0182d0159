from dataclasses import replace

import pytest

from glossary import (
    ConflictError,
    ErrorKind,
    InvalidInputError,
    ResolutionAction,
    ResolutionRequest,
    StoreUnavailableError,
    detect_duplicates,
    resolve,
)
from tests.mocks import InMemoryTermStore


def _request(action, *ids):
    return ResolutionRequest(action=ResolutionAction(action), selected_existing_ids=set(ids))


@pytest.mark.asyncio
async def test_override_merges_only_non_empty_fields(make_term, candidate):
    existing = make_term("Old", "ExistingMY", "OldZH", category="Brand", remark="keep me")
    store = InMemoryTermStore([existing])
    match_input = candidate("X", "", "Y")
    # Force the match the way detection would report it for a shared id
    detection = detect_duplicates([replace(match_input, source="old")], [existing])
    match = replace(detection.duplicates[0], candidate=match_input)

    result = await resolve([match], _request("override", existing.id), [], store)

    updated = store.terms[existing.id]
    assert result.overridden == 1
    assert updated.source == "X"
    assert updated.target_a == "ExistingMY"
    assert updated.target_b == "Y"
    assert updated.category == "Brand"
    assert updated.remark == "keep me"
    assert store.updates == [(existing.id, {"source": "X", "target_b": "Y"})]


@pytest.mark.asyncio
async def test_override_copies_category_and_remark(make_term, candidate):
    existing = make_term("Loan", "Pinjaman", category="General")
    store = InMemoryTermStore([existing])
    detection = detect_duplicates(
        [candidate("loan", "", "贷款", category="Product", remark="from import")],
        [existing],
    )

    await resolve(detection.duplicates, _request("override", existing.id), [], store)

    updated = store.terms[existing.id]
    assert updated.source == "loan"
    assert updated.target_a == "Pinjaman"
    assert updated.target_b == "贷款"
    assert updated.category == "Product"
    assert updated.remark == "from import"


@pytest.mark.asyncio
async def test_ignore_writes_nothing(make_term, candidate):
    existing = make_term("Loan", "Pinjaman")
    store = InMemoryTermStore([existing])
    detection = detect_duplicates([candidate("Loan", "Kredit")], [existing])

    result = await resolve(detection.duplicates, _request("ignore", existing.id), [], store)

    assert result.ignored == 1
    assert result.overridden == 0
    assert store.updates == []
    assert store.terms[existing.id] == existing


@pytest.mark.asyncio
async def test_unselected_duplicates_are_untouched(make_term, candidate):
    terms = [make_term("A"), make_term("B"), make_term("C")]
    store = InMemoryTermStore(terms)
    detection = detect_duplicates(
        [candidate("a", "x"), candidate("b", "y"), candidate("c", "z")], terms
    )
    assert len(detection.duplicates) == 3

    result = await resolve(detection.duplicates, _request("override", terms[0].id), [], store)

    assert result.overridden == 1
    assert result.ignored == 0
    assert store.terms[terms[1].id] == terms[1]
    assert store.terms[terms[2].id] == terms[2]
    assert [u[0] for u in store.updates] == [terms[0].id]


@pytest.mark.asyncio
async def test_unselected_duplicates_not_counted_as_ignored(make_term, candidate):
    terms = [make_term("A"), make_term("B"), make_term("C")]
    store = InMemoryTermStore(terms)
    detection = detect_duplicates([candidate("a"), candidate("b"), candidate("c")], terms)

    result = await resolve(detection.duplicates, _request("ignore", terms[2].id), [], store)

    assert result.ignored == 1
    assert result.overridden == 0


@pytest.mark.asyncio
async def test_uniques_inserted_whatever_the_duplicate_outcome(make_term, candidate):
    existing = make_term("Loan")
    store = InMemoryTermStore([existing])
    detection = detect_duplicates(
        [candidate("Loan"), candidate("Bank"), candidate("Credit", category="Product")],
        [existing],
    )

    result = await resolve(detection.duplicates, _request("ignore"), detection.uniques, store)

    assert result.inserted == len(detection.uniques) == 2
    assert result.ignored == 0
    inserted = {t.source: t for t in result.inserted_terms}
    assert inserted["Bank"].category == "General"
    assert inserted["Credit"].category == "Product"
    assert all(t.status.value == "draft" for t in inserted.values())


@pytest.mark.asyncio
async def test_conflict_does_not_stop_the_batch(make_term, candidate):
    terms = [make_term("A"), make_term("B")]
    store = InMemoryTermStore(terms)
    store.fail_on[terms[0].id] = ConflictError("concurrent edit")
    detection = detect_duplicates(
        [candidate("a", "x"), candidate("b", "y"), candidate("New")], terms
    )

    result = await resolve(
        detection.duplicates,
        _request("override", terms[0].id, terms[1].id),
        detection.uniques,
        store,
    )

    assert result.overridden == 1
    assert result.inserted == 1
    assert result.failed == 1
    failure = result.failures[0]
    assert failure.kind is ErrorKind.CONFLICT
    assert failure.operation == "update"
    assert failure.term_id == terms[0].id
    assert store.terms[terms[1].id].target_a == "y"


@pytest.mark.asyncio
async def test_insert_conflict_reported_per_item(candidate):
    store = InMemoryTermStore()
    uniques = [candidate("Bank"), candidate("Bank"), candidate("Loan")]

    result = await resolve([], _request("override"), uniques, store)

    assert result.inserted == 2
    assert [f.kind for f in result.failures] == [ErrorKind.CONFLICT]
    assert result.failures[0].operation == "insert"


@pytest.mark.asyncio
async def test_store_unavailable_is_reported_not_raised(candidate):
    store = InMemoryTermStore()
    store.fail_on["Bank"] = StoreUnavailableError("connection refused")
    store.fail_on["Loan"] = RuntimeError("socket closed")

    result = await resolve([], _request("ignore"), [candidate("Bank"), candidate("Loan")], store)

    assert result.inserted == 0
    assert {f.kind for f in result.failures} == {ErrorKind.STORE_UNAVAILABLE}
    assert result.failed == 2


@pytest.mark.asyncio
async def test_selected_ids_outside_duplicates_are_skipped(make_term, candidate):
    existing = make_term("Loan")
    store = InMemoryTermStore([existing])
    detection = detect_duplicates([candidate("loan", "x")], [existing])

    result = await resolve(
        detection.duplicates, _request("override", existing.id, "not-a-duplicate"), [], store
    )

    assert result.overridden == 1
    assert result.skipped == 1


@pytest.mark.asyncio
async def test_one_write_per_existing_term(make_term, candidate):
    existing = make_term("Apple")
    store = InMemoryTermStore([existing])
    detection = detect_duplicates([candidate("apple", "Epal"), candidate("APPLE", "Apel")], [existing])
    assert [d.existing.id for d in detection.duplicates] == [existing.id, existing.id]

    result = await resolve(detection.duplicates, _request("override", existing.id), [], store)

    assert result.overridden == 1
    assert result.skipped == 1
    assert len(store.updates) == 1
    assert store.terms[existing.id].target_a == "Epal"


@pytest.mark.asyncio
async def test_uniques_without_source_are_skipped(candidate):
    store = InMemoryTermStore()
    result = await resolve([], _request("ignore"), [candidate(""), candidate("Bank")], store)
    assert result.inserted == 1
    assert result.skipped == 1


@pytest.mark.asyncio
async def test_writes_respect_concurrency_limit(candidate):
    store = InMemoryTermStore()
    uniques = [candidate(f"term {i}") for i in range(10)]

    result = await resolve([], _request("ignore"), uniques, store, concurrency=3)

    assert result.inserted == 10
    assert 1 < store.max_in_flight <= 3


@pytest.mark.asyncio
async def test_invalid_arguments_raise(candidate):
    store = InMemoryTermStore()
    with pytest.raises(InvalidInputError):
        await resolve(None, _request("ignore"), [], store)
    with pytest.raises(InvalidInputError):
        await resolve([], None, [], store)
    with pytest.raises(InvalidInputError):
        await resolve([], ResolutionRequest(action="merge"), [], store)


@pytest.mark.asyncio
async def test_ignore_counts_repeated_matches_as_ignored(make_term, candidate):
    existing = make_term("Apple")
    store = InMemoryTermStore([existing])
    detection = detect_duplicates([candidate("apple"), candidate("APPLE", "Epal")], [existing])

    result = await resolve(detection.duplicates, _request("ignore", existing.id), [], store)

    assert result.ignored == 2
    assert result.skipped == 0
