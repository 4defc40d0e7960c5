import pytest

from conftest import OTHER_OWNER, OWNER, ts, unit
from notes_rag.embeddings.models import ChunkRecord


def _chunk(index, vector, content=None):
    return ChunkRecord(
        chunk_index=index,
        content=content or f"chunk {index}",
        token_count=2,
        embedding=vector,
        metadata={"model": "test"},
    )


@pytest.mark.asyncio
async def test_search_is_scoped_to_owner(store):
    store.upsert_note(OWNER, "mine", title="Mine")
    store.upsert_note(OTHER_OWNER, "theirs", title="Theirs")
    await store.replace_note_chunks(OWNER, "mine", [_chunk(0, unit(1.0))])
    await store.replace_note_chunks(OTHER_OWNER, "theirs", [_chunk(0, unit(1.0))])

    matches = await store.search_chunks(OWNER, unit(1.0), threshold=0.0, limit=10)

    assert [m.note_id for m in matches] == ["mine"]
    assert matches[0].title == "Mine"
    assert matches[0].similarity == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_replace_ignores_notes_of_other_owners(store):
    store.upsert_note(OTHER_OWNER, "theirs")

    written = await store.replace_note_chunks(OWNER, "theirs", [_chunk(0, unit(1.0))])

    assert written == 0
    assert (await store.get_stats(OTHER_OWNER))["total_chunks"] == 0


@pytest.mark.asyncio
async def test_search_orders_by_similarity_and_applies_threshold(store):
    store.upsert_note(OWNER, "n1")
    await store.replace_note_chunks(
        OWNER,
        "n1",
        [
            _chunk(0, unit(1.0, 0.0)),
            _chunk(1, unit(1.0, 1.0)),
            _chunk(2, unit(0.0, 1.0)),
        ],
    )

    matches = await store.search_chunks(OWNER, unit(1.0), threshold=0.5, limit=10)

    assert [m.chunk_index for m in matches] == [0, 1]
    assert matches[0].similarity > matches[1].similarity


@pytest.mark.asyncio
async def test_search_filters_by_note_scope_and_exclusion(store):
    for nid in ("a", "b"):
        store.upsert_note(OWNER, nid)
        await store.replace_note_chunks(OWNER, nid, [_chunk(0, unit(1.0))])

    only_a = await store.search_chunks(OWNER, unit(1.0), threshold=0.0, limit=10, note_id="a")
    not_a = await store.search_chunks(OWNER, unit(1.0), threshold=0.0, limit=10, exclude_note_id="a")

    assert [m.note_id for m in only_a] == ["a"]
    assert [m.note_id for m in not_a] == ["b"]


@pytest.mark.asyncio
async def test_soft_deleted_notes_are_invisible(store):
    store.upsert_note(OWNER, "n1")
    await store.replace_note_chunks(OWNER, "n1", [_chunk(0, unit(1.0))])
    store.soft_delete_note("n1")

    assert await store.get_note(OWNER, "n1") is None
    assert await store.search_chunks(OWNER, unit(1.0), threshold=0.0, limit=10) == []
    assert await store.recent_notes(OWNER, limit=10) == []


@pytest.mark.asyncio
async def test_purge_removes_chunks(store):
    store.upsert_note(OWNER, "n1")
    await store.replace_note_chunks(OWNER, "n1", [_chunk(0, unit(1.0))])

    store.purge_note("n1")

    assert (await store.get_stats(OWNER)) == {"total_chunks": 0, "total_notes": 0}


@pytest.mark.asyncio
async def test_note_embeddings_come_back_in_chunk_order(store):
    store.upsert_note(OWNER, "n1")
    await store.replace_note_chunks(
        OWNER,
        "n1",
        [_chunk(2, unit(0.0, 0.0, 1.0)), _chunk(0, unit(1.0)), _chunk(1, unit(0.0, 1.0))],
    )

    vectors = await store.get_note_embeddings(OWNER, "n1", limit=2)

    assert vectors == [unit(1.0), unit(0.0, 1.0)]


@pytest.mark.asyncio
async def test_recent_notes_newest_first(store):
    store.upsert_note(OWNER, "old", updated_at=ts(60))
    store.upsert_note(OWNER, "new", updated_at=ts(1))
    store.upsert_note(OWNER, "mid", updated_at=ts(30))

    notes = await store.recent_notes(OWNER, limit=2, exclude_note_id="new")

    assert [n.note_id for n in notes] == ["mid", "old"]


@pytest.mark.asyncio
async def test_tag_names_sorted(store):
    store.set_tags(OWNER, ["work", "books", "garden"])
    assert await store.get_tag_names(OWNER) == ["books", "garden", "work"]
    assert await store.get_tag_names(OTHER_OWNER) == []
