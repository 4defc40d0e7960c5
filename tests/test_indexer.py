import pytest

from conftest import OTHER_OWNER, OWNER, unit
from notes_rag.core.errors import EmbeddingError, NoteNotFoundError
from notes_rag.embeddings.indexer import NoteIndexer


@pytest.fixture
def indexer(store, mock_embedder):
    return NoteIndexer(store, mock_embedder, max_chunk_size=500, overlap=100, min_chunk_size=50)


@pytest.mark.asyncio
async def test_index_note_embeds_every_chunk(store, mock_embedder, indexer):
    store.upsert_note(OWNER, "n1", content_text="a" * 1200)

    result = await indexer.index_note(OWNER, "n1")

    assert result.note_id == "n1"
    assert result.chunk_count == 3
    assert result.model == "test-embedding-model"
    mock_embedder.embed.assert_awaited_once()
    assert len(mock_embedder.embed.await_args.args[0]) == 3
    assert (await store.get_stats(OWNER)) == {"total_chunks": 3, "total_notes": 1}


@pytest.mark.asyncio
async def test_reindex_replaces_whole_chunk_set(store, indexer):
    store.upsert_note(OWNER, "n1", content_text="a" * 2000)
    first = await indexer.index_note(OWNER, "n1")
    assert first.chunk_count == 5

    store.upsert_note(OWNER, "n1", content_text="b" * 1200)
    second = await indexer.index_note(OWNER, "n1")

    assert second.chunk_count == 3
    vectors = await store.get_note_embeddings(OWNER, "n1", limit=10)
    assert len(vectors) == 3

    matches = await store.search_chunks(OWNER, unit(1.0), threshold=0.0, limit=10)
    assert sorted(m.chunk_index for m in matches) == [0, 1, 2]
    assert all(m.content.startswith("b") for m in matches)


@pytest.mark.asyncio
async def test_embedding_failure_keeps_previous_chunks(store, mock_embedder, indexer):
    store.upsert_note(OWNER, "n1", content_text="a" * 1200)
    await indexer.index_note(OWNER, "n1")

    store.upsert_note(OWNER, "n1", content_text="c" * 2000)
    mock_embedder.embed.side_effect = EmbeddingError("provider down")

    with pytest.raises(EmbeddingError):
        await indexer.index_note(OWNER, "n1")

    stats = await store.get_stats(OWNER)
    assert stats["total_chunks"] == 3


@pytest.mark.asyncio
async def test_missing_note_raises_not_found(indexer):
    with pytest.raises(NoteNotFoundError):
        await indexer.index_note(OWNER, "does-not-exist")


@pytest.mark.asyncio
async def test_other_owners_note_is_not_found(store, mock_embedder, indexer):
    store.upsert_note(OTHER_OWNER, "theirs", content_text="x" * 600)

    with pytest.raises(NoteNotFoundError):
        await indexer.index_note(OWNER, "theirs")
    mock_embedder.embed.assert_not_awaited()


@pytest.mark.asyncio
async def test_emptied_note_drops_its_chunks(store, mock_embedder, indexer):
    store.upsert_note(OWNER, "n1", content_text="a" * 1200)
    await indexer.index_note(OWNER, "n1")
    mock_embedder.embed.reset_mock()

    store.upsert_note(OWNER, "n1", content_text="   ")
    result = await indexer.index_note(OWNER, "n1")

    assert result.chunk_count == 0
    mock_embedder.embed.assert_not_awaited()
    assert (await store.get_stats(OWNER))["total_chunks"] == 0


@pytest.mark.asyncio
async def test_remove_note_reports_deleted_count(store, indexer):
    store.upsert_note(OWNER, "n1", content_text="a" * 1200)
    await indexer.index_note(OWNER, "n1")

    assert await indexer.remove_note(OWNER, "n1") == 3
    assert await indexer.remove_note(OWNER, "n1") == 0
