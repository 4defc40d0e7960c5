from unittest.mock import AsyncMock

import pytest

from conftest import OTHER_OWNER, OWNER, unit
from notes_rag.config import settings
from notes_rag.core.errors import VectorSearchUnavailableError
from notes_rag.embeddings.models import ChunkRecord, NoteRecord
from notes_rag.embeddings.store import VectorStore
from notes_rag.retrieval.search import rank_by_note, semantic_search


async def _index(store, owner, note_id, vectors, title=None, text=None):
    store.upsert_note(owner, note_id, title=title, content_text=text)
    await store.replace_note_chunks(
        owner,
        note_id,
        [
            ChunkRecord(chunk_index=i, content=f"{note_id}-{i}", token_count=1, embedding=v)
            for i, v in enumerate(vectors)
        ],
    )


@pytest.fixture
async def populated(store):
    await _index(store, OWNER, "garden", [unit(1.0, 0.0), unit(1.0, 1.0)], title="Garden", text="Tomatoes " * 50)
    await _index(store, OWNER, "books", [unit(1.0, 2.0)], title=None, text="Reading list")
    await _index(store, OWNER, "taxes", [unit(0.0, 1.0)], title="Taxes", text="Receipts")
    await _index(store, OTHER_OWNER, "spy", [unit(1.0)], title="Not yours", text="secret")
    return store


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", " ", "a", " b "])
async def test_short_query_returns_nothing_without_embedding(populated, mock_embedder, query):
    results = await semantic_search(OWNER, query, populated, mock_embedder)

    assert results == []
    mock_embedder.embed_query.assert_not_awaited()


@pytest.mark.asyncio
async def test_results_ranked_and_deduplicated_by_note(populated, mock_embedder):
    results = await semantic_search(OWNER, "  tomato plants  ", populated, mock_embedder)

    mock_embedder.embed_query.assert_awaited_once_with("tomato plants")
    assert [r.note_id for r in results] == ["garden", "books"]
    assert results[0].similarity == pytest.approx(1.0)
    assert results[0].similarity > results[1].similarity


@pytest.mark.asyncio
async def test_other_owners_notes_never_returned(populated, mock_embedder):
    results = await semantic_search(OWNER, "anything", populated, mock_embedder, threshold=-1.0)

    assert "spy" not in {r.note_id for r in results}
    assert len(results) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "threshold, expected",
    [
        (0.9, ["garden"]),
        (0.4, ["garden", "books"]),
        (-1.0, ["garden", "books", "taxes"]),
    ],
)
async def test_threshold_is_respected(populated, mock_embedder, threshold, expected):
    results = await semantic_search(OWNER, "query", populated, mock_embedder, threshold=threshold)

    assert [r.note_id for r in results] == expected
    assert all(r.similarity >= threshold for r in results)


@pytest.mark.asyncio
async def test_limit_truncates(populated, mock_embedder):
    results = await semantic_search(OWNER, "query", populated, mock_embedder, limit=1, threshold=-1.0)
    assert [r.note_id for r in results] == ["garden"]


@pytest.mark.asyncio
async def test_preview_and_untitled_fallback(populated, mock_embedder):
    results = await semantic_search(OWNER, "query", populated, mock_embedder)

    garden, books = results
    assert garden.preview == ("Tomatoes " * 50)[: settings.search_preview_chars]
    assert books.title == "Untitled"


def test_rank_by_note_keeps_best_chunk():
    from notes_rag.embeddings.models import ChunkMatch

    matches = [
        ChunkMatch(note_id="a", chunk_index=0, content="x", similarity=0.4),
        ChunkMatch(note_id="a", chunk_index=1, content="y", similarity=0.9),
        ChunkMatch(note_id="b", chunk_index=0, content="z", similarity=0.6),
    ]

    ranked = rank_by_note(matches, limit=10, preview_chars=10)

    assert [(r.note_id, r.similarity) for r in ranked] == [("a", 0.9), ("b", 0.6)]


@pytest.fixture
def unavailable_store():
    mock = AsyncMock(spec=VectorStore)
    mock.search_chunks.side_effect = VectorSearchUnavailableError("vector extension missing")
    mock.indexed_notes.return_value = [
        NoteRecord(note_id="n1", owner_id=OWNER, title="One", content_text="first note"),
    ]
    return mock


@pytest.mark.asyncio
async def test_unavailable_search_raises_by_default(unavailable_store, mock_embedder):
    with pytest.raises(VectorSearchUnavailableError):
        await semantic_search(OWNER, "query", unavailable_store, mock_embedder)
    unavailable_store.indexed_notes.assert_not_awaited()


@pytest.mark.asyncio
async def test_unavailable_search_falls_back_when_enabled(unavailable_store, mock_embedder, monkeypatch):
    monkeypatch.setattr(settings, "semantic_search_fallback", True)
    monkeypatch.setattr(settings, "search_fallback_similarity", 0.25)

    results = await semantic_search(OWNER, "query", unavailable_store, mock_embedder)

    assert [r.note_id for r in results] == ["n1"]
    assert results[0].similarity == 0.25
