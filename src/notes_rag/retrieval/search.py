"""
Semantic Search

Ranks the caller's own notes by semantic similarity to a free-text query.

Responsibilities
----------------
- Reject trivially short queries without calling the provider
- Embed the query with the indexing model
- Search the owner's chunks above a similarity threshold
- Collapse chunk hits to one result per note (best chunk wins)
- Return notes by descending similarity, truncated to the limit
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..api.models import NoteSearchResult
from ..config import settings
from ..embeddings.embedder import Embedder
from ..embeddings.models import ChunkMatch
from ..embeddings.store import VectorStore
from ..core.errors import VectorSearchUnavailableError

logger = logging.getLogger("notes_rag.search")

MIN_QUERY_LENGTH = 2
UNTITLED = "Untitled"


def is_query_too_short(query: Optional[str]) -> bool:
    return not query or len(query.strip()) < MIN_QUERY_LENGTH


def rank_by_note(
    matches: Iterable[ChunkMatch],
    limit: int,
    preview_chars: int,
) -> List[NoteSearchResult]:
    """
    Deduplicate chunk matches by note, keeping each note's best similarity,
    then sort descending and truncate.
    """
    best: Dict[str, NoteSearchResult] = {}

    for match in matches:
        existing = best.get(match.note_id)
        if existing is None or match.similarity > existing.similarity:
            best[match.note_id] = NoteSearchResult(
                note_id=match.note_id,
                title=match.title or UNTITLED,
                preview=(match.note_text or "")[:preview_chars],
                similarity=match.similarity,
            )

    ranked = sorted(best.values(), key=lambda r: r.similarity, reverse=True)
    return ranked[:limit]


async def semantic_search(
    owner_id: str,
    query: str,
    store: VectorStore,
    embedder: Embedder,
    limit: Optional[int] = None,
    threshold: Optional[float] = None,
) -> List[NoteSearchResult]:
    """
    Search the owner's notes by meaning.

    Parameters
    ----------
    owner_id : str
        Requesting owner. Only this owner's chunks are searched.
    query : str
        Free-text query; fewer than 2 characters after trimming yields [].
    limit : Optional[int]
        Maximum number of notes. Defaults to settings.search_default_limit.
    threshold : Optional[float]
        Minimum similarity. Defaults to settings.search_threshold.

    Returns
    -------
    List[NoteSearchResult]
        One result per note, ranked by descending similarity.

    Raises
    ------
    EmbeddingError
        If the query cannot be embedded.
    VectorSearchUnavailableError
        If the store cannot run similarity search and the recency fallback
        is disabled.
    """
    if is_query_too_short(query):
        return []

    limit = limit or settings.search_default_limit
    threshold = settings.search_threshold if threshold is None else threshold

    query_embedding = await embedder.embed_query(query.strip())

    try:
        matches = await store.search_chunks(
            owner_id,
            query_embedding,
            threshold=threshold,
            limit=limit,
        )
    except VectorSearchUnavailableError:
        if not settings.semantic_search_fallback:
            raise
        logger.warning("Similarity search unavailable; returning unranked notes")
        return await _unranked_fallback(owner_id, store, limit)

    results = rank_by_note(matches, limit, settings.search_preview_chars)
    logger.info("Semantic search returned %d note(s)", len(results))
    return results


async def _unranked_fallback(
    owner_id: str,
    store: VectorStore,
    limit: int,
) -> List[NoteSearchResult]:
    notes = await store.indexed_notes(owner_id, limit)
    return [
        NoteSearchResult(
            note_id=note.note_id,
            title=note.title or UNTITLED,
            preview=(note.content_text or "")[: settings.search_preview_chars],
            similarity=settings.search_fallback_similarity,
        )
        for note in notes
    ]
