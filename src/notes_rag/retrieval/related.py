"""
Related Notes

"More like this" for a single note: other notes by the same owner whose
content is close to the source note's opening chunks.

The operation has two paths that return the same result shape:

- Similarity path: search with the source note's first chunk embedding.
- Recency path: if the store reports similarity search as unavailable,
  return the owner's most recently updated other notes with a placeholder
  similarity. Availability wins over precision for this operation only.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .search import UNTITLED, rank_by_note
from ..api.models import NoteSearchResult
from ..config import settings
from ..core.errors import VectorSearchUnavailableError
from ..embeddings.store import VectorStore

logger = logging.getLogger("notes_rag.related")

# Candidates fetched per requested result, to leave room for deduplication
CANDIDATE_FACTOR = 2


async def _by_similarity(
    owner_id: str,
    note_id: str,
    source_vector: Sequence[float],
    store: VectorStore,
    limit: int,
    threshold: float,
) -> List[NoteSearchResult]:
    matches = await store.search_chunks(
        owner_id,
        source_vector,
        threshold=threshold,
        limit=limit * CANDIDATE_FACTOR,
        exclude_note_id=note_id,
    )
    return rank_by_note(matches, limit, settings.related_preview_chars)


async def _by_recency(
    owner_id: str,
    note_id: str,
    store: VectorStore,
    limit: int,
) -> List[NoteSearchResult]:
    notes = await store.recent_notes(owner_id, limit, exclude_note_id=note_id)
    return [
        NoteSearchResult(
            note_id=note.note_id,
            title=note.title or UNTITLED,
            preview=(note.content_text or "")[: settings.related_preview_chars],
            similarity=settings.related_fallback_similarity,
        )
        for note in notes
        if note.note_id != note_id
    ]


async def find_related_notes(
    owner_id: str,
    note_id: str,
    store: VectorStore,
    limit: Optional[int] = None,
    threshold: Optional[float] = None,
    source_chunks: Optional[int] = None,
) -> List[NoteSearchResult]:
    """
    Return notes similar to ``note_id``, never including ``note_id`` itself.

    A note without embedded chunks yields an empty list: it has not been
    indexed yet, which is not an error.

    Parameters
    ----------
    owner_id : str
        Requesting owner; both the source and the candidates are scoped to it.
    note_id : str
        Source note.
    limit : Optional[int]
        Maximum results. Defaults to settings.related_default_limit.
    threshold : Optional[float]
        Minimum similarity. Defaults to settings.related_threshold.
    source_chunks : Optional[int]
        How many leading chunks to read as representatives.

    Returns
    -------
    List[NoteSearchResult]
        Ranked by similarity, or recency-ordered on the fallback path.
    """
    limit = limit or settings.related_default_limit
    threshold = settings.related_threshold if threshold is None else threshold
    source_chunks = source_chunks or settings.related_source_chunks

    vectors = await store.get_note_embeddings(owner_id, note_id, source_chunks)
    if not vectors:
        logger.info("Note %s has no embedded chunks; no related notes", note_id)
        return []

    try:
        results = await _by_similarity(
            owner_id, note_id, vectors[0], store, limit, threshold
        )
    except VectorSearchUnavailableError:
        logger.warning(
            "Similarity search unavailable for related notes; using recency"
        )
        results = await _by_recency(owner_id, note_id, store, limit)

    return results
