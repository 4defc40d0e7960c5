"""
Note Indexer

Keeps a note's chunk set consistent with its current content.

Workflow
--------
1. Fetch the note's title and plain text (owner-scoped).
2. Chunk it with the title prepended.
3. Embed every chunk in one logical batch.
4. Replace the note's entire chunk set and commit.

Re-indexing is all-or-nothing: if embedding fails, step 4 never runs and the
previous chunk set stays in place. The indexer holds no state between calls;
debouncing and change detection belong to the caller (see ``scheduler``).
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from .chunker import prepare_note_chunks
from .embedder import Embedder
from .models import ChunkRecord
from .store import VectorStore
from ..config import settings
from ..core.errors import NoteNotFoundError

logger = logging.getLogger("notes_rag.indexer")


class IndexResult(NamedTuple):
    """Outcome of a single index run."""
    note_id: str
    chunk_count: int
    model: str


class NoteIndexer:
    """
    Stateless orchestration of chunk -> embed -> replace for one note.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: Embedder,
        max_chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
        min_chunk_size: Optional[int] = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._max_chunk_size = max_chunk_size or settings.chunk_max_size
        self._overlap = settings.chunk_overlap if overlap is None else overlap
        self._min_chunk_size = (
            settings.chunk_min_size if min_chunk_size is None else min_chunk_size
        )

    async def index_note(self, owner_id: str, note_id: str) -> IndexResult:
        """
        Re-chunk and re-embed a note, replacing its prior chunk set.

        Raises
        ------
        NoteNotFoundError
            If the note does not exist for this owner or is soft-deleted.
        EmbeddingError
            If the provider fails. The stored chunk set is left untouched.
        """
        note = await self._store.get_note(owner_id, note_id)
        if note is None:
            raise NoteNotFoundError(f"Note {note_id} not found.")

        text_chunks = prepare_note_chunks(
            note.title,
            note.content_text,
            max_chunk_size=self._max_chunk_size,
            overlap=self._overlap,
            min_chunk_size=self._min_chunk_size,
        )

        model = self._embedder.model

        if not text_chunks:
            removed = await self._store.delete_note_chunks(owner_id, note_id)
            await self._store.commit()
            logger.info(
                "Note %s has no indexable content; removed %d chunk(s)",
                note_id,
                removed,
            )
            return IndexResult(note_id=note_id, chunk_count=0, model=model)

        # Must complete before the store is touched
        embeddings = await self._embedder.embed([c.content for c in text_chunks])

        records = [
            ChunkRecord(
                chunk_index=chunk.index,
                content=chunk.content,
                token_count=chunk.token_count,
                embedding=embedding,
                metadata={"model": model},
            )
            for chunk, embedding in zip(text_chunks, embeddings)
        ]

        count = await self._store.replace_note_chunks(owner_id, note_id, records)
        await self._store.commit()

        logger.info("Indexed note %s: %d chunk(s) with %s", note_id, count, model)
        return IndexResult(note_id=note_id, chunk_count=count, model=model)

    async def remove_note(self, owner_id: str, note_id: str) -> int:
        """
        Drop a note's chunk set. Returns the number of chunks removed.
        """
        count = await self._store.delete_note_chunks(owner_id, note_id)
        await self._store.commit()
        logger.info("Removed %d chunk(s) for note %s", count, note_id)
        return count
