"""
In-Memory Vector Store

This module implements a process-local vector store backed by numpy. It keeps
notes and chunk sets in dictionaries and ranks by exact cosine similarity.

Key Properties
--------------
- Same owner-scoping and replace-as-a-whole semantics as the pgvector store
- Concurrency-safe (thread locking); a replace is a single dictionary swap
- Vectors are L2-normalized on write, so similarity is a dot product
- Used for local development (``VECTOR_BACKEND=memory``) and in tests
"""

from __future__ import annotations

from datetime import datetime, timezone
from threading import RLock
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .models import ChunkMatch, ChunkRecord, NoteRecord
from .store import VectorStore


class InMemoryVectorStore(VectorStore):
    """
    Process-local vector store.

    Notes are registered with ``upsert_note``; in production the notes table
    belongs to the editing surface and this store is not used.
    """

    def __init__(self) -> None:
        self._notes: Dict[str, NoteRecord] = {}
        self._deleted: set[str] = set()
        self._chunks: Dict[str, Tuple[str, List[ChunkRecord], np.ndarray]] = {}
        self._tags: Dict[str, List[str]] = {}
        self._lock = RLock()

    # ------------------------------------------------------------------
    # Note registration (editing-surface side)
    # ------------------------------------------------------------------

    def upsert_note(
        self,
        owner_id: str,
        note_id: str,
        title: Optional[str] = None,
        content_text: Optional[str] = None,
        updated_at: Optional[datetime] = None,
    ) -> NoteRecord:
        note = NoteRecord(
            note_id=note_id,
            owner_id=owner_id,
            title=title,
            content_text=content_text,
            updated_at=updated_at or datetime.now(timezone.utc),
        )
        with self._lock:
            self._notes[note_id] = note
            self._deleted.discard(note_id)
        return note

    def soft_delete_note(self, note_id: str) -> None:
        with self._lock:
            self._deleted.add(note_id)

    def purge_note(self, note_id: str) -> None:
        """Permanently delete a note; its chunks go with it."""
        with self._lock:
            self._notes.pop(note_id, None)
            self._deleted.discard(note_id)
            self._chunks.pop(note_id, None)

    def set_tags(self, owner_id: str, names: Sequence[str]) -> None:
        with self._lock:
            self._tags[owner_id] = list(names)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _visible_note(self, owner_id: str, note_id: str) -> Optional[NoteRecord]:
        note = self._notes.get(note_id)
        if note is None or note.owner_id != owner_id or note_id in self._deleted:
            return None
        return note

    @staticmethod
    def _normalize(vectors: np.ndarray) -> np.ndarray:
        norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
        norms[norms == 0] = 1.0
        return vectors / norms

    # ------------------------------------------------------------------
    # VectorStore API
    # ------------------------------------------------------------------

    async def get_note(self, owner_id: str, note_id: str) -> Optional[NoteRecord]:
        with self._lock:
            return self._visible_note(owner_id, note_id)

    async def replace_note_chunks(
        self,
        owner_id: str,
        note_id: str,
        chunks: Sequence[ChunkRecord],
    ) -> int:
        ordered = sorted(chunks, key=lambda c: c.chunk_index)

        if ordered:
            matrix = self._normalize(
                np.asarray([c.embedding for c in ordered], dtype="float32")
            )
        else:
            matrix = np.zeros((0, 0), dtype="float32")

        with self._lock:
            note = self._notes.get(note_id)
            if note is None or note.owner_id != owner_id:
                return 0

            if ordered:
                self._chunks[note_id] = (owner_id, ordered, matrix)
            else:
                self._chunks.pop(note_id, None)

        return len(ordered)

    async def delete_note_chunks(self, owner_id: str, note_id: str) -> int:
        with self._lock:
            entry = self._chunks.get(note_id)
            if entry is None or entry[0] != owner_id:
                return 0
            del self._chunks[note_id]
            return len(entry[1])

    async def get_note_embeddings(
        self,
        owner_id: str,
        note_id: str,
        limit: int,
    ) -> List[List[float]]:
        with self._lock:
            entry = self._chunks.get(note_id)
            if entry is None or entry[0] != owner_id:
                return []
            return [list(c.embedding) for c in entry[1][:limit]]

    async def search_chunks(
        self,
        owner_id: str,
        query_embedding: Sequence[float],
        threshold: float,
        limit: int,
        exclude_note_id: Optional[str] = None,
        note_id: Optional[str] = None,
    ) -> List[ChunkMatch]:
        query = self._normalize(np.asarray(query_embedding, dtype="float32"))
        matches: List[ChunkMatch] = []

        with self._lock:
            for chunk_note_id, (chunk_owner, records, matrix) in self._chunks.items():
                if chunk_owner != owner_id:
                    continue
                if exclude_note_id is not None and chunk_note_id == exclude_note_id:
                    continue
                if note_id is not None and chunk_note_id != note_id:
                    continue

                note = self._visible_note(owner_id, chunk_note_id)
                if note is None:
                    continue

                scores = matrix @ query
                for record, score in zip(records, scores):
                    similarity = float(score)
                    if similarity < threshold:
                        continue
                    matches.append(
                        ChunkMatch(
                            note_id=chunk_note_id,
                            chunk_index=record.chunk_index,
                            content=record.content,
                            title=note.title,
                            note_text=note.content_text,
                            similarity=similarity,
                        )
                    )

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    async def recent_notes(
        self,
        owner_id: str,
        limit: int,
        exclude_note_id: Optional[str] = None,
    ) -> List[NoteRecord]:
        with self._lock:
            notes = [
                n
                for n in self._notes.values()
                if n.owner_id == owner_id
                and n.note_id not in self._deleted
                and n.note_id != exclude_note_id
            ]

        epoch = datetime.min.replace(tzinfo=timezone.utc)
        notes.sort(key=lambda n: n.updated_at or epoch, reverse=True)
        return notes[:limit]

    async def indexed_notes(self, owner_id: str, limit: int) -> List[NoteRecord]:
        with self._lock:
            notes = [
                self._notes[nid]
                for nid, (chunk_owner, _, _) in self._chunks.items()
                if chunk_owner == owner_id and self._visible_note(owner_id, nid)
            ]
        return notes[:limit]

    async def get_tag_names(self, owner_id: str) -> List[str]:
        with self._lock:
            return sorted(self._tags.get(owner_id, []))

    async def get_stats(self, owner_id: str) -> dict:
        with self._lock:
            owned = [recs for owner, recs, _ in self._chunks.values() if owner == owner_id]
            return {
                "total_chunks": sum(len(recs) for recs in owned),
                "total_notes": len(owned),
            }
