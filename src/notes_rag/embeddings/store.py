"""
Vector Store Contract

Every vector store backend implements this interface. Two properties are
part of the contract rather than of any one implementation:

- Owner scoping is mandatory. Every read and write takes the owner id and
  there is no un-scoped search, so one owner's query can never see another
  owner's notes.
- Chunk sets are replaced as a whole. ``replace_note_chunks`` swaps a note's
  entire chunk set in one step; overlapping replaces of the same note resolve
  as last-writer-wins, never as a mix of two sets.

Soft-deleted notes are invisible to every read.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from .models import ChunkMatch, ChunkRecord, NoteRecord


class VectorStore(ABC):
    """Abstract owner-scoped store of notes and their embedded chunks."""

    @abstractmethod
    async def get_note(self, owner_id: str, note_id: str) -> Optional[NoteRecord]:
        """Return the note if it exists, belongs to the owner and is not deleted."""

    @abstractmethod
    async def replace_note_chunks(
        self,
        owner_id: str,
        note_id: str,
        chunks: Sequence[ChunkRecord],
    ) -> int:
        """Replace the note's entire chunk set. Returns the number written."""

    @abstractmethod
    async def delete_note_chunks(self, owner_id: str, note_id: str) -> int:
        """Remove the note's chunk set. Returns the number removed."""

    @abstractmethod
    async def search_chunks(
        self,
        owner_id: str,
        query_embedding: Sequence[float],
        threshold: float,
        limit: int,
        exclude_note_id: Optional[str] = None,
        note_id: Optional[str] = None,
    ) -> List[ChunkMatch]:
        """
        Return the owner's chunks ranked by descending cosine similarity.

        Matches below ``threshold`` are dropped. ``exclude_note_id`` removes
        one note from the candidates; ``note_id`` restricts candidates to one
        note.

        Raises
        ------
        VectorSearchUnavailableError
            If similarity search itself is not available in the backend.
        """

    @abstractmethod
    async def get_note_embeddings(
        self,
        owner_id: str,
        note_id: str,
        limit: int,
    ) -> List[List[float]]:
        """Return embeddings of the note's first chunks, in chunk order."""

    @abstractmethod
    async def recent_notes(
        self,
        owner_id: str,
        limit: int,
        exclude_note_id: Optional[str] = None,
    ) -> List[NoteRecord]:
        """Return the owner's most recently updated notes."""

    @abstractmethod
    async def indexed_notes(self, owner_id: str, limit: int) -> List[NoteRecord]:
        """Return notes that have at least one chunk, in no particular order."""

    @abstractmethod
    async def get_tag_names(self, owner_id: str) -> List[str]:
        """Return the owner's tag names."""

    @abstractmethod
    async def get_stats(self, owner_id: str) -> dict:
        """Return ``{"total_chunks": int, "total_notes": int}`` for the owner."""

    async def commit(self) -> None:
        """Make pending writes durable. No-op for stores without transactions."""
