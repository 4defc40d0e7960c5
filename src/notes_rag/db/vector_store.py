"""
Vector Store

PostgreSQL + pgvector based chunk storage and similarity search.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Sequence

from sqlalchemy import select, delete, func, text
from sqlalchemy.exc import NotSupportedError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Note, NoteChunk, Tag
from ..core.errors import VectorSearchUnavailableError
from ..embeddings.models import ChunkMatch, ChunkRecord, NoteRecord
from ..embeddings.store import VectorStore

logger = logging.getLogger("notes_rag.vector_store")


def _as_uuid(value: str) -> Optional[uuid.UUID]:
    """Parse an identifier; malformed ids simply match nothing."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _to_record(note: Note) -> NoteRecord:
    return NoteRecord(
        note_id=str(note.id),
        owner_id=str(note.user_id),
        title=note.title,
        content_text=note.content_text,
        updated_at=note.updated_at,
    )


class PgVectorStore(VectorStore):
    """
    PostgreSQL-backed vector store using pgvector for similarity search.

    The store never commits on its own: callers decide the transaction
    boundary (``commit`` or the request-scoped session dependency).
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize with an async database session.

        Parameters
        ----------
        session : AsyncSession
            SQLAlchemy async session for database operations.
        """
        self._session = session

    async def commit(self) -> None:
        """
        Commit the current transaction.
        """
        await self._session.commit()

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def get_note(self, owner_id: str, note_id: str) -> Optional[NoteRecord]:
        owner, note = _as_uuid(owner_id), _as_uuid(note_id)
        if owner is None or note is None:
            return None

        stmt = select(Note).where(
            Note.id == note,
            Note.user_id == owner,
            Note.deleted_at.is_(None),
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        return _to_record(row) if row is not None else None

    async def recent_notes(
        self,
        owner_id: str,
        limit: int,
        exclude_note_id: Optional[str] = None,
    ) -> List[NoteRecord]:
        owner = _as_uuid(owner_id)
        if owner is None:
            return []

        stmt = (
            select(Note)
            .where(Note.user_id == owner, Note.deleted_at.is_(None))
            .order_by(Note.updated_at.desc())
            .limit(limit)
        )
        excluded = _as_uuid(exclude_note_id) if exclude_note_id else None
        if excluded is not None:
            stmt = stmt.where(Note.id != excluded)

        result = await self._session.execute(stmt)
        return [_to_record(n) for n in result.scalars().all()]

    async def indexed_notes(self, owner_id: str, limit: int) -> List[NoteRecord]:
        owner = _as_uuid(owner_id)
        if owner is None:
            return []

        indexed = select(NoteChunk.note_id).where(NoteChunk.user_id == owner)
        stmt = (
            select(Note)
            .where(
                Note.user_id == owner,
                Note.deleted_at.is_(None),
                Note.id.in_(indexed),
            )
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [_to_record(n) for n in result.scalars().all()]

    async def get_tag_names(self, owner_id: str) -> List[str]:
        owner = _as_uuid(owner_id)
        if owner is None:
            return []

        stmt = select(Tag.name).where(Tag.user_id == owner).order_by(Tag.name)
        result = await self._session.execute(stmt)
        return [row[0] for row in result.all()]

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def replace_note_chunks(
        self,
        owner_id: str,
        note_id: str,
        chunks: Sequence[ChunkRecord],
    ) -> int:
        """
        Delete the note's chunks and insert the new set in one transaction.

        A transaction-scoped advisory lock on the note serializes overlapping
        replaces of the same note, so the last writer's set wins intact.
        """
        owner, note = _as_uuid(owner_id), _as_uuid(note_id)
        if owner is None or note is None:
            return 0

        await self._session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:note_id))"),
            {"note_id": str(note)},
        )

        await self._session.execute(
            delete(NoteChunk).where(
                NoteChunk.note_id == note,
                NoteChunk.user_id == owner,
            )
        )

        for chunk in chunks:
            self._session.add(
                NoteChunk(
                    note_id=note,
                    user_id=owner,
                    chunk_index=chunk.chunk_index,
                    content=chunk.content,
                    token_count=chunk.token_count,
                    embedding=list(chunk.embedding),
                    metadata_=dict(chunk.metadata),
                )
            )

        await self._session.flush()
        return len(chunks)

    async def delete_note_chunks(self, owner_id: str, note_id: str) -> int:
        """
        Remove all chunks for a given note.

        Returns the number of deleted rows.
        """
        owner, note = _as_uuid(owner_id), _as_uuid(note_id)
        if owner is None or note is None:
            return 0

        stmt = delete(NoteChunk).where(
            NoteChunk.note_id == note,
            NoteChunk.user_id == owner,
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def get_note_embeddings(
        self,
        owner_id: str,
        note_id: str,
        limit: int,
    ) -> List[List[float]]:
        owner, note = _as_uuid(owner_id), _as_uuid(note_id)
        if owner is None or note is None:
            return []

        stmt = (
            select(NoteChunk.embedding)
            .where(
                NoteChunk.note_id == note,
                NoteChunk.user_id == owner,
                NoteChunk.embedding.is_not(None),
            )
            .order_by(NoteChunk.chunk_index)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [[float(x) for x in row[0]] for row in result.all()]

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
        Search the owner's chunks using cosine similarity.

        Uses pgvector's ``<=>`` operator; similarity is ``1 - distance``.
        """
        owner = _as_uuid(owner_id)
        if owner is None:
            return []

        cosine_distance = NoteChunk.embedding.cosine_distance(list(query_embedding))

        stmt = (
            select(
                NoteChunk.note_id,
                NoteChunk.chunk_index,
                NoteChunk.content,
                Note.title,
                Note.content_text,
                (1 - cosine_distance).label("similarity"),
            )
            .join(Note, Note.id == NoteChunk.note_id)
            .where(
                NoteChunk.user_id == owner,
                Note.user_id == owner,
                Note.deleted_at.is_(None),
                NoteChunk.embedding.is_not(None),
                (1 - cosine_distance) >= threshold,
            )
            .order_by(cosine_distance)
            .limit(limit)
        )

        if exclude_note_id:
            excluded = _as_uuid(exclude_note_id)
            if excluded is not None:
                stmt = stmt.where(NoteChunk.note_id != excluded)

        if note_id:
            scoped = _as_uuid(note_id)
            if scoped is None:
                return []
            stmt = stmt.where(NoteChunk.note_id == scoped)

        try:
            # Savepoint keeps the outer transaction usable after a failure
            async with self._session.begin_nested():
                result = await self._session.execute(stmt)
                rows = result.all()
        except (ProgrammingError, NotSupportedError) as exc:
            logger.error("Similarity search failed: %s", type(exc).__name__)
            raise VectorSearchUnavailableError(
                "Similarity search is unavailable."
            ) from exc

        return [
            ChunkMatch(
                note_id=str(row.note_id),
                chunk_index=row.chunk_index,
                content=row.content,
                title=row.title,
                note_text=row.content_text,
                similarity=float(row.similarity),
            )
            for row in rows
        ]

    async def get_stats(self, owner_id: str) -> dict:
        """
        Return chunk statistics for an owner.
        """
        owner = _as_uuid(owner_id)
        if owner is None:
            return {"total_chunks": 0, "total_notes": 0}

        total_stmt = select(func.count()).select_from(NoteChunk).where(
            NoteChunk.user_id == owner
        )
        total_result = await self._session.execute(total_stmt)
        total_chunks = total_result.scalar() or 0

        notes_stmt = select(func.count(func.distinct(NoteChunk.note_id))).where(
            NoteChunk.user_id == owner
        )
        notes_result = await self._session.execute(notes_stmt)
        total_notes = notes_result.scalar() or 0

        return {
            "total_chunks": total_chunks,
            "total_notes": total_notes,
        }
