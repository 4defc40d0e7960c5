"""
SQLAlchemy Models

Defines the database schema touched by the retrieval engine:
- Notes (owned by the editing surface; read-only here)
- Note chunks (vector storage with pgvector; owned by the indexer)
- Tags (read-only context for note suggestions)
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from pgvector.sqlalchemy import Vector

from ..config import settings


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ---------------------------------------------------------------------
# Note Model
# ---------------------------------------------------------------------

class Note(Base):
    """
    A note owned by a user.

    ``content`` holds the editor's rich content tree and is never read by the
    retrieval core; ``content_text`` is the plain text derived from it on
    every content-changing write.
    """
    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    content_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("idx_notes_user_updated", "user_id", "updated_at"),
    )


# ---------------------------------------------------------------------
# Note Chunk Model
# ---------------------------------------------------------------------

class NoteChunk(Base):
    """
    Embedded slice of a note's plain text.

    ``user_id`` is denormalized from the note so similarity searches can
    filter by owner without a join.
    """
    __tablename__ = "note_chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    note_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    token_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # pgvector column; nullable until the chunk has been embedded
    embedding = Column(Vector(settings.embedding_dimensions), nullable=True)

    metadata_: Mapped[Optional[dict]] = mapped_column(
        "metadata",
        JSONB,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("note_id", "chunk_index", name="uq_note_chunk_index"),
        Index("idx_note_chunks_user", "user_id"),
        Index("idx_note_chunks_note", "note_id", "chunk_index"),
    )


# ---------------------------------------------------------------------
# Tag Model
# ---------------------------------------------------------------------

class Tag(Base):
    """
    A user-defined tag name.
    """
    __tablename__ = "tags"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_tag_user_name"),
    )
