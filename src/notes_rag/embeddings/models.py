"""
Embedding Data Models

This module defines the canonical records exchanged with a vector store.

- ``NoteRecord``: the read-only view of a note the retrieval core needs.
- ``ChunkRecord``: one embedded chunk, ready to be written.
- ``ChunkMatch``: one chunk hit from a similarity search, joined with its note.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict


class NoteRecord(BaseModel):
    """
    Plain-text view of a note.

    The rich content tree is never part of this record: retrieval works on
    the derived ``content_text`` only.
    """

    note_id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    title: Optional[str] = None
    content_text: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class ChunkRecord(BaseModel):
    """
    A single embedded chunk of a note.

    Each instance corresponds to ONE embedding vector and ONE slice of text.
    Chunk sets are always written as a whole; a record is never edited.
    """

    chunk_index: int = Field(..., ge=0)
    content: str = Field(..., min_length=1)
    token_count: int = Field(..., ge=0)
    embedding: List[float] = Field(..., min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, extra="forbid")


class ChunkMatch(BaseModel):
    """
    A chunk returned by a similarity search, joined with its owning note.
    """

    note_id: str
    chunk_index: int
    content: str
    title: Optional[str] = None
    note_text: Optional[str] = None
    similarity: float

    model_config = ConfigDict(frozen=True, extra="forbid")
