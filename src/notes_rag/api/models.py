"""
API Models

This module defines all Pydantic models used for request/response validation
across indexing, search, related-notes, chat and suggestion endpoints.

Design Goals
------------
- Strong typing
- Safe defaults (no shared mutable state)
- camelCase on the wire (``documentId``), snake_case in Python
- Explicit result contracts shared by the retrieval layer and the routes
"""

from __future__ import annotations

from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, Field, ConfigDict, field_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# ---------------------------------------------------------------------
# Retrieval Result Contracts (Authoritative)
# ---------------------------------------------------------------------

class NoteSearchResult(_WireModel):
    """
    Canonical ranked-note result.
    This model defines the exact output contract for:
        - retrieval/search.py
        - retrieval/related.py
        - API search and related routes
    """
    note_id: str = Field(..., min_length=1, alias="documentId")
    title: str
    preview: str = ""
    similarity: float


class ChatSource(_WireModel):
    """
    A note used to ground a chat answer.
    """
    note_id: str = Field(..., min_length=1, alias="documentId")
    title: str


class OperationResult(BaseModel):
    """
    Standardized mutation operation result.
    """
    status: Literal["updated", "deleted", "queued", "ok"]
    count: Optional[int] = Field(default=None, ge=0)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Index Models
# ---------------------------------------------------------------------

class IndexNoteRequest(_WireModel):
    """
    Request to (re)index, schedule or drop a note's chunk set.
    """
    note_id: str = Field(..., min_length=1, alias="documentId")


class IndexStatsResponse(BaseModel):
    """
    Chunk statistics for the requesting owner.
    """
    total_chunks: int = Field(..., ge=0)
    total_notes: int = Field(..., ge=0)
    embedding_model: str

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Search Models
# ---------------------------------------------------------------------

class SearchRequest(_WireModel):
    """
    Semantic search request.
    """
    query: str
    limit: int = Field(default=20, ge=1, le=100)


class SearchResponse(BaseModel):
    results: List[NoteSearchResult] = Field(default_factory=list)


class RelatedRequest(_WireModel):
    """
    Related-notes request.
    """
    note_id: str = Field(..., min_length=1, alias="documentId")
    limit: int = Field(default=5, ge=1, le=50)


# ---------------------------------------------------------------------
# Chat Models
# ---------------------------------------------------------------------

class ChatTurn(_WireModel):
    """
    Single prior turn in a chat conversation.
    """
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class ChatRequest(_WireModel):
    """
    RAG chat request payload.
    """
    query: str = Field(..., min_length=1)
    note_id: Optional[str] = Field(default=None, alias="documentId")
    conversation_history: List[ChatTurn] = Field(
        default_factory=list,
        alias="conversationHistory",
    )

    @field_validator("query")
    @classmethod
    def strip_query(cls, v: str) -> str:
        """Reject blank questions; surrounding whitespace is dropped."""
        v = v.strip()
        if not v:
            raise ValueError("query must not be blank")
        return v


# ---------------------------------------------------------------------
# Suggestion Models
# ---------------------------------------------------------------------

class SuggestRequest(_WireModel):
    """
    Request for AI title / tag suggestions for a note.
    """
    note_id: str = Field(..., min_length=1, alias="documentId")
    mode: Literal["title", "tags", "both"] = "both"


class SuggestResponse(BaseModel):
    title: Optional[str] = None
    tags: Optional[List[str]] = None

    model_config = ConfigDict(extra="forbid")
