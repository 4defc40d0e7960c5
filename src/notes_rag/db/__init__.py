"""
Database Package

Async session management, ORM models and the pgvector-backed store for
PostgreSQL.
"""

from .session import session_scope, dispose_engine, async_engine, AsyncSessionLocal
from .models import Base, Note, NoteChunk, Tag
from .vector_store import PgVectorStore

__all__ = [
    "session_scope",
    "dispose_engine",
    "async_engine",
    "AsyncSessionLocal",
    "Base",
    "Note",
    "NoteChunk",
    "Tag",
    "PgVectorStore",
]
