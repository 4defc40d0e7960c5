"""
Request Dependencies

Process-wide singletons (provider clients, the in-memory store, the index
scheduler) and the per-request vector store.
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncGenerator, AsyncIterator

from ..config import settings
from ..db import PgVectorStore, session_scope
from ..embeddings.embedder import Embedder
from ..embeddings.memory_store import InMemoryVectorStore
from ..embeddings.scheduler import IndexScheduler
from ..embeddings.store import VectorStore
from ..llm.client import LLMClient


@lru_cache
def get_llm_client() -> LLMClient:
    return LLMClient()


@lru_cache
def get_embedder() -> Embedder:
    return Embedder()


@lru_cache
def get_memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@asynccontextmanager
async def open_store() -> AsyncIterator[VectorStore]:
    """
    Open a vector store for one unit of work.

    For pgvector this is one database session, committed on success and
    rolled back on error. The in-memory store is process-wide.
    """
    if settings.vector_backend == "memory":
        yield get_memory_store()
        return

    async with session_scope() as session:
        yield PgVectorStore(session)


async def get_vector_store() -> AsyncGenerator[VectorStore, None]:
    async with open_store() as store:
        yield store


@lru_cache
def get_index_scheduler() -> IndexScheduler:
    return IndexScheduler(open_store, get_embedder())
