"""
Database Session Management

Async SQLAlchemy engine and unit-of-work sessions for the notes database.

The notes tables are owned by the notes backend; this service reads notes and
tags and writes only ``note_chunks``. One session is one transaction: it is
committed when the unit of work finishes cleanly and rolled back otherwise.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)

from ..config import settings


# Engine creation does not connect; the pool opens lazily on first use
async_engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    Open a session for one unit of work.

    Usage:
        async with session_scope() as session:
            store = PgVectorStore(session)
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Close pooled connections at shutdown."""
    await async_engine.dispose()
