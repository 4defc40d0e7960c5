"""
Debounced index scheduling for notes that are being edited.

The editing surface saves often; re-embedding on every keystroke-driven save
would be wasteful. This scheduler sits on the caller's side of the indexer:

- One pending timer per note. A new change cancels and restarts it.
- Content that hashes the same as the last scheduled content is skipped.
- When a timer fires, the indexer runs in its own store session.
- Failures are logged and never reach the code that saved the note.
  Nothing is retried; the next real change schedules a fresh run.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections import OrderedDict
from typing import AsyncContextManager, Callable, Dict, List, Optional, Tuple

from .embedder import Embedder
from .indexer import NoteIndexer
from .store import VectorStore
from ..config import settings

logger = logging.getLogger("notes_rag.scheduler")

StoreFactory = Callable[[], AsyncContextManager[VectorStore]]

# Timers and fingerprints are owned by (owner_id, note_id)
NoteKey = Tuple[str, str]


def content_fingerprint(title: Optional[str], content_text: Optional[str]) -> str:
    """Stable digest of the indexable parts of a note."""
    digest = hashlib.sha256()
    digest.update((title or "").encode("utf-8"))
    digest.update(b"\x00")
    digest.update((content_text or "").encode("utf-8"))
    return digest.hexdigest()


class IndexScheduler:
    """
    Per-note debounce timers in front of a ``NoteIndexer``.

    Fingerprints of scheduled content are kept in a bounded LRU map; the
    oldest entries are evicted first, which at worst costs one redundant
    re-index.
    """

    def __init__(
        self,
        store_factory: StoreFactory,
        embedder: Embedder,
        debounce_seconds: Optional[float] = None,
        max_fingerprints: Optional[int] = None,
    ) -> None:
        self._store_factory = store_factory
        self._embedder = embedder
        self._debounce = (
            settings.index_debounce_seconds
            if debounce_seconds is None
            else debounce_seconds
        )
        self._max_fingerprints = max_fingerprints or settings.index_fingerprint_cache_size
        self._pending: Dict[NoteKey, asyncio.Task] = {}
        self._fingerprints: "OrderedDict[NoteKey, str]" = OrderedDict()

    def notify_changed(
        self,
        owner_id: str,
        note_id: str,
        content_text: Optional[str],
        title: Optional[str] = None,
    ) -> bool:
        """
        Record that a note was saved. Returns True if an index run was scheduled.

        Must be called from a running event loop.
        """
        key = (owner_id, note_id)
        fingerprint = content_fingerprint(title, content_text)
        if self._fingerprints.get(key) == fingerprint:
            self._fingerprints.move_to_end(key)
            logger.debug("Note %s unchanged since last schedule; skipping", note_id)
            return False

        self._cancel_task(key)
        self._remember(key, fingerprint)

        task = asyncio.create_task(self._run_after_delay(owner_id, note_id, fingerprint))
        self._pending[key] = task
        task.add_done_callback(lambda t: self._forget_task(key, t))

        logger.info("Index scheduled for note %s in %.1fs", note_id, self._debounce)
        return True

    def cancel(self, owner_id: str, note_id: str) -> bool:
        """
        Cancel a pending run for one of the owner's notes and forget its
        fingerprint, so the same content can be scheduled again.

        Returns True if a run was pending.
        """
        key = (owner_id, note_id)
        self._fingerprints.pop(key, None)
        return self._cancel_task(key)

    def pending(self, owner_id: Optional[str] = None) -> List[str]:
        """Return ids of notes with a pending run, optionally for one owner."""
        return [
            nid
            for (oid, nid), task in self._pending.items()
            if not task.done() and (owner_id is None or oid == owner_id)
        ]

    async def shutdown(self) -> None:
        """Cancel all pending runs and wait for them to unwind."""
        tasks = list(self._pending.values())
        self._pending.clear()
        self._fingerprints.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Index scheduler stopped (%d pending run(s) cancelled)", len(tasks))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _cancel_task(self, key: NoteKey) -> bool:
        task = self._pending.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def _remember(self, key: NoteKey, fingerprint: str) -> None:
        self._fingerprints[key] = fingerprint
        self._fingerprints.move_to_end(key)
        while len(self._fingerprints) > self._max_fingerprints:
            self._fingerprints.popitem(last=False)

    def _forget_task(self, key: NoteKey, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]

    async def _run_after_delay(self, owner_id: str, note_id: str, fingerprint: str) -> None:
        await asyncio.sleep(self._debounce)

        try:
            async with self._store_factory() as store:
                indexer = NoteIndexer(store, self._embedder)
                result = await indexer.index_note(owner_id, note_id)
            logger.info(
                "Background index finished for note %s (%d chunks)",
                note_id,
                result.chunk_count,
            )
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Background index failed for note %s", note_id)
            # Allow the next save of the same content to schedule again
            key = (owner_id, note_id)
            if self._fingerprints.get(key) == fingerprint:
                del self._fingerprints[key]
