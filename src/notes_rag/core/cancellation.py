"""
Cooperative cancellation for long-running streams.
"""

from __future__ import annotations

import asyncio


class CancellationToken:
    """
    A one-shot cancellation signal shared between a stream's producer and
    whoever may want to stop it (client disconnect watcher, tests, ...).
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()
