"""Per-conversation serialization of pipeline runs."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class SessionLockRegistry:
    """
    One asyncio.Lock per conversation_id.

    Turns of the same conversation run one at a time; different
    conversations never wait on each other. A lock is dropped once no
    task holds or waits for it.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._refcounts: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = self._locks[conversation_id] = asyncio.Lock()
        self._refcounts[conversation_id] = self._refcounts.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._refcounts[conversation_id] -= 1
            if self._refcounts[conversation_id] == 0:
                del self._refcounts[conversation_id]
                del self._locks[conversation_id]

    def __len__(self) -> int:
        return len(self._locks)
