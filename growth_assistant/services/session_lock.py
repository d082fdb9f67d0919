"""Per-user turn lock.

Messages for the same user are processed one at a time so two concurrent
turns never read the same last assistant turn. Different users never wait
on each other.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class UserTurnLock:
    def __init__(self) -> None:
        # Entries disappear once no turn holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    @asynccontextmanager
    async def acquire(self, user_id: str) -> AsyncIterator[None]:
        lock = self._lock_for(user_id)
        async with lock:
            yield

    def is_locked(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()
