from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class LearnerLocks:
    """
    One ``asyncio.Lock`` per learner.

    Serializes read-modify-write operations of a single learner inside this
    process; different learners never wait on each other. Cross-process
    safety comes from the store's row lock and the card version column.

    A learner's lock is dropped once nobody holds or waits for it.
    """

    def __init__(self) -> None:
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, owner_id: int) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = self._locks[owner_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, owner_id: int) -> AsyncIterator[None]:
        lock = self.get(owner_id)
        self._users[owner_id] = self._users.get(owner_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[owner_id] -= 1
            if not self._users[owner_id]:
                del self._users[owner_id]
                self._locks.pop(owner_id, None)
