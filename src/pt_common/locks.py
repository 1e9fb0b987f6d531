"""In-process per-entity locks.

Multi-entity operations acquire every involved key in sorted order, so two
opposite-direction transfers between the same pair of entities cannot
deadlock. Cross-process exclusion is provided by `SELECT ... FOR UPDATE`
(also taken in sorted order) inside the repository layer; these locks keep
concurrent coroutines of one worker from racing on the same rows.

A key's lock only lives while some coroutine holds or waits on it.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0  # holders + waiters


class EntityLockManager:
    def __init__(self) -> None:
        self._locks: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def _hold(self, key: str) -> AsyncIterator[None]:
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _Entry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @asynccontextmanager
    async def acquire(self, *keys: str) -> AsyncIterator[None]:
        """Hold the locks for all keys (deduplicated, lexicographic order)."""
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self._hold(key))
            yield

    def is_locked(self, key: str) -> bool:
        entry = self._locks.get(key)
        return entry is not None and entry.lock.locked()


entity_locks = EntityLockManager()
