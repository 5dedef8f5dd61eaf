import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class UserLockRegistry:
    """One asyncio.Lock per user key; entries are dropped once nobody holds or waits on them"""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, key: object) -> bool:
        return key in self._locks

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        k = str(key)
        lock = self._locks.get(k)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[k] = lock
        self._refs[k] = self._refs.get(k, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._refs.get(k, 1) - 1
            if remaining <= 0:
                _ = self._refs.pop(k, None)
                _ = self._locks.pop(k, None)
            else:
                self._refs[k] = remaining
