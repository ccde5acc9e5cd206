import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Hashable, Tuple


class KeyedLockArena:
    """
    One asyncio.Lock per key, created on demand and dropped when unused.

    Sells on the same (client_id, symbol, exchange) serialize; different keys
    never contend. Several keys are always acquired in sorted order.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._holders: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _acquire_ref(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        return lock

    def _release_ref(self, key: Hashable) -> None:
        self._holders[key] -= 1
        if self._holders[key] == 0:
            del self._holders[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, *keys: Tuple):
        ordered = sorted(set(keys), key=repr)
        acquired = []
        try:
            for key in ordered:
                lock = self._acquire_ref(key)
                try:
                    await lock.acquire()
                except BaseException:
                    self._release_ref(key)
                    raise
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._release_ref(key)

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


def lot_key(client_id: int, symbol: str, exchange: str) -> Tuple[int, str, str]:
    return client_id, symbol.upper(), exchange.upper()
