"""Блокировки на уровне аукциона"""
import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class AuctionLocks:
    """Один asyncio.Lock на аукцион: все изменения аукциона идут по очереди.

    Блокировка живет, пока ее держат или ждут; потом запись удаляется.
    """

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, auction_id: int) -> asyncio.Lock:
        lock = self._locks.get(auction_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[auction_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, auction_id: int):
        """Захватить блокировку аукциона на время операции"""
        lock = self.get(auction_id)
        self._users[auction_id] = self._users.get(auction_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[auction_id] -= 1
            if not self._users[auction_id]:
                del self._users[auction_id]
                del self._locks[auction_id]


# Общий реестр процесса
auction_locks = AuctionLocks()
