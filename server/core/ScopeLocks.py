import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ScopeLocks:
    """Per-page locks serializing index syncs whose scopes overlap.

    A sync holds the lock of every page in its scope. Locks are taken in
    sorted id order so two overlapping scopes cannot deadlock, and a lock is
    dropped again once no sync holds or waits for it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, document_ids: list[str]) -> AsyncIterator[None]:
        ids = sorted(set(document_ids))
        for document_id in ids:
            self._users[document_id] = self._users.get(document_id, 0) + 1
            self._locks.setdefault(document_id, asyncio.Lock())

        acquired: list[str] = []
        try:
            for document_id in ids:
                await self._locks[document_id].acquire()
                acquired.append(document_id)
            yield
        finally:
            for document_id in reversed(acquired):
                self._locks[document_id].release()
            for document_id in ids:
                self._users[document_id] -= 1
                if not self._users[document_id]:
                    del self._users[document_id]
                    del self._locks[document_id]
