"""Per-aggregate asyncio locks.

Operations on one negotiation, one contract or one checkout session are
serialized while operations on different aggregates run concurrently.
Lock objects are created on first use and dropped once no task holds or
waits on them.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

NEGOTIATION = "negotiation"
CONTRACT = "contract"
CHECKOUT = "checkout"


class AggregateLocks:
    """Registry of ``asyncio.Lock`` objects keyed by ``(kind, aggregate_id)``.

    Usage::

        async with locks.hold(CONTRACT, contract_id):
            ...  # read snapshot, call out, write guarded update

    When two locks are needed, take the contract lock before the
    negotiation lock.
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._users: dict[tuple[str, str], int] = {}

    @asynccontextmanager
    async def hold(self, kind: str, aggregate_id: str) -> AsyncIterator[None]:
        key = (kind, aggregate_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
