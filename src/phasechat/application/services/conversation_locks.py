"""Per-conversation mutual exclusion."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

ConversationKey = tuple[str, str]


class ConversationLocks:
    """Registry of asyncio locks keyed by (owner_id, subject_id).

    Turns on the same conversation run one at a time in submission order;
    turns on different conversations never wait on each other. A lock is
    dropped from the registry once nobody holds or waits for it.
    """

    def __init__(self) -> None:
        self._locks: dict[ConversationKey, asyncio.Lock] = {}
        self._users: dict[ConversationKey, int] = {}

    @asynccontextmanager
    async def hold(self, owner_id: str, subject_id: str) -> AsyncGenerator[None, None]:
        """Hold the lock of one conversation.

        Args:
            owner_id: Owner ID.
            subject_id: Subject ID.
        """
        key = (owner_id, subject_id)
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

    def is_locked(self, owner_id: str, subject_id: str) -> bool:
        lock = self._locks.get((owner_id, subject_id))
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
