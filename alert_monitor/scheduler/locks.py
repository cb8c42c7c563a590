import asyncio
from typing import Dict


class TagLocks:
    """One ``asyncio.Lock`` per endpoint tag, created on first use."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, tag: str) -> asyncio.Lock:
        lock = self._locks.get(tag)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[tag] = lock
        return lock

    def discard(self, tag: str) -> None:
        lock = self._locks.get(tag)
        if lock is not None and not lock.locked():
            del self._locks[tag]
