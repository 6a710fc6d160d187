from __future__ import annotations

import asyncio
from typing import Dict


class SessionLocks:
    """
    One asyncio.Lock per container id. Held by file writes and by finish()
    so that edits to a session are serialized and a finalize never overlaps
    an in-flight write.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def for_session(self, container_id: str) -> asyncio.Lock:
        lock = self._locks.get(container_id)
        if lock is None:
            lock = self._locks[container_id] = asyncio.Lock()
        return lock

    def discard(self, container_id: str) -> None:
        lock = self._locks.get(container_id)
        if lock is not None and not lock.locked():
            self._locks.pop(container_id, None)
