from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ResumeLockRegistry:
    """One asyncio lock per resume id; serialises status transitions in-process."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._holders: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, resume_id: int) -> AsyncIterator[None]:
        lock = self._locks.get(resume_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[resume_id] = lock
        self._holders[resume_id] = self._holders.get(resume_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._holders[resume_id] - 1
            if remaining:
                self._holders[resume_id] = remaining
            else:
                del self._holders[resume_id]
                self._locks.pop(resume_id, None)
