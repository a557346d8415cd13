"""Per-entity asyncio locks serializing read-validate-write-audit sequences."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import structlog

from purchasing.errors import Conflict

logger = structlog.get_logger()


class EntityLocks:
    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._waiters: dict[tuple[str, str], int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, entity_type: str, entity_id: Any):
        key = (entity_type, str(entity_id))
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "entity_lock_timeout",
                    entity_type=entity_type,
                    entity_id=str(entity_id),
                    timeout=self.timeout,
                )
                raise Conflict(
                    f"Timed out waiting for {entity_type} {entity_id}; retry",
                    details={"entity_type": entity_type, "entity_id": str(entity_id)},
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                del self._locks[key]
