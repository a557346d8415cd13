"""
Unit tests for purchasing/services/locks.py

Tests: same-entity serialization, independent entities, bounded wait
surfacing as Conflict, registry cleanup.
"""

import asyncio
import uuid

import pytest

from purchasing.errors import Conflict
from purchasing.services.locks import EntityLocks


@pytest.mark.asyncio
async def test_same_entity_is_serialized():
    locks = EntityLocks(timeout=1.0)
    entity_id = uuid.uuid4()
    events = []

    async def worker(name: str):
        async with locks.hold("purchase_order", entity_id):
            events.append(f"{name}:in")
            await asyncio.sleep(0.05)
            events.append(f"{name}:out")

    await asyncio.gather(worker("a"), worker("b"))

    assert events in (
        ["a:in", "a:out", "b:in", "b:out"],
        ["b:in", "b:out", "a:in", "a:out"],
    )


@pytest.mark.asyncio
async def test_different_entities_do_not_block():
    locks = EntityLocks(timeout=0.2)
    async with locks.hold("purchase_order", uuid.uuid4()):
        async with locks.hold("purchase_order", uuid.uuid4()):
            assert len(locks) == 2


@pytest.mark.asyncio
async def test_timeout_raises_conflict():
    locks = EntityLocks(timeout=0.05)
    entity_id = uuid.uuid4()

    async with locks.hold("change_request", entity_id):
        with pytest.raises(Conflict) as exc_info:
            async with locks.hold("change_request", entity_id):
                pass

    assert exc_info.value.retryable is True
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lock_released_on_error():
    locks = EntityLocks(timeout=0.1)
    entity_id = uuid.uuid4()

    with pytest.raises(RuntimeError):
        async with locks.hold("purchase_order", entity_id):
            raise RuntimeError("boom")

    async with locks.hold("purchase_order", entity_id):
        pass
    assert len(locks) == 0
