"""Tests for the connection registry."""
from __future__ import annotations

import pytest

from relay.schemas.signaling import Role
from relay.services.registry import ConnectionNotFound, ConnectionRegistry, DuplicateRegistration


@pytest.mark.asyncio
async def test_role_is_kept_until_unregister():
    registry = ConnectionRegistry()

    await registry.register("p", Role.PRODUCER)
    await registry.register("c", Role.CONSUMER)

    assert await registry.role_of("p") is Role.PRODUCER
    assert await registry.role_of("c") is Role.CONSUMER

    assert await registry.unregister("p") is Role.PRODUCER
    with pytest.raises(ConnectionNotFound):
        await registry.role_of("p")


@pytest.mark.asyncio
async def test_duplicate_registration_is_rejected():
    registry = ConnectionRegistry()
    await registry.register("a", Role.CONSUMER)

    with pytest.raises(DuplicateRegistration):
        await registry.register("a", Role.PRODUCER)

    assert await registry.role_of("a") is Role.CONSUMER


@pytest.mark.asyncio
async def test_unregister_unknown_id_is_noop():
    registry = ConnectionRegistry()

    assert await registry.unregister("ghost") is None
    assert await registry.count() == 0


@pytest.mark.asyncio
async def test_role_snapshot_and_counts():
    registry = ConnectionRegistry()
    await registry.register("p1", Role.PRODUCER)
    await registry.register("p2", Role.PRODUCER)
    await registry.register("c1", Role.CONSUMER)

    snapshot = await registry.connections_with_role(Role.PRODUCER)
    await registry.unregister("p1")

    assert snapshot == {"p1", "p2"}
    assert await registry.connections_with_role(Role.PRODUCER) == {"p2"}
    assert await registry.count(Role.PRODUCER) == 1
    assert await registry.count(Role.CONSUMER) == 1
    assert await registry.count() == 2

    await registry.clear()
    assert await registry.count() == 0


@pytest.mark.asyncio
async def test_counts_returns_one_snapshot_per_role():
    registry = ConnectionRegistry()
    assert await registry.counts() == {}

    await registry.register("p", Role.PRODUCER)
    await registry.register("c1", Role.CONSUMER)
    await registry.register("c2", Role.CONSUMER)
    counts = await registry.counts()
    await registry.unregister("c2")

    assert counts[Role.PRODUCER] == 1
    assert counts[Role.CONSUMER] == 2
    assert sum(counts.values()) == 3
    assert (await registry.counts())[Role.CONSUMER] == 1
