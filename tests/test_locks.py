"""Tests for PathLocks."""

import asyncio

import pytest

from provider_registry.domain.paths import provider_path
from provider_registry.storage.locks import PathLocks


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    locks = PathLocks()
    key = provider_path("h", "n", "t")
    events = []

    async def worker(name):
        async with locks.hold(key):
            events.append(f"{name}-start")
            await asyncio.sleep(0.01)
            events.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert events in (
        ["a-start", "a-end", "b-start", "b-end"],
        ["b-start", "b-end", "a-start", "a-end"],
    )


@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    locks = PathLocks()
    both_inside = asyncio.Event()
    inside = 0

    async def worker(key):
        nonlocal inside
        async with locks.hold(key):
            inside += 1
            if inside == 2:
                both_inside.set()
            await asyncio.wait_for(both_inside.wait(), timeout=1)

    await asyncio.gather(worker(provider_path("h", "n", "a")), worker(provider_path("h", "n", "b")))
    assert both_inside.is_set()


@pytest.mark.asyncio
async def test_locks_are_released_and_dropped():
    locks = PathLocks()
    key = provider_path("h", "n", "t")

    async with locks.hold(key):
        assert locks.is_locked(key)
        assert len(locks) == 1

    assert not locks.is_locked(key)
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lock_released_on_error():
    locks = PathLocks()
    key = provider_path("h", "n", "t")

    with pytest.raises(RuntimeError):
        async with locks.hold(key):
            raise RuntimeError("boom")

    assert len(locks) == 0
    async with locks.hold(key):
        pass
