import anyio
import pytest

from lockable_storage.plugins.memory_provider.memory_provider import (
    MemoryLockingProvider,
    MemoryStorageProvider,
)

pytestmark = pytest.mark.anyio


async def test_storage_round_trip():
    provider = MemoryStorageProvider()

    await provider.write("hello", "a")
    assert await provider.read("a", "fallback") == "hello"

    await provider.delete("a")
    assert await provider.read("a", "fallback") == "fallback"
    assert not await provider.exists("a")


async def test_lease_expires():
    provider = MemoryLockingProvider(time_to_live_seconds=0.05)

    assert await provider.lock("a")
    assert not await provider.lock("a")

    await anyio.sleep(0.1)

    assert not await provider.is_locked("a")
    assert not await provider.unlock("a")
    assert await provider.lock("a")


async def test_concurrent_lock_has_single_winner():
    provider = MemoryLockingProvider()
    results: list[bool] = []

    async def contender() -> None:
        results.append(await provider.lock("a"))

    async with anyio.create_task_group() as tg:
        for _ in range(10):
            tg.start_soon(contender)

    assert results.count(True) == 1
