import dataclasses

import pytest

from lockable_storage.core.lockable_storage_manager import (
    BackendNotConfiguredError,
    LockableStorageManager,
)
from lockable_storage.core.locking_provider_base import LockAcquisitionError, LockingProviderProtocol
from lockable_storage.core.storage_provider_base import StorageProviderProtocol
from lockable_storage.plugins.memory_provider.memory_provider import (
    MemoryLockingProvider,
    MemoryStorageProvider,
)

pytestmark = pytest.mark.anyio


async def test_round_trip(memory_manager):
    assert not await memory_manager.exists("a.json")

    await memory_manager.write("data", "a.json")
    assert await memory_manager.exists("a.json")
    assert await memory_manager.read("a.json", "fallback") == "data"

    await memory_manager.delete("a.json")
    assert not await memory_manager.exists("a.json")
    assert await memory_manager.read("a.json", "fallback") == "fallback"


async def test_delete_never_written_path(memory_manager):
    await memory_manager.delete("never.json")


async def test_lock_lifecycle(memory_manager):
    assert not await memory_manager.is_locked("a.json")

    assert await memory_manager.lock("a.json")
    assert await memory_manager.is_locked("a.json")
    assert not await memory_manager.lock("a.json")

    assert await memory_manager.unlock("a.json")
    assert not await memory_manager.is_locked("a.json")
    assert await memory_manager.lock("a.json")


async def test_storage_calls_fail_without_storage_provider():
    manager = LockableStorageManager(locking_provider=MemoryLockingProvider())

    for call in (
        manager.write("data", "a.json"),
        manager.read("a.json", "fallback"),
        manager.delete("a.json"),
        manager.exists("a.json"),
    ):
        with pytest.raises(BackendNotConfiguredError) as exc_info:
            await call

        assert exc_info.value.backend == "storage"

    assert await manager.lock("a.json")
    assert await manager.is_locked("a.json")
    assert await manager.unlock("a.json")


async def test_locking_calls_fail_without_locking_provider():
    manager = LockableStorageManager(storage_provider=MemoryStorageProvider())

    for operation, call in (
        ("lock", manager.lock("a.json")),
        ("unlock", manager.unlock("a.json")),
        ("is_locked", manager.is_locked("a.json")),
    ):
        with pytest.raises(BackendNotConfiguredError) as exc_info:
            await call

        assert exc_info.value.operation == operation
        assert exc_info.value.backend == "locking"

    await manager.write("data", "a.json")
    assert await manager.read("a.json") == "data"


async def test_empty_manager_fails_everything():
    manager = LockableStorageManager()

    with pytest.raises(BackendNotConfiguredError):
        await manager.exists("a.json")

    with pytest.raises(BackendNotConfiguredError):
        await manager.is_locked("a.json")


async def test_write_ignores_locks_held_by_others(memory_manager):
    assert await memory_manager.lock("a.json")

    await memory_manager.write("data", "a.json")
    await memory_manager.delete("a.json")

    assert await memory_manager.is_locked("a.json")


async def test_any_caller_can_unlock():
    locking_provider = MemoryLockingProvider()
    first = LockableStorageManager(locking_provider=locking_provider)
    second = LockableStorageManager(locking_provider=locking_provider)

    assert await first.lock("a.json")
    assert not await second.lock("a.json")
    assert await second.unlock("a.json")
    assert not await first.is_locked("a.json")


async def test_acquire_lock_with_retries(memory_manager, recorded_waits):
    await memory_manager.acquire_lock("a.json")
    assert recorded_waits == []

    with pytest.raises(LockAcquisitionError):
        await memory_manager.acquire_lock("a.json", max_retry=2, retry_wait_ms=7)

    assert recorded_waits == [7]


async def test_acquire_lock_without_locking_provider(recorded_waits):
    manager = LockableStorageManager(storage_provider=MemoryStorageProvider())

    with pytest.raises(BackendNotConfiguredError):
        await manager.acquire_lock("a.json")

    assert recorded_waits == []


async def test_backend_errors_propagate(scripted_provider):
    manager = LockableStorageManager(locking_provider=scripted_provider([TimeoutError("throttled")]))

    with pytest.raises(TimeoutError):
        await manager.lock("a.json")


def test_backends_are_fixed_at_construction():
    manager = LockableStorageManager(storage_provider=MemoryStorageProvider())

    with pytest.raises(dataclasses.FrozenInstanceError):
        manager.params.locking_provider = MemoryLockingProvider()  # type: ignore[misc]


def test_manager_implements_both_protocols(memory_manager):
    assert isinstance(memory_manager, StorageProviderProtocol)
    assert isinstance(memory_manager, LockingProviderProtocol)
