from typing import Union

import pytest

from lockable_storage.core.lockable_storage_manager import LockableStorageManager
from lockable_storage.plugins.memory_provider.memory_provider import (
    MemoryLockingProvider,
    MemoryStorageProvider,
)


class ScriptedLockingProvider:
    """Answers `lock()` calls from a script of results - exceptions are raised."""

    def __init__(self, results: list[Union[bool, Exception]]) -> None:
        self.results = list(results)
        self.lock_calls: list[str] = []
        self.unlock_calls: list[str] = []

    async def lock(self, path: str) -> bool:
        self.lock_calls.append(path)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result

        return result

    async def unlock(self, path: str) -> bool:
        self.unlock_calls.append(path)
        return True

    async def is_locked(self, path: str) -> bool:
        return False


@pytest.fixture(scope="module")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def recorded_waits(monkeypatch) -> list[int]:
    waits: list[int] = []

    async def fake_wait_for_time(ms: int) -> None:
        waits.append(ms)

    monkeypatch.setattr("lockable_storage.core.lock_acquisition.wait_for_time", fake_wait_for_time)
    return waits


@pytest.fixture
def scripted_provider():
    return ScriptedLockingProvider


@pytest.fixture
def memory_manager() -> LockableStorageManager:
    return LockableStorageManager(
        storage_provider=MemoryStorageProvider(),
        locking_provider=MemoryLockingProvider(),
    )
