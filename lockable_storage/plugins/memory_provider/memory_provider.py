import pathlib
import time
from typing import Any, Optional, Self
from typing_extensions import override

from pydantic import BaseModel, Field

from lockable_storage.core.locking_provider_base import LockingProviderProtocol
from lockable_storage.core.storage_provider_base import StorageProviderProtocol


class MemoryStorageProvider(StorageProviderProtocol):
    """Keeps payloads in a dict - content is lost when the process exits."""

    def __init__(self) -> None:
        self.items: dict[str, str] = {}

    @override
    @classmethod
    async def from_config(
        cls,
        raw_config: Any,
        *,
        workdir: pathlib.Path,
    ) -> Self:
        return cls()

    @override
    async def write(self, data: str, path: str) -> None:
        self.items[path] = data

    @override
    async def read(self, path: str, default: str = "") -> str:
        return self.items.get(path, default)

    @override
    async def delete(self, path: str) -> None:
        self.items.pop(path, None)

    @override
    async def exists(self, path: str) -> bool:
        return path in self.items


class MemoryLockingProviderInitConfig(BaseModel):
    time_to_live_seconds: Optional[float] = Field(default=None, gt=0)


class MemoryLockingProvider(LockingProviderProtocol):
    """Locks shared by the tasks of a single process.

    Every operation completes without suspending, so test-and-set is atomic within the event loop.
    """

    def __init__(self, time_to_live_seconds: Optional[float] = None) -> None:
        self.time_to_live_seconds = time_to_live_seconds
        # path -> monotonic expiry (None - never)
        self.locks: dict[str, Optional[float]] = {}

    @override
    @classmethod
    async def from_config(
        cls,
        raw_config: Any,
        *,
        workdir: pathlib.Path,
    ) -> Self:
        result = MemoryLockingProviderInitConfig.model_validate(raw_config)
        return cls(
            **result.model_dump(),
        )

    def _is_held(self, path: str) -> bool:
        if path not in self.locks:
            return False

        expire_at = self.locks[path]
        if expire_at is not None and expire_at <= time.monotonic():
            del self.locks[path]
            return False

        return True

    @override
    async def lock(self, path: str) -> bool:
        if self._is_held(path):
            return False

        self.locks[path] = time.monotonic() + self.time_to_live_seconds if self.time_to_live_seconds else None
        return True

    @override
    async def unlock(self, path: str) -> bool:
        held = self._is_held(path)
        self.locks.pop(path, None)
        return held

    @override
    async def is_locked(self, path: str) -> bool:
        return self._is_held(path)
