from dataclasses import dataclass
from typing import Literal, Optional

from lockable_storage.core.lock_acquisition import (
    DEFAULT_MAX_RETRY,
    DEFAULT_RETRY_WAIT_MS,
    acquire_lock,
)
from lockable_storage.core.locking_provider_base import LockingProviderProtocol
from lockable_storage.core.storage_provider_base import StorageProviderProtocol

Backend = Literal["storage", "locking"]


class BackendNotConfiguredError(Exception):
    def __init__(self, operation: str, backend: Backend) -> None:
        super().__init__(
            f"[LockableStorageManager][{operation}] Trying to use {backend} provider which does not exist."
        )
        self.operation = operation
        self.backend = backend


@dataclass(frozen=True)
class LockableStorageManagerInput:
    """Backends of a `LockableStorageManager`.

    Attributes:
        storage_provider: Used for write/read/delete/exists.
        locking_provider: Used for lock/unlock/is_locked.
    """

    storage_provider: Optional[StorageProviderProtocol] = None
    locking_provider: Optional[LockingProviderProtocol] = None


class LockableStorageManager(StorageProviderProtocol, LockingProviderProtocol):
    """Single facade over an independent storage provider and an independent locking provider.

    Every call is delegated as-is to the matching provider, and fails with
    `BackendNotConfiguredError` if that provider was not supplied.

    The two halves never interact: `write` and `delete` do not check `is_locked`,
    and `lock` does not retry. Locking before mutating (for example with
    `acquire_lock` or `hold_lock`) is up to the caller.
    """

    def __init__(
        self,
        *,
        storage_provider: Optional[StorageProviderProtocol] = None,
        locking_provider: Optional[LockingProviderProtocol] = None,
    ) -> None:
        self.params = LockableStorageManagerInput(
            storage_provider=storage_provider,
            locking_provider=locking_provider,
        )

    def _storage(self, operation: str) -> StorageProviderProtocol:
        if self.params.storage_provider is None:
            raise BackendNotConfiguredError(operation, "storage")

        return self.params.storage_provider

    def _locking(self, operation: str) -> LockingProviderProtocol:
        if self.params.locking_provider is None:
            raise BackendNotConfiguredError(operation, "locking")

        return self.params.locking_provider

    async def write(self, data: str, path: str) -> None:
        await self._storage("write").write(data, path)

    async def read(self, path: str, default: str = "") -> str:
        return await self._storage("read").read(path, default)

    async def delete(self, path: str) -> None:
        await self._storage("delete").delete(path)

    async def exists(self, path: str) -> bool:
        return await self._storage("exists").exists(path)

    async def lock(self, path: str) -> bool:
        return await self._locking("lock").lock(path)

    async def unlock(self, path: str) -> bool:
        return await self._locking("unlock").unlock(path)

    async def is_locked(self, path: str) -> bool:
        return await self._locking("is_locked").is_locked(path)

    async def acquire_lock(
        self,
        path: str,
        max_retry: int = DEFAULT_MAX_RETRY,
        retry_wait_ms: int = DEFAULT_RETRY_WAIT_MS,
    ) -> None:
        """Lock the path with retries - see `lockable_storage.core.lock_acquisition.acquire_lock`."""
        await acquire_lock(path, self, max_retry=max_retry, retry_wait_ms=retry_wait_ms)
