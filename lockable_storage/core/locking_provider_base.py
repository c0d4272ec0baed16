import pathlib
from typing import Any, Optional, Protocol, Self, runtime_checkable

from pydantic import BaseModel

LOCKING_PROVIDERS_ENTRYPOINT = "lockable_storage.plugins.locking_provider"


class LockRecord(BaseModel):
    """Data struct stored by locking providers for every held lock.

    The existence of a record means the lock is held.

    Attributes:
        path: The locked path.
        created_at: Seconds since epoch when the lock was taken.
        expire_at: Seconds since epoch after which the lock is treated as released.
            `None` means the lock never expires on its own.
    """

    path: str
    created_at: int
    expire_at: Optional[int] = None

    def is_expired(self, now: int) -> bool:
        return self.expire_at is not None and self.expire_at <= now


class LockAcquisitionError(Exception):
    def __init__(self, msg: str, path: str) -> None:
        super().__init__(msg)
        self.path = path


@runtime_checkable
class LockingProviderProtocol(Protocol):
    """Protocol for locking providers.

    Locks are exclusive and advisory: storage operations never consult them,
    and there is no owner token - anyone able to address a path can unlock it.
    Only use locks between cooperating callers that check them before mutating.

    Every locking provider must implement `LockingProviderProtocol` methods -
    and register to the `lockable_storage.plugins.locking_provider` entrypoint.
    """

    @classmethod
    async def from_config(
        cls,
        raw_config: Any,
        *,
        workdir: pathlib.Path,
    ) -> Self:
        """Create an instance of the locking provider from the configuration.

        Args:
            raw_config: The raw configuration propagated from the locking provider config.
            workdir: The data directory of lockable_storage.
        """
        ...

    async def lock(self, path: str) -> bool:
        """Atomically create the lock record of the path if no record exists.

        Args:
            path: The path to lock.

        Returns:
            True if the lock was acquired, False if it is already held.
            Never raises for the "already locked" case.
        """
        ...

    async def unlock(self, path: str) -> bool:
        """Remove the lock record of the path.

        The record must be absent once the call returns.

        Args:
            path: The path to unlock.

        Returns:
            Whether a record was removed.
        """
        ...

    async def is_locked(self, path: str) -> bool:
        """Check whether a live lock record exists for the path.

        Expired leases read as unlocked.

        Args:
            path: The path to check.
        """
        ...
