from lockable_storage.core.lock_acquisition import acquire_lock, hold_lock, wait_for_time
from lockable_storage.core.lockable_storage_manager import (
    BackendNotConfiguredError,
    LockableStorageManager,
    LockableStorageManagerInput,
)
from lockable_storage.core.locking_provider_base import (
    LockAcquisitionError,
    LockingProviderProtocol,
    LockRecord,
)
from lockable_storage.core.storage_provider_base import StorageProviderProtocol

__all__ = [
    "BackendNotConfiguredError",
    "LockAcquisitionError",
    "LockRecord",
    "LockableStorageManager",
    "LockableStorageManagerInput",
    "LockingProviderProtocol",
    "StorageProviderProtocol",
    "acquire_lock",
    "hold_lock",
    "wait_for_time",
]
