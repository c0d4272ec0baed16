import logging
import os
import pathlib
from typing import Any, Optional, Self
from typing_extensions import override

from pydantic import BaseModel, Field, ValidationError

from lockable_storage.core.locking_provider_base import LockingProviderProtocol, LockRecord
from lockable_storage.plugins.local_storage_provider.local_storage_provider import resolve_under
from lockable_storage.utils.timestamps import get_timestamp

logger = logging.getLogger(__name__)

LOCK_FILE_SUFFIX = ".lock"


class LocalLockingProviderInitConfig(BaseModel):
    """Initialization params required to initialize local locking provider.

    Attributes:
        folder: Folder that holds the lock files.
        time_to_live_seconds: Lease of every lock - `None` keeps locks until unlocked.
        folder_mode: Permissions of the folder when it is created.
        file_mode: Permissions of every lock file.
    """

    folder: pathlib.Path
    time_to_live_seconds: Optional[int] = Field(default=None, gt=0)
    folder_mode: int = 0o700
    file_mode: int = 0o600


class LocalLockingProvider(LockingProviderProtocol):
    """Locks backed by `<path>.lock` files.

    Creating a lock file uses `O_CREAT | O_EXCL`, which is atomic for processes sharing one filesystem.
    Replacing an expired lease is not atomic - two callers racing on the same expired record
    may both observe success.
    """

    def __init__(
        self,
        folder: pathlib.Path,
        time_to_live_seconds: Optional[int] = None,
        folder_mode: int = 0o700,
        file_mode: int = 0o600,
    ) -> None:
        self.folder = folder.expanduser()
        self.time_to_live_seconds = time_to_live_seconds
        self.folder_mode = folder_mode
        self.file_mode = file_mode

        if not self.folder.exists():
            self.folder.mkdir(parents=True, exist_ok=True)
            self.folder.chmod(self.folder_mode)

    @override
    @classmethod
    async def from_config(
        cls,
        raw_config: Any,
        *,
        workdir: pathlib.Path,
    ) -> Self:
        result = LocalLockingProviderInitConfig.model_validate(raw_config)
        return cls(
            **result.model_dump(),
        )

    def _lock_file(self, path: str) -> pathlib.Path:
        return resolve_under(self.folder, path, LOCK_FILE_SUFFIX)

    def _read_record(self, path: str, lock_file: pathlib.Path) -> Optional[LockRecord]:
        try:
            content = lock_file.read_bytes()
            modified_at = int(lock_file.stat().st_mtime)

        except FileNotFoundError:
            return None

        try:
            return LockRecord.model_validate_json(content)

        except ValidationError:
            # empty or half written - the lease runs from the file's last modification
            return self._new_record(path, created_at=modified_at)

    def _new_record(self, path: str, created_at: Optional[int] = None) -> LockRecord:
        if created_at is None:
            created_at = get_timestamp()

        return LockRecord(
            path=path,
            created_at=created_at,
            expire_at=created_at + self.time_to_live_seconds if self.time_to_live_seconds else None,
        )

    def _try_create(self, path: str, lock_file: pathlib.Path) -> bool:
        record = self._new_record(path)
        lock_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, self.file_mode)

        except FileExistsError:
            return False

        with os.fdopen(fd, "wb") as f:
            f.write(record.model_dump_json().encode())

        return True

    @override
    async def lock(self, path: str) -> bool:
        lock_file = self._lock_file(path)
        if self._try_create(path, lock_file):
            return True

        record = self._read_record(path, lock_file)
        if record is not None and not record.is_expired(get_timestamp()):
            return False

        logger.info("Lock on %s has expired - taking it over", path)
        lock_file.unlink(missing_ok=True)
        return self._try_create(path, lock_file)

    @override
    async def unlock(self, path: str) -> bool:
        lock_file = self._lock_file(path)
        try:
            lock_file.unlink()

        except FileNotFoundError:
            return False

        return True

    @override
    async def is_locked(self, path: str) -> bool:
        record = self._read_record(path, self._lock_file(path))
        if record is None:
            return False

        return not record.is_expired(get_timestamp())
