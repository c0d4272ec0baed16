import logging
import pathlib
from typing import Any, Self
from typing_extensions import override

from pydantic import BaseModel

from lockable_storage.core.storage_provider_base import StorageProviderProtocol

logger = logging.getLogger(__name__)


class LocalStorageProviderInitConfig(BaseModel):
    """Initialization params required to initialize local storage provider.

    Attributes:
        folder: Root folder - every path is resolved relative to it.
        folder_mode: Permissions of the root folder when it is created.
        file_mode: Permissions applied to every written file.
    """

    folder: pathlib.Path
    folder_mode: int = 0o700
    file_mode: int = 0o600


def resolve_under(folder: pathlib.Path, path: str, suffix: str = "") -> pathlib.Path:
    target = (folder / f"{path}{suffix}").resolve()
    if not target.is_relative_to(folder.resolve()):
        raise ValueError(f"Path {path} resolves outside of {folder}")

    return target


class LocalStorageProvider(StorageProviderProtocol):
    def __init__(self, folder: pathlib.Path, folder_mode: int = 0o700, file_mode: int = 0o600) -> None:
        self.folder = folder.expanduser()
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
        result = LocalStorageProviderInitConfig.model_validate(raw_config)
        return cls(
            **result.model_dump(),
        )

    @override
    async def write(self, data: str, path: str) -> None:
        target = resolve_under(self.folder, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(data, encoding="utf-8")
        target.chmod(self.file_mode)
        logger.debug("File %s has been written", target)

    @override
    async def read(self, path: str, default: str = "") -> str:
        target = resolve_under(self.folder, path)
        try:
            return target.read_text(encoding="utf-8")

        except FileNotFoundError:
            logger.info("File %s not found", target)
            return default

    @override
    async def delete(self, path: str) -> None:
        target = resolve_under(self.folder, path)
        target.unlink(missing_ok=True)
        logger.debug("File %s has been deleted", target)

    @override
    async def exists(self, path: str) -> bool:
        return resolve_under(self.folder, path).is_file()
