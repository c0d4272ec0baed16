import pathlib
from typing import Any, Protocol, Self, runtime_checkable

STORAGE_PROVIDERS_ENTRYPOINT = "lockable_storage.plugins.storage_provider"


@runtime_checkable
class StorageProviderProtocol(Protocol):
    """Protocol for storage providers.

    A storage provider keeps opaque string payloads at named paths.
    The meaning of a path (hierarchical, flat, case sensitive) is owned by the provider.

    Every storage provider must implement `StorageProviderProtocol` methods -
    and register to the `lockable_storage.plugins.storage_provider` entrypoint.

    Example:
        Register a storage provider - if your project is packaged with pyproject:
        ```toml
        [project.entry-points."lockable_storage.plugins.storage_provider"]
        local = "lockable_storage.plugins.local_storage_provider.local_storage_provider:LocalStorageProvider"
        ```
    """

    @classmethod
    async def from_config(
        cls,
        raw_config: Any,
        *,
        workdir: pathlib.Path,
    ) -> Self:
        """Create an instance of the storage provider from the configuration.

        Args:
            raw_config: The raw configuration propagated from the storage provider config.
            workdir: The data directory of lockable_storage - located at `~/.local/share/lockable_storage` -
                can be used to manage state of the provider.
        """
        ...

    async def write(self, data: str, path: str) -> None:
        """Write data to the given path - replacing any existing data.

        Args:
            data: The payload to store.
            path: The target path.
        """
        ...

    async def read(self, path: str, default: str = "") -> str:
        """Read the data stored at the given path.

        Args:
            path: The path to read from.
            default: Returned when the provider reports the path as absent.
        """
        ...

    async def delete(self, path: str) -> None:
        """Delete the data stored at the given path.

        Deleting an absent path is not an error.

        Args:
            path: The path to delete.
        """
        ...

    async def exists(self, path: str) -> bool:
        """Check whether data is stored at the given path.

        Args:
            path: The path to check.
        """
        ...
