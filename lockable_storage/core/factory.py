import pathlib
from typing import Optional

from lockable_storage.core.config import ConfigFile, ProviderConfig
from lockable_storage.core.lockable_storage_manager import LockableStorageManager
from lockable_storage.core.locking_provider_base import (
    LOCKING_PROVIDERS_ENTRYPOINT,
    LockingProviderProtocol,
)
from lockable_storage.core.storage_provider_base import (
    STORAGE_PROVIDERS_ENTRYPOINT,
    StorageProviderProtocol,
)
from lockable_storage.utils.plugins import Provider, get_providers

StorageRegistry = dict[str, Provider[StorageProviderProtocol]]
LockingRegistry = dict[str, Provider[LockingProviderProtocol]]


async def create_storage_provider(
    config: ProviderConfig,
    workdir: pathlib.Path,
    storage_providers: Optional[StorageRegistry] = None,
) -> StorageProviderProtocol:
    if storage_providers is None:
        storage_providers = get_providers(
            StorageProviderProtocol,
            STORAGE_PROVIDERS_ENTRYPOINT,
        )

    if config.type not in storage_providers:
        raise ValueError(f"Unsupported storage provider type: {config.type}")

    storage_class = storage_providers[config.type].model_class
    return await storage_class.from_config(
        config.model_extra or {},
        workdir=workdir,
    )


async def create_locking_provider(
    config: ProviderConfig,
    workdir: pathlib.Path,
    locking_providers: Optional[LockingRegistry] = None,
) -> LockingProviderProtocol:
    if locking_providers is None:
        locking_providers = get_providers(
            LockingProviderProtocol,
            LOCKING_PROVIDERS_ENTRYPOINT,
        )

    if config.type not in locking_providers:
        raise ValueError(f"Unsupported locking provider type: {config.type}")

    locking_class = locking_providers[config.type].model_class
    return await locking_class.from_config(
        config.model_extra or {},
        workdir=workdir,
    )


async def create_manager(
    config: ConfigFile,
    *,
    workdir: pathlib.Path,
    storage_providers: Optional[StorageRegistry] = None,
    locking_providers: Optional[LockingRegistry] = None,
) -> LockableStorageManager:
    """Build a manager with the providers declared in the config file.

    Args:
        config: The validated configuration file.
        workdir: The data directory passed to every provider.
        storage_providers: Registry of storage provider classes - defaults to the installed entrypoints.
        locking_providers: Registry of locking provider classes - defaults to the installed entrypoints.
    """
    storage_provider = None
    if config.storage is not None:
        storage_provider = await create_storage_provider(config.storage, workdir, storage_providers)

    locking_provider = None
    if config.locking is not None:
        locking_provider = await create_locking_provider(config.locking, workdir, locking_providers)

    return LockableStorageManager(
        storage_provider=storage_provider,
        locking_provider=locking_provider,
    )
