import pathlib
from typing import (
    Annotated,
    Optional,
)

import semver
from xdg import BaseDirectory
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
)

from lockable_storage.core.lock_acquisition import DEFAULT_MAX_RETRY, DEFAULT_RETRY_WAIT_MS

PACKAGE_NAME = "lockable_storage"

CONFIG_VERSION = "1"

CONFIG_FILE_NAME = "lockable-storage.yaml"


class ProviderConfig(BaseModel):
    """Data struct that contains the configuration for a storage or locking provider.

    Each provider defines it's own unique configuration parameters -
    and the parameters will be passed through to the provider.

    Attributes:
        type: provider type as declared in the entrypoint.
        **kwargs: provider specific configuration parameters.

    Example:
        In this example, the `local` storage provider has a `folder` parameter that is required.
        The storage provider will get a dict: `{"folder": "/path/to/folder"}` as the configuration.

        ```yaml
        type: local
        folder: /path/to/folder
        ```
    """

    model_config = ConfigDict(extra="allow")
    type: str


class LockRetryConfig(BaseModel):
    """Retry policy used when a lock is acquired through the server or the cli.

    Attributes:
        max_retry: Number of lock attempts.
        retry_wait_ms: Fixed delay between two attempts, in milliseconds.
    """

    max_retry: Annotated[int, Field(ge=0)] = DEFAULT_MAX_RETRY
    retry_wait_ms: Annotated[int, Field(ge=0)] = DEFAULT_RETRY_WAIT_MS


class ConfigFile(BaseModel):
    """The configuration file for lockable_storage.

    Both providers are optional - a deployment may use only storage or only locking.

    Attributes:
        version: The version of the configuration file.
        storage: The configuration for the storage provider.
        locking: The configuration for the locking provider.
        lock_retry: The retry policy for acquiring locks.
    """

    version: str = CONFIG_VERSION
    storage: Optional[ProviderConfig] = None
    locking: Optional[ProviderConfig] = None
    lock_retry: LockRetryConfig = LockRetryConfig()

    @field_validator("version")
    @classmethod
    def validate_version(cls, value: str) -> str:
        current_version = semver.Version.parse(value, optional_minor_and_patch=True)
        config_version = semver.Version.parse(CONFIG_VERSION, optional_minor_and_patch=True)
        if current_version < config_version:
            raise ValueError(
                f"Unsupported version ({current_version} < {config_version}) - please upgrade the config file"
            )

        if current_version > config_version:
            raise ValueError(
                f"Unsupported version ({current_version} > {config_version}) - please check if there is a newer version of {PACKAGE_NAME}"
            )

        return value


def load_config_file(location: pathlib.Path) -> ConfigFile:
    if not location.exists():
        raise FileNotFoundError(f"Config file not found: {location}")

    obj = yaml.safe_load(location.read_bytes())
    return ConfigFile.model_validate(obj or {})


def dump_config_file(config: ConfigFile) -> str:
    return yaml.safe_dump(yaml.safe_load(config.model_dump_json(exclude_none=True)), sort_keys=False)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LOCKABLE_STORAGE_")

    state_dir: Annotated[
        pathlib.Path,
        Field(
            default=pathlib.Path(BaseDirectory.xdg_data_home) / PACKAGE_NAME,
        ),
    ]
    config_file: pathlib.Path = pathlib.Path(CONFIG_FILE_NAME)
