import asyncio
import logging
import pathlib
from contextlib import contextmanager
from typing import Annotated, Iterator, Optional

import questionary
import typer

from lockable_storage.core.config import (
    ConfigFile,
    LockRetryConfig,
    ProviderConfig,
    Settings,
    dump_config_file,
    load_config_file,
)
from lockable_storage.core.factory import create_manager
from lockable_storage.core.lockable_storage_manager import (
    BackendNotConfiguredError,
    LockableStorageManager,
)
from lockable_storage.core.locking_provider_base import LockAcquisitionError
from lockable_storage.server.app import config as server_config, start_server

app = typer.Typer(pretty_exceptions_enable=False, rich_markup_mode=None)

PathArgument = Annotated[str, typer.Argument(help="Path of the item")]


@app.callback()
def main_options(
    config_file: Annotated[
        Optional[pathlib.Path],
        typer.Option("--config", "-c", help="Location of the configuration file"),
    ] = None,
    verbose: Annotated[bool, typer.Option("-v", "--verbose", help="Print debug logs")] = False,
) -> None:
    """Read, write and lock items through the configured storage and locking providers."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)

    # the server reads the same settings - every invocation starts from the environment
    server_config.config_file = config_file if config_file is not None else Settings().config_file


@contextmanager
def capture_errors() -> Iterator[None]:
    try:
        yield
    except typer.Abort as e:
        print("Error:", e)
        raise
    except (BackendNotConfiguredError, LockAcquisitionError, FileNotFoundError, ValueError) as e:
        print("Error:", e)
        raise typer.Exit(code=1) from e


async def load_manager() -> tuple[LockableStorageManager, LockRetryConfig]:
    file_config = load_config_file(server_config.config_file)
    manager = await create_manager(file_config, workdir=server_config.state_dir)
    return manager, file_config.lock_retry


def default_config_file() -> ConfigFile:
    return ConfigFile(
        storage=ProviderConfig(type="local", folder="./data"),
        locking=ProviderConfig(type="local", folder="./locks", time_to_live_seconds=900),
    )


async def _init(force: bool) -> None:
    config_file_location = server_config.config_file
    if config_file_location.exists() and not force:
        print("Configuration file already exists")
        should_replace = await questionary.confirm(
            "Do you want to replace it?",
            default=False,
        ).ask_async()
        if not should_replace:
            print("Aborting...")
            return

        print("Replacing existing configuration file")

    config_file_location.write_text(dump_config_file(default_config_file()), encoding="utf-8")
    print(f"Configuration file created at {config_file_location}")


@app.command()
def init(
    force: Annotated[bool, typer.Option("--force", help="Replace an existing file without asking")] = False,
) -> None:
    """Create a configuration file using local storage and local locks."""
    with capture_errors():
        asyncio.run(_init(force))


@app.command()
def start(
    port: Annotated[int, typer.Option(help="Port to run the server on")] = 8700,
) -> None:
    """Starts the server with the configuration file."""
    start_server(port)


async def _read(path: str, default: str) -> None:
    manager, _ = await load_manager()
    print(await manager.read(path, default))


@app.command()
def read(
    path: PathArgument,
    default: Annotated[str, typer.Option(help="Printed when the item does not exist")] = "",
) -> None:
    """Print the data stored at PATH."""
    with capture_errors():
        asyncio.run(_read(path, default))


async def _write(path: str, data: str) -> None:
    manager, _ = await load_manager()
    await manager.write(data, path)


@app.command()
def write(
    path: PathArgument,
    data: Annotated[str, typer.Argument(help="Data to store")],
) -> None:
    """Store DATA at PATH. Does not check the lock of PATH."""
    with capture_errors():
        asyncio.run(_write(path, data))


async def _delete(path: str) -> None:
    manager, _ = await load_manager()
    await manager.delete(path)


@app.command()
def delete(path: PathArgument) -> None:
    """Delete the item stored at PATH. Does not check the lock of PATH."""
    with capture_errors():
        asyncio.run(_delete(path))


async def _exists(path: str) -> bool:
    manager, _ = await load_manager()
    return await manager.exists(path)


@app.command()
def exists(path: PathArgument) -> None:
    """Print whether an item is stored at PATH."""
    with capture_errors():
        print(str(asyncio.run(_exists(path))).lower())


async def _lock(path: str, wait: bool, max_retry: Optional[int], retry_wait_ms: Optional[int]) -> None:
    manager, lock_retry = await load_manager()
    if not wait:
        if not await manager.lock(path):
            raise LockAcquisitionError(f"Path {path} is already locked.", path=path)

        return

    await manager.acquire_lock(
        path,
        max_retry=lock_retry.max_retry if max_retry is None else max_retry,
        retry_wait_ms=lock_retry.retry_wait_ms if retry_wait_ms is None else retry_wait_ms,
    )


@app.command()
def lock(
    path: PathArgument,
    wait: Annotated[bool, typer.Option("--wait/--no-wait", help="Retry while the lock is held")] = True,
    max_retry: Annotated[Optional[int], typer.Option(min=0, help="Overrides lock_retry.max_retry")] = None,
    retry_wait_ms: Annotated[Optional[int], typer.Option(min=0, help="Overrides lock_retry.retry_wait_ms")] = None,
) -> None:
    """Lock PATH. Exits with status 1 if the lock could not be acquired."""
    with capture_errors():
        asyncio.run(_lock(path, wait, max_retry, retry_wait_ms))
        print(f"Locked {path}")


async def _unlock(path: str) -> bool:
    manager, _ = await load_manager()
    return await manager.unlock(path)


@app.command()
def unlock(path: PathArgument) -> None:
    """Release the lock of PATH - whoever holds it."""
    with capture_errors():
        released = asyncio.run(_unlock(path))
        print(f"Released {path}" if released else f"{path} was not locked")


async def _is_locked(path: str) -> bool:
    manager, _ = await load_manager()
    return await manager.is_locked(path)


@app.command()
def is_locked(path: PathArgument) -> None:
    """Print whether PATH is locked."""
    with capture_errors():
        print(str(asyncio.run(_is_locked(path))).lower())


def main() -> None:
    app()
