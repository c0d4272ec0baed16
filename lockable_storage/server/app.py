from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator, Literal

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from lockable_storage.core.config import LockRetryConfig, Settings, load_config_file
from lockable_storage.core.factory import create_manager
from lockable_storage.core.lock_acquisition import acquire_lock
from lockable_storage.core.lockable_storage_manager import (
    BackendNotConfiguredError,
    LockableStorageManager,
)
from lockable_storage.core.locking_provider_base import LockAcquisitionError

config = Settings()  # type: ignore


class StoredItem(BaseModel):
    path: str
    data: str


class ExistsResult(BaseModel):
    path: str
    exists: bool


class LockState(BaseModel):
    path: str
    locked: bool


class UnlockResult(BaseModel):
    path: str
    released: bool


async def initialize_state() -> tuple[LockableStorageManager, LockRetryConfig]:
    file_config = load_config_file(config.config_file)
    manager = await create_manager(file_config, workdir=config.state_dir)
    return manager, file_config.lock_retry


state = {}


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    state["manager"], state["lock_retry"] = await initialize_state()
    yield


def get_manager() -> LockableStorageManager:
    return state["manager"]


def get_lock_retry() -> LockRetryConfig:
    return state.get("lock_retry", LockRetryConfig())


ManagerDependency = Annotated[LockableStorageManager, Depends(get_manager)]
LockRetryDependency = Annotated[LockRetryConfig, Depends(get_lock_retry)]

app = FastAPI(lifespan=lifespan)


@app.exception_handler(LockAcquisitionError)
async def lock_acquisition_exception_handler(_: Request, exc: LockAcquisitionError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=jsonable_encoder({"detail": str(exc), "path": exc.path}),
    )


@app.exception_handler(BackendNotConfiguredError)
async def backend_not_configured_exception_handler(_: Request, exc: BackendNotConfiguredError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        content=jsonable_encoder({"detail": str(exc), "backend": exc.backend}),
    )


@app.get("/storage/{path:path}")
async def read_item(path: str, manager: ManagerDependency) -> StoredItem:
    if not await manager.exists(path):
        raise HTTPException(status_code=404, detail="Item not found")

    return StoredItem(path=path, data=await manager.read(path))


@app.put("/storage/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def write_item(
    path: str,
    data: Annotated[str, Body(..., embed=True, description="Payload to store")],
    manager: ManagerDependency,
) -> None:
    # locks are advisory - callers are expected to hold the lock of the path
    await manager.write(data, path)


@app.delete("/storage/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(path: str, manager: ManagerDependency) -> None:
    await manager.delete(path)


@app.get("/exists/{path:path}")
async def item_exists(path: str, manager: ManagerDependency) -> ExistsResult:
    return ExistsResult(path=path, exists=await manager.exists(path))


@app.get("/lock/{path:path}")
async def lock_state(path: str, manager: ManagerDependency) -> LockState:
    return LockState(path=path, locked=await manager.is_locked(path))


@app.put("/lock/{path:path}")
async def lock_path(path: str, manager: ManagerDependency, lock_retry: LockRetryDependency) -> LockState:
    await acquire_lock(
        path,
        manager,
        max_retry=lock_retry.max_retry,
        retry_wait_ms=lock_retry.retry_wait_ms,
    )
    return LockState(path=path, locked=True)


@app.delete("/lock/{path:path}")
async def unlock_path(path: str, manager: ManagerDependency) -> UnlockResult:
    return UnlockResult(path=path, released=await manager.unlock(path))


@app.get("/ready")
def ready() -> Literal["Ready"]:
    return "Ready"


def start_server(port: int) -> None:
    uvicorn.run(app, port=port)


if __name__ == "__main__":
    start_server(port=8700)
