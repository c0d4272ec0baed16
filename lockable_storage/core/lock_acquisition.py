import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from lockable_storage.core.locking_provider_base import (
    LockAcquisitionError,
    LockingProviderProtocol,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRY = 5
DEFAULT_RETRY_WAIT_MS = 400


async def wait_for_time(ms: int) -> None:
    """Suspend the current task for the given amount of milliseconds."""
    await asyncio.sleep(ms / 1000)


async def acquire_lock(
    path: str,
    locking_provider: LockingProviderProtocol,
    max_retry: int = DEFAULT_MAX_RETRY,
    retry_wait_ms: int = DEFAULT_RETRY_WAIT_MS,
) -> None:
    """Try to lock the path, waiting a fixed interval between attempts.

    Only a `False` result from `lock()` is retried - any exception raised by the
    provider aborts immediately. No wait follows the last attempt, so the total
    wait is at most `(max_retry - 1) * retry_wait_ms`.

    Args:
        path: The path to lock.
        locking_provider: The provider that performs each single attempt.
        max_retry: Number of attempts. 0 fails without trying.
        retry_wait_ms: Delay between attempts in milliseconds.

    Raises:
        LockAcquisitionError: All attempts returned False.
    """
    if max_retry < 0 or retry_wait_ms < 0:
        raise ValueError("max_retry and retry_wait_ms must be non-negative")

    for attempt in range(max_retry):
        if await locking_provider.lock(path):
            return

        logger.debug("Lock on %s is held - attempt %d/%d failed", path, attempt + 1, max_retry)
        if attempt < max_retry - 1:
            await wait_for_time(retry_wait_ms)

    logger.warning("Could not acquire lock on %s after %d attempts", path, max_retry)
    raise LockAcquisitionError(f"Could not acquire lock on path {path}.", path=path)


@asynccontextmanager
async def hold_lock(
    path: str,
    locking_provider: LockingProviderProtocol,
    max_retry: int = DEFAULT_MAX_RETRY,
    retry_wait_ms: int = DEFAULT_RETRY_WAIT_MS,
) -> AsyncIterator[None]:
    """Acquire the lock for the duration of the block and release it on exit.

    The lock is not renewed while held - a lease may expire inside the block.

    Example:
        ```python
        async with hold_lock("reports/daily.json", manager):
            data = await manager.read("reports/daily.json", "{}")
            await manager.write(update(data), "reports/daily.json")
        ```
    """
    await acquire_lock(path, locking_provider, max_retry=max_retry, retry_wait_ms=retry_wait_ms)
    try:
        yield

    finally:
        await locking_provider.unlock(path)
