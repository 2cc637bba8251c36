import asyncio

from photo_pipeline.logging.logger import Log
from photo_pipeline.storage.base import BaseObjectStorage
from photo_pipeline.storage.exceptions import StorageError


async def write_with_retry(
    storage: BaseObjectStorage,
    key: str,
    data: bytes,
    content_type: str,
    *,
    max_attempts: int,
    timeout_seconds: float,
    backoff_seconds: float = 0.5,
) -> None:
    """Write one object with a small, bounded number of attempts.

    Each attempt is bounded by ``timeout_seconds``. Only StorageError is
    retried; the last one is re-raised once attempts run out. A timeout ends
    the write at once: the backend call may still be running in its worker
    thread, so a second write to the same key could race it.
    """
    last_error: StorageError | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            async with asyncio.timeout(timeout_seconds):
                await storage.put_object(key, data, content_type)
            return
        except TimeoutError as exc:
            Log.error(f"Storage write of {key} timed out after {timeout_seconds}s, not retrying")
            raise StorageError(
                f"Storage write of {key} timed out after {timeout_seconds}s"
            ) from exc
        except StorageError as exc:
            last_error = exc
            Log.warning(f"Storage write of {key} failed (attempt {attempt}/{max_attempts}): {exc}")
            if attempt < max_attempts:
                await asyncio.sleep(backoff_seconds * attempt)
    raise StorageError(
        f"Storage write of {key} failed after {max_attempts} attempts: {last_error}"
    ) from last_error
