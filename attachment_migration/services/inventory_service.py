"""Inventory builder: stage every file path found in storage."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from attachment_migration.exceptions import InventoryError
from attachment_migration.services.staging_service import insert_paths

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from attachment_migration.storage.base import StorageAdapter

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_INFLIGHT = 4


@dataclass
class BatchResult:
    """Outcome of staging one batch of paths."""

    size: int
    inserted: int = 0
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def first_failure(results: list[BatchResult]) -> Exception | None:
    """Return the error of the first failed batch, in submission order."""
    for result in results:
        if not result.ok:
            return result.error
    return None


class InventoryBuilder:
    """Stage storage paths in batches while the scan keeps running.

    Full batches are inserted in background tasks, at most ``max_inflight`` at
    a time; once that many are pending the scan waits for a free slot. A failed
    batch does not stop the scan. Failures are collected and the first one
    fails the build after every batch and the trailing flush have finished.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_inflight: int = DEFAULT_MAX_INFLIGHT,
    ) -> None:
        if batch_size < 1 or max_inflight < 1:
            raise ValueError("batch_size and max_inflight must be positive")
        self._session_factory = session_factory
        self.batch_size = batch_size
        self.max_inflight = max_inflight

    async def build(self, adapter: StorageAdapter, glob_pattern: str) -> int:
        """Scan ``adapter`` and stage new paths. Returns the number of scanned paths.

        Raises InventoryError if the scan or any batch insert failed. Batches
        committed before the failure stay staged and are skipped next time.
        """
        semaphore = asyncio.Semaphore(self.max_inflight)
        tasks: list[asyncio.Task[BatchResult]] = []
        buffer: list[str] = []
        scanned = 0
        scan_error: Exception | None = None

        try:
            async for file_path in adapter.scan_files(glob_pattern):
                buffer.append(file_path)
                if len(buffer) < self.batch_size:
                    continue
                batch, buffer = buffer, []
                scanned += len(batch)
                await semaphore.acquire()
                tasks.append(asyncio.create_task(self._stage_batch(batch, semaphore)))
                logger.info("Scanned %d files", scanned)
        except Exception as exc:
            scan_error = exc

        results = list(await asyncio.gather(*tasks))

        if scan_error is not None:
            logger.error("There was an error while scanning files: %s", scan_error)
            raise InventoryError("Scanning storage failed") from scan_error

        scanned += len(buffer)
        if buffer:
            results.append(await self._stage_batch(buffer))
        logger.info("Completed scanning with %d files", scanned)

        error = first_failure(results)
        if error is not None:
            raise InventoryError("Staging file paths failed") from error

        logger.info("Staged %d new files", sum(r.inserted for r in results))
        return scanned

    async def _stage_batch(
        self, batch: list[str], semaphore: asyncio.Semaphore | None = None
    ) -> BatchResult:
        try:
            async with self._session_factory() as session:
                inserted = await insert_paths(session, batch)
            return BatchResult(size=len(batch), inserted=inserted)
        except Exception as exc:
            logger.error("Error inserting file references: %s", exc, exc_info=True)
            return BatchResult(size=len(batch), error=exc)
        finally:
            if semaphore is not None:
                semaphore.release()
