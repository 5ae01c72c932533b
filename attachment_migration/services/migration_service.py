"""Attachment migration job: stage storage files, then reconcile every model."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from attachment_migration.database import ensure_tables
from attachment_migration.exceptions import MigrationError
from attachment_migration.services.discovery_service import list_incomplete_models
from attachment_migration.services.entity_service import ConnectionManager
from attachment_migration.services.inventory_service import InventoryBuilder
from attachment_migration.services.reconcile_service import ReconciliationWalker
from attachment_migration.storage.registry import get_storage_adapter

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from attachment_migration.config import Settings
    from attachment_migration.services.discovery_service import ModelRef
    from attachment_migration.services.reconcile_service import WalkStats
    from attachment_migration.storage.base import StorageAdapter

logger = logging.getLogger(__name__)

JOB_TAG = "[nc_job_001_attachment]"


class AttachmentMigration:
    """Resumable migration assigning file references to every attachment.

    ``run()`` can be invoked any number of times: staging skips known paths
    and each model resumes from its stored offset.
    """

    def __init__(
        self,
        settings: Settings,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
        storage: StorageAdapter | None = None,
    ) -> None:
        self.settings = settings
        self._engine = engine
        self._session_factory = session_factory
        self._storage = storage
        self.last_stats: WalkStats | None = None

    async def run(self) -> bool:
        """Run the job. Returns True on success, False after logging a failure."""
        connections = ConnectionManager(self._engine)
        try:
            await self._run(connections)
        except Exception as exc:
            logger.error(
                "%s There was an error while processing attachment migration job: %s",
                JOB_TAG,
                exc,
                exc_info=True,
            )
            return False
        finally:
            await connections.dispose()
        return True

    async def _run(self, connections: ConnectionManager) -> None:
        async with self._session_factory() as session:
            await ensure_tables(session)

        storage = self._storage or get_storage_adapter(self.settings)

        builder = InventoryBuilder(
            self._session_factory,
            batch_size=self.settings.scan_batch_size,
            max_inflight=self.settings.max_inflight_batches,
        )
        files_count = await builder.build(storage, self.settings.scan_glob)
        logger.info("%s Completed scanning with %d files", JOB_TAG, files_count)

        walker = ReconciliationWalker(
            self._session_factory,
            connections,
            storage.name,
            row_page_size=self.settings.row_page_size,
            uploads_prefix=self.settings.uploads_prefix,
        )
        self.last_stats = walker.stats

        pass_number = 0
        while models := await self._discover():
            if pass_number >= self.settings.max_passes:
                raise MigrationError(
                    f"Stopped after {pass_number} passes with {len(models)} models still pending"
                )
            pass_number += 1
            logger.info("%s Found %d models with attachment columns", JOB_TAG, len(models))
            processed = 0
            for model_ref in models:
                if await walker.process_model(model_ref):
                    processed += 1
                    logger.info(
                        "%s Processed %d of %d models", JOB_TAG, processed, len(models)
                    )

            if processed == 0:
                raise MigrationError(
                    f"Pass {pass_number} made no progress: "
                    f"{len(models)} models could not be processed"
                )

        stats = walker.stats
        logger.info(
            "%s Done: %d ids assigned, %d rows updated, %d files referenced, "
            "%d orphans recorded, %d files missing from storage",
            JOB_TAG,
            stats.ids_assigned,
            stats.rows_updated,
            stats.files_referenced,
            stats.orphans_recorded,
            stats.missing_files,
        )

    async def _discover(self) -> list[ModelRef]:
        async with self._session_factory() as session:
            return await list_incomplete_models(session, self.settings.model_page_size)


class MigrationRunner:
    """Serialize runs of a migration job within one process."""

    def __init__(self, job: AttachmentMigration) -> None:
        self.job = job
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run(self) -> bool | None:
        """Run the job, or return None if a run is already in progress."""
        if self._lock.locked():
            return None
        async with self._lock:
            return await self.job.run()
