"""Reconciliation walker: page through a model's rows and reconcile attachments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from attachment_migration.exceptions import AttachmentParseError, ReconcileError
from attachment_migration.models.meta import ATTACHMENT_UIDT
from attachment_migration.schemas.attachment import parse_attachments, serialize_attachments
from attachment_migration.services.entity_service import (
    RowAccessor,
    get_columns,
    get_model,
    get_source,
)
from attachment_migration.services.file_reference_service import (
    ROOT_SCOPE,
    Scope,
    find_file_reference,
    insert_file_reference,
)
from attachment_migration.services.mimetype_service import guess_mimetype
from attachment_migration.services.path_service import DEFAULT_UPLOADS_PREFIX, storage_key
from attachment_migration.services.progress_service import (
    advance_offset,
    get_or_create_progress,
    mark_completed,
)
from attachment_migration.services.staging_service import get_staged, mark_referenced

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from attachment_migration.models.meta import Column, Source
    from attachment_migration.schemas.attachment import AttachmentDescriptor
    from attachment_migration.services.discovery_service import ModelRef
    from attachment_migration.services.entity_service import ConnectionManager

logger = logging.getLogger(__name__)

DEFAULT_ROW_PAGE_SIZE = 10


@dataclass
class WalkStats:
    """Counters accumulated across every model a walker processed."""

    pages: int = 0
    rows_updated: int = 0
    rows_skipped: int = 0
    ids_assigned: int = 0
    files_referenced: int = 0
    orphans_recorded: int = 0
    missing_files: int = 0
    unparseable_columns: int = 0


@dataclass
class _ModelContext:
    scope: Scope
    source: Source
    model_id: str
    accessor: RowAccessor
    attachment_columns: list[Column]


class ReconciliationWalker:
    """Reconcile every attachment of a model against staging and the registry.

    Rows are read one page at a time in primary-key order starting at the
    model's stored offset. After a page's rows are written back the new offset
    is persisted; an empty page marks the model completed. Every step is
    idempotent, so a page interrupted half-way is simply reconciled again.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        connections: ConnectionManager,
        storage_name: str,
        *,
        row_page_size: int = DEFAULT_ROW_PAGE_SIZE,
        uploads_prefix: str = DEFAULT_UPLOADS_PREFIX,
    ) -> None:
        if row_page_size < 1:
            raise ValueError("row_page_size must be positive")
        self._session_factory = session_factory
        self._connections = connections
        self.storage_name = storage_name
        self.row_page_size = row_page_size
        self.uploads_prefix = uploads_prefix
        self.stats = WalkStats()

    async def process_model(self, ref: ModelRef) -> bool:
        """Walk one model to completion.

        Returns False when the model had to be skipped for this pass (missing
        source, model, connection or primary key); it stays incomplete and is
        retried later. Raises ReconcileError on operational failures.
        """
        async with self._session_factory() as session:
            ctx = await self._resolve(session, ref)
            if ctx is None:
                return False

            progress = await get_or_create_progress(session, ctx.model_id)
            if progress.completed:
                return True
            offset = progress.offset

            primary_keys = [pk.title for pk in ctx.accessor.primary_keys]
            fields = primary_keys + [c.title for c in ctx.attachment_columns]

            while True:
                rows = await ctx.accessor.list(
                    fields, primary_keys, limit=self.row_page_size, offset=offset
                )
                if not rows:
                    break
                offset += self.row_page_size

                updates: list[dict[str, Any]] = []
                for row in rows:
                    payload = await self._reconcile_row(session, ctx, row)
                    if payload is not None:
                        updates.append(payload)

                await self._write_back(ctx.accessor, updates)
                await advance_offset(session, ctx.model_id, offset)
                self.stats.pages += 1

            await mark_completed(session, ctx.model_id)
        return True

    async def _resolve(self, session: AsyncSession, ref: ModelRef) -> _ModelContext | None:
        source = await get_source(session, ref.base_id, ref.source_id)
        if source is None:
            logger.warning("source not found for %s", ref.source_id)
            return None

        model = await get_model(session, ref.base_id, ref.model_id)
        if model is None:
            logger.warning("model not found for %s", ref.model_id)
            return None

        engine = self._connections.get(source)
        if engine is None:
            logger.warning("connection can't be established for %s", ref.source_id)
            return None

        columns = await get_columns(session, model.id)
        accessor = RowAccessor(engine, model, columns)
        if not accessor.primary_keys:
            logger.warning("model %s has no primary key; rows cannot be paged safely", model.id)
            return None

        return _ModelContext(
            scope=Scope(workspace_id=ref.workspace_id, base_id=ref.base_id),
            source=source,
            model_id=model.id,
            accessor=accessor,
            attachment_columns=[c for c in columns if c.uidt == ATTACHMENT_UIDT],
        )

    async def _reconcile_row(
        self, session: AsyncSession, ctx: _ModelContext, row: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Reconcile a row's attachment columns; return its update payload if any changed."""
        update_data: dict[str, Any] = {}

        for column in ctx.attachment_columns:
            value = row.get(column.title)
            if not value:
                continue

            try:
                attachments = parse_attachments(value)
            except AttachmentParseError as exc:
                logger.warning("error parsing attachment data %r: %s", value, exc)
                self.stats.unparseable_columns += 1
                continue

            changed = False
            for attachment in attachments:
                try:
                    changed |= await self._reconcile_attachment(session, ctx, column, attachment)
                except Exception as exc:
                    logger.error("Error processing attachment %s", attachment.dump())
                    raise ReconcileError(
                        f"Failed to reconcile attachment in model {ctx.model_id}"
                    ) from exc

            if changed:
                update_data[column.column_name] = serialize_attachments(attachments)

        if not update_data:
            return None
        update_data.update(ctx.accessor.extract_pk_values(row))
        return update_data

    async def _reconcile_attachment(
        self,
        session: AsyncSession,
        ctx: _ModelContext,
        column: Column,
        attachment: AttachmentDescriptor,
    ) -> bool:
        """Reconcile one descriptor. Returns True if it was given an id."""
        if not attachment.has_location:
            return False

        key = storage_key(attachment, self.uploads_prefix)
        if key is None:
            logger.warning("attachment has neither a usable path nor url: %s", attachment.dump())
            return False

        staged = await get_staged(session, key)
        if staged is None:
            # Stored by a different storage adapter
            logger.warning(
                "file not found in file references table %s, %s", attachment.file_url, key
            )
            self.stats.missing_files += 1
        elif not staged.referenced:
            await self._record_first_reference(session, attachment, key)

        if attachment.has_id:
            return False

        attachment.id = await insert_file_reference(
            session,
            ctx.scope,
            source_id=ctx.source.id,
            fk_model_id=ctx.model_id,
            fk_column_id=column.id,
            file_url=attachment.file_url,
            file_size=attachment.file_size,
            storage=self.storage_name,
            is_external=not ctx.source.is_meta,
            deleted=False,
        )
        self.stats.ids_assigned += 1
        return True

    async def _record_first_reference(
        self, session: AsyncSession, attachment: AttachmentDescriptor, key: str
    ) -> None:
        file_url = attachment.file_url
        if file_url and await find_file_reference(session, file_url, self.storage_name) is None:
            await insert_file_reference(
                session,
                ROOT_SCOPE,
                file_url=file_url,
                file_size=attachment.file_size,
                storage=self.storage_name,
                deleted=True,
            )
            self.stats.orphans_recorded += 1

        mimetype = guess_mimetype(key, attachment.declared_mimetype)
        if await mark_referenced(session, key, mimetype):
            self.stats.files_referenced += 1

    async def _write_back(self, accessor: RowAccessor, updates: list[dict[str, Any]]) -> None:
        for update_data in updates:
            predicate = accessor.where_pk(update_data)
            if predicate is None:
                logger.warning("where pk not found for %s", update_data)
                self.stats.rows_skipped += 1
                continue
            await accessor.update(update_data, predicate)
            self.stats.rows_updated += 1
