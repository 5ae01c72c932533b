"""File reference registry writer."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select

from attachment_migration.models.file_reference import FileReference

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

ROOT = "root"


@dataclass(frozen=True)
class Scope:
    """Workspace/base that owns a registry entry."""

    workspace_id: str | None
    base_id: str | None


ROOT_SCOPE = Scope(workspace_id=ROOT, base_id=ROOT)


def generate_reference_id() -> str:
    return f"fr{uuid.uuid4().hex}"


async def insert_file_reference(
    session: AsyncSession,
    scope: Scope,
    *,
    file_url: str | None,
    file_size: int | float | None = None,
    storage: str | None = None,
    source_id: str | None = None,
    fk_model_id: str | None = None,
    fk_column_id: str | None = None,
    is_external: bool = False,
    deleted: bool = False,
) -> str:
    """Append a registry entry and return its generated id."""
    reference = FileReference(
        id=generate_reference_id(),
        fk_workspace_id=scope.workspace_id,
        base_id=scope.base_id,
        source_id=source_id,
        fk_model_id=fk_model_id,
        fk_column_id=fk_column_id,
        file_url=file_url,
        file_size=int(file_size) if file_size is not None else None,
        storage=storage,
        is_external=is_external,
        deleted=deleted,
        created_at=datetime.now(UTC).isoformat(),
    )
    session.add(reference)
    await session.commit()
    return reference.id


async def find_file_reference(
    session: AsyncSession, file_url: str, storage: str
) -> FileReference | None:
    """Find any registry entry for ``file_url`` under a storage adapter."""
    stmt = (
        select(FileReference)
        .where(FileReference.file_url == file_url, FileReference.storage == storage)
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
