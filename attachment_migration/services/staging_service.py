"""Staging store: inventory of file paths found in storage."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from attachment_migration.models.staging import StagedFile

if TYPE_CHECKING:
    from collections.abc import Collection

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.expression import Insert


def _insert_ignoring_duplicates(session: AsyncSession) -> Insert:
    """Build an INSERT that skips paths another writer staged concurrently.

    Only SQLite and PostgreSQL get a conflict clause; other dialects use a
    plain INSERT and rely on the row-by-row retry in :func:`insert_paths`.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(StagedFile).on_conflict_do_nothing(index_elements=["file_path"])
    if dialect == "postgresql":
        return postgresql.insert(StagedFile).on_conflict_do_nothing(index_elements=["file_path"])
    return insert(StagedFile)


async def existing_paths(session: AsyncSession, paths: Collection[str]) -> set[str]:
    """Return the subset of ``paths`` that is already staged."""
    if not paths:
        return set()
    stmt = select(StagedFile.file_path).where(StagedFile.file_path.in_(list(paths)))
    result = await session.execute(stmt)
    return set(result.scalars().all())


async def insert_paths(session: AsyncSession, paths: Collection[str]) -> int:
    """Stage every path not already present. Returns the number of new paths."""
    unique = list(dict.fromkeys(paths))
    known = await existing_paths(session, unique)
    to_insert = [path for path in unique if path not in known]
    if not to_insert:
        return 0
    try:
        await session.execute(
            _insert_ignoring_duplicates(session),
            [{"file_path": path} for path in to_insert],
        )
        await session.commit()
    except IntegrityError:
        # A concurrent batch staged some of these paths after the lookup
        await session.rollback()
        return await _insert_one_by_one(session, to_insert)
    return len(to_insert)


async def _insert_one_by_one(session: AsyncSession, paths: list[str]) -> int:
    inserted = 0
    for path in paths:
        try:
            await session.execute(insert(StagedFile).values(file_path=path))
            await session.commit()
        except IntegrityError:
            await session.rollback()
            continue
        inserted += 1
    return inserted


async def get_staged(session: AsyncSession, file_path: str) -> StagedFile | None:
    """Look up a staged file by its storage key."""
    stmt = (
        select(StagedFile)
        .where(StagedFile.file_path == file_path)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def mark_referenced(session: AsyncSession, file_path: str, mimetype: str | None) -> bool:
    """Flag a staged file as referenced.

    Only rows still unreferenced are touched, so ``referenced`` never goes back
    to false and a replay leaves the stored mimetype alone. Returns True when
    this call performed the transition.
    """
    stmt = (
        update(StagedFile)
        .where(StagedFile.file_path == file_path, StagedFile.referenced.is_(False))
        .values(mimetype=mimetype, referenced=True)
    )
    result = await session.execute(stmt)
    await session.commit()
    return bool(result.rowcount)


async def count_staged(session: AsyncSession) -> tuple[int, int]:
    """Return (staged, referenced) file counts."""
    total = await session.scalar(select(func.count()).select_from(StagedFile))
    referenced = await session.scalar(
        select(func.count()).select_from(StagedFile).where(StagedFile.referenced.is_(True))
    )
    return total or 0, referenced or 0
