"""Progress ledger: per-model resumable offsets."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update

from attachment_migration.models.staging import ModelProgress

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def get_progress(session: AsyncSession, model_id: str) -> ModelProgress | None:
    stmt = (
        select(ModelProgress)
        .where(ModelProgress.fk_model_id == model_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create_progress(session: AsyncSession, model_id: str) -> ModelProgress:
    """Return the ledger row for a model, creating it at offset 0 on first sight."""
    progress = await get_progress(session, model_id)
    if progress is not None:
        return progress
    progress = ModelProgress(fk_model_id=model_id, offset=0, completed=False)
    session.add(progress)
    await session.commit()
    return progress


async def advance_offset(session: AsyncSession, model_id: str, offset: int) -> bool:
    """Persist a new offset for a model.

    The offset only moves forward and never after completion; a rejected
    update is logged and reported by returning False.
    """
    stmt = (
        update(ModelProgress)
        .where(
            ModelProgress.fk_model_id == model_id,
            ModelProgress.offset <= offset,
            ModelProgress.completed.is_(False),
        )
        .values(offset=offset)
    )
    result = await session.execute(stmt)
    await session.commit()
    if not result.rowcount:
        logger.warning("Refused to move offset of model %s to %d", model_id, offset)
        return False
    return True


async def mark_completed(session: AsyncSession, model_id: str) -> None:
    stmt = (
        update(ModelProgress).where(ModelProgress.fk_model_id == model_id).values(completed=True)
    )
    await session.execute(stmt)
    await session.commit()


def completed_model_ids() -> Select[tuple[str]]:
    """Subquery selecting the ids of models whose walk has completed."""
    return select(ModelProgress.fk_model_id).where(ModelProgress.completed.is_(True))


async def summarize_progress(session: AsyncSession) -> tuple[int, int]:
    """Return (tracked, completed) model counts."""
    tracked = await session.scalar(select(func.count()).select_from(ModelProgress))
    completed = await session.scalar(
        select(func.count()).select_from(ModelProgress).where(ModelProgress.completed.is_(True))
    )
    return tracked or 0, completed or 0
