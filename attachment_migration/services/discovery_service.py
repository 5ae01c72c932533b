"""Discovery of models that still have attachment columns to reconcile."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select

from attachment_migration.models.meta import ATTACHMENT_UIDT, Column
from attachment_migration.services.progress_service import completed_model_ids

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PAGE_SIZE = 100


@dataclass(frozen=True)
class ModelRef:
    """Identity of a model owning at least one attachment column."""

    workspace_id: str | None
    base_id: str
    source_id: str
    model_id: str


async def list_incomplete_models(
    session: AsyncSession, page_size: int = DEFAULT_MODEL_PAGE_SIZE
) -> list[ModelRef]:
    """List every attachment-bearing model whose walk has not completed.

    The grouped query is paged only to bound memory; all pages are collected
    before returning. An empty list means nothing is left for this pass.
    """
    group_fields = (Column.fk_workspace_id, Column.base_id, Column.source_id, Column.fk_model_id)
    base_stmt = (
        select(*group_fields)
        .where(Column.uidt == ATTACHMENT_UIDT)
        .where(Column.fk_model_id.not_in(completed_model_ids()))
        .group_by(*group_fields)
        .order_by(Column.fk_model_id)
    )

    models: list[ModelRef] = []
    offset = 0
    while True:
        result = await session.execute(base_stmt.limit(page_size).offset(offset))
        rows = result.all()
        if not rows:
            break
        models.extend(
            ModelRef(
                workspace_id=row.fk_workspace_id,
                base_id=row.base_id,
                source_id=row.source_id,
                model_id=row.fk_model_id,
            )
            for row in rows
        )
        offset += page_size

    logger.debug("Discovered %d incomplete models with attachment columns", len(models))
    return models
