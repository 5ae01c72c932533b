"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from attachment_migration.api.deps import get_runner, get_session
from attachment_migration.services.migration_service import MigrationRunner
from attachment_migration.services.staging_service import count_staged

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    database: str
    migration_running: bool
    staged_files: int | None = None


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AsyncSession, Depends(get_session)],
    runner: Annotated[MigrationRunner, Depends(get_runner)],
) -> HealthResponse:
    """Report database reachability and whether a migration run is active.

    The staging table is queried directly, so a missing table shows up as a
    degraded database rather than a failed request.
    """
    staged: int | None = None
    try:
        staged, _ = await count_staged(session)
    except Exception:
        logger.warning("Health check staging query failed", exc_info=True)

    db_status = "ok" if staged is not None else "error"
    return HealthResponse(
        status="ok" if db_status == "ok" else "degraded",
        database=db_status,
        migration_running=runner.running,
        staged_files=staged,
    )
