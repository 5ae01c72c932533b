"""Attachment migration trigger and status endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from attachment_migration.api.deps import get_runner, get_session, require_admin
from attachment_migration.schemas.migration import MigrationRunResponse, MigrationStatusResponse
from attachment_migration.services.migration_service import MigrationRunner
from attachment_migration.services.progress_service import summarize_progress
from attachment_migration.services.staging_service import count_staged

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/migrations/attachments",
    tags=["migrations"],
    dependencies=[Depends(require_admin)],
)


@router.post("/run", response_model=MigrationRunResponse)
async def run_migration(
    runner: Annotated[MigrationRunner, Depends(get_runner)],
) -> MigrationRunResponse:
    """Run the attachment migration to completion and report the outcome."""
    success = await runner.run()
    if success is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Attachment migration is already running",
        )
    return MigrationRunResponse(success=success)


@router.get("/status", response_model=MigrationStatusResponse)
async def migration_status(
    session: Annotated[AsyncSession, Depends(get_session)],
    runner: Annotated[MigrationRunner, Depends(get_runner)],
) -> MigrationStatusResponse:
    """Report checkpoint state: staged files and per-model progress."""
    staged, referenced = await count_staged(session)
    tracked, completed = await summarize_progress(session)
    return MigrationStatusResponse(
        staged_files=staged,
        referenced_files=referenced,
        tracked_models=tracked,
        completed_models=completed,
        running=runner.running,
    )
