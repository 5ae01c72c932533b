"""Migration API request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel


class MigrationRunResponse(BaseModel):
    """Outcome of a migration run."""

    success: bool


class MigrationStatusResponse(BaseModel):
    """Checkpoint state of the attachment migration."""

    staged_files: int
    referenced_files: int
    tracked_models: int
    completed_models: int
    running: bool
