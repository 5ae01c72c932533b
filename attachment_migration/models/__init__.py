"""SQLAlchemy ORM models for the attachment migration."""

from attachment_migration.models.base import Base
from attachment_migration.models.file_reference import FileReference
from attachment_migration.models.meta import ATTACHMENT_UIDT, Column, Model, Source
from attachment_migration.models.staging import ModelProgress, StagedFile

__all__ = [
    "ATTACHMENT_UIDT",
    "Base",
    "Column",
    "FileReference",
    "Model",
    "ModelProgress",
    "Source",
    "StagedFile",
]
