"""Staging models: file inventory and per-model progress."""

from __future__ import annotations

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from attachment_migration.models.base import Base


class StagedFile(Base):
    """A file path observed in the storage backend during the scan phase."""

    __tablename__ = "nc_temp_file_references"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    mimetype: Mapped[str | None] = mapped_column(String, nullable=True)
    referenced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    thumbnail_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("idx_temp_file_references_file_path", "file_path"),)


class ModelProgress(Base):
    """Resumable cursor for one model's row walk."""

    __tablename__ = "nc_temp_processed_models"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fk_model_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    offset: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("idx_temp_processed_models_fk_model_id", "fk_model_id"),)
