"""Host metadata models: sources, models and their columns."""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from attachment_migration.models.base import Base

ATTACHMENT_UIDT = "Attachment"


class Source(Base):
    """A data source: the metadata database itself or an external connection."""

    __tablename__ = "nc_sources"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    fk_workspace_id: Mapped[str | None] = mapped_column(String, nullable=True)
    base_id: Mapped[str] = mapped_column(String, nullable=False)
    alias: Mapped[str | None] = mapped_column(String, nullable=True)
    is_meta: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Only used for external sources
    database_url: Mapped[str | None] = mapped_column(Text, nullable=True)


class Model(Base):
    """A table-like grouping of rows inside a source."""

    __tablename__ = "nc_models"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    fk_workspace_id: Mapped[str | None] = mapped_column(String, nullable=True)
    base_id: Mapped[str] = mapped_column(String, nullable=False)
    source_id: Mapped[str] = mapped_column(
        String, ForeignKey("nc_sources.id", ondelete="CASCADE"), nullable=False
    )
    table_name: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)


class Column(Base):
    """A column of a model; ``uidt`` is its UI data type."""

    __tablename__ = "nc_columns"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    fk_workspace_id: Mapped[str | None] = mapped_column(String, nullable=True)
    base_id: Mapped[str] = mapped_column(String, nullable=False)
    source_id: Mapped[str] = mapped_column(String, nullable=False)
    fk_model_id: Mapped[str] = mapped_column(
        String, ForeignKey("nc_models.id", ondelete="CASCADE"), nullable=False
    )
    column_name: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    uidt: Mapped[str] = mapped_column(String, nullable=False)
    pk: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_columns_uidt", "uidt"),
        Index("idx_columns_fk_model_id", "fk_model_id"),
    )
