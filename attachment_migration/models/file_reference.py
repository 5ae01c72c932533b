"""File reference registry model."""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from attachment_migration.models.base import Base


class FileReference(Base):
    """Registry entry mapping a storage URL to reference metadata."""

    __tablename__ = "nc_file_references"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    fk_workspace_id: Mapped[str | None] = mapped_column(String, nullable=True)
    base_id: Mapped[str | None] = mapped_column(String, nullable=True)
    source_id: Mapped[str | None] = mapped_column(String, nullable=True)
    fk_model_id: Mapped[str | None] = mapped_column(String, nullable=True)
    fk_column_id: Mapped[str | None] = mapped_column(String, nullable=True)
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    storage: Mapped[str | None] = mapped_column(String, nullable=True)
    is_external: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (Index("idx_file_references_url_storage", "file_url", "storage"),)
