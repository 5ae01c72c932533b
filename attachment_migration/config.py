"""Migration configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Attachment migration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Metadata store
    database_url: str = "sqlite+aiosqlite:///data/db/nc.db"

    # Storage
    storage_adapter: str = "local"
    storage_root: Path = Path("./data")
    uploads_prefix: str = "nc/uploads/"
    scan_glob: str = "nc/uploads/**"

    # Inventory
    scan_batch_size: int = Field(default=100, ge=1)
    max_inflight_batches: int = Field(default=4, ge=1)

    # Reconciliation
    model_page_size: int = Field(default=100, ge=1)
    row_page_size: int = Field(default=10, ge=1)
    max_passes: int = Field(default=1000, ge=1)

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    admin_token: str = "change-me-in-production"

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        if self.admin_token == "change-me-in-production" or len(self.admin_token) < 32:
            raise ValueError(
                "Insecure production configuration: "
                "ADMIN_TOKEN must be overridden with a high-entropy value (>=32 chars)"
            )
