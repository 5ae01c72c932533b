"""Storage adapter registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

from attachment_migration.storage.local import LocalStorageAdapter

if TYPE_CHECKING:
    from attachment_migration.config import Settings
    from attachment_migration.storage.base import StorageAdapter

ADAPTERS: dict[str, type[LocalStorageAdapter]] = {
    "local": LocalStorageAdapter,
}


def get_storage_adapter(settings: Settings) -> StorageAdapter:
    """Create the storage adapter configured as active.

    Raises ValueError if the adapter name is unknown.
    """
    adapter_cls = ADAPTERS.get(settings.storage_adapter.lower())
    if adapter_cls is None:
        msg = f"Unknown storage adapter: {settings.storage_adapter!r}. Available: {list(ADAPTERS)}"
        raise ValueError(msg)
    return adapter_cls(settings.storage_root)


def list_adapters() -> list[str]:
    """Return the names of the available storage adapters."""
    return list(ADAPTERS.keys())
