"""Storage adapter protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@runtime_checkable
class StorageAdapter(Protocol):
    """Protocol for the storage backend that holds uploaded files."""

    name: str

    def scan_files(self, glob_pattern: str) -> AsyncIterator[str]:
        """Lazily yield storage-relative paths matching ``glob_pattern``.

        The iterator may raise mid-stream; exhaustion is the end signal.
        """
        ...
