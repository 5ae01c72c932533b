"""Local filesystem storage adapter."""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


def _raise(exc: OSError) -> None:
    raise exc


class LocalStorageAdapter:
    """Storage adapter serving files from a directory on disk."""

    name = "Local"

    def __init__(self, root: Path) -> None:
        self.root = root

    async def scan_files(self, glob_pattern: str) -> AsyncIterator[str]:
        """Yield posix paths relative to the root that match ``glob_pattern``.

        Directories are read off the event loop one at a time, so the scan is
        lazy. ``*`` in the pattern also matches ``/``.
        """
        if not self.root.is_dir():
            logger.warning("Storage root %s does not exist; nothing to scan", self.root)
            return

        walker = os.walk(self.root, onerror=_raise)
        while True:
            entry = await asyncio.to_thread(next, walker, None)
            if entry is None:
                break
            dirpath, dirnames, filenames = entry
            dirnames.sort()
            for filename in sorted(filenames):
                rel = (Path(dirpath) / filename).relative_to(self.root).as_posix()
                if fnmatch.fnmatchcase(rel, glob_pattern):
                    yield rel
