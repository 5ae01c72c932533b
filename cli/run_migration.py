"""CLI for running the attachment migration job once."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from attachment_migration.config import Settings
from attachment_migration.database import create_engine
from attachment_migration.main import configure_logging
from attachment_migration.services.migration_service import AttachmentMigration

logger = logging.getLogger(__name__)


def build_settings(args: argparse.Namespace) -> Settings:
    """Apply command-line overrides on top of environment settings."""
    overrides: dict[str, object] = {}
    if args.database_url:
        overrides["database_url"] = args.database_url
    if args.storage_root:
        overrides["storage_root"] = Path(args.storage_root)
    if args.debug:
        overrides["debug"] = True
    return Settings(**overrides)  # type: ignore[arg-type]


async def run(settings: Settings) -> bool:
    engine, session_factory = create_engine(settings)
    try:
        job = AttachmentMigration(settings, engine, session_factory)
        return await job.run()
    finally:
        await engine.dispose()


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="attachment-migration",
        description="Stage storage files and assign file references to every attachment",
    )
    parser.add_argument("--database-url", help="Metadata database URL (default: from env)")
    parser.add_argument("--storage-root", help="Root directory of the local storage adapter")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns 0 on success, 1 on failure."""
    args = _parse_args(argv)
    settings = build_settings(args)
    configure_logging(settings.debug)

    success = asyncio.run(run(settings))
    if not success:
        logger.error("Attachment migration failed; rerun to resume from the last checkpoint")
        return 1
    logger.info("Attachment migration completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
