"""Shared test fixtures for the attachment migration."""

from __future__ import annotations

import asyncio
import fnmatch
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import Column, Integer, MetaData, Table, Text, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from attachment_migration.config import Settings
from attachment_migration.models import Base
from attachment_migration.models.meta import ATTACHMENT_UIDT, Model, Source
from attachment_migration.models.meta import Column as MetaColumn
from attachment_migration.services.discovery_service import ModelRef

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator, Iterable
    from pathlib import Path

TEST_ADMIN_TOKEN = "test-admin-token-with-at-least-32-characters"

WORKSPACE_ID = "ws1"
BASE_ID = "base1"
SOURCE_ID = "src1"


class MemoryStorageAdapter:
    """Storage adapter serving a fixed list of paths.

    ``fail_after`` makes the scan raise once that many paths were emitted.
    """

    def __init__(
        self,
        paths: Iterable[str],
        *,
        name: str = "Local",
        fail_after: int | None = None,
    ) -> None:
        self.paths = list(paths)
        self.name = name
        self.fail_after = fail_after
        self.scans = 0

    async def scan_files(self, glob_pattern: str) -> AsyncIterator[str]:
        self.scans += 1
        for index, path in enumerate(self.paths):
            if self.fail_after is not None and index >= self.fail_after:
                raise OSError("storage listing interrupted")
            await asyncio.sleep(0)
            if fnmatch.fnmatchcase(path, glob_pattern):
                yield path


def upload_paths(count: int, ext: str = "png") -> list[str]:
    """Storage keys ``nc/uploads/f0.png`` ... as the scanner reports them."""
    return [f"nc/uploads/f{i}.{ext}" for i in range(count)]


def path_attachment(name: str, **extra: Any) -> dict[str, Any]:
    """Attachment stored with a legacy ``download/`` path."""
    return {"path": f"download/{name}", "title": name, "size": 10, **extra}


def url_attachment(name: str, **extra: Any) -> dict[str, Any]:
    """Attachment stored with an absolute URL."""
    return {"url": f"https://files.example.com/nc/uploads/{name}", "title": name, **extra}


@dataclass
class SeededModel:
    """A seeded model plus its data table."""

    ref: ModelRef
    table: Table
    attachment_columns: list[str]


async def seed_model(
    session_factory: async_sessionmaker[AsyncSession],
    engine: AsyncEngine,
    model_id: str,
    rows: list[dict[str, Any]],
    *,
    attachment_columns: Iterable[str] = ("files",),
    with_pk: bool = True,
    source_id: str = SOURCE_ID,
    is_meta: bool = True,
    database_url: str | None = None,
) -> SeededModel:
    """Register a model in the metadata tables and create its data table.

    Row dicts are keyed by column name; attachment values may be lists, which
    are stored JSON-encoded.
    """
    attachment_columns = list(attachment_columns)
    table_name = f"nc_data_{model_id}"

    async with session_factory() as session:
        if await session.get(Source, source_id) is None:
            session.add(
                Source(
                    id=source_id,
                    fk_workspace_id=WORKSPACE_ID,
                    base_id=BASE_ID,
                    is_meta=is_meta,
                    database_url=database_url,
                )
            )
        session.add(
            Model(
                id=model_id,
                fk_workspace_id=WORKSPACE_ID,
                base_id=BASE_ID,
                source_id=source_id,
                table_name=table_name,
                title=model_id.title(),
            )
        )
        session.add(
            MetaColumn(
                id=f"{model_id}_id",
                fk_workspace_id=WORKSPACE_ID,
                base_id=BASE_ID,
                source_id=source_id,
                fk_model_id=model_id,
                column_name="id",
                title="Id",
                uidt="ID",
                pk=with_pk,
                order=0,
            )
        )
        for order, name in enumerate(attachment_columns, start=1):
            session.add(
                MetaColumn(
                    id=f"{model_id}_{name}",
                    fk_workspace_id=WORKSPACE_ID,
                    base_id=BASE_ID,
                    source_id=source_id,
                    fk_model_id=model_id,
                    column_name=name,
                    title=name.title(),
                    uidt=ATTACHMENT_UIDT,
                    order=order,
                )
            )
        await session.commit()

    metadata = MetaData()
    table = Table(
        table_name,
        metadata,
        Column("id", Integer, primary_key=with_pk),
        *(Column(name, Text) for name in attachment_columns),
    )
    encoded = [
        {key: json.dumps(value) if isinstance(value, list) else value for key, value in row.items()}
        for row in rows
    ]
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        if encoded:
            await conn.execute(table.insert(), encoded)

    ref = ModelRef(
        workspace_id=WORKSPACE_ID, base_id=BASE_ID, source_id=source_id, model_id=model_id
    )
    return SeededModel(ref=ref, table=table, attachment_columns=attachment_columns)


async def read_attachments(engine: AsyncEngine, seeded: SeededModel) -> dict[int, list[Any]]:
    """Return each row's decoded first attachment column, keyed by row id."""
    column_name = seeded.attachment_columns[0]
    async with engine.connect() as conn:
        result = await conn.execute(select(seeded.table).order_by(seeded.table.c.id))
        rows = result.mappings().all()
    return {
        row["id"]: json.loads(row[column_name]) if row[column_name] else [] for row in rows
    }


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with temporary paths."""
    db_path = tmp_path / "test.db"
    return Settings(
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        storage_root=tmp_path / "storage",
        admin_token=TEST_ADMIN_TOKEN,
    )


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with every table created."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
