"""Entity accessors: sources, models, columns, connections and row access."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, column, select, table, update
from sqlalchemy.ext.asyncio import create_async_engine

from attachment_migration.models.meta import Column, Model, Source

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

logger = logging.getLogger(__name__)


async def get_source(session: AsyncSession, base_id: str, source_id: str) -> Source | None:
    stmt = select(Source).where(Source.id == source_id, Source.base_id == base_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_model(session: AsyncSession, base_id: str, model_id: str) -> Model | None:
    stmt = select(Model).where(Model.id == model_id, Model.base_id == base_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_columns(session: AsyncSession, model_id: str) -> list[Column]:
    """Return a model's columns in display order."""
    stmt = select(Column).where(Column.fk_model_id == model_id).order_by(Column.order, Column.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


class ConnectionManager:
    """Cache of database engines per data source.

    Meta sources keep their rows in the metadata database itself and share
    its engine; external sources get one engine each, created on first use.
    """

    def __init__(self, meta_engine: AsyncEngine) -> None:
        self._meta_engine = meta_engine
        self._engines: dict[str, AsyncEngine] = {}

    def get(self, source: Source) -> AsyncEngine | None:
        """Return the engine for a source, or None if it has no connection info."""
        if source.is_meta:
            return self._meta_engine
        if not source.database_url:
            return None
        engine = self._engines.get(source.id)
        if engine is None:
            engine = create_async_engine(source.database_url)
            self._engines[source.id] = engine
        return engine

    async def dispose(self) -> None:
        """Dispose every engine this manager created."""
        engines = list(self._engines.values())
        self._engines.clear()
        for engine in engines:
            try:
                await engine.dispose()
            except Exception as exc:
                logger.error("Error disposing source engine: %s", exc, exc_info=True)


class RowAccessor:
    """Row-level access to one model's table.

    Rows are read from the raw table, so no view-level filters or sorts apply.
    Listed rows are keyed by column title; update payloads by column name.
    """

    def __init__(self, engine: AsyncEngine, model: Model, columns: list[Column]) -> None:
        self.engine = engine
        self.model = model
        self.columns = columns
        self.primary_keys = [c for c in columns if c.pk]
        self._by_title = {c.title: c for c in columns}
        self._table = table(model.table_name, *(column(c.column_name) for c in columns))

    def _column_for(self, title: str) -> ColumnElement[Any]:
        return self._table.c[self._by_title[title].column_name]

    async def list(
        self,
        fields: Iterable[str],
        sort: Iterable[str],
        limit: int,
        offset: int,
    ) -> list[dict[str, Any]]:
        """Fetch one page of rows projected onto ``fields``, ordered by ``sort``."""
        selected = [self._column_for(title).label(title) for title in dict.fromkeys(fields)]
        stmt = (
            select(*selected)
            .order_by(*(self._column_for(title) for title in sort))
            .limit(limit)
            .offset(offset)
        )
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row._mapping) for row in result]

    def extract_pk_values(self, row: dict[str, Any]) -> dict[str, Any]:
        """Map a listed row's primary-key values to their column names."""
        return {pk.column_name: row.get(pk.title) for pk in self.primary_keys}

    def where_pk(self, pk_values: dict[str, Any]) -> ColumnElement[bool] | None:
        """Build a predicate matching exactly one row.

        Returns None when the model has no primary key or a value is missing.
        """
        if not self.primary_keys:
            return None
        clauses = []
        for pk in self.primary_keys:
            value = pk_values.get(pk.column_name)
            if value is None:
                return None
            clauses.append(self._table.c[pk.column_name] == value)
        return and_(*clauses)

    async def update(self, data: dict[str, Any], predicate: ColumnElement[bool]) -> int:
        """Write ``data`` (keyed by column name) to the rows matching ``predicate``."""
        pk_names = {pk.column_name for pk in self.primary_keys}
        values = {name: value for name, value in data.items() if name not in pk_names}
        if not values:
            return 0
        stmt = update(self._table).where(predicate).values(values)
        async with self.engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount
