from __future__ import annotations

import logging

from pydantic import ValidationError

from firegrid.datasources.base import DocumentStore, Row, RowSource
from firegrid.errors import RowSourceError, not_found
from firegrid.widgets.config import ColumnConfig, SavedTable

logger = logging.getLogger(__name__)

TABLES_PREFIX = "tables/"


def table_path(table_id: str) -> str:
    return f"{TABLES_PREFIX}{table_id}"


class TableCatalog:
    """Saved table descriptors kept in the document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def register(self, table: SavedTable) -> SavedTable:
        await self._store.save(table_path(table.id), table.model_dump(mode="json", by_alias=True), merge=False)
        logger.info("firegrid.catalog.registered | %s", {"table_id": table.id, "kind": table.kind, "columns": len(table.columns)})
        return table

    async def get_table(self, table_id: str) -> SavedTable | None:
        raw = await self._store.load(table_path(table_id))
        if raw is None:
            return None
        try:
            return SavedTable.model_validate({"id": table_id, **raw})
        except ValidationError:
            logger.warning("firegrid.catalog.unreadable_table | %s", {"table_id": table_id})
            return None

    async def require_table(self, table_id: str) -> SavedTable:
        table = await self.get_table(table_id)
        if table is None:
            raise not_found("table_not_found", f"Table '{table_id}' not found")
        return table

    async def list_columns(self, table_id: str) -> list[ColumnConfig]:
        table = await self.get_table(table_id)
        if table is None:
            return []
        return sorted(table.columns, key=lambda column: column.order)

    async def list_tables(self) -> list[SavedTable]:
        tables = []
        for path, raw in await self._store.list(TABLES_PREFIX):
            try:
                tables.append(SavedTable.model_validate({"id": path.removeprefix(TABLES_PREFIX), **raw}))
            except ValidationError:
                logger.warning("firegrid.catalog.unreadable_table | %s", {"path": path})
        return tables


class CatalogRowSource:
    """Rows for a saved table.

    Query tables carry their rows inline; every other kind is fetched from the
    remote row source.
    """

    def __init__(self, catalog: TableCatalog, remote: RowSource | None = None) -> None:
        self._catalog = catalog
        self._remote = remote

    async def fetch_rows(self, table_id: str) -> list[Row]:
        table = await self._catalog.get_table(table_id)
        if table is None:
            raise RowSourceError(f"Table '{table_id}' not found", status_code=404, code="table_not_found")
        if table.kind == "query":
            return [dict(row) for row in table.query_data or []]
        if self._remote is None:
            raise RowSourceError(
                f"No row source is configured for table '{table_id}'",
                status_code=503,
                code="row_source_unavailable",
            )
        return await self._remote.fetch_rows(table_id)
