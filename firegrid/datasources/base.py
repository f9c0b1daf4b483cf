from __future__ import annotations

import copy
from typing import Any, Protocol

from firegrid.widgets.config import ColumnConfig, SavedTable

Row = dict[str, Any]
Document = dict[str, Any]


class RowSource(Protocol):
    async def fetch_rows(self, table_id: str) -> list[Row]: ...


class ColumnSource(Protocol):
    async def get_table(self, table_id: str) -> SavedTable | None: ...

    async def list_columns(self, table_id: str) -> list[ColumnConfig]: ...


class DocumentStore(Protocol):
    async def save(self, path: str, data: Document, *, merge: bool = True) -> None: ...

    async def load(self, path: str) -> Document | None: ...

    async def list(self, prefix: str) -> list[tuple[str, Document]]: ...


class InMemoryDocumentStore:
    """Dict-backed store. Merges are shallow: top-level keys replace."""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}

    async def save(self, path: str, data: Document, *, merge: bool = True) -> None:
        current = self._documents.get(path) if merge else None
        merged = {**(current or {}), **copy.deepcopy(data)}
        self._documents[path] = merged

    async def load(self, path: str) -> Document | None:
        document = self._documents.get(path)
        return copy.deepcopy(document) if document is not None else None

    async def list(self, prefix: str) -> list[tuple[str, Document]]:
        return [
            (path, copy.deepcopy(document))
            for path, document in sorted(self._documents.items())
            if path.startswith(prefix)
        ]
