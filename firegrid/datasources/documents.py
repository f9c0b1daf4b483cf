from __future__ import annotations

import asyncio
import copy

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from firegrid.datasources.base import Document
from firegrid.models import DocumentRecord


class SqlDocumentStore:
    """Document store over one JSON column table.

    Calls run the synchronous session in a worker thread so the event loop
    keeps serving other widgets while a save is in flight.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    async def save(self, path: str, data: Document, *, merge: bool = True) -> None:
        await asyncio.to_thread(self._save_sync, path, copy.deepcopy(data), merge)

    async def load(self, path: str) -> Document | None:
        return await asyncio.to_thread(self._load_sync, path)

    async def list(self, prefix: str) -> list[tuple[str, Document]]:
        return await asyncio.to_thread(self._list_sync, prefix)

    def _save_sync(self, path: str, data: Document, merge: bool) -> None:
        db: Session = self._session_factory()
        try:
            record = db.get(DocumentRecord, path)
            if record is None:
                db.add(DocumentRecord(path=path, data=data))
            else:
                # Reassign so the JSON column is marked dirty
                record.data = {**record.data, **data} if merge else data
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _load_sync(self, path: str) -> Document | None:
        db: Session = self._session_factory()
        try:
            record = db.get(DocumentRecord, path)
            return copy.deepcopy(record.data) if record is not None else None
        finally:
            db.close()

    def _list_sync(self, prefix: str) -> list[tuple[str, Document]]:
        db: Session = self._session_factory()
        try:
            records = db.execute(
                select(DocumentRecord).where(DocumentRecord.path.startswith(prefix, autoescape=True)).order_by(DocumentRecord.path)
            ).scalars()
            return [(record.path, copy.deepcopy(record.data)) for record in records]
        finally:
            db.close()
