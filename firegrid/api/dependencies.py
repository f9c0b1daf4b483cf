from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.engine import Engine

from firegrid.dashboards.repository import DashboardRepository
from firegrid.dashboards.sessions import SessionManager
from firegrid.database import create_db_engine, create_session_factory
from firegrid.datasources.base import DocumentStore
from firegrid.datasources.catalog import CatalogRowSource, TableCatalog
from firegrid.datasources.documents import SqlDocumentStore
from firegrid.datasources.http import HttpRowSource
from firegrid.settings import Settings


@dataclass(slots=True)
class Services:
    settings: Settings
    store: DocumentStore
    catalog: TableCatalog
    rows: CatalogRowSource
    dashboards: DashboardRepository
    sessions: SessionManager
    engine: Engine | None = None


def build_services(settings: Settings, store: DocumentStore | None = None) -> Services:
    engine = None
    if store is None:
        # Tables are created on startup, see firegrid.main
        engine = create_db_engine(settings.database_url)
        store = SqlDocumentStore(create_session_factory(engine))
    catalog = TableCatalog(store)
    remote = HttpRowSource(settings) if settings.row_source_base_url else None
    rows = CatalogRowSource(catalog, remote)
    dashboards = DashboardRepository(store)
    sessions = SessionManager(settings=settings, repository=dashboards, row_source=rows, column_source=catalog)
    return Services(
        settings=settings,
        store=store,
        catalog=catalog,
        rows=rows,
        dashboards=dashboards,
        sessions=sessions,
        engine=engine,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
