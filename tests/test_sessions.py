import asyncio

import pytest

from firegrid.dashboards.repository import DashboardRepository
from firegrid.dashboards.sessions import SessionManager
from firegrid.dashboards.store import (
    AddElementAction,
    AddTableWidgetAction,
    RemoveWidgetAction,
    UpdateMetricConfigAction,
)
from firegrid.datasources.base import InMemoryDocumentStore
from firegrid.datasources.catalog import CatalogRowSource, TableCatalog
from firegrid.errors import FiregridError
from firegrid.settings import Settings
from firegrid.widgets.config import ColumnConfig, MetricConfig, SavedTable


class _SlowRowSource:
    def __init__(self, inner: CatalogRowSource) -> None:
        self.inner = inner
        self.gate = asyncio.Event()
        self.calls: list[str] = []

    async def fetch_rows(self, table_id: str) -> list[dict]:
        self.calls.append(table_id)
        await self.gate.wait()
        return await self.inner.fetch_rows(table_id)


def _manager(settings: Settings, row_source=None) -> tuple[SessionManager, DashboardRepository, TableCatalog]:
    store = InMemoryDocumentStore()
    catalog = TableCatalog(store)
    repository = DashboardRepository(store)
    manager = SessionManager(
        settings=settings,
        repository=repository,
        row_source=row_source(catalog) if row_source else CatalogRowSource(catalog),
        column_source=catalog,
    )
    return manager, repository, catalog


async def _register_orders(catalog: TableCatalog) -> None:
    await catalog.register(
        SavedTable(
            id="orders",
            table_name="Orders",
            kind="query",
            columns=[ColumnConfig(id="c1", source_path="amount", order=0)],
            query_data=[{"amount": 5}, {"amount": 1}, {"amount": None}],
        )
    )


def test_closing_a_session_flushes_the_pending_save(editor_settings: Settings) -> None:
    manager, repository, catalog = _manager(editor_settings)

    async def scenario():
        await _register_orders(catalog)
        session = await manager.open(name="Sales")
        manager.apply(session.id, AddTableWidgetAction(type="add_table_widget", table_id="orders", widget_id="w1"))
        pending = session.autosave.timer_state
        await manager.close(session.id)
        return session, pending, await repository.list()

    session, pending, summaries = asyncio.run(scenario())

    assert pending == "pending"
    assert [summary.id for summary in summaries] == [session.autosave.dashboard_id]
    assert summaries[0].widget_count == 1
    assert len(manager) == 0


def test_widget_data_uses_the_session_sort(editor_settings: Settings) -> None:
    manager, _, catalog = _manager(editor_settings)

    async def scenario():
        await _register_orders(catalog)
        session = await manager.open(name="Sales")
        manager.apply(session.id, AddTableWidgetAction(type="add_table_widget", table_id="orders", widget_id="w1"))
        first = manager.cycle_sort(session.id, "w1", "amount")
        second = manager.cycle_sort(session.id, "w1", "amount")
        result = await manager.widget_data(session.id, "w1")
        third = manager.cycle_sort(session.id, "w1", "amount")
        await manager.close_all()
        return first, second, third, result

    first, second, third, result = asyncio.run(scenario())

    assert (first.direction, second.direction, third) == ("asc", "desc", None)
    assert result.status == "ok"
    assert [row["amount"] for row in result.payload.rows] == ["5", "1", "—"]


def test_removed_widgets_drop_their_sort_and_data(editor_settings: Settings) -> None:
    manager, _, catalog = _manager(editor_settings)

    async def scenario():
        await _register_orders(catalog)
        session = await manager.open(name="Sales")
        manager.apply(session.id, AddTableWidgetAction(type="add_table_widget", table_id="orders", widget_id="w1"))
        manager.apply(session.id, AddElementAction(type="add_element", element_type="text", widget_id="t1"))
        manager.cycle_sort(session.id, "w1", "amount")
        await manager.widget_data(session.id, "w1")
        manager.apply(session.id, RemoveWidgetAction(type="remove_widget", widget_id="w1"))
        await manager.close_all()
        return session

    session = asyncio.run(scenario())

    assert session.sorts == {}
    assert session.loader.get("w1") is None


def test_reopening_a_saved_dashboard(editor_settings: Settings) -> None:
    manager, repository, catalog = _manager(editor_settings)

    async def scenario():
        await _register_orders(catalog)
        first = await manager.open(name="Sales")
        manager.apply(first.id, AddElementAction(type="add_element", element_type="heading", widget_id="h1"))
        await manager.save_now(first.id)
        dashboard_id = first.autosave.dashboard_id
        await manager.close(first.id)
        second = await manager.open(dashboard_id)
        await manager.close(second.id)
        return dashboard_id, second

    dashboard_id, second = asyncio.run(scenario())

    assert second.snapshot().dashboard_id == dashboard_id
    assert [widget.id for widget in second.state.widgets] == ["h1"]
    assert second.state.widgets[0].min_h == 6


def test_unknown_session_and_dashboard(editor_settings: Settings) -> None:
    manager, _, _ = _manager(editor_settings)
    with pytest.raises(FiregridError) as missing_session:
        manager.get("nope")
    assert missing_session.value.code == "session_not_found"
    with pytest.raises(FiregridError) as missing_dashboard:
        asyncio.run(manager.open("nope"))
    assert missing_dashboard.value.code == "dashboard_not_found"


def test_concurrent_widget_data_requests_share_one_fetch(editor_settings: Settings) -> None:
    sources: list[_SlowRowSource] = []

    def slow_source(catalog: TableCatalog) -> _SlowRowSource:
        sources.append(_SlowRowSource(CatalogRowSource(catalog)))
        return sources[-1]

    manager, _, catalog = _manager(editor_settings, row_source=slow_source)

    async def scenario():
        await _register_orders(catalog)
        session = await manager.open(name="Sales")
        manager.apply(session.id, AddElementAction(type="add_element", element_type="metric", widget_id="m"))
        manager.apply(
            session.id,
            UpdateMetricConfigAction(type="update_metric_config", widget_id="m", config=MetricConfig(table_id="orders")),
        )
        first = asyncio.create_task(manager.widget_data(session.id, "m"))
        await asyncio.sleep(0)
        second = asyncio.create_task(manager.widget_data(session.id, "m"))
        await asyncio.sleep(0)
        sources[0].gate.set()
        results = [await first, await second]
        await manager.close_all()
        return results

    results = asyncio.run(scenario())

    assert [result.status for result in results] == ["ok", "ok"]
    assert [result.payload.value for result in results] == [3, 3]
    assert [result.payload.row_count for result in results] == [3, 3]
    assert sources[0].calls == ["orders"]
