from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from time import perf_counter
from typing import Annotated, Any, Literal, Sequence, Union, assert_never

from pydantic import Field

from firegrid.datasources.base import ColumnSource, Row, RowSource
from firegrid.errors import FiregridError, RowSourceError
from firegrid.widgets.charts import build_chart_data
from firegrid.widgets.config import (
    CamelModel,
    ChartWidget,
    DividerWidget,
    HeadingWidget,
    MetricWidget,
    SavedTable,
    TableWidget,
    TextWidget,
    Widget,
    bound_table_id,
)
from firegrid.widgets.filters import active_filter_count, apply_widget_filters
from firegrid.widgets.metrics import compute_metric, format_metric_value
from firegrid.widgets.sorting import SortState
from firegrid.widgets.tables import build_table_view

logger = logging.getLogger("uvicorn.error")

FetchStatus = Literal["idle", "loading", "ready", "error"]


# ============================================================
# Payloads
# ============================================================


class TableColumnPayload(CamelModel):
    key: str
    display_name: str
    is_custom: bool


class TablePayload(CamelModel):
    kind: Literal["table"] = "table"
    title: str
    columns: list[TableColumnPayload]
    rows: list[dict[str, str]]
    total_rows: int
    filtered_rows: int
    active_filters: int = 0
    sort_column: str | None = None
    sort_direction: Literal["asc", "desc"] | None = None


class MetricPayload(CamelModel):
    kind: Literal["metric"] = "metric"
    label: str
    value: float | None
    display: str
    row_count: int


class ChartPointPayload(CamelModel):
    name: str
    value: float


class ChartPayload(CamelModel):
    kind: Literal["chart"] = "chart"
    label: str
    chart_type: Literal["bar", "line"]
    points: list[ChartPointPayload]
    colour: str | None = None


class StaticPayload(CamelModel):
    kind: Literal["static"] = "static"
    content: str | None = None


class UnconfiguredPayload(CamelModel):
    kind: Literal["unconfigured"] = "unconfigured"
    message: str


WidgetPayload = Annotated[
    Union[TablePayload, MetricPayload, ChartPayload, StaticPayload, UnconfiguredPayload],
    Field(discriminator="kind"),
]


class WidgetDataError(CamelModel):
    code: str
    message: str
    retryable: bool = True


class WidgetDataResult(CamelModel):
    widget_id: str
    status: Literal["ok", "error"]
    payload: WidgetPayload | None = None
    error: WidgetDataError | None = None


def render_widget_data(
    widget: Widget,
    table: SavedTable | None,
    rows: Sequence[Row],
    *,
    sort: SortState | None = None,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> WidgetPayload:
    """Turn fetched rows into what one widget shows."""
    columns = table.columns if table else []
    match widget:
        case TableWidget():
            view = build_table_view(widget, columns, rows, sort)
            return TablePayload(
                title=widget.display_name or widget.table_name or (table.table_name if table else widget.table_id),
                columns=[
                    TableColumnPayload(key=column.key, display_name=column.display_name, is_custom=column.is_custom)
                    for column in view.columns
                ],
                rows=view.formatted_rows(tz),
                total_rows=view.total_rows,
                filtered_rows=len(view.rows),
                active_filters=view.active_filters,
                sort_column=sort.column if sort else None,
                sort_direction=sort.direction if sort else None,
            )
        case MetricWidget():
            config = widget.metric_config
            if config is None or not config.table_id:
                return UnconfiguredPayload(message="Metric is not configured")
            filtered = apply_widget_filters(rows, widget.filters, _known_columns(columns))
            value = compute_metric(filtered, config, now, tz)
            return MetricPayload(
                label=config.label,
                value=value,
                display=format_metric_value(value, config),
                row_count=len(filtered),
            )
        case ChartWidget():
            config = widget.chart_config
            if config is None or not config.table_id or not config.category_column:
                return UnconfiguredPayload(message="Chart is not configured")
            filtered = apply_widget_filters(rows, widget.filters, _known_columns(columns))
            points = build_chart_data(filtered, config, now, tz)
            return ChartPayload(
                label=config.label,
                chart_type=config.chart_type,
                points=[ChartPointPayload(name=point.name, value=point.value) for point in points],
                colour=config.colour,
            )
        case HeadingWidget() | TextWidget():
            return StaticPayload(content=widget.content)
        case DividerWidget():
            return StaticPayload()
        case _:
            assert_never(widget)


def _known_columns(columns: Sequence[Any]) -> set[str] | None:
    if not columns:
        return None
    return {column.source_path for column in columns}


# ============================================================
# Per-widget fetches
# ============================================================


@dataclass(slots=True)
class WidgetFetchState:
    table_id: str | None
    status: FetchStatus = "idle"
    rows: list[Row] = field(default_factory=list)
    error_code: str | None = None
    error_message: str | None = None


@dataclass(slots=True)
class FetchHandle:
    table_id: str
    task: asyncio.Task[WidgetFetchState] | None = None
    cancelled: bool = False


class WidgetDataLoader:
    """Row fetches keyed by widget id.

    A new fetch for a widget marks the previous one cancelled; a cancelled
    fetch never writes its result, so the latest request wins even when an
    older response arrives later. Callers of a cancelled fetch wait for the
    newest one instead, and a second load for the same table joins the fetch
    already running. `load` only ever returns a "ready" or "error" state.
    """

    def __init__(self, row_source: RowSource) -> None:
        self._row_source = row_source
        self._handles: dict[str, FetchHandle] = {}
        self._states: dict[str, WidgetFetchState] = {}

    def get(self, widget_id: str) -> WidgetFetchState | None:
        return self._states.get(widget_id)

    def forget(self, widget_id: str) -> None:
        handle = self._handles.pop(widget_id, None)
        if handle is not None:
            handle.cancelled = True
        self._states.pop(widget_id, None)

    async def load(self, widget: Widget, *, force: bool = False) -> WidgetFetchState:
        table_id = bound_table_id(widget)
        if table_id is None:
            self.forget(widget.id)
            state = WidgetFetchState(table_id=None, status="ready")
            self._states[widget.id] = state
            return state

        current = self._states.get(widget.id)
        handle = self._handles.get(widget.id)
        running = handle is not None and handle.table_id == table_id and handle.task is not None and not handle.task.done()
        if not force and running:
            return await self._wait(widget.id, handle)
        if not force and current is not None and current.table_id == table_id and current.status == "ready":
            return current

        if handle is not None:
            handle.cancelled = True
        state = WidgetFetchState(table_id=table_id, status="loading")
        handle = FetchHandle(table_id=table_id)
        handle.task = asyncio.create_task(self._fetch(widget.id, table_id, state))
        self._handles[widget.id] = handle
        self._states[widget.id] = state
        return await self._wait(widget.id, handle)

    async def _wait(self, widget_id: str, handle: FetchHandle) -> WidgetFetchState:
        while True:
            # Shielded so one caller going away does not abort a fetch others share
            state = await asyncio.shield(handle.task)
            newest = self._handles.get(widget_id)
            if not handle.cancelled or newest is None or newest is handle or newest.task is None:
                return state
            handle = newest

    async def _fetch(self, widget_id: str, table_id: str, state: WidgetFetchState) -> WidgetFetchState:
        try:
            rows = await self._row_source.fetch_rows(table_id)
        except FiregridError as exc:
            logger.warning(
                "firegrid.widget_data.fetch_failed | %s",
                {"widget_id": widget_id, "table_id": table_id, "code": exc.code, "error_id": exc.error_id},
            )
            state.status = "error"
            state.error_code = exc.code
            state.error_message = exc.message
            return state
        except Exception:
            logger.exception("firegrid.widget_data.fetch_crashed | %s", {"widget_id": widget_id, "table_id": table_id})
            state.status = "error"
            state.error_code = "row_source_error"
            state.error_message = f"Failed to load rows for table '{table_id}'"
            return state
        state.status = "ready"
        state.rows = rows
        return state

    async def retry(self, widget: Widget) -> WidgetFetchState:
        return await self.load(widget, force=True)

    async def sync(self, widgets: Sequence[Widget]) -> None:
        """Drop state for removed widgets and start fetches for new bindings."""
        present = {widget.id for widget in widgets}
        for widget_id in list(self._states):
            if widget_id not in present:
                self.forget(widget_id)
        await asyncio.gather(*(self.load(widget) for widget in widgets))


# ============================================================
# Batch rendering
# ============================================================


async def render_dashboard(
    widgets: Sequence[Widget],
    *,
    row_source: RowSource,
    column_source: ColumnSource,
    concurrency_limit: int = 6,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> list[WidgetDataResult]:
    """Compute every widget's payload; one widget failing never fails the rest.

    Rows are fetched once per bound table.
    """
    started = perf_counter()
    semaphore = asyncio.Semaphore(max(1, concurrency_limit))
    table_ids = sorted({table_id for widget in widgets if (table_id := bound_table_id(widget))})

    async def _fetch(table_id: str) -> tuple[str, SavedTable | None, list[Row] | FiregridError]:
        async with semaphore:
            try:
                table = await column_source.get_table(table_id)
                rows: list[Row] | FiregridError = await row_source.fetch_rows(table_id)
            except FiregridError as exc:
                return table_id, None, exc
            except Exception:
                logger.exception("firegrid.dashboard.fetch_crashed | %s", {"table_id": table_id})
                return table_id, None, RowSourceError(f"Failed to load rows for table '{table_id}'")
            return table_id, table, rows

    fetched = await asyncio.gather(*(_fetch(table_id) for table_id in table_ids))
    tables = {table_id: table for table_id, table, _ in fetched}
    rows_by_table = {table_id: rows for table_id, _, rows in fetched}

    results: list[WidgetDataResult] = []
    for widget in widgets:
        table_id = bound_table_id(widget)
        rows = rows_by_table.get(table_id, []) if table_id else []
        if isinstance(rows, FiregridError):
            results.append(
                WidgetDataResult(
                    widget_id=widget.id,
                    status="error",
                    error=WidgetDataError(code=rows.code, message=rows.message),
                )
            )
            continue
        payload = render_widget_data(widget, tables.get(table_id) if table_id else None, rows, now=now, tz=tz)
        results.append(WidgetDataResult(widget_id=widget.id, status="ok", payload=payload))

    logger.info(
        "firegrid.dashboard.rendered | %s",
        {
            "widgets": len(widgets),
            "tables": len(table_ids),
            "errors": sum(1 for result in results if result.status == "error"),
            "duration_ms": int((perf_counter() - started) * 1000),
        },
    )
    return results
