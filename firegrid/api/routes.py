from __future__ import annotations

import logging
from time import perf_counter
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError

from firegrid.api.dependencies import Services, get_services
from firegrid.dashboards.execution import WidgetDataResult, render_dashboard
from firegrid.dashboards.repository import DashboardDocument, DashboardSummary
from firegrid.errors import FiregridError
from firegrid.schemas import (
    ActionRequest,
    DashboardDataResponse,
    FormulaEvaluateRequest,
    FormulaEvaluateResponse,
    OpenSessionRequest,
    SessionResponse,
    SortRequest,
    SortResponse,
    TableInput,
    WidgetValidationRequest,
    WidgetValidationResponse,
)
from firegrid.widgets.config import SavedTable, parse_widget, validate_widget_against_columns
from firegrid.widgets.formula import evaluate_formula
from firegrid.widgets.sorting import SortState

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "service": "firegrid"}


# ============================================================
# Tables
# ============================================================


@router.put("/tables/{table_id}", response_model=SavedTable)
async def register_table(table_id: str, payload: TableInput, services: Services = Depends(get_services)) -> SavedTable:
    table = SavedTable(id=table_id, **payload.model_dump())
    return await services.catalog.register(table)


@router.get("/tables/{table_id}", response_model=SavedTable)
async def get_table(table_id: str, services: Services = Depends(get_services)) -> SavedTable:
    return await services.catalog.require_table(table_id)


@router.post("/tables/{table_id}/widgets/validate", response_model=WidgetValidationResponse)
async def validate_widget(
    table_id: str,
    payload: WidgetValidationRequest,
    services: Services = Depends(get_services),
) -> WidgetValidationResponse:
    table = await services.catalog.require_table(table_id)
    try:
        widget = parse_widget(payload.widget)
    except ValidationError as exc:
        raise FiregridError(status_code=422, code="invalid_widget", message=str(exc.errors()[:3])) from exc
    validate_widget_against_columns(widget, table.column_types())
    return WidgetValidationResponse(valid=True, widget_id=widget.id)


# ============================================================
# Dashboards
# ============================================================


@router.get("/dashboards", response_model=list[DashboardSummary])
async def list_dashboards(
    include_archived: bool = Query(default=False),
    services: Services = Depends(get_services),
) -> list[DashboardSummary]:
    return await services.dashboards.list(include_archived=include_archived)


@router.get("/dashboards/{dashboard_id}", response_model=DashboardDocument)
async def get_dashboard(dashboard_id: str, services: Services = Depends(get_services)) -> DashboardDocument:
    return await services.dashboards.require(dashboard_id)


@router.post("/dashboards/{dashboard_id}/archive", response_model=DashboardDocument)
async def archive_dashboard(dashboard_id: str, services: Services = Depends(get_services)) -> DashboardDocument:
    return await services.dashboards.archive(dashboard_id)


@router.post("/dashboards/{dashboard_id}/restore", response_model=DashboardDocument)
async def restore_dashboard(dashboard_id: str, services: Services = Depends(get_services)) -> DashboardDocument:
    return await services.dashboards.restore(dashboard_id)


@router.post("/dashboards/{dashboard_id}/data", response_model=DashboardDataResponse)
async def dashboard_data(dashboard_id: str, services: Services = Depends(get_services)) -> DashboardDataResponse:
    started = perf_counter()
    document = await services.dashboards.require(dashboard_id)
    results = await render_dashboard(
        document.widgets,
        row_source=services.rows,
        column_source=services.catalog,
        concurrency_limit=services.settings.widget_data_concurrency_limit,
        tz=services.settings.tzinfo,
    )
    logger.info(
        "firegrid.api.dashboard_data | %s",
        {
            "dashboard_id": dashboard_id,
            "widgets": len(results),
            "duration_ms": max(0, int((perf_counter() - started) * 1000)),
        },
    )
    return DashboardDataResponse(dashboard_id=dashboard_id, widgets=results)


@router.post("/formula/evaluate", response_model=FormulaEvaluateResponse)
async def formula_evaluate(payload: FormulaEvaluateRequest) -> FormulaEvaluateResponse:
    return FormulaEvaluateResponse(value=evaluate_formula(payload.formula, payload.row, payload.prefix, payload.suffix))


# ============================================================
# Editor sessions
# ============================================================


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def open_session(payload: OpenSessionRequest, services: Services = Depends(get_services)) -> SessionResponse:
    session = await services.sessions.open(payload.dashboard_id, payload.name)
    return SessionResponse.from_session(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, services: Services = Depends(get_services)) -> SessionResponse:
    return SessionResponse.from_session(services.sessions.get(session_id))


@router.delete("/sessions/{session_id}", response_model=SessionResponse)
async def close_session(session_id: str, services: Services = Depends(get_services)) -> SessionResponse:
    session = await services.sessions.close(session_id)
    return SessionResponse.from_session(session)


@router.post("/sessions/{session_id}/actions", response_model=SessionResponse)
async def apply_session_action(
    session_id: str,
    payload: ActionRequest,
    services: Services = Depends(get_services),
) -> SessionResponse:
    session = services.sessions.apply(session_id, payload.action)
    return SessionResponse.from_session(session)


@router.post("/sessions/{session_id}/save", response_model=SessionResponse)
async def save_session(session_id: str, services: Services = Depends(get_services)) -> SessionResponse:
    session = await services.sessions.save_now(session_id)
    return SessionResponse.from_session(session)


@router.get("/sessions/{session_id}/widgets/{widget_id}/data", response_model=WidgetDataResult)
async def session_widget_data(
    session_id: str,
    widget_id: str,
    sort_column: str | None = Query(default=None),
    sort_direction: Literal["asc", "desc"] | None = Query(default=None),
    services: Services = Depends(get_services),
) -> WidgetDataResult:
    if sort_column:
        services.sessions.set_sort(session_id, widget_id, SortState(column=sort_column, direction=sort_direction or "asc"))
    return await services.sessions.widget_data(session_id, widget_id)


@router.post("/sessions/{session_id}/widgets/{widget_id}/sort", response_model=SortResponse)
async def cycle_widget_sort(
    session_id: str,
    widget_id: str,
    payload: SortRequest,
    services: Services = Depends(get_services),
) -> SortResponse:
    sort = services.sessions.cycle_sort(session_id, widget_id, payload.column)
    return SortResponse(
        widget_id=widget_id,
        column=sort.column if sort else None,
        direction=sort.direction if sort else None,
    )


@router.post("/sessions/{session_id}/widgets/{widget_id}/retry", response_model=WidgetDataResult)
async def retry_widget_data(session_id: str, widget_id: str, services: Services = Depends(get_services)) -> WidgetDataResult:
    return await services.sessions.widget_data(session_id, widget_id, retry=True)
