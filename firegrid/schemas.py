from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from firegrid.dashboards.autosave import SaveStatus, TimerState
from firegrid.dashboards.execution import WidgetDataResult
from firegrid.dashboards.layout import find_overlaps
from firegrid.dashboards.sessions import EditorSession
from firegrid.dashboards.store import DashboardAction
from firegrid.widgets.config import CamelModel, ColumnConfig, TableKind, Widget


class TableInput(CamelModel):
    table_name: str = Field(min_length=1)
    kind: TableKind = "collection"
    columns: list[ColumnConfig] = Field(default_factory=list)
    query_data: list[dict[str, Any]] | None = None


class WidgetValidationRequest(CamelModel):
    widget: dict[str, Any]


class WidgetValidationResponse(CamelModel):
    valid: bool
    widget_id: str


class FormulaEvaluateRequest(CamelModel):
    formula: str
    row: dict[str, Any] = Field(default_factory=dict)
    prefix: str | None = None
    suffix: str | None = None


class FormulaEvaluateResponse(CamelModel):
    value: str


class DashboardDataResponse(CamelModel):
    dashboard_id: str
    widgets: list[WidgetDataResult]


class OpenSessionRequest(CamelModel):
    dashboard_id: str | None = None
    name: str | None = None


class ActionRequest(CamelModel):
    action: DashboardAction


class SortRequest(CamelModel):
    column: str


class SortResponse(CamelModel):
    widget_id: str
    column: str | None = None
    direction: Literal["asc", "desc"] | None = None


class SessionResponse(CamelModel):
    session_id: str
    dashboard_id: str | None
    name: str
    widgets: list[Widget]
    save_status: SaveStatus
    autosave_state: TimerState
    overlapping_widgets: list[tuple[str, str]] = Field(default_factory=list)

    @classmethod
    def from_session(cls, session: EditorSession) -> "SessionResponse":
        state = session.snapshot()
        return cls(
            session_id=session.id,
            dashboard_id=state.dashboard_id,
            name=state.name,
            widgets=list(state.widgets),
            save_status=session.autosave.status,
            autosave_state=session.autosave.timer_state,
            overlapping_widgets=find_overlaps(state.widgets),
        )
