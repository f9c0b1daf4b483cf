from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import tzinfo
from uuid import uuid4

from firegrid.dashboards.autosave import AutosaveCoordinator
from firegrid.dashboards.execution import WidgetDataError, WidgetDataLoader, WidgetDataResult, render_widget_data
from firegrid.dashboards.repository import DashboardRepository
from firegrid.dashboards.store import DashboardAction, DashboardState, apply_action, load_state
from firegrid.datasources.base import ColumnSource, RowSource
from firegrid.errors import not_found
from firegrid.settings import Settings
from firegrid.widgets.config import bound_table_id
from firegrid.widgets.sorting import SortState, next_sort_state

logger = logging.getLogger("uvicorn.error")


@dataclass(slots=True)
class EditorSession:
    id: str
    state: DashboardState
    autosave: AutosaveCoordinator
    loader: WidgetDataLoader
    sorts: dict[str, SortState] = field(default_factory=dict)

    def snapshot(self) -> DashboardState:
        return replace(self.state, dashboard_id=self.autosave.dashboard_id)


class SessionManager:
    """Open editor sessions, one per dashboard being edited."""

    def __init__(
        self,
        *,
        settings: Settings,
        repository: DashboardRepository,
        row_source: RowSource,
        column_source: ColumnSource,
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._row_source = row_source
        self._column_source = column_source
        self._sessions: dict[str, EditorSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def open(self, dashboard_id: str | None = None, name: str | None = None) -> EditorSession:
        if dashboard_id is not None:
            document = await self._repository.require(dashboard_id)
            state = load_state(document.id, document.name, document.widgets)
        else:
            state = load_state(None, name or "", [])

        autosave = AutosaveCoordinator(
            self._repository,
            dashboard_id=state.dashboard_id,
            debounce_seconds=self._settings.autosave_debounce_seconds,
            saved_reset_seconds=self._settings.save_status_saved_seconds,
            error_reset_seconds=self._settings.save_status_error_seconds,
        )
        autosave.mark_loaded(state)
        session = EditorSession(
            id=uuid4().hex,
            state=state,
            autosave=autosave,
            loader=WidgetDataLoader(self._row_source),
        )
        self._sessions[session.id] = session
        logger.info(
            "firegrid.session.opened | %s",
            {"session_id": session.id, "dashboard_id": state.dashboard_id, "widgets": len(state.widgets)},
        )
        return session

    def get(self, session_id: str) -> EditorSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise not_found("session_not_found", f"Session '{session_id}' not found")
        return session

    def apply(self, session_id: str, action: DashboardAction) -> EditorSession:
        session = self.get(session_id)
        previous = {widget.id for widget in session.state.widgets}
        session.state = apply_action(session.snapshot(), action)
        present = {widget.id for widget in session.state.widgets}
        for widget_id in list(session.sorts):
            if widget_id not in present:
                session.sorts.pop(widget_id)
        for widget_id in previous - present:
            session.loader.forget(widget_id)
        session.autosave.update(session.state)
        return session

    async def save_now(self, session_id: str) -> EditorSession:
        session = self.get(session_id)
        await session.autosave.save_now()
        return session

    def set_sort(self, session_id: str, widget_id: str, sort: SortState | None) -> SortState | None:
        session = self.get(session_id)
        session.state.find(widget_id)
        if sort is None:
            session.sorts.pop(widget_id, None)
        else:
            session.sorts[widget_id] = sort
        return sort

    def cycle_sort(self, session_id: str, widget_id: str, column: str) -> SortState | None:
        session = self.get(session_id)
        return self.set_sort(session_id, widget_id, next_sort_state(session.sorts.get(widget_id), column))

    async def widget_data(self, session_id: str, widget_id: str, *, retry: bool = False, tz: tzinfo | None = None) -> WidgetDataResult:
        session = self.get(session_id)
        widget = session.state.find(widget_id)
        fetch = await (session.loader.retry(widget) if retry else session.loader.load(widget))
        if fetch.status != "ready":
            return WidgetDataResult(
                widget_id=widget_id,
                status="error",
                error=WidgetDataError(code=fetch.error_code or "row_source_error", message=fetch.error_message or "Failed to load rows"),
            )
        table_id = bound_table_id(widget)
        table = await self._column_source.get_table(table_id) if table_id else None
        payload = render_widget_data(
            widget,
            table,
            fetch.rows,
            sort=session.sorts.get(widget_id),
            tz=tz or self._settings.tzinfo,
        )
        return WidgetDataResult(widget_id=widget_id, status="ok", payload=payload)

    async def close(self, session_id: str) -> EditorSession:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise not_found("session_not_found", f"Session '{session_id}' not found")
        await session.autosave.close()
        logger.info("firegrid.session.closed | %s", {"session_id": session_id, "dashboard_id": session.autosave.dashboard_id})
        return session

    async def close_all(self) -> None:
        await asyncio.gather(*(self.close(session_id) for session_id in list(self._sessions)))
