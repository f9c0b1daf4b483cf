from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from pydantic import Field, ValidationError

from firegrid.dashboards.layout import GRID_COLS, migrate_legacy_geometry, with_min_sizes
from firegrid.datasources.base import DocumentStore
from firegrid.errors import not_found
from firegrid.widgets.config import UNTITLED_DASHBOARD, WIDGET_DEFAULTS, CamelModel, Widget, dump_widget, parse_widget

logger = logging.getLogger(__name__)

DASHBOARDS_PREFIX = "dashboards/"


def dashboard_path(dashboard_id: str) -> str:
    return f"{DASHBOARDS_PREFIX}{dashboard_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DashboardDocument(CamelModel):
    id: str
    name: str = UNTITLED_DASHBOARD
    widgets: list[Widget] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    archived: bool = False
    archived_at: datetime | None = None


class DashboardSummary(CamelModel):
    id: str
    name: str
    widget_count: int
    updated_at: datetime | None = None
    archived: bool = False


def load_widget(raw: dict[str, Any], cols: int = GRID_COLS) -> Widget:
    """Parse one persisted widget and restore its runtime geometry.

    Missing ``type`` means a table widget. Minimum sizes are re-derived from
    the type and rectangles written for the older, wider grid are rescaled.
    """
    data = dict(raw)
    if not data.get("type"):
        data["type"] = "table"
    if data["type"] in WIDGET_DEFAULTS:
        data.pop("minW", None)
        data.pop("minH", None)
    widget = with_min_sizes(parse_widget(data))
    return migrate_legacy_geometry(widget, cols)


def load_widgets(raw_widgets: Sequence[Any], dashboard_id: str) -> list[Widget]:
    widgets: list[Widget] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_widgets):
        if not isinstance(raw, dict):
            logger.warning("firegrid.dashboard.widget_skipped | %s", {"dashboard_id": dashboard_id, "index": index, "reason": "not an object"})
            continue
        try:
            widget = load_widget(raw)
        except ValidationError as exc:
            logger.warning(
                "firegrid.dashboard.widget_skipped | %s",
                {"dashboard_id": dashboard_id, "index": index, "reason": str(exc.errors()[:1])},
            )
            continue
        if widget.id in seen:
            logger.warning("firegrid.dashboard.widget_skipped | %s", {"dashboard_id": dashboard_id, "index": index, "reason": "duplicate id"})
            continue
        seen.add(widget.id)
        widgets.append(widget)
    return widgets


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


class DashboardRepository:
    """Dashboard documents at ``dashboards/<id>``.

    Saves are merges so fields this service does not write survive, and the
    creation timestamp is only set on the first save.
    """

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    async def save(self, dashboard_id: str, name: str, widgets: Sequence[Widget], *, is_new: bool) -> None:
        now = self._clock().isoformat()
        payload: dict[str, Any] = {
            "name": name.strip() or UNTITLED_DASHBOARD,
            "widgets": [dump_widget(widget) for widget in widgets],
            "updatedAt": now,
        }
        if is_new:
            payload["createdAt"] = now
        await self._store.save(dashboard_path(dashboard_id), payload, merge=True)

    async def load(self, dashboard_id: str) -> DashboardDocument | None:
        raw = await self._store.load(dashboard_path(dashboard_id))
        if raw is None:
            return None
        return self._to_document(dashboard_id, raw)

    async def require(self, dashboard_id: str) -> DashboardDocument:
        document = await self.load(dashboard_id)
        if document is None:
            raise not_found("dashboard_not_found", f"Dashboard '{dashboard_id}' not found")
        return document

    async def list(self, include_archived: bool = False) -> list[DashboardSummary]:
        summaries = []
        for path, raw in await self._store.list(DASHBOARDS_PREFIX):
            dashboard_id = path.removeprefix(DASHBOARDS_PREFIX)
            archived = bool(raw.get("archived", False))
            if archived and not include_archived:
                continue
            summaries.append(
                DashboardSummary(
                    id=dashboard_id,
                    name=raw.get("name") or UNTITLED_DASHBOARD,
                    widget_count=len(raw.get("widgets") or []),
                    updated_at=_parse_timestamp(raw.get("updatedAt")),
                    archived=archived,
                )
            )
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(summaries, key=lambda summary: _as_aware(summary.updated_at) or oldest, reverse=True)

    async def archive(self, dashboard_id: str) -> DashboardDocument:
        await self.require(dashboard_id)
        await self._store.save(dashboard_path(dashboard_id), {"archived": True, "archivedAt": self._clock().isoformat()})
        logger.info("firegrid.dashboard.archived | %s", {"dashboard_id": dashboard_id})
        return await self.require(dashboard_id)

    async def restore(self, dashboard_id: str) -> DashboardDocument:
        await self.require(dashboard_id)
        await self._store.save(dashboard_path(dashboard_id), {"archived": False, "archivedAt": None})
        logger.info("firegrid.dashboard.restored | %s", {"dashboard_id": dashboard_id})
        return await self.require(dashboard_id)

    @staticmethod
    def _to_document(dashboard_id: str, raw: dict[str, Any]) -> DashboardDocument:
        return DashboardDocument(
            id=dashboard_id,
            name=raw.get("name") or UNTITLED_DASHBOARD,
            widgets=load_widgets(raw.get("widgets") or [], dashboard_id),
            created_at=_parse_timestamp(raw.get("createdAt")),
            updated_at=_parse_timestamp(raw.get("updatedAt")),
            archived=bool(raw.get("archived", False)),
            archived_at=_parse_timestamp(raw.get("archivedAt")),
        )


def _as_aware(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
