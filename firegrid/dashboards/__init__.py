from firegrid.dashboards.autosave import AutosaveCoordinator, DebounceTimer
from firegrid.dashboards.layout import GRID_COLS, auto_layout, find_overlaps, migrate_legacy_geometry
from firegrid.dashboards.repository import DashboardDocument, DashboardRepository
from firegrid.dashboards.store import DashboardState, apply_action

__all__ = [
    "GRID_COLS",
    "AutosaveCoordinator",
    "DashboardDocument",
    "DashboardRepository",
    "DashboardState",
    "DebounceTimer",
    "apply_action",
    "auto_layout",
    "find_overlaps",
    "migrate_legacy_geometry",
]
