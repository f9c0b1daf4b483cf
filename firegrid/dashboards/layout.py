"""Grid geometry: automatic re-flow, clamping and legacy-grid migration.

Coordinates are grid units on a fixed number of columns. Auto-layout ignores
existing positions and stacks widgets by type priority; the other helpers keep
hand-placed geometry inside the grid.
"""

from __future__ import annotations

from typing import Sequence, TypeVar

from firegrid.widgets.config import WIDGET_DEFAULTS, Widget, WidgetBase

GRID_COLS = 24
LEGACY_GRID_COLS = 48
GAP = 2

HEADING_HEIGHT = 8
TEXT_HEIGHT = 12
METRIC_HEIGHT = 20
METRIC_MIN_WIDTH = 6
DIVIDER_HEIGHT = 4
CHART_HEIGHT = 48
CHART_MIN_WIDTH = 12
TABLE_HEIGHT = 56
HALF_WIDTH = 12

W = TypeVar("W", bound=WidgetBase)


class _Placer:
    def __init__(self, cols: int) -> None:
        self.cols = cols
        self.cursor_y = 0
        self.placed: list[Widget] = []

    def _place(self, widget: Widget, x: int, y: int, w: int, h: int) -> None:
        self.placed.append(widget.model_copy(update={"x": x, "y": y, "w": w, "h": h}))

    def full_width(self, widgets: Sequence[Widget], height: int) -> None:
        for widget in widgets:
            self._place(widget, 0, self.cursor_y, self.cols, height)
            self.cursor_y += height + GAP

    def row(self, widgets: Sequence[Widget], height: int, min_item_width: int) -> None:
        """Pack side by side as many per row as fit; the last in a row takes the remainder."""
        if not widgets:
            return
        per_row = max(1, min(len(widgets), self.cols // min_item_width))
        item_width = self.cols // per_row
        for index, widget in enumerate(widgets):
            column = index % per_row
            row = index // per_row
            x = column * item_width
            w = self.cols - x if column == per_row - 1 else item_width
            self._place(widget, x, self.cursor_y + row * (height + GAP), w, height)
        total_rows = -(-len(widgets) // per_row)
        self.cursor_y += total_rows * (height + GAP)


def auto_layout(widgets: Sequence[Widget], cols: int = GRID_COLS) -> list[Widget]:
    """Recompute every rectangle by type priority.

    Headings, text, metric rows, the first divider, charts, tables, then any
    further dividers. The result is in placement order and never overlaps.
    """
    if not widgets:
        return []
    by_type: dict[str, list[Widget]] = {key: [] for key in WIDGET_DEFAULTS}
    for widget in widgets:
        by_type[widget.type].append(widget)

    placer = _Placer(cols)
    placer.full_width(by_type["heading"], HEADING_HEIGHT)
    placer.full_width(by_type["text"], TEXT_HEIGHT)
    if by_type["metric"] and (by_type["heading"] or by_type["text"]):
        placer.cursor_y += GAP
    placer.row(by_type["metric"], METRIC_HEIGHT, METRIC_MIN_WIDTH)
    placer.full_width(by_type["divider"][:1], DIVIDER_HEIGHT)
    if len(by_type["chart"]) == 1:
        placer.full_width(by_type["chart"], CHART_HEIGHT)
    else:
        placer.row(by_type["chart"], CHART_HEIGHT, CHART_MIN_WIDTH)
    placer.full_width(by_type["table"], TABLE_HEIGHT)
    placer.full_width(by_type["divider"][1:], DIVIDER_HEIGHT)
    return placer.placed


def rectangles_overlap(a: Widget, b: Widget) -> bool:
    return a.x < b.x + b.w and b.x < a.x + a.w and a.y < b.y + b.h and b.y < a.y + a.h


def find_overlaps(widgets: Sequence[Widget]) -> list[tuple[str, str]]:
    """Pairs of widget ids whose rectangles intersect.

    Hand-placed layouts may overlap; this only reports it.
    """
    overlaps = []
    for index, first in enumerate(widgets):
        for second in widgets[index + 1 :]:
            if rectangles_overlap(first, second):
                overlaps.append((first.id, second.id))
    return overlaps


def with_min_sizes(widget: W) -> W:
    defaults = WIDGET_DEFAULTS[widget.type]
    return widget.model_copy(update={"min_w": defaults.min_w, "min_h": defaults.min_h})


def clamp_to_grid(widget: W, cols: int = GRID_COLS) -> W:
    """Keep ``0 <= x < cols`` and ``x + w <= cols``, then honour the minimums."""
    x = min(max(widget.x, 0), cols - 1)
    w = max(1, min(widget.w, cols - x))
    min_w = min(widget.min_w, cols)
    if w < min_w:
        w = min_w
        x = min(x, cols - w)
    h = max(widget.h, widget.min_h)
    if (x, w, h) == (widget.x, widget.w, widget.h):
        return widget
    return widget.model_copy(update={"x": x, "w": w, "h": h})


def is_legacy_geometry(widget: Widget, cols: int = GRID_COLS) -> bool:
    return widget.x >= cols or widget.w > cols


def migrate_legacy_geometry(widget: W, cols: int = GRID_COLS) -> W:
    """Rescale a rectangle written for the older 48-column grid.

    ``x`` and ``w`` are halved (floor), ``w`` is kept at or above the type's
    minimum width, and the result is clamped into the grid.
    """
    if not is_legacy_geometry(widget, cols):
        return clamp_to_grid(widget, cols)
    scale = LEGACY_GRID_COLS // cols
    rescaled = widget.model_copy(
        update={"x": widget.x // scale, "w": max(widget.min_w, widget.w // scale)}
    )
    return clamp_to_grid(rescaled, cols)


def next_row_y(widgets: Sequence[Widget]) -> int:
    """First free row below every widget."""
    return max((widget.y + widget.h for widget in widgets), default=0)
