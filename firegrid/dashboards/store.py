"""Dashboard editing state and its transitions.

``DashboardState`` is immutable; every reducer returns a new state and leaves
its input untouched. ``apply_action`` maps the tagged action models the API
accepts onto the reducers.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Annotated, Any, Literal, Sequence, Union, assert_never
from uuid import uuid4

from pydantic import AliasChoices, Field

from firegrid.dashboards.layout import GRID_COLS, HALF_WIDTH, auto_layout, clamp_to_grid, next_row_y, with_min_sizes
from firegrid.errors import FiregridError, not_found
from firegrid.widgets.columns import apply_column_order
from firegrid.widgets.config import (
    UNTITLED_DASHBOARD,
    WIDGET_DEFAULTS,
    CamelModel,
    ChartConfig,
    ChartType,
    ChartWidget,
    CustomColumn,
    DividerWidget,
    ElementType,
    HeadingWidget,
    MetricConfig,
    MetricWidget,
    TableWidget,
    TextWidget,
    Widget,
    WidgetFilter,
)


@dataclass(frozen=True, slots=True)
class DashboardState:
    dashboard_id: str | None = None
    name: str = UNTITLED_DASHBOARD
    widgets: tuple[Widget, ...] = ()

    def find(self, widget_id: str) -> Widget:
        for widget in self.widgets:
            if widget.id == widget_id:
                return widget
        raise not_found("widget_not_found", f"Widget '{widget_id}' not found")


def new_widget_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:12]}"


def _revalidated(widget: Widget, **changes: Any) -> Widget:
    data = widget.model_dump()
    data.update(changes)
    data["min_w"] = widget.min_w
    data["min_h"] = widget.min_h
    return type(widget).model_validate(data)


def _replace_widget(state: DashboardState, updated: Widget) -> DashboardState:
    return replace(state, widgets=tuple(updated if widget.id == updated.id else widget for widget in state.widgets))


def _table_widget(state: DashboardState, widget_id: str) -> TableWidget:
    widget = state.find(widget_id)
    if not isinstance(widget, TableWidget):
        raise FiregridError(
            status_code=400,
            code="unsupported_widget_action",
            message=f"Widget '{widget_id}' is not a table widget",
        )
    return widget


def _append(state: DashboardState, widget: Widget) -> DashboardState:
    if any(existing.id == widget.id for existing in state.widgets):
        raise FiregridError(status_code=409, code="duplicate_widget_id", message=f"Widget '{widget.id}' already exists")
    return replace(state, widgets=(*state.widgets, widget))


# ============================================================
# Adding and removing
# ============================================================


def add_table_widget(state: DashboardState, table_id: str, table_name: str, widget_id: str | None = None) -> DashboardState:
    defaults = WIDGET_DEFAULTS["table"]
    widget = TableWidget(
        id=widget_id or new_widget_id("widget"),
        table_id=table_id,
        table_name=table_name,
        x=0,
        y=next_row_y(state.widgets),
        w=defaults.w,
        h=defaults.h,
        min_w=defaults.min_w,
        min_h=defaults.min_h,
    )
    return _append(state, widget)


def add_element(
    state: DashboardState,
    element_type: ElementType,
    chart_type: ChartType | None = None,
    widget_id: str | None = None,
) -> DashboardState:
    defaults = WIDGET_DEFAULTS[element_type]
    common: dict[str, Any] = {
        "id": widget_id or new_widget_id("element"),
        "x": 0,
        "y": next_row_y(state.widgets),
        "w": defaults.w,
        "h": defaults.h,
        "min_w": defaults.min_w,
        "min_h": defaults.min_h,
    }
    widget: Widget
    if element_type == "heading":
        widget = HeadingWidget(content=defaults.content, **common)
    elif element_type == "text":
        widget = TextWidget(content=defaults.content, **common)
    elif element_type == "divider":
        widget = DividerWidget(**common)
    elif element_type == "metric":
        widget = MetricWidget(**common)
    elif element_type == "chart":
        config = ChartConfig(chart_type=chart_type, table_id="") if chart_type else None
        widget = ChartWidget(chart_config=config, **common)
    else:
        assert_never(element_type)
    return _append(state, widget)


def remove_widget(state: DashboardState, widget_id: str) -> DashboardState:
    state.find(widget_id)
    return replace(state, widgets=tuple(widget for widget in state.widgets if widget.id != widget_id))


def duplicate_widget(state: DashboardState, widget_id: str, new_id: str | None = None) -> DashboardState:
    """Deep copy placed below everything, keeping the source column."""
    source = state.find(widget_id)
    clone = source.model_copy(
        update={"id": new_id or new_widget_id(source.type), "y": next_row_y(state.widgets), "x": source.x},
        deep=True,
    )
    return _append(state, clone)


# ============================================================
# Widget payloads
# ============================================================


def update_widget_content(state: DashboardState, widget_id: str, content: str) -> DashboardState:
    widget = state.find(widget_id)
    if not isinstance(widget, (HeadingWidget, TextWidget)):
        raise FiregridError(
            status_code=400,
            code="unsupported_widget_action",
            message=f"Widget '{widget_id}' has no text content",
        )
    return _replace_widget(state, _revalidated(widget, content=content))


def update_metric_config(state: DashboardState, widget_id: str, config: MetricConfig) -> DashboardState:
    widget = state.find(widget_id)
    if not isinstance(widget, MetricWidget):
        raise FiregridError(status_code=400, code="unsupported_widget_action", message=f"Widget '{widget_id}' is not a metric")
    return _replace_widget(state, _revalidated(widget, metric_config=config))


def update_chart_config(state: DashboardState, widget_id: str, config: ChartConfig) -> DashboardState:
    widget = state.find(widget_id)
    if not isinstance(widget, ChartWidget):
        raise FiregridError(status_code=400, code="unsupported_widget_action", message=f"Widget '{widget_id}' is not a chart")
    return _replace_widget(state, _revalidated(widget, chart_config=config))


def set_widget_filters(state: DashboardState, widget_id: str, filters: Sequence[WidgetFilter]) -> DashboardState:
    widget = state.find(widget_id)
    if not isinstance(widget, (TableWidget, MetricWidget, ChartWidget)):
        raise FiregridError(status_code=400, code="unsupported_widget_action", message=f"Widget '{widget_id}' cannot be filtered")
    return _replace_widget(state, _revalidated(widget, filters=list(filters)))


# ============================================================
# Table columns
# ============================================================


def rename_widget(state: DashboardState, widget_id: str, display_name: str) -> DashboardState:
    widget = _table_widget(state, widget_id)
    return _replace_widget(state, _revalidated(widget, display_name=display_name.strip() or None))


def set_column_alias(state: DashboardState, widget_id: str, source_path: str, alias: str) -> DashboardState:
    widget = _table_widget(state, widget_id)
    aliases = dict(widget.column_aliases)
    if alias.strip():
        aliases[source_path] = alias.strip()
    else:
        aliases.pop(source_path, None)
    return _replace_widget(state, _revalidated(widget, column_aliases=aliases))


def set_hidden_columns(state: DashboardState, widget_id: str, hidden_columns: Sequence[str]) -> DashboardState:
    widget = _table_widget(state, widget_id)
    return _replace_widget(state, _revalidated(widget, hidden_columns=list(dict.fromkeys(hidden_columns))))


def toggle_column_visibility(state: DashboardState, widget_id: str, column_key: str) -> DashboardState:
    widget = _table_widget(state, widget_id)
    if column_key in widget.hidden_columns:
        hidden = [key for key in widget.hidden_columns if key != column_key]
    else:
        hidden = [*widget.hidden_columns, column_key]
    return _replace_widget(state, _revalidated(widget, hidden_columns=hidden))


def set_column_order(state: DashboardState, widget_id: str, column_order: Sequence[str]) -> DashboardState:
    widget = _table_widget(state, widget_id)
    return _replace_widget(state, _revalidated(widget, column_order=list(dict.fromkeys(column_order))))


def move_column(
    state: DashboardState,
    widget_id: str,
    column_key: str,
    to_index: int,
    current_keys: Sequence[str],
) -> DashboardState:
    """Move one column within the displayed order and persist the full order."""
    widget = _table_widget(state, widget_id)
    keys = apply_column_order(current_keys, widget.column_order)
    if column_key not in keys:
        raise not_found("column_not_found", f"Column '{column_key}' is not shown on widget '{widget_id}'")
    keys.remove(column_key)
    keys.insert(max(0, min(to_index, len(keys))), column_key)
    return _replace_widget(state, _revalidated(widget, column_order=keys))


def set_custom_columns(state: DashboardState, widget_id: str, custom_columns: Sequence[CustomColumn]) -> DashboardState:
    widget = _table_widget(state, widget_id)
    return _replace_widget(state, _revalidated(widget, custom_columns=list(custom_columns)))


# ============================================================
# Geometry
# ============================================================


class LayoutItem(CamelModel):
    id: str = Field(validation_alias=AliasChoices("id", "i"))
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    w: int = Field(ge=1)
    h: int = Field(ge=1)


def toggle_full_width(state: DashboardState, widget_id: str, cols: int = GRID_COLS) -> DashboardState:
    widget = state.find(widget_id)
    is_full = widget.x == 0 and widget.w >= cols
    width = HALF_WIDTH if is_full else cols
    return _replace_widget(state, widget.model_copy(update={"x": 0, "w": max(width, widget.min_w)}))


def apply_layout_change(state: DashboardState, layout: Sequence[LayoutItem], cols: int = GRID_COLS) -> DashboardState:
    """Take positions reported by the grid, clamped so ``x + w <= cols``."""
    by_id = {item.id: item for item in layout}
    widgets = []
    for widget in state.widgets:
        item = by_id.get(widget.id)
        if item is None:
            widgets.append(widget)
            continue
        safe_x = min(item.x, cols - 1)
        moved = widget.model_copy(update={"x": safe_x, "y": item.y, "w": min(item.w, cols - safe_x), "h": item.h})
        widgets.append(clamp_to_grid(moved, cols))
    return replace(state, widgets=tuple(widgets))


def reflow_layout(state: DashboardState, cols: int = GRID_COLS) -> DashboardState:
    return replace(state, widgets=tuple(auto_layout(state.widgets, cols)))


def rename_dashboard(state: DashboardState, name: str) -> DashboardState:
    return replace(state, name=name.strip() or UNTITLED_DASHBOARD)


def load_state(dashboard_id: str | None, name: str, widgets: Sequence[Widget]) -> DashboardState:
    return DashboardState(
        dashboard_id=dashboard_id,
        name=name.strip() or UNTITLED_DASHBOARD,
        widgets=tuple(with_min_sizes(widget) for widget in widgets),
    )


# ============================================================
# Actions
# ============================================================


class AddTableWidgetAction(CamelModel):
    type: Literal["add_table_widget"]
    table_id: str
    table_name: str = ""
    widget_id: str | None = None


class AddElementAction(CamelModel):
    type: Literal["add_element"]
    element_type: ElementType
    chart_type: ChartType | None = None
    widget_id: str | None = None


class RemoveWidgetAction(CamelModel):
    type: Literal["remove_widget"]
    widget_id: str


class DuplicateWidgetAction(CamelModel):
    type: Literal["duplicate_widget"]
    widget_id: str
    new_id: str | None = None


class UpdateContentAction(CamelModel):
    type: Literal["update_widget_content"]
    widget_id: str
    content: str


class UpdateMetricConfigAction(CamelModel):
    type: Literal["update_metric_config"]
    widget_id: str
    config: MetricConfig


class UpdateChartConfigAction(CamelModel):
    type: Literal["update_chart_config"]
    widget_id: str
    config: ChartConfig


class RenameWidgetAction(CamelModel):
    type: Literal["rename_widget"]
    widget_id: str
    display_name: str


class SetColumnAliasAction(CamelModel):
    type: Literal["set_column_alias"]
    widget_id: str
    source_path: str
    alias: str


class SetFiltersAction(CamelModel):
    type: Literal["set_widget_filters"]
    widget_id: str
    filters: list[WidgetFilter]


class SetHiddenColumnsAction(CamelModel):
    type: Literal["set_hidden_columns"]
    widget_id: str
    hidden_columns: list[str]


class ToggleColumnVisibilityAction(CamelModel):
    type: Literal["toggle_column_visibility"]
    widget_id: str
    column_key: str


class SetColumnOrderAction(CamelModel):
    type: Literal["set_column_order"]
    widget_id: str
    column_order: list[str]


class MoveColumnAction(CamelModel):
    type: Literal["move_column"]
    widget_id: str
    column_key: str
    to_index: int = Field(ge=0)
    current_keys: list[str]


class SetCustomColumnsAction(CamelModel):
    type: Literal["set_custom_columns"]
    widget_id: str
    custom_columns: list[CustomColumn]


class ToggleFullWidthAction(CamelModel):
    type: Literal["toggle_full_width"]
    widget_id: str


class LayoutChangeAction(CamelModel):
    type: Literal["apply_layout_change"]
    layout: list[LayoutItem]


class RenameDashboardAction(CamelModel):
    type: Literal["rename_dashboard"]
    name: str


class ReflowLayoutAction(CamelModel):
    type: Literal["reflow_layout"]


DashboardAction = Annotated[
    Union[
        AddTableWidgetAction,
        AddElementAction,
        RemoveWidgetAction,
        DuplicateWidgetAction,
        UpdateContentAction,
        UpdateMetricConfigAction,
        UpdateChartConfigAction,
        RenameWidgetAction,
        SetColumnAliasAction,
        SetFiltersAction,
        SetHiddenColumnsAction,
        ToggleColumnVisibilityAction,
        SetColumnOrderAction,
        MoveColumnAction,
        SetCustomColumnsAction,
        ToggleFullWidthAction,
        LayoutChangeAction,
        RenameDashboardAction,
        ReflowLayoutAction,
    ],
    Field(discriminator="type"),
]


def apply_action(state: DashboardState, action: DashboardAction) -> DashboardState:
    match action:
        case AddTableWidgetAction():
            return add_table_widget(state, action.table_id, action.table_name, action.widget_id)
        case AddElementAction():
            return add_element(state, action.element_type, action.chart_type, action.widget_id)
        case RemoveWidgetAction():
            return remove_widget(state, action.widget_id)
        case DuplicateWidgetAction():
            return duplicate_widget(state, action.widget_id, action.new_id)
        case UpdateContentAction():
            return update_widget_content(state, action.widget_id, action.content)
        case UpdateMetricConfigAction():
            return update_metric_config(state, action.widget_id, action.config)
        case UpdateChartConfigAction():
            return update_chart_config(state, action.widget_id, action.config)
        case RenameWidgetAction():
            return rename_widget(state, action.widget_id, action.display_name)
        case SetColumnAliasAction():
            return set_column_alias(state, action.widget_id, action.source_path, action.alias)
        case SetFiltersAction():
            return set_widget_filters(state, action.widget_id, action.filters)
        case SetHiddenColumnsAction():
            return set_hidden_columns(state, action.widget_id, action.hidden_columns)
        case ToggleColumnVisibilityAction():
            return toggle_column_visibility(state, action.widget_id, action.column_key)
        case SetColumnOrderAction():
            return set_column_order(state, action.widget_id, action.column_order)
        case MoveColumnAction():
            return move_column(state, action.widget_id, action.column_key, action.to_index, action.current_keys)
        case SetCustomColumnsAction():
            return set_custom_columns(state, action.widget_id, action.custom_columns)
        case ToggleFullWidthAction():
            return toggle_full_width(state, action.widget_id)
        case LayoutChangeAction():
            return apply_layout_change(state, action.layout)
        case RenameDashboardAction():
            return rename_dashboard(state, action.name)
        case ReflowLayoutAction():
            return reflow_layout(state)
        case _:
            assert_never(action)
