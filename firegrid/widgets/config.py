from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union, assert_never

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

WidgetType = Literal["table", "heading", "text", "divider", "metric", "chart"]
ElementType = Literal["heading", "text", "divider", "metric", "chart"]
AggregationType = Literal["count", "sum", "average", "min", "max", "count_distinct"]
Timeframe = Literal["all", "7d", "30d", "90d", "this_month", "this_year"]
DateTruncation = Literal["none", "day", "week", "month", "year"]
ChartType = Literal["bar", "line"]
ChartSort = Literal["value", "category"]
MetricLayout = Literal["centered", "left", "minimal"]
MetricValueSize = Literal["sm", "md", "lg", "xl"]
TableKind = Literal["collection", "collection_group", "query"]
FilterOperator = Literal[
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "starts_with",
    "gt",
    "gte",
    "lt",
    "lte",
    "is_empty",
    "is_not_empty",
]

NUMERIC_AGGREGATIONS: frozenset[str] = frozenset({"sum", "average", "min", "max"})
CUSTOM_COLUMN_PREFIX = "custom:"
UNTITLED_DASHBOARD = "Untitled Dashboard"


@dataclass(frozen=True, slots=True)
class WidgetDefaults:
    w: int
    h: int
    min_w: int
    min_h: int
    content: str = ""


WIDGET_DEFAULTS: dict[str, WidgetDefaults] = {
    "table": WidgetDefaults(w=12, h=56, min_w=4, min_h=20),
    "heading": WidgetDefaults(w=12, h=8, min_w=4, min_h=6, content="Untitled Heading"),
    "text": WidgetDefaults(w=12, h=12, min_w=4, min_h=8, content="Enter your text here..."),
    "divider": WidgetDefaults(w=24, h=4, min_w=4, min_h=3),
    "metric": WidgetDefaults(w=6, h=20, min_w=3, min_h=16),
    "chart": WidgetDefaults(w=12, h=48, min_w=6, min_h=28),
}


def normalize_column_type(raw_type: str) -> str:
    value = (raw_type or "").lower()
    if any(token in value for token in ["int", "numeric", "decimal", "real", "double", "float", "number"]):
        return "numeric"
    if any(token in value for token in ["date", "time", "timestamp"]):
        return "temporal"
    if "bool" in value:
        return "boolean"
    return "text"


def custom_column_key(custom_column_id: str) -> str:
    return f"{CUSTOM_COLUMN_PREFIX}{custom_column_id}"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ColumnConfig(CamelModel):
    id: str
    source_path: str
    alias: str = ""
    data_type: str = "string"
    visible: bool = True
    order: int = 0


class SavedTable(CamelModel):
    id: str
    table_name: str
    kind: TableKind = "collection"
    columns: list[ColumnConfig] = Field(default_factory=list)
    query_data: list[dict[str, Any]] | None = None

    def column_types(self) -> dict[str, str]:
        return {column.source_path: column.data_type for column in self.columns}


class CustomColumn(CamelModel):
    id: str
    name: str
    formula: str
    format_prefix: str | None = None
    format_suffix: str | None = None

    @property
    def key(self) -> str:
        return custom_column_key(self.id)


class WidgetFilter(CamelModel):
    id: str
    column: str = ""
    operator: FilterOperator | None = None
    value: str = ""

    @field_validator("operator", mode="before")
    @classmethod
    def blank_operator_is_unset(cls, value: Any) -> Any:
        return None if value == "" else value

    @field_validator("value", mode="before")
    @classmethod
    def stringify_value(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    @property
    def is_active(self) -> bool:
        return bool(self.column and self.operator)


class MetricConfig(CamelModel):
    table_id: str
    aggregation: AggregationType = "count"
    column: str = ""
    date_column: str | None = None
    timeframe: Timeframe = "all"
    prefix: str | None = None
    suffix: str | None = None
    label: str = ""
    layout: MetricLayout | None = None
    title_size: MetricValueSize | None = None
    value_size: MetricValueSize | None = None
    show_label: bool | None = None
    colour: str | None = None


class ChartConfig(CamelModel):
    chart_type: ChartType = "bar"
    table_id: str
    category_column: str = ""
    value_column: str = ""
    aggregation: AggregationType = "count"
    date_column: str | None = None
    timeframe: Timeframe = "all"
    date_truncate: DateTruncation = "none"
    label: str = ""
    max_bars: int | None = Field(default=None, ge=1)
    sort_by: ChartSort | None = None
    colour: str | None = None


class WidgetBase(CamelModel):
    id: str = Field(validation_alias=AliasChoices("id", "i"))
    x: int = Field(default=0, ge=0)
    y: int = Field(default=0, ge=0)
    w: int = Field(default=1, ge=1)
    h: int = Field(default=1, ge=1)
    min_w: int = Field(default=1, ge=1, exclude=True)
    min_h: int = Field(default=1, ge=1, exclude=True)


class TableWidget(WidgetBase):
    type: Literal["table"] = "table"
    table_id: str
    table_name: str = ""
    display_name: str | None = None
    column_aliases: dict[str, str] = Field(default_factory=dict)
    hidden_columns: list[str] = Field(default_factory=list)
    custom_columns: list[CustomColumn] = Field(default_factory=list)
    column_order: list[str] | None = None
    filters: list[WidgetFilter] = Field(default_factory=list)

    @field_validator("custom_columns")
    @classmethod
    def unique_custom_column_ids(cls, value: list[CustomColumn]) -> list[CustomColumn]:
        ids = [column.id for column in value]
        if len(ids) != len(set(ids)):
            raise ValueError("Custom column ids must be unique within a widget")
        return value


class HeadingWidget(WidgetBase):
    type: Literal["heading"] = "heading"
    content: str = ""


class TextWidget(WidgetBase):
    type: Literal["text"] = "text"
    content: str = ""


class DividerWidget(WidgetBase):
    type: Literal["divider"] = "divider"


class MetricWidget(WidgetBase):
    type: Literal["metric"] = "metric"
    metric_config: MetricConfig | None = None
    filters: list[WidgetFilter] = Field(default_factory=list)


class ChartWidget(WidgetBase):
    type: Literal["chart"] = "chart"
    chart_config: ChartConfig | None = None
    filters: list[WidgetFilter] = Field(default_factory=list)


Widget = Annotated[
    Union[TableWidget, HeadingWidget, TextWidget, DividerWidget, MetricWidget, ChartWidget],
    Field(discriminator="type"),
]
DataWidget = Union[TableWidget, MetricWidget, ChartWidget]

widget_adapter: TypeAdapter[Widget] = TypeAdapter(Widget)
widget_list_adapter: TypeAdapter[list[Widget]] = TypeAdapter(list[Widget])


def parse_widget(raw: dict[str, Any]) -> Widget:
    return widget_adapter.validate_python(raw)


def dump_widget(widget: Widget) -> dict[str, Any]:
    """Persisted form: camelCase keys, runtime minimums left out."""
    return widget.model_dump(mode="json", by_alias=True, exclude_none=True)


def bound_table_id(widget: Widget) -> str | None:
    match widget:
        case TableWidget():
            return widget.table_id or None
        case MetricWidget():
            return widget.metric_config.table_id if widget.metric_config and widget.metric_config.table_id else None
        case ChartWidget():
            return widget.chart_config.table_id if widget.chart_config and widget.chart_config.table_id else None
        case HeadingWidget() | TextWidget() | DividerWidget():
            return None
        case _:
            assert_never(widget)


@dataclass
class WidgetConfigValidationError(Exception):
    field_errors: dict[str, list[str]]

    def to_detail(self) -> dict[str, Any]:
        return {
            "message": "Widget config validation failed",
            "field_errors": self.field_errors,
        }


def _add_error(errors: dict[str, list[str]], key: str, message: str) -> None:
    errors.setdefault(key, []).append(message)


def validate_widget_against_columns(widget: Widget, column_types: dict[str, str]) -> None:
    """Check that every column a widget references exists on its table.

    Evaluation never depends on this check; stale references simply stop
    matching. It backs the explicit validation endpoint used by editors.
    """
    errors: dict[str, list[str]] = {}

    def require_column_exists(column: str, field_key: str) -> str | None:
        col_type = column_types.get(column)
        if not col_type:
            _add_error(errors, field_key, f"Column '{column}' does not exist in table")
            return None
        return col_type

    def check_aggregation(aggregation: str, column: str, field_key: str) -> None:
        if aggregation == "count":
            return
        if not column:
            _add_error(errors, field_key, f"Aggregation '{aggregation}' requires a column")
            return
        col_type = require_column_exists(column, field_key)
        if aggregation in NUMERIC_AGGREGATIONS and col_type and normalize_column_type(col_type) in {"boolean", "temporal"}:
            _add_error(errors, field_key, f"Aggregation '{aggregation}' requires a numeric column")

    match widget:
        case TableWidget():
            custom_keys = {column.key for column in widget.custom_columns}
            for idx, key in enumerate(widget.hidden_columns):
                if key not in custom_keys:
                    require_column_exists(key, f"hiddenColumns[{idx}]")
            for key in widget.column_aliases:
                require_column_exists(key, f"columnAliases.{key}")
            for idx, column in enumerate(widget.custom_columns):
                if not column.formula.strip():
                    _add_error(errors, f"customColumns[{idx}].formula", "Formula is required")
                if not column.name.strip():
                    _add_error(errors, f"customColumns[{idx}].name", "Name is required")
        case MetricWidget():
            config = widget.metric_config
            if config is None:
                _add_error(errors, "metricConfig", "Metric widget is not configured")
            else:
                check_aggregation(config.aggregation, config.column, "metricConfig.column")
                if config.timeframe != "all" and not config.date_column:
                    _add_error(errors, "metricConfig.dateColumn", "Timeframe requires a date column")
                if config.date_column:
                    require_column_exists(config.date_column, "metricConfig.dateColumn")
        case ChartWidget():
            config = widget.chart_config
            if config is None:
                _add_error(errors, "chartConfig", "Chart widget is not configured")
            else:
                if not config.category_column:
                    _add_error(errors, "chartConfig.categoryColumn", "Category column is required")
                else:
                    require_column_exists(config.category_column, "chartConfig.categoryColumn")
                check_aggregation(config.aggregation, config.value_column, "chartConfig.valueColumn")
                if config.timeframe != "all" and not config.date_column:
                    _add_error(errors, "chartConfig.dateColumn", "Timeframe requires a date column")
                if config.date_column:
                    require_column_exists(config.date_column, "chartConfig.dateColumn")
        case HeadingWidget() | TextWidget():
            if not widget.content.strip():
                _add_error(errors, "content", "Content is required")
        case DividerWidget():
            pass
        case _:
            assert_never(widget)

    filters = getattr(widget, "filters", [])
    custom_keys = {column.key for column in widget.custom_columns} if isinstance(widget, TableWidget) else set()
    for idx, widget_filter in enumerate(filters):
        if not widget_filter.is_active:
            continue
        if widget_filter.column not in custom_keys:
            require_column_exists(widget_filter.column, f"filters[{idx}].column")
        if widget_filter.operator in {"is_empty", "is_not_empty"}:
            continue
        if not widget_filter.value.strip():
            _add_error(errors, f"filters[{idx}].value", "Filter value is required for this operator")

    if errors:
        raise WidgetConfigValidationError(errors)
