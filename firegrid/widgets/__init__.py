from firegrid.widgets.charts import ChartPoint, build_chart_data
from firegrid.widgets.config import (
    Widget,
    WidgetConfigValidationError,
    dump_widget,
    parse_widget,
    validate_widget_against_columns,
)
from firegrid.widgets.filters import apply_widget_filters
from firegrid.widgets.formula import evaluate_formula
from firegrid.widgets.metrics import compute_metric, format_metric_value
from firegrid.widgets.sorting import SortState, next_sort_state, sort_rows
from firegrid.widgets.tables import TableView, build_table_view

__all__ = [
    "ChartPoint",
    "SortState",
    "TableView",
    "Widget",
    "WidgetConfigValidationError",
    "apply_widget_filters",
    "build_chart_data",
    "build_table_view",
    "compute_metric",
    "dump_widget",
    "evaluate_formula",
    "format_metric_value",
    "next_sort_state",
    "parse_widget",
    "sort_rows",
    "validate_widget_against_columns",
]
