from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Any, Mapping, Sequence

from firegrid.widgets.columns import TableColumn, resolve_table_columns
from firegrid.widgets.config import ColumnConfig, TableWidget
from firegrid.widgets.dates import format_date_pretty, looks_like_date, parse_date
from firegrid.widgets.filters import active_filter_count, apply_widget_filters
from firegrid.widgets.formula import evaluate_formula
from firegrid.widgets.sorting import SortState, sort_rows
from firegrid.widgets.values import PLACEHOLDER, to_display_string

Row = dict[str, Any]


@dataclass(slots=True)
class TableView:
    columns: list[TableColumn]
    rows: list[Row]
    total_rows: int
    active_filters: int = 0
    sort: SortState | None = None
    hidden_column_count: int = 0

    def formatted_rows(self, tz: tzinfo = timezone.utc) -> list[dict[str, str]]:
        return [{column.key: format_cell_value(row.get(column.key), tz) for column in self.columns} for row in self.rows]


def format_cell_value(value: Any, tz: tzinfo = timezone.utc) -> str:
    if value is None:
        return PLACEHOLDER
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, str) and looks_like_date(value):
        parsed = parse_date(value, tz)
        if parsed is not None:
            return format_date_pretty(parsed, "none")
    return to_display_string(value)


def with_custom_columns(rows: Sequence[Mapping[str, Any]], widget: TableWidget) -> list[Row]:
    """Copy rows adding one ``custom:<id>`` value per computed column.

    Formulas only see the source row, never other computed columns.
    """
    if not widget.custom_columns:
        return [dict(row) for row in rows]
    extended = []
    for row in rows:
        copy = dict(row)
        for custom in widget.custom_columns:
            copy[custom.key] = evaluate_formula(custom.formula, row, custom.format_prefix, custom.format_suffix)
        extended.append(copy)
    return extended


def known_column_keys(widget: TableWidget, columns: Sequence[ColumnConfig]) -> set[str] | None:
    if not columns:
        return None
    return {column.source_path for column in columns} | {custom.key for custom in widget.custom_columns}


def build_table_view(
    widget: TableWidget,
    columns: Sequence[ColumnConfig],
    rows: Sequence[Mapping[str, Any]],
    sort: SortState | None = None,
) -> TableView:
    """Computed columns, then filters, then the active sort."""
    resolved = resolve_table_columns(widget, columns)
    computed = with_custom_columns(rows, widget)
    filtered = apply_widget_filters(computed, widget.filters, known_column_keys(widget, columns))
    ordered = sort_rows(filtered, sort)
    return TableView(
        columns=resolved,
        rows=ordered,
        total_rows=len(rows),
        active_filters=active_filter_count(widget.filters),
        sort=sort,
        hidden_column_count=len(widget.hidden_columns),
    )
