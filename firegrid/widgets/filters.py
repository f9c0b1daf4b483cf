from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import Any, Callable

from firegrid.widgets.config import WidgetFilter
from firegrid.widgets.values import parse_float, to_display_string

Row = dict[str, Any]

FILTER_OPERATOR_LABELS: dict[str, str] = {
    "equals": "Equals",
    "not_equals": "Does not equal",
    "contains": "Contains",
    "not_contains": "Does not contain",
    "starts_with": "Starts with",
    "gt": "Greater than",
    "gte": "Greater or equal",
    "lt": "Less than",
    "lte": "Less or equal",
    "is_empty": "Is empty",
    "is_not_empty": "Is not empty",
}


def _numeric(compare: Callable[[float, float], bool]) -> Callable[[Any, str], bool]:
    def check(raw: Any, expected: str) -> bool:
        left = parse_float(raw)
        right = parse_float(expected)
        if left is None or right is None:
            return False
        return compare(left, right)

    return check


def _is_empty(raw: Any) -> bool:
    return raw is None or to_display_string(raw).strip() == ""


_NUMERIC_CHECKS: dict[str, Callable[[Any, str], bool]] = {
    "gt": _numeric(lambda a, b: a > b),
    "gte": _numeric(lambda a, b: a >= b),
    "lt": _numeric(lambda a, b: a < b),
    "lte": _numeric(lambda a, b: a <= b),
}


def row_matches(row: Row, widget_filter: WidgetFilter) -> bool:
    if not widget_filter.is_active:
        return True
    raw = row.get(widget_filter.column)
    operator = widget_filter.operator
    if operator == "is_empty":
        return _is_empty(raw)
    if operator == "is_not_empty":
        return not _is_empty(raw)
    if operator in _NUMERIC_CHECKS:
        return _NUMERIC_CHECKS[operator](raw, widget_filter.value)

    actual = to_display_string(raw).lower()
    expected = widget_filter.value.lower()
    if operator == "equals":
        return actual == expected
    if operator == "not_equals":
        return actual != expected
    if operator == "contains":
        return expected in actual
    if operator == "not_contains":
        return expected not in actual
    if operator == "starts_with":
        return actual.startswith(expected)
    return True


def apply_widget_filters(
    rows: Sequence[Row],
    filters: Sequence[WidgetFilter] | None,
    known_columns: Collection[str] | None = None,
) -> list[Row]:
    """Keep the rows that pass every active filter.

    With ``known_columns``, a filter on a column the table no longer has
    matches nothing.
    """
    active = [item for item in (filters or []) if item.is_active]
    if not active:
        return list(rows)
    if known_columns is not None and any(item.column not in known_columns for item in active):
        return []
    return [row for row in rows if all(row_matches(row, item) for item in active)]


def active_filter_count(filters: Sequence[WidgetFilter] | None) -> int:
    return sum(1 for item in (filters or []) if item.is_active)
