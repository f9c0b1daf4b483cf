import copy

from firegrid.widgets.config import WidgetFilter
from firegrid.widgets.filters import active_filter_count, apply_widget_filters, row_matches


def _filter(column: str, operator: str | None, value: str = "") -> WidgetFilter:
    return WidgetFilter(id=f"f-{column}-{operator}", column=column, operator=operator, value=value)


def test_no_active_filters_returns_every_row(order_rows: list[dict]) -> None:
    filters = [_filter("", "equals", "x"), _filter("status", None, "paid")]
    assert apply_widget_filters(order_rows, filters) == order_rows
    assert apply_widget_filters(order_rows, None) == order_rows
    assert active_filter_count(filters) == 0


def test_string_operators_ignore_case(order_rows: list[dict]) -> None:
    ids = lambda rows: [row["id"] for row in rows]  # noqa: E731
    assert ids(apply_widget_filters(order_rows, [_filter("customer", "equals", "ANA")])) == [1, 4]
    assert ids(apply_widget_filters(order_rows, [_filter("customer", "contains", "R")])) == [2, 3, 5]
    assert ids(apply_widget_filters(order_rows, [_filter("customer", "starts_with", "b")])) == [2]
    assert ids(apply_widget_filters(order_rows, [_filter("status", "not_equals", "paid")])) == [2, 4, 5]
    assert ids(apply_widget_filters(order_rows, [_filter("status", "not_contains", "pa")])) == [2, 4, 5]


def test_numeric_operators_parse_leading_numbers_and_fail_closed(order_rows: list[dict]) -> None:
    ids = lambda rows: [row["id"] for row in rows]  # noqa: E731
    assert ids(apply_widget_filters(order_rows, [_filter("amount", "gt", "100")])) == [1, 3]
    assert ids(apply_widget_filters(order_rows, [_filter("amount", "lte", "45.5")])) == [2]
    assert ids(apply_widget_filters(order_rows, [_filter("amount", "gte", "abc")])) == []
    assert row_matches({"amount": "12px"}, _filter("amount", "lt", "13"))


def test_emptiness_covers_missing_none_and_whitespace() -> None:
    rows = [{"note": None}, {}, {"note": "   "}, {"note": "hi"}, {"note": 0}]
    empty = apply_widget_filters(rows, [_filter("note", "is_empty")])
    not_empty = apply_widget_filters(rows, [_filter("note", "is_not_empty")])
    assert empty == rows[:3]
    assert not_empty == rows[3:]


def test_filters_combine_with_and(order_rows: list[dict]) -> None:
    filters = [_filter("status", "equals", "paid"), _filter("amount", "gt", "200")]
    assert [row["id"] for row in apply_widget_filters(order_rows, filters)] == [3]
    assert active_filter_count(filters) == 2


def test_booleans_compare_as_text() -> None:
    rows = [{"active": True}, {"active": False}]
    assert apply_widget_filters(rows, [_filter("active", "equals", "TRUE")]) == [{"active": True}]


def test_filter_on_unknown_column_excludes_everything(order_rows: list[dict]) -> None:
    filters = [_filter("deleted_column", "is_empty")]
    assert apply_widget_filters(order_rows, filters, known_columns={"id", "customer"}) == []
    # Without a column list the missing key simply reads as empty
    assert len(apply_widget_filters(order_rows, filters)) == len(order_rows)


def test_filtering_is_idempotent_and_leaves_input_untouched(order_rows: list[dict]) -> None:
    before = copy.deepcopy(order_rows)
    filters = [_filter("customer", "contains", "a")]
    once = apply_widget_filters(order_rows, filters)
    assert apply_widget_filters(once, filters) == once
    assert order_rows == before
