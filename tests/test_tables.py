from firegrid.widgets.config import ColumnConfig, CustomColumn, TableWidget, WidgetFilter
from firegrid.widgets.sorting import SortState
from firegrid.widgets.tables import build_table_view, format_cell_value, with_custom_columns
from firegrid.widgets.values import PLACEHOLDER

COLUMNS = [
    ColumnConfig(id="c1", source_path="customer", order=0),
    ColumnConfig(id="c2", source_path="amount", order=1),
    ColumnConfig(id="c3", source_path="createdAt", order=2),
]


def _widget(**overrides) -> TableWidget:
    values = {
        "id": "w1",
        "table_id": "orders",
        "custom_columns": [CustomColumn(id="tax", name="Tax", formula="[amount] * 0.1", format_prefix="$")],
    }
    values.update(overrides)
    return TableWidget(**values)


def test_custom_columns_are_computed_per_row(order_rows: list[dict]) -> None:
    rows = with_custom_columns(order_rows, _widget())
    assert [row["custom:tax"] for row in rows] == ["$12", "$4.55", "$30", PLACEHOLDER, PLACEHOLDER]
    assert "custom:tax" not in order_rows[0]


def test_filters_see_computed_columns_and_sort_applies_last(order_rows: list[dict]) -> None:
    widget = _widget(filters=[WidgetFilter(id="f1", column="custom:tax", operator="contains", value="$")])
    view = build_table_view(widget, COLUMNS, order_rows, SortState(column="amount", direction="desc"))
    assert [row["id"] for row in view.rows] == [3, 1, 2]
    assert view.total_rows == 5
    assert view.active_filters == 1


def test_filter_on_a_removed_column_shows_nothing(order_rows: list[dict]) -> None:
    widget = _widget(filters=[WidgetFilter(id="f1", column="discount", operator="is_empty")])
    assert build_table_view(widget, COLUMNS, order_rows).rows == []


def test_formatted_rows_only_cover_shown_columns(order_rows: list[dict]) -> None:
    widget = _widget(hidden_columns=["customer"])
    view = build_table_view(widget, COLUMNS, order_rows[:1])
    assert view.formatted_rows() == [{"amount": "120", "createdAt": "Jan 15th, 2025", "custom:tax": "$12"}]
    assert view.hidden_column_count == 1


def test_format_cell_value() -> None:
    assert format_cell_value(None) == PLACEHOLDER
    assert format_cell_value(True) == "true"
    assert format_cell_value({"a": 1}) == '{"a": 1}'
    assert format_cell_value("plain") == "plain"
    assert format_cell_value(3.0) == "3"
