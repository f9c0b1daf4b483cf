from firegrid.widgets.columns import all_column_keys, apply_column_order, resolve_table_columns
from firegrid.widgets.config import ColumnConfig, CustomColumn, TableWidget

COLUMNS = [
    ColumnConfig(id="c3", source_path="amount", alias="Amount", order=2),
    ColumnConfig(id="c1", source_path="customer.name", order=0),
    ColumnConfig(id="c2", source_path="status", alias="Status", order=1),
    ColumnConfig(id="c4", source_path="internal", visible=False, order=3),
]


def test_partial_order_keeps_unknown_keys() -> None:
    assert apply_column_order(["a", "b", "c", "d"], ["c", "gone", "a"]) == ["c", "a", "b", "d"]
    assert apply_column_order(["a", "b"], None) == ["a", "b"]


def test_columns_follow_source_order_then_custom_columns() -> None:
    widget = TableWidget(
        id="w",
        table_id="orders",
        custom_columns=[CustomColumn(id="net", name="Net", formula="[amount] * 0.9")],
    )
    columns = resolve_table_columns(widget, COLUMNS)
    assert [column.key for column in columns] == ["customer.name", "status", "amount", "custom:net"]
    assert [column.display_name for column in columns] == ["customer.name", "Status", "Amount", "Net"]
    assert columns[-1].is_custom


def test_aliases_hidden_columns_and_order() -> None:
    widget = TableWidget(
        id="w",
        table_id="orders",
        column_aliases={"status": "State"},
        hidden_columns=["customer.name", "custom:net"],
        column_order=["amount"],
        custom_columns=[CustomColumn(id="net", name="Net", formula="[amount]")],
    )
    columns = resolve_table_columns(widget, COLUMNS)
    assert [(column.key, column.display_name) for column in columns] == [("amount", "Amount"), ("status", "State")]
    assert all_column_keys(widget, COLUMNS) == ["amount", "customer.name", "status", "custom:net"]
