from firegrid.widgets.sorting import SortState, compare_cell_values, natural_key, next_sort_state, sort_rows


def test_header_clicks_cycle_through_directions() -> None:
    first = next_sort_state(None, "amount")
    assert first == SortState(column="amount", direction="asc")
    second = next_sort_state(first, "amount")
    assert second == SortState(column="amount", direction="desc")
    assert next_sort_state(second, "amount") is None
    assert next_sort_state(second, "customer") == SortState(column="customer", direction="asc")


def test_natural_order_is_numeric_aware_and_case_insensitive() -> None:
    labels = ["item 10", "Item 2", "item 1", "Éclair", "eclair 3"]
    assert sorted(labels, key=natural_key) == ["Éclair", "eclair 3", "item 1", "Item 2", "item 10"]


def test_compare_cell_values_orders_types() -> None:
    assert compare_cell_values(2, 10) < 0
    assert compare_cell_values(2.5, 2) > 0
    assert compare_cell_values(False, True) < 0
    assert compare_cell_values("b", "A") > 0
    assert compare_cell_values(None, 1) > 0
    assert compare_cell_values(1, None) < 0
    assert compare_cell_values(None, None) == 0


def test_sort_rows_keeps_missing_values_last_in_both_directions() -> None:
    rows = [{"v": 3}, {"v": None}, {"v": 1}, {}, {"v": 2}]
    ascending = sort_rows(rows, SortState(column="v", direction="asc"))
    descending = sort_rows(rows, SortState(column="v", direction="desc"))
    assert [row.get("v") for row in ascending] == [1, 2, 3, None, None]
    assert [row.get("v") for row in descending] == [3, 2, 1, None, None]
    assert [row.get("v") for row in ascending[:3]] == [row.get("v") for row in reversed(descending[:3])]


def test_sort_rows_without_state_returns_a_copy() -> None:
    rows = [{"v": 2}, {"v": 1}]
    result = sort_rows(rows, None)
    assert result == rows
    assert result is not rows
