from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from firegrid.widgets.config import ColumnConfig, CustomColumn, TableWidget


@dataclass(frozen=True, slots=True)
class TableColumn:
    key: str
    display_name: str
    is_custom: bool
    source: ColumnConfig | None = None
    custom: CustomColumn | None = None


def apply_column_order(keys: Sequence[str], column_order: Sequence[str] | None) -> list[str]:
    """Order keys by a partial ordering.

    Keys named in ``column_order`` come first in that order; keys it does not
    mention keep their natural position after them. Entries for keys that no
    longer exist are ignored.
    """
    if not column_order:
        return list(keys)
    available = set(keys)
    seen: set[str] = set()
    ordered: list[str] = []
    for key in column_order:
        if key in available and key not in seen:
            ordered.append(key)
            seen.add(key)
    ordered.extend(key for key in keys if key not in seen)
    return ordered


def all_column_keys(widget: TableWidget, columns: Sequence[ColumnConfig]) -> list[str]:
    """Every key a table widget can show, hidden ones included, in display order."""
    source_keys = [column.source_path for column in sorted(columns, key=lambda c: c.order) if column.visible]
    custom_keys = [column.key for column in widget.custom_columns]
    return apply_column_order(source_keys + custom_keys, widget.column_order)


def resolve_table_columns(widget: TableWidget, columns: Sequence[ColumnConfig]) -> list[TableColumn]:
    hidden = set(widget.hidden_columns)
    unified: dict[str, TableColumn] = {}
    for column in sorted(columns, key=lambda c: c.order):
        if not column.visible or column.source_path in hidden:
            continue
        unified[column.source_path] = TableColumn(
            key=column.source_path,
            display_name=widget.column_aliases.get(column.source_path) or column.alias or column.source_path,
            is_custom=False,
            source=column,
        )
    for custom in widget.custom_columns:
        if custom.key in hidden:
            continue
        unified[custom.key] = TableColumn(
            key=custom.key,
            display_name=custom.name,
            is_custom=True,
            custom=custom,
        )
    return [unified[key] for key in apply_column_order(list(unified), widget.column_order)]
