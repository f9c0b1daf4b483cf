from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, Literal, Sequence

from firegrid.widgets.values import to_display_string

SortDirection = Literal["asc", "desc"]
Row = dict[str, Any]

_DIGIT_RUN_RE = re.compile(r"(\d+)")


@dataclass(frozen=True, slots=True)
class SortState:
    column: str
    direction: SortDirection


def next_sort_state(current: SortState | None, column: str) -> SortState | None:
    """Header click cycle: asc, desc, unsorted, then asc again."""
    if current is None or current.column != column:
        return SortState(column=column, direction="asc")
    if current.direction == "asc":
        return SortState(column=column, direction="desc")
    return None


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char)).casefold()


def natural_key(value: Any) -> tuple[tuple[int, int, str], ...]:
    """Case and accent insensitive key that orders digit runs numerically."""
    parts: list[tuple[int, int, str]] = []
    for chunk in _DIGIT_RUN_RE.split(_fold(to_display_string(value))):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, chunk))
    return tuple(parts)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def compare_cell_values(left: Any, right: Any) -> int:
    if left is None and right is None:
        return 0
    if left is None:
        return 1
    if right is None:
        return -1
    if _is_number(left) and _is_number(right):
        return (left > right) - (left < right)
    if isinstance(left, bool) and isinstance(right, bool):
        return int(left) - int(right)
    left_key = natural_key(left)
    right_key = natural_key(right)
    return (left_key > right_key) - (left_key < right_key)


def sort_rows(rows: Sequence[Row], sort: SortState | None) -> list[Row]:
    """Return a sorted copy; rows without a value stay last in both directions."""
    if sort is None:
        return list(rows)
    present = [row for row in rows if row.get(sort.column) is not None]
    missing = [row for row in rows if row.get(sort.column) is None]
    key = cmp_to_key(lambda a, b: compare_cell_values(a.get(sort.column), b.get(sort.column)))
    present.sort(key=key, reverse=sort.direction == "desc")
    return present + missing
