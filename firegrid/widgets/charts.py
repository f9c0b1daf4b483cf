from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any, Mapping, Sequence

from firegrid.widgets.config import ChartConfig
from firegrid.widgets.dates import (
    filter_rows_by_timeframe,
    format_date_pretty,
    looks_like_date,
    parse_date,
    truncate_date,
)
from firegrid.widgets.metrics import aggregate
from firegrid.widgets.sorting import natural_key
from firegrid.widgets.values import round_half_up, to_display_string

DEFAULT_MAX_BARS = 20
EMPTY_CATEGORY = "(empty)"

CHART_COLOUR_DEFAULT = "#6366F1"


@dataclass(slots=True)
class ChartPoint:
    name: str
    value: float


@dataclass(slots=True)
class ChartGroup:
    label: str
    rows: list[Mapping[str, Any]] = field(default_factory=list)
    timestamp: datetime | None = None


def category_label(raw: Any, config: ChartConfig, tz: tzinfo) -> tuple[str, datetime | None]:
    """Group key for one category value plus its timestamp when it is a date."""
    truncation = config.date_truncate
    if truncation != "none":
        parsed = parse_date(raw, tz)
        if parsed is not None:
            truncated = truncate_date(parsed, truncation)
            return format_date_pretty(truncated, truncation), truncated
    elif looks_like_date(raw):
        parsed = parse_date(raw, tz)
        if parsed is not None:
            return format_date_pretty(parsed, "none"), parsed
    if raw is None:
        return EMPTY_CATEGORY, None
    return to_display_string(raw), None


def group_chart_rows(
    rows: Sequence[Mapping[str, Any]],
    config: ChartConfig,
    tz: tzinfo = timezone.utc,
) -> list[ChartGroup]:
    """Partition rows by category label in first-seen order."""
    groups: dict[str, ChartGroup] = {}
    for row in rows:
        label, timestamp = category_label(row.get(config.category_column), config, tz)
        group = groups.get(label)
        if group is None:
            group = groups[label] = ChartGroup(label=label, timestamp=timestamp)
        group.rows.append(row)
    return list(groups.values())


def _order_groups(groups: list[ChartGroup]) -> list[ChartGroup]:
    dated = sorted((group for group in groups if group.timestamp is not None), key=lambda group: group.timestamp)
    undated = sorted((group for group in groups if group.timestamp is None), key=lambda group: natural_key(group.label))
    return dated + undated


def build_chart_data(
    rows: Sequence[Mapping[str, Any]],
    config: ChartConfig,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> list[ChartPoint]:
    windowed = filter_rows_by_timeframe(rows, config.date_column, config.timeframe, now, tz)
    groups = group_chart_rows(windowed, config, tz)

    values: dict[str, float] = {}
    for group in groups:
        value = aggregate(group.rows, config.aggregation, config.value_column)
        values[group.label] = round_half_up(value if value is not None else 0.0)

    if config.sort_by == "value":
        ordered = sorted(groups, key=lambda group: values[group.label], reverse=True)
    else:
        ordered = _order_groups(groups)

    max_bars = config.max_bars or DEFAULT_MAX_BARS
    return [ChartPoint(name=group.label, value=values[group.label]) for group in ordered[:max_bars]]
