from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Any, Mapping, Sequence

from firegrid.widgets.config import AggregationType, MetricConfig
from firegrid.widgets.dates import filter_rows_by_timeframe
from firegrid.widgets.values import PLACEHOLDER, coerce_number, format_number, to_display_string

AGGREGATION_LABELS: dict[str, str] = {
    "count": "Count",
    "sum": "Sum",
    "average": "Average",
    "min": "Min",
    "max": "Max",
    "count_distinct": "Count Distinct",
}


def numeric_values(rows: Sequence[Mapping[str, Any]], column: str) -> list[float]:
    values = []
    for row in rows:
        number = coerce_number(row.get(column))
        if number is not None:
            values.append(number)
    return values


def aggregate(rows: Sequence[Mapping[str, Any]], aggregation: AggregationType, column: str) -> float | None:
    """Reduce rows to one value; numeric reductions over nothing give ``None``."""
    if aggregation == "count":
        return float(len(rows))
    if aggregation == "count_distinct":
        return float(len({to_display_string(row.get(column)) for row in rows}))

    values = numeric_values(rows, column)
    if not values:
        return None
    if aggregation == "sum":
        return sum(values)
    if aggregation == "average":
        return sum(values) / len(values)
    if aggregation == "min":
        return min(values)
    if aggregation == "max":
        return max(values)
    raise ValueError(f"Unsupported aggregation '{aggregation}'")


def compute_metric(
    rows: Sequence[Mapping[str, Any]],
    config: MetricConfig,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> float | None:
    windowed = filter_rows_by_timeframe(rows, config.date_column, config.timeframe, now, tz)
    return aggregate(windowed, config.aggregation, config.column)


def format_metric_value(value: float | None, config: MetricConfig) -> str:
    if value is None:
        return PLACEHOLDER
    return format_number(value, config.prefix, config.suffix)
