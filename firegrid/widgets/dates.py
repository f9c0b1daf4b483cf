from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Iterable, Mapping

from firegrid.widgets.config import DateTruncation, Timeframe

MONTH_SHORT = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

TIMEFRAME_LABELS: dict[str, str] = {
    "all": "All Time",
    "7d": "Last 7 Days",
    "30d": "Last 30 Days",
    "90d": "Last 90 Days",
    "this_month": "This Month",
    "this_year": "This Year",
}

_ROLLING_DAYS = {"7d": 7, "30d": 30, "90d": 90}
_DATE_PREFIX_RE = re.compile(r"^\d{4}[-/]\d{2}[-/]\d{2}")
_ISO_DATETIME_RE = re.compile(r"\d{4}-\d{2}-\d{2}T")
_SLASHED_DATE_RE = re.compile(r"^(\d{4})/(\d{2})/(\d{2})")
_FALLBACK_FORMATS = ("%m/%d/%Y", "%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%d %B %Y")


def _localize(value: datetime, tz: tzinfo) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def _parse_text(text: str) -> datetime | None:
    text = text.strip()
    if not text:
        return None
    text = _SLASHED_DATE_RE.sub(r"\1-\2-\3", text)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_date(value: Any, tz: tzinfo = timezone.utc) -> datetime | None:
    """Read a cell as an aware datetime in ``tz``.

    Numbers are epoch milliseconds; strings are ISO 8601 (``Z`` accepted),
    ``YYYY/MM/DD`` or a few spelled-out month forms. Naive values are taken
    to be in ``tz``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _localize(value, tz)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=tz)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).astimezone(tz)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        parsed = _parse_text(value)
        return _localize(parsed, tz) if parsed else None
    return None


def looks_like_date(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return bool(_DATE_PREFIX_RE.match(value) or _ISO_DATETIME_RE.search(value))


def timeframe_start(timeframe: Timeframe | None, now: datetime | None = None, tz: tzinfo = timezone.utc) -> datetime | None:
    """Inclusive lower bound of a timeframe, or ``None`` for all time."""
    if not timeframe or timeframe == "all":
        return None
    current = _localize(now, tz) if now else datetime.now(tz)
    if timeframe in _ROLLING_DAYS:
        return current - timedelta(days=_ROLLING_DAYS[timeframe])
    if timeframe == "this_month":
        return current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if timeframe == "this_year":
        return current.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    raise ValueError(f"Unknown timeframe '{timeframe}'")


def filter_rows_by_timeframe(
    rows: Iterable[Mapping[str, Any]],
    date_column: str | None,
    timeframe: Timeframe | None,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> list[Mapping[str, Any]]:
    """Keep rows dated on or after the timeframe start.

    Rows whose date cannot be read are dropped once a window applies.
    """
    start = timeframe_start(timeframe, now, tz)
    if start is None or not date_column:
        return list(rows)
    kept = []
    for row in rows:
        parsed = parse_date(row.get(date_column), tz)
        if parsed is not None and parsed >= start:
            kept.append(row)
    return kept


def truncate_date(value: datetime, truncation: DateTruncation) -> datetime:
    midnight = value.replace(hour=0, minute=0, second=0, microsecond=0)
    if truncation == "day":
        return midnight
    if truncation == "week":
        return midnight - timedelta(days=midnight.weekday())
    if truncation == "month":
        return midnight.replace(day=1)
    if truncation == "year":
        return midnight.replace(month=1, day=1)
    return value


def ordinal(number: int) -> str:
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def format_date_pretty(value: datetime, truncation: DateTruncation = "none") -> str:
    """``"Jan 5th"`` for days and weeks, ``"Jan 2025"``, ``"2025"``, or ``"Jan 5th, 2025"``."""
    month = MONTH_SHORT[value.month - 1]
    if truncation == "year":
        return str(value.year)
    if truncation == "month":
        return f"{month} {value.year}"
    if truncation in ("day", "week"):
        return f"{month} {ordinal(value.day)}"
    return f"{month} {ordinal(value.day)}, {value.year}"
