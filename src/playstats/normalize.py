"""Timestamp and duration normalization for raw session rows."""

from __future__ import annotations

import math
from datetime import datetime, timezone, tzinfo
from email.utils import parsedate_to_datetime
from typing import Any

from playstats.models import (
    Absent,
    GamingSession,
    Numeric,
    RawRow,
    Rejection,
    Textual,
    classify_value,
)

# Largest value read as unix seconds (year 2286). Anything above is milliseconds.
EPOCH_SECONDS_MAX = 10_000_000_000

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Tried after ISO 8601 (datetime.fromisoformat) fails
DATE_FORMATS = (
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%b %d, %Y %H:%M:%S",
    "%b %d, %Y",
    "%d %b %Y %H:%M:%S",
    "%d %b %Y",
)


def coerce_number(value: Any) -> float | None:
    """Coerce a raw value to a finite float, or None if it is not numeric."""
    value = classify_value(value)
    if isinstance(value, Numeric):
        number = value.value
    elif isinstance(value, Textual):
        try:
            number = float(value.value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def coerce_game_id(value: Any) -> int | None:
    """Coerce a raw game id to an int, or None if it is not a whole number."""
    number = coerce_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _from_epoch(number: float) -> datetime | None:
    seconds = number if number <= EPOCH_SECONDS_MAX else number / 1000
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _localize(dt: datetime, tz: tzinfo | None) -> datetime:
    """Attach a zone to a naive datetime (system local zone if tz is None)."""
    if dt.tzinfo is not None:
        return dt
    if tz is None:
        return dt.astimezone()
    return dt.replace(tzinfo=tz)


def _parse_date_string(text: str, tz: tzinfo | None) -> datetime | None:
    text = text.strip()
    if not text:
        return None

    try:
        return _localize(datetime.fromisoformat(text), tz)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return _localize(datetime.strptime(text, fmt), tz)
        except ValueError:
            continue

    # RFC 2822, e.g. "Sat, 09 Mar 2024 14:30:00 +0100"
    try:
        return _localize(parsedate_to_datetime(text), tz)
    except (TypeError, ValueError, IndexError):
        return None


def parse_sqlite_date(value: Any, *, tz: tzinfo | None = None) -> datetime | None:
    """Turn a stored time value into an aware datetime.

    Positive numbers are unix seconds up to EPOCH_SECONDS_MAX and unix
    milliseconds above it. Text is tried as a number first, then as a
    calendar date. Dates without a zone are read in tz (system local zone
    by default).

    Args:
        value: A RawValue or a plain value as read from SQLite.
        tz: Zone for naive date strings.

    Returns:
        The instant, or None if the value is absent or unparseable.
    """
    value = classify_value(value)
    if isinstance(value, Absent):
        return None
    if isinstance(value, Numeric):
        if value.value > 0 and math.isfinite(value.value):
            return _from_epoch(value.value)
        return None

    number = coerce_number(value)
    if number is not None and number > 0:
        return _from_epoch(number)
    return _parse_date_string(value.value, tz)


def parse_duration(value: Any) -> float:
    """Convert a stored duration in seconds to minutes.

    Non-numeric and negative values count as 0.
    """
    number = coerce_number(value)
    if number is None or number < 0:
        return 0.0
    return number / 60


def normalize_row(row: RawRow, *, tz: tzinfo | None = None) -> GamingSession | Rejection:
    """Normalize one raw row into a session, or say why it was dropped."""
    if isinstance(row.time, Absent):
        return Rejection(reason="missing_time", row=row)

    start_time = parse_sqlite_date(row.time, tz=tz)
    if start_time is None:
        return Rejection(reason="unparseable_time", row=row)
    if start_time <= EPOCH:
        return Rejection(reason="before_epoch", row=row)

    return GamingSession(
        game_id=coerce_game_id(row.game_id) or 0,
        start_time=start_time,
        duration=parse_duration(row.duration),
    )


def normalize_session(session: GamingSession, *, tz: tzinfo | None = None) -> GamingSession:
    """Re-apply the normalization rules to an already normalized session.

    Canonical values pass through unchanged: the start time is re-parsed from
    its ISO form and the duration, already in minutes, is only re-coerced.
    """
    start_time = parse_sqlite_date(session.start_time.isoformat(), tz=tz)
    duration = coerce_number(session.duration)
    return GamingSession(
        game_id=session.game_id,
        start_time=start_time if start_time is not None else session.start_time,
        duration=duration if duration is not None and duration > 0 else 0.0,
    )
