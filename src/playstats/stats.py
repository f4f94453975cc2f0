"""Aggregation of normalized sessions into the stats rollup."""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Iterable, Mapping

from playstats.db import GameDatabase
from playstats.models import (
    GamingSession,
    HourOfDayHours,
    MonthHours,
    RawRow,
    Rejection,
    StatsData,
    TopGame,
    WeekdayHours,
)
from playstats.normalize import normalize_row

logger = logging.getLogger(__name__)

# Index 0 is Sunday, matching weekday_index()
WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def round_hours(hours: float) -> float:
    """Round to one decimal, halves rounding up."""
    return math.floor(hours * 10 + 0.5) / 10


def fallback_name(game_id: int) -> str:
    return f"AppID: {game_id}"


def to_local(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert to tz, or to the system local zone if tz is None."""
    return dt.astimezone(tz)


def weekday_index(dt: datetime) -> int:
    """Day of week with Sunday as 0."""
    return (dt.weekday() + 1) % 7


def month_key(dt: datetime) -> str:
    return f"{dt.year}-{dt.month:02d}"


def build_sessions(rows: Iterable[RawRow], *, tz: tzinfo | None = None) -> list[GamingSession]:
    """Normalize raw rows, dropping the ones without a usable start time."""
    sessions: list[GamingSession] = []
    rejected: Counter[str] = Counter()

    for row in rows:
        result = normalize_row(row, tz=tz)
        if isinstance(result, Rejection):
            rejected[result.reason] += 1
        else:
            sessions.append(result)

    if rejected:
        logger.info(
            "Dropped %d of %d rows: %s",
            sum(rejected.values()),
            len(sessions) + sum(rejected.values()),
            ", ".join(f"{reason}={count}" for reason, count in sorted(rejected.items())),
        )
    return sessions


def rank_games(
    sessions: Iterable[GamingSession],
    identity_map: Mapping[int, str],
) -> list[TopGame]:
    """Total hours per title, most played first.

    Game id 0 (unknown or non-numeric ids) is left out. Ties keep the order
    in which the titles were first seen.
    """
    minutes_by_game: dict[int, float] = {}
    for session in sessions:
        if session.game_id == 0:
            continue
        minutes_by_game[session.game_id] = minutes_by_game.get(session.game_id, 0.0) + session.duration

    ranked = sorted(minutes_by_game.items(), key=lambda item: -item[1])
    return [
        TopGame(
            game_id=game_id,
            name=identity_map.get(game_id) or fallback_name(game_id),
            hours=round_hours(minutes / 60),
        )
        for game_id, minutes in ranked
    ]


def compute_stats(
    sessions: list[GamingSession],
    identity_map: Mapping[int, str],
    *,
    tz: tzinfo | None = None,
) -> StatsData:
    """Build the rollup for a list of normalized sessions.

    Args:
        sessions: Normalized sessions.
        identity_map: Game id to display name.
        tz: Zone used for the weekday, hour and month buckets (system local
            zone by default).

    Returns:
        StatsData with every distribution zero-filled.
    """
    weekly = [0.0] * 7
    hourly = [0.0] * 24
    monthly: defaultdict[str, float] = defaultdict(float)
    total_minutes = 0.0

    for session in sessions:
        local = to_local(session.start_time, tz)
        hours = session.duration / 60
        weekly[weekday_index(local)] += hours
        hourly[local.hour] += hours
        monthly[month_key(local)] += hours
        total_minutes += session.duration

    return StatsData(
        total_games=len({s.game_id for s in sessions}),
        total_hours=round_hours(total_minutes / 60),
        top_games=rank_games(sessions, identity_map),
        weekly_distribution=[
            WeekdayHours(day=day, hours=round_hours(weekly[i])) for i, day in enumerate(WEEKDAYS)
        ],
        monthly_distribution=[
            MonthHours(month=month, hours=round_hours(monthly[month])) for month in sorted(monthly)
        ],
        time_of_day_distribution=[
            HourOfDayHours(hour=f"{hour:02d}:00", hours=round_hours(hourly[hour]))
            for hour in range(24)
        ],
        sessions=sessions,
    )


def analyze(db: GameDatabase, *, tz: tzinfo | None = None) -> StatsData:
    """Resolve the schema, read the sessions and aggregate them."""
    schema = db.resolve()
    rows = db.fetch_raw_rows(schema)
    sessions = build_sessions(rows, tz=tz)
    logger.debug("Normalized %d sessions from %s", len(sessions), schema.session_table)
    return compute_stats(sessions, schema.identity_map, tz=tz)


def process_database(data: bytes, *, tz: tzinfo | None = None) -> StatsData:
    """Run the whole pipeline over an uploaded database image.

    Raises:
        PlaystatsError: On any fatal condition. No partial result is returned.
    """
    with GameDatabase.from_bytes(data) as db:
        return analyze(db, tz=tz)


def process_file(path: Path, *, tz: tzinfo | None = None) -> StatsData:
    """Run the whole pipeline over a database file on disk."""
    with GameDatabase.open(path) as db:
        return analyze(db, tz=tz)
