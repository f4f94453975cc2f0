"""Windowed views over a session list.

These are what a dashboard shows when the user pages through weeks and
months or opens a single day. Each view is a pure function of the session
list and a window; nothing here is part of StatsData.
"""

from __future__ import annotations

import calendar
import math
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Mapping

from pydantic import BaseModel, ConfigDict

from playstats.models import GamingSession, HourOfDayHours, MonthHours, StatsData
from playstats.stats import WEEKDAYS, compute_stats, fallback_name, to_local, weekday_index

# Timeline colours, assigned to games in order of first appearance on a day
PALETTE = (
    "#3b82f6",
    "#8b5cf6",
    "#ec4899",
    "#f97316",
    "#10b981",
    "#ef4444",
    "#06b6d4",
    "#f59e0b",
)

DAY_MINUTES = 24 * 60

# Narrowest bar drawn on the day timeline, in percent of the day
MIN_WIDTH_PERCENT = 0.4


class DayHours(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    day: date
    hours: float


class WeekView(BaseModel):
    """Seven days, Sunday first."""

    model_config = ConfigDict(frozen=True)

    offset: int
    start: date
    end: date  # exclusive
    buckets: list[DayHours]
    total_hours: float
    average_hours: float
    can_prev: bool
    can_next: bool


class MonthView(BaseModel):
    """One bucket per calendar day of the month."""

    model_config = ConfigDict(frozen=True)

    offset: int
    year: int
    month: int
    name: str
    buckets: list[DayHours]
    total_hours: float
    average_hours: float
    can_prev: bool
    can_next: bool


class TimelineEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_id: int
    name: str
    start_time: datetime
    end_time: datetime
    duration: float  # minutes
    start_percent: float
    width_percent: float
    clipped: bool
    color: str


class DayGameSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_id: int
    name: str
    hours: float
    color: str


class DayTimeline(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    entries: list[TimelineEntry]
    games: list[DayGameSummary]
    total_hours: float


class RankingEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    game_id: int
    name: str
    hours: float
    session_count: int


def format_playtime(hours: float) -> str:
    """Format hours as 'Xh Ym' or 'Ym'."""
    total_minutes = math.floor(hours * 60 + 0.5)
    hrs, mins = divmod(total_minutes, 60)
    if hrs == 0:
        return f"{mins}m"
    return f"{hrs}h {mins}m"


def game_names(stats: StatsData) -> dict[int, str]:
    """Display names for every ranked title."""
    return {game.game_id: game.name for game in stats.top_games}


def filter_game(sessions: Iterable[GamingSession], game_id: int | None) -> list[GamingSession]:
    """Sessions for one game, or all sessions if game_id is None."""
    if game_id is None:
        return list(sessions)
    return [s for s in sessions if s.game_id == game_id]


def _local_date(session: GamingSession, tz: tzinfo | None) -> date:
    return to_local(session.start_time, tz).date()


def week_start(day: date) -> date:
    """Sunday on or before day."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def latest_date(sessions: Iterable[GamingSession], *, tz: tzinfo | None = None) -> date | None:
    """Local date of the most recent session."""
    latest = max((s.start_time for s in sessions), default=None)
    if latest is None:
        return None
    return to_local(latest, tz).date()


def _resolve_anchor(
    sessions: list[GamingSession], anchor: date | None, tz: tzinfo | None
) -> date:
    if anchor is not None:
        return anchor
    return latest_date(sessions, tz=tz) or datetime.now(tz).date()


def latest_week_offset(
    sessions: Iterable[GamingSession],
    *,
    today: date | None = None,
    tz: tzinfo | None = None,
) -> int:
    """Weeks from the current week to the week of the most recent session."""
    latest = latest_date(sessions, tz=tz)
    if today is None:
        today = datetime.now(tz).date()
    if latest is None:
        return 0
    return (week_start(latest) - week_start(today)).days // 7


def latest_month_offset(
    sessions: Iterable[GamingSession],
    *,
    today: date | None = None,
    tz: tzinfo | None = None,
) -> int:
    """Months from the current month to the month of the most recent session."""
    latest = latest_date(sessions, tz=tz)
    if today is None:
        today = datetime.now(tz).date()
    if latest is None:
        return 0
    return (latest.year - today.year) * 12 + (latest.month - today.month)


def week_view(
    sessions: Iterable[GamingSession],
    offset: int = 0,
    *,
    anchor: date | None = None,
    tz: tzinfo | None = None,
) -> WeekView:
    """Daily hours for one week.

    Args:
        sessions: Sessions to bucket.
        offset: Weeks relative to the anchor's week (negative is earlier).
        anchor: Any day in week 0. Defaults to the most recent session's day.
        tz: Zone for day boundaries (system local zone by default).
    """
    sessions = list(sessions)
    start = week_start(_resolve_anchor(sessions, anchor, tz)) + timedelta(weeks=offset)
    end = start + timedelta(days=7)

    hours = [0.0] * 7
    can_prev = can_next = False
    for session in sessions:
        local = to_local(session.start_time, tz)
        day = local.date()
        if day < start:
            can_prev = True
        elif day >= end:
            can_next = True
        else:
            hours[weekday_index(local)] += session.duration / 60

    total = sum(hours)
    return WeekView(
        offset=offset,
        start=start,
        end=end,
        buckets=[
            DayHours(label=WEEKDAYS[i], day=start + timedelta(days=i), hours=hours[i])
            for i in range(7)
        ],
        total_hours=total,
        average_hours=total / 7,
        can_prev=can_prev,
        can_next=can_next,
    )


def month_view(
    sessions: Iterable[GamingSession],
    offset: int = 0,
    *,
    anchor: date | None = None,
    tz: tzinfo | None = None,
) -> MonthView:
    """Daily hours for one calendar month.

    Args:
        sessions: Sessions to bucket.
        offset: Months relative to the anchor's month (negative is earlier).
        anchor: Any day in month 0. Defaults to the most recent session's day.
        tz: Zone for day boundaries (system local zone by default).
    """
    sessions = list(sessions)
    base = _resolve_anchor(sessions, anchor, tz)
    year, month = _shift_month(base.year, base.month, offset)
    days_in_month = calendar.monthrange(year, month)[1]
    first = date(year, month, 1)
    after = first + timedelta(days=days_in_month)

    hours = [0.0] * days_in_month
    can_prev = can_next = False
    for session in sessions:
        day = _local_date(session, tz)
        if day < first:
            can_prev = True
        elif day >= after:
            can_next = True
        else:
            hours[day.day - 1] += session.duration / 60

    short_name = first.strftime("%b")
    total = sum(hours)
    return MonthView(
        offset=offset,
        year=year,
        month=month,
        name=first.strftime("%B %Y"),
        buckets=[
            DayHours(label=f"{short_name} {i + 1}", day=date(year, month, i + 1), hours=hours[i])
            for i in range(days_in_month)
        ],
        total_hours=total,
        average_hours=total / days_in_month,
        can_prev=can_prev,
        can_next=can_next,
    )


def day_timeline(
    sessions: Iterable[GamingSession],
    day: date,
    names: Mapping[int, str],
    *,
    tz: tzinfo | None = None,
) -> DayTimeline:
    """Lay out one day's sessions on a 24 hour axis.

    Each session becomes a bar starting at its local start minute. Bars are
    at least MIN_WIDTH_PERCENT wide and never extend past midnight. Every
    game played that day gets its own colour, cycling through PALETTE in
    order of first appearance.
    """
    day_sessions = [s for s in sessions if _local_date(s, tz) == day]

    colors: dict[int, str] = {}
    minutes_by_game: dict[int, float] = {}
    for session in day_sessions:
        if session.game_id not in colors:
            colors[session.game_id] = PALETTE[len(colors) % len(PALETTE)]
        minutes_by_game[session.game_id] = minutes_by_game.get(session.game_id, 0.0) + session.duration

    entries: list[TimelineEntry] = []
    for session in day_sessions:
        local = to_local(session.start_time, tz)
        start_minute = local.hour * 60 + local.minute
        start_percent = start_minute / DAY_MINUTES * 100
        # Floor first, then clip: a bar starting at 23:59 is narrower than
        # MIN_WIDTH_PERCENT rather than running past midnight.
        width_percent = min(
            max(session.duration / DAY_MINUTES * 100, MIN_WIDTH_PERCENT),
            100 - start_percent,
        )

        entries.append(
            TimelineEntry(
                game_id=session.game_id,
                name=names.get(session.game_id) or fallback_name(session.game_id),
                start_time=local,
                end_time=local + timedelta(minutes=session.duration),
                duration=session.duration,
                start_percent=start_percent,
                width_percent=width_percent,
                clipped=start_minute + session.duration > DAY_MINUTES,
                color=colors[session.game_id],
            )
        )
    entries.sort(key=lambda e: e.start_percent)

    games = sorted(
        (
            DayGameSummary(
                game_id=game_id,
                name=names.get(game_id) or fallback_name(game_id),
                hours=minutes / 60,
                color=colors[game_id],
            )
            for game_id, minutes in minutes_by_game.items()
        ),
        key=lambda g: -g.hours,
    )

    return DayTimeline(
        day=day,
        entries=entries,
        games=games,
        total_hours=sum(g.hours for g in games),
    )


def lifetime_ranking(
    sessions: Iterable[GamingSession],
    names: Mapping[int, str],
) -> list[RankingEntry]:
    """Hours and session count per game, most played first."""
    minutes_by_game: dict[int, float] = {}
    counts: dict[int, int] = {}
    for session in sessions:
        minutes_by_game[session.game_id] = minutes_by_game.get(session.game_id, 0.0) + session.duration
        counts[session.game_id] = counts.get(session.game_id, 0) + 1

    ranking = [
        RankingEntry(
            game_id=game_id,
            name=names.get(game_id) or fallback_name(game_id),
            hours=minutes / 60,
            session_count=counts[game_id],
        )
        for game_id, minutes in minutes_by_game.items()
    ]
    ranking.sort(key=lambda r: -r.hours)
    return ranking


class GameReport(BaseModel):
    """One title's totals with its monthly and hour-of-day series."""

    model_config = ConfigDict(frozen=True)

    game_id: int
    name: str
    total_hours: float
    session_count: int
    monthly: list[MonthHours]
    hourly: list[HourOfDayHours]


def game_report(
    sessions: Iterable[GamingSession],
    game_id: int,
    names: Mapping[int, str],
    *,
    tz: tzinfo | None = None,
) -> GameReport:
    """Summarize a single game's sessions.

    Monthly and hourly hours are bucketed in tz and rounded the same way as
    the full rollup.
    """
    game_sessions = filter_game(sessions, game_id)
    stats = compute_stats(game_sessions, names, tz=tz)
    return GameReport(
        game_id=game_id,
        name=names.get(game_id) or fallback_name(game_id),
        total_hours=sum(s.duration for s in game_sessions) / 60,
        session_count=len(game_sessions),
        monthly=stats.monthly_distribution,
        hourly=stats.time_of_day_distribution,
    )
