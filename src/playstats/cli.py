"""CLI entry point for playstats."""

from __future__ import annotations

import json
import logging
import sys
from datetime import date, datetime, timedelta, tzinfo
from pathlib import Path
from typing import NoReturn
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import click

from playstats.db import GameDatabase
from playstats.errors import PlaystatsError
from playstats.models import StatsData
from playstats.stats import process_file
from playstats.views import (
    day_timeline,
    filter_game,
    format_playtime,
    game_names,
    game_report,
    latest_month_offset,
    latest_week_offset,
    lifetime_ranking,
    month_view,
    week_view,
)


def format_date_range(start: date, end: date) -> str:
    """Format a date range for a report header.

    Args:
        start: First day.
        end: Day after the last day (exclusive).

    Returns:
        Formatted string like "Jan 19-25, 2025" or "Dec 28, 2024 - Jan 03, 2025".
    """
    last = end - timedelta(days=1)
    if start.year == last.year and start.month == last.month:
        return f"{start.strftime('%b')} {start.day}-{last.day}, {start.year}"
    elif start.year == last.year:
        return f"{start.strftime('%b %d')} - {last.strftime('%b %d')}, {start.year}"
    else:
        return f"{start.strftime('%b %d, %Y')} - {last.strftime('%b %d, %Y')}"


def make_progress_bar(value: float, max_value: float, width: int = 16) -> str:
    """Create ASCII progress bar.

    Args:
        value: Current value.
        max_value: Maximum value (100%).
        width: Total width of bar (default: 16).

    Returns:
        Progress bar string like '████████░░░░░░░░'.
    """
    if max_value == 0 or value == 0:
        return "░" * width
    filled = max(1, min(width, round((value / max_value) * width)))
    return "█" * filled + "░" * (width - filled)


def _truncate(name: str, width: int = 24) -> str:
    if len(name) > width:
        return name[: width - 3] + "..."
    return name


def _parse_tz(ctx: click.Context, param: click.Parameter, value: str | None) -> tzinfo | None:
    if not value:
        return None
    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise click.BadParameter(f"unknown time zone '{value}'") from e


def _fail(message: str) -> NoReturn:
    click.echo(message, err=True)
    sys.exit(1)


def _load_stats(db: Path, tz: tzinfo | None) -> StatsData:
    if not db.exists():
        _fail("No database found")
    try:
        return process_file(db, tz=tz)
    except PlaystatsError as e:
        _fail(str(e))


db_argument = click.argument("db", type=click.Path(path_type=Path, dir_okay=False))
json_option = click.option("--json", "output_json", is_flag=True, help="Output as JSON")
game_option = click.option("--game", "game_id", type=int, default=None, help="Only sessions for this game id")
from_today_option = click.option(
    "--from-today",
    is_flag=True,
    help="Count --offset from today; without --offset, jump to the latest session",
)


@click.group()
@click.option(
    "--tz",
    envvar="PLAYSTATS_TZ",
    callback=_parse_tz,
    help="IANA time zone for day/hour buckets (default: system zone)",
)
@click.option("-v", "--verbose", is_flag=True, help="Log pipeline details to stderr")
@click.pass_context
def main(ctx: click.Context, tz: tzinfo | None, verbose: bool) -> None:
    """Gaming playtime statistics from a SQLite database."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"tz": tz}


def _echo_distribution(title: str, rows: list[tuple[str, float]]) -> None:
    click.echo(title)
    max_hours = max((hours for _, hours in rows), default=0)
    for label, hours in rows:
        bar = make_progress_bar(hours, max_hours)
        click.echo(f"  {label:<10} {format_playtime(hours):>9}   {bar}")


@main.command("report")
@db_argument
@json_option
@click.option(
    "--top",
    type=click.IntRange(min=0),
    default=10,
    show_default=True,
    help="Number of titles to list",
)
@game_option
@click.pass_context
def report_command(
    ctx: click.Context, db: Path, output_json: bool, top: int, game_id: int | None
) -> None:
    """Show totals, top titles and playtime distributions.

    With --game, show one title's total, session count and its monthly and
    hourly playtime instead.

    Example:
        playstats report ~/playtime.db
        playstats --tz Europe/Berlin report ~/playtime.db --json
        playstats report ~/playtime.db --game 620
    """
    tz = ctx.obj["tz"]
    stats = _load_stats(db, tz)

    if game_id is not None:
        _echo_game_report(stats, game_id, tz, output_json)
        return

    if output_json:
        click.echo(json.dumps(stats.to_json_dict(), indent=2))
        return

    click.echo(f"Playtime Report: {db.name}")
    click.echo()
    click.echo(f"Games: {stats.total_games}")
    click.echo(f"Total: {format_playtime(stats.total_hours)}")
    click.echo()

    if not stats.sessions:
        click.echo("No sessions with a valid start time.")
        return

    click.echo("Top Games:")
    shown = stats.top_games[:top]
    max_hours = max((g.hours for g in shown), default=0)
    for game in shown:
        bar = make_progress_bar(game.hours, max_hours)
        click.echo(f"  {_truncate(game.name):<24} {format_playtime(game.hours):>9}   {bar}")
    click.echo()

    _echo_distribution("By Day of Week:", [(d.day, d.hours) for d in stats.weekly_distribution])
    click.echo()
    _echo_distribution("By Hour:", [(h.hour, h.hours) for h in stats.time_of_day_distribution])
    click.echo()
    _echo_distribution("By Month:", [(m.month, m.hours) for m in stats.monthly_distribution])


def _echo_game_report(stats: StatsData, game_id: int, tz: tzinfo | None, output_json: bool) -> None:
    report = game_report(stats.sessions, game_id, game_names(stats), tz=tz)

    if output_json:
        click.echo(json.dumps(report.model_dump(mode="json"), indent=2))
        return

    click.echo(f"Game: {report.name}")
    click.echo(f"AppID: {report.game_id}")
    click.echo()
    if not report.session_count:
        click.echo("No sessions for this game.")
        return

    click.echo(f"Total: {format_playtime(report.total_hours)}")
    click.echo(f"Sessions: {report.session_count}")
    click.echo()
    _echo_distribution("By Month:", [(m.month, m.hours) for m in report.monthly])
    click.echo()
    _echo_distribution("By Hour:", [(h.hour, h.hours) for h in report.hourly])


@main.command("ranking")
@db_argument
@json_option
@click.pass_context
def ranking_command(ctx: click.Context, db: Path, output_json: bool) -> None:
    """Show lifetime hours and session count for every game."""
    stats = _load_stats(db, ctx.obj["tz"])
    ranking = lifetime_ranking(stats.sessions, game_names(stats))

    if output_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in ranking], indent=2))
        return

    click.echo("Lifetime Ranking:")
    if not ranking:
        click.echo("  No sessions with a valid start time.")
        return

    max_hours = ranking[0].hours
    for position, entry in enumerate(ranking, 1):
        label = f"{format_playtime(entry.hours)} ({entry.session_count} sess)"
        bar = make_progress_bar(entry.hours, max_hours)
        click.echo(f"  {position:>3}. {_truncate(entry.name):<24} {label:>18}   {bar}")


@main.command("schema")
@db_argument
def schema_command(db: Path) -> None:
    """Show which table and columns hold the sessions."""
    if not db.exists():
        _fail("No database found")
    try:
        with GameDatabase.open(db) as store:
            schema = store.resolve()
    except PlaystatsError as e:
        _fail(str(e))

    click.echo(f"Session table: {schema.session_table} ({schema.matched_by} match)")
    click.echo(f"  id:       {schema.id_column}")
    click.echo(f"  time:     {schema.time_column or '(none)'}")
    click.echo(f"  duration: {schema.duration_column or '(none)'}")
    click.echo(f"Game names: {len(schema.identity_map)}")


@main.command("week")
@db_argument
@click.option(
    "--offset",
    type=int,
    default=None,
    help="Weeks relative to the latest session's week (or the current week with --from-today)",
)
@from_today_option
@game_option
@json_option
@click.pass_context
def week_command(
    ctx: click.Context,
    db: Path,
    offset: int | None,
    from_today: bool,
    game_id: int | None,
    output_json: bool,
) -> None:
    """Show daily playtime for one week (Sunday-Saturday)."""
    tz = ctx.obj["tz"]
    stats = _load_stats(db, tz)
    sessions = filter_game(stats.sessions, game_id)
    if from_today:
        today = datetime.now(tz).date()
        if offset is None:
            offset = latest_week_offset(sessions, today=today, tz=tz)
        view = week_view(sessions, offset, anchor=today, tz=tz)
    else:
        view = week_view(sessions, offset or 0, tz=tz)

    if output_json:
        click.echo(json.dumps(view.model_dump(mode="json"), indent=2))
        return

    click.echo(f"Week: {format_date_range(view.start, view.end)}")
    click.echo(f"Total: {format_playtime(view.total_hours)}  (avg {format_playtime(view.average_hours)}/day)")
    click.echo()
    max_hours = max(b.hours for b in view.buckets)
    for bucket in view.buckets:
        bar = make_progress_bar(bucket.hours, max_hours)
        click.echo(f"  {bucket.label:<10} {format_playtime(bucket.hours):>9}   {bar}")


@main.command("month")
@db_argument
@click.option(
    "--offset",
    type=int,
    default=None,
    help="Months relative to the latest session's month (or the current month with --from-today)",
)
@from_today_option
@game_option
@json_option
@click.pass_context
def month_command(
    ctx: click.Context,
    db: Path,
    offset: int | None,
    from_today: bool,
    game_id: int | None,
    output_json: bool,
) -> None:
    """Show daily playtime for one calendar month."""
    tz = ctx.obj["tz"]
    stats = _load_stats(db, tz)
    sessions = filter_game(stats.sessions, game_id)
    if from_today:
        today = datetime.now(tz).date()
        if offset is None:
            offset = latest_month_offset(sessions, today=today, tz=tz)
        view = month_view(sessions, offset, anchor=today, tz=tz)
    else:
        view = month_view(sessions, offset or 0, tz=tz)

    if output_json:
        click.echo(json.dumps(view.model_dump(mode="json"), indent=2))
        return

    click.echo(f"Month: {view.name}")
    click.echo(f"Total: {format_playtime(view.total_hours)}  (avg {format_playtime(view.average_hours)}/day)")
    click.echo()
    max_hours = max(b.hours for b in view.buckets)
    for bucket in view.buckets:
        if bucket.hours == 0:
            continue
        bar = make_progress_bar(bucket.hours, max_hours)
        click.echo(f"  {bucket.label:<10} {format_playtime(bucket.hours):>9}   {bar}")


@main.command("day")
@db_argument
@click.argument("day_date")
@game_option
@json_option
@click.pass_context
def day_command(
    ctx: click.Context, db: Path, day_date: str, game_id: int | None, output_json: bool
) -> None:
    """Show the session timeline for one day (YYYY-MM-DD)."""
    try:
        day = datetime.strptime(day_date, "%Y-%m-%d").date()
    except ValueError:
        _fail(f"Invalid date format: {day_date}. Use YYYY-MM-DD.")

    tz = ctx.obj["tz"]
    stats = _load_stats(db, tz)
    timeline = day_timeline(filter_game(stats.sessions, game_id), day, game_names(stats), tz=tz)

    if output_json:
        click.echo(json.dumps(timeline.model_dump(mode="json"), indent=2))
        return

    click.echo(f"Day: {day.strftime('%b %d, %Y')}")
    if not timeline.entries:
        click.echo()
        click.echo("No sessions on this day.")
        return

    click.echo(f"Total: {format_playtime(timeline.total_hours)}")
    click.echo()
    for entry in timeline.entries:
        end = entry.end_time.strftime("%H:%M")
        if entry.clipped:
            end += " (+1d)"
        click.echo(
            f"  {entry.start_time.strftime('%H:%M')}-{end:<11} "
            f"{_truncate(entry.name):<24} {format_playtime(entry.duration / 60):>9}"
        )
    click.echo()
    click.echo("By Game:")
    max_hours = max(g.hours for g in timeline.games)
    for game in timeline.games:
        bar = make_progress_bar(game.hours, max_hours)
        click.echo(f"  {_truncate(game.name):<24} {format_playtime(game.hours):>9}   {bar}")


if __name__ == "__main__":
    main()
