"""Tests for the CLI entry point."""

import json
from datetime import date, datetime, timezone

from click.testing import CliRunner

from conftest import game_dict_table, play_time_table
from playstats.cli import format_date_range, main, make_progress_bar
from playstats.views import week_start

SAT_MIDNIGHT = 1709942400  # Sat 2024-03-09 00:00 UTC
SAT_AFTERNOON = 1710000000  # Sat 2024-03-09 16:00 UTC
TUE = 1709632800  # Tue 2024-03-05 10:00 UTC


def run(*args: str):
    """Invoke the CLI pinned to UTC."""
    runner = CliRunner()
    return runner.invoke(main, ["--tz", "UTC", *args])


def portal_db(make_db):
    return make_db({
        **game_dict_table([(1, "Portal 2")]),
        **play_time_table([
            (1, SAT_MIDNIGHT, 1800),
            (1, SAT_AFTERNOON, 3600),
            (2, TUE, 900),
        ]),
    })


def test_main_help():
    """--help shows the group description."""
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "Gaming playtime statistics" in result.output


def test_main_no_args():
    """Click groups exit with code 2 when no subcommand is provided."""
    runner = CliRunner()
    result = runner.invoke(main, [])
    assert result.exit_code == 2
    assert "Usage:" in result.output


def test_invalid_time_zone(make_db):
    path = portal_db(make_db)
    runner = CliRunner()
    result = runner.invoke(main, ["--tz", "Not/AZone", "report", str(path)])
    assert result.exit_code == 2
    assert "unknown time zone" in result.output


def test_time_zone_from_environment(make_db):
    path = portal_db(make_db)
    runner = CliRunner()
    result = runner.invoke(main, ["report", str(path), "--json"], env={"PLAYSTATS_TZ": "America/New_York"})
    assert result.exit_code == 0
    weekly = {w["day"]: w["hours"] for w in json.loads(result.output)["weeklyDistribution"]}
    # Saturday 00:00 UTC is Friday evening in New York
    assert weekly["Friday"] == 0.5


class TestReportCommand:
    """Tests for the report command."""

    def test_json_output(self, make_db):
        path = portal_db(make_db)
        result = run("report", str(path), "--json")

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["totalGames"] == 2
        assert data["totalHours"] == 1.8
        assert data["topGames"][0] == {"game_id": 1, "name": "Portal 2", "hours": 1.5}
        assert data["topGames"][1]["name"] == "AppID: 2"
        assert len(data["weeklyDistribution"]) == 7
        assert len(data["timeOfDayDistribution"]) == 24
        assert [m["month"] for m in data["monthlyDistribution"]] == ["2024-03"]

    def test_human_output(self, make_db):
        path = portal_db(make_db)
        result = run("report", str(path))

        assert result.exit_code == 0
        assert "Playtime Report: playtime.db" in result.output
        assert "Games: 2" in result.output
        assert "Top Games:" in result.output
        assert "Portal 2" in result.output
        assert "1h 30m" in result.output
        assert "By Day of Week:" in result.output
        assert "By Hour:" in result.output
        assert "By Month:" in result.output

    def test_top_limit(self, make_db):
        path = portal_db(make_db)
        result = run("report", str(path), "--top", "1")
        assert result.exit_code == 0
        assert "Portal 2" in result.output
        assert "AppID: 2" not in result.output

    def test_no_valid_sessions(self, make_db):
        path = make_db(play_time_table([(1, None, 3600)]))
        result = run("report", str(path))
        assert result.exit_code == 0
        assert "No sessions with a valid start time." in result.output

    def test_negative_top_rejected(self, make_db):
        path = portal_db(make_db)
        result = run("report", str(path), "--top", "-1")
        assert result.exit_code == 2
        assert "--top" in result.output

    def test_game_report(self, make_db):
        path = portal_db(make_db)
        result = run("report", str(path), "--game", "1")

        assert result.exit_code == 0
        assert "Game: Portal 2" in result.output
        assert "AppID: 1" in result.output
        assert "Total: 1h 30m" in result.output
        assert "Sessions: 2" in result.output
        assert "By Month:" in result.output
        assert "2024-03" in result.output
        assert "By Hour:" in result.output
        assert "Top Games:" not in result.output

    def test_game_report_json(self, make_db):
        path = portal_db(make_db)
        result = run("report", str(path), "--game", "1", "--json")

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["name"] == "Portal 2"
        assert data["session_count"] == 2
        assert data["total_hours"] == 1.5
        assert data["monthly"] == [{"month": "2024-03", "hours": 1.5}]
        hourly = {h["hour"]: h["hours"] for h in data["hourly"]}
        assert hourly["00:00"] == 0.5
        assert hourly["16:00"] == 1.0

    def test_game_report_no_sessions(self, make_db):
        path = portal_db(make_db)
        result = run("report", str(path), "--game", "99")
        assert result.exit_code == 0
        assert "Game: AppID: 99" in result.output
        assert "No sessions for this game." in result.output

    def test_missing_database(self, tmp_path):
        result = run("report", str(tmp_path / "missing.db"))
        assert result.exit_code == 1
        assert "No database found" in result.output

    def test_empty_database(self, make_db):
        path = make_db({})
        result = run("report", str(path))
        assert result.exit_code == 1
        assert "The database appears to be empty or contains no tables." in result.output

    def test_no_session_table(self, make_db):
        path = make_db({"settings": ("key TEXT, value TEXT", [("a", "b")])})
        result = run("report", str(path))
        assert result.exit_code == 1
        assert "Could not find a gaming session table" in result.output

    def test_not_a_database(self, tmp_path):
        path = tmp_path / "notes.db"
        path.write_text("just some notes\n" * 100)
        result = run("report", str(path))
        assert result.exit_code == 1
        assert "Could not read database" in result.output


class TestSchemaCommand:
    """Tests for the schema command."""

    def test_exact_table(self, make_db):
        path = portal_db(make_db)
        result = run("schema", str(path))
        assert result.exit_code == 0
        assert "Session table: play_time (exact match)" in result.output
        assert "time:     date_time" in result.output
        assert "Game names: 1" in result.output

    def test_synonym_table(self, make_db):
        path = make_db({"sessions_log": ("appid INTEGER, timestamp INTEGER, minutes INTEGER", [(1, SAT_MIDNIGHT, 60)])})
        result = run("schema", str(path))
        assert result.exit_code == 0
        assert "Session table: sessions_log (synonyms match)" in result.output
        assert "id:       appid" in result.output
        assert "duration: minutes" in result.output


class TestRankingCommand:
    """Tests for the ranking command."""

    def test_human_output(self, make_db):
        path = portal_db(make_db)
        result = run("ranking", str(path))

        assert result.exit_code == 0
        assert "Lifetime Ranking:" in result.output
        assert "1h 30m (2 sess)" in result.output
        assert "15m (1 sess)" in result.output
        assert result.output.index("Portal 2") < result.output.index("AppID: 2")

    def test_json_output(self, make_db):
        path = portal_db(make_db)
        result = run("ranking", str(path), "--json")

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [(r["game_id"], r["session_count"]) for r in data] == [(1, 2), (2, 1)]
        assert data[0]["hours"] == 1.5

    def test_no_valid_sessions(self, make_db):
        path = make_db(play_time_table([(1, None, 3600)]))
        result = run("ranking", str(path))
        assert result.exit_code == 0
        assert "No sessions with a valid start time." in result.output


class TestWeekCommand:
    """Tests for the week command."""

    def test_json_output(self, make_db):
        path = portal_db(make_db)
        result = run("week", str(path), "--json")

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["start"] == "2024-03-03"
        assert data["total_hours"] == 1.75
        hours = {b["label"]: b["hours"] for b in data["buckets"]}
        assert hours["Saturday"] == 1.5
        assert hours["Tuesday"] == 0.25

    def test_game_filter(self, make_db):
        path = portal_db(make_db)
        result = run("week", str(path), "--game", "2", "--json")
        data = json.loads(result.output)
        assert data["total_hours"] == 0.25

    def test_from_today_jumps_to_latest_session(self, make_db):
        path = portal_db(make_db)
        result = run("week", str(path), "--from-today", "--json")

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["start"] == "2024-03-03"
        assert data["offset"] < 0

    def test_from_today_with_offset(self, make_db):
        path = portal_db(make_db)
        result = run("week", str(path), "--from-today", "--offset", "0", "--json")

        data = json.loads(result.output)
        today = datetime.now(timezone.utc).date()
        assert data["start"] == week_start(today).isoformat()
        assert data["total_hours"] == 0
        assert data["can_prev"]

    def test_human_output(self, make_db):
        path = portal_db(make_db)
        result = run("week", str(path))
        assert result.exit_code == 0
        assert "Week: Mar 3-9, 2024" in result.output
        assert "Saturday" in result.output


class TestMonthCommand:
    """Tests for the month command."""

    def test_json_output(self, make_db):
        path = portal_db(make_db)
        result = run("month", str(path), "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["name"] == "March 2024"
        assert len(data["buckets"]) == 31

    def test_from_today_jumps_to_latest_session(self, make_db):
        path = portal_db(make_db)
        result = run("month", str(path), "--from-today", "--json")

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["name"] == "March 2024"
        assert data["offset"] < 0

    def test_previous_month(self, make_db):
        path = portal_db(make_db)
        result = run("month", str(path), "--offset", "-1")
        assert result.exit_code == 0
        assert "Month: February 2024" in result.output
        assert "Total: 0m" in result.output


class TestDayCommand:
    """Tests for the day command."""

    def test_timeline(self, make_db):
        path = portal_db(make_db)
        result = run("day", str(path), "2024-03-09")
        assert result.exit_code == 0
        assert "Day: Mar 09, 2024" in result.output
        assert "00:00-00:30" in result.output
        assert "16:00-17:00" in result.output
        assert "Portal 2" in result.output

    def test_json_output(self, make_db):
        path = portal_db(make_db)
        result = run("day", str(path), "2024-03-09", "--json")
        data = json.loads(result.output)
        assert [e["game_id"] for e in data["entries"]] == [1, 1]
        assert data["games"][0]["name"] == "Portal 2"

    def test_no_sessions(self, make_db):
        path = portal_db(make_db)
        result = run("day", str(path), "2024-03-10")
        assert result.exit_code == 0
        assert "No sessions on this day." in result.output

    def test_invalid_date(self, make_db):
        path = portal_db(make_db)
        result = run("day", str(path), "09/03/2024")
        assert result.exit_code == 1
        assert "Invalid date format: 09/03/2024. Use YYYY-MM-DD." in result.output


class TestFormatDateRange:
    """Tests for date range headers."""

    def test_same_month(self):
        assert format_date_range(date(2024, 3, 3), date(2024, 3, 10)) == "Mar 3-9, 2024"

    def test_across_months(self):
        assert format_date_range(date(2024, 2, 25), date(2024, 3, 3)) == "Feb 25 - Mar 02, 2024"

    def test_across_years(self):
        assert format_date_range(date(2023, 12, 31), date(2024, 1, 7)) == "Dec 31, 2023 - Jan 06, 2024"


class TestMakeProgressBar:
    """Tests for ASCII progress bars."""

    def test_full(self):
        assert make_progress_bar(10, 10, width=4) == "████"

    def test_empty(self):
        assert make_progress_bar(0, 10, width=4) == "░░░░"
        assert make_progress_bar(5, 0, width=4) == "░░░░"

    def test_small_value_shows_one_block(self):
        assert make_progress_bar(0.01, 10, width=4) == "█░░░"
