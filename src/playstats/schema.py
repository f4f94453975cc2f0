"""Session table discovery.

Playtime databases come from different trackers, so the session table and
its columns have no fixed names. Discovery is a short list of table rules
evaluated in priority order; the first rule that matches any table wins, and
within a rule tables are tried in enumeration order.
"""

from __future__ import annotations

from typing import Callable, Iterable, Sequence

from playstats.errors import NoSessionTableFoundError
from playstats.models import SessionTableMatch

# Table written by the tracker this tool was first built for. Its layout is
# known, so columns are not inspected.
EXACT_SESSION_TABLE = "play_time"
EXACT_ID_COLUMN = "game_id"
EXACT_TIME_COLUMN = "date_time"
EXACT_DURATION_COLUMN = "duration"

ID_COLUMNS = ("game_id", "appid", "app_id", "id", "steam_id")
TIME_COLUMNS = ("date_time", "start_time", "timestamp", "date", "time", "played_at")
DURATION_COLUMNS = ("duration", "playtime", "seconds", "minutes")

ColumnLookup = Callable[[str], Sequence[str]]


def find_column(columns: Iterable[str], synonyms: Sequence[str]) -> str | None:
    """Return the first column (lowercased) whose name is one of synonyms.

    Columns are checked in table order, case-insensitively.
    """
    wanted = set(synonyms)
    for column in columns:
        lowered = column.lower()
        if lowered in wanted:
            return lowered
    return None


class TableRule:
    """A way of recognizing the session table."""

    priority: int = 0

    def evaluate(self, table: str, get_columns: ColumnLookup) -> SessionTableMatch | None:
        raise NotImplementedError


class ExactNameRule(TableRule):
    """Match a table by name and assume a fixed column layout."""

    def __init__(
        self,
        name: str,
        *,
        id_column: str,
        time_column: str,
        duration_column: str,
        priority: int = 0,
    ) -> None:
        self.name = name
        self.id_column = id_column
        self.time_column = time_column
        self.duration_column = duration_column
        self.priority = priority

    def evaluate(self, table: str, get_columns: ColumnLookup) -> SessionTableMatch | None:
        if table.lower() != self.name.lower():
            return None
        return SessionTableMatch(
            table=table,
            id_column=self.id_column,
            time_column=self.time_column,
            duration_column=self.duration_column,
            matched_by="exact",
        )


class SynonymRule(TableRule):
    """Match a table by its column names.

    A table qualifies when it has an id column and at least one of a time
    column or a duration column.
    """

    def __init__(
        self,
        *,
        id_columns: Sequence[str],
        time_columns: Sequence[str],
        duration_columns: Sequence[str],
        priority: int = 1,
    ) -> None:
        self.id_columns = tuple(id_columns)
        self.time_columns = tuple(time_columns)
        self.duration_columns = tuple(duration_columns)
        self.priority = priority

    def evaluate(self, table: str, get_columns: ColumnLookup) -> SessionTableMatch | None:
        columns = list(get_columns(table))
        id_column = find_column(columns, self.id_columns)
        time_column = find_column(columns, self.time_columns)
        duration_column = find_column(columns, self.duration_columns)

        if id_column is None or (time_column is None and duration_column is None):
            return None
        return SessionTableMatch(
            table=table,
            id_column=id_column,
            time_column=time_column,
            duration_column=duration_column,
            matched_by="synonyms",
        )


DEFAULT_RULES: tuple[TableRule, ...] = (
    ExactNameRule(
        EXACT_SESSION_TABLE,
        id_column=EXACT_ID_COLUMN,
        time_column=EXACT_TIME_COLUMN,
        duration_column=EXACT_DURATION_COLUMN,
        priority=0,
    ),
    SynonymRule(
        id_columns=ID_COLUMNS,
        time_columns=TIME_COLUMNS,
        duration_columns=DURATION_COLUMNS,
        priority=1,
    ),
)


def resolve_session_table(
    tables: Sequence[str],
    get_columns: ColumnLookup,
    rules: Sequence[TableRule] = DEFAULT_RULES,
) -> SessionTableMatch:
    """Pick the session table.

    Args:
        tables: User table names in enumeration order.
        get_columns: Returns the column names of a table, in table order.
            Only called by rules that inspect columns.
        rules: Rules to evaluate, lowest priority value first.

    Returns:
        The match produced by the first rule that accepts a table.

    Raises:
        NoSessionTableFoundError: If no rule accepts any table.
    """
    for rule in sorted(rules, key=lambda r: r.priority):
        for table in tables:
            match = rule.evaluate(table, get_columns)
            if match is not None:
                return match
    raise NoSessionTableFoundError()
