"""Read-only access to a playtime SQLite database."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from playstats.errors import (
    EmptyDatabaseError,
    EmptySessionTableError,
    EngineInitError,
    PlaystatsError,
)
from playstats.models import RawRow, ResolvedSchema, SessionTableMatch
from playstats.normalize import coerce_game_id
from playstats.schema import resolve_session_table

logger = logging.getLogger(__name__)

# Optional id -> display name table
GAME_DICT_TABLE = "game_dict"

# Names some trackers write when a title lookup failed
_NAME_SENTINELS = {"undefined", "null"}


def quote_identifier(name: str) -> str:
    """Quote a table or column name for use in SQL."""
    return '"' + name.replace('"', '""') + '"'


class GameDatabase:
    """A playtime database opened for a single analysis pass.

    Nothing is ever written back. Not thread-safe.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row
        self._check_readable()

    def __enter__(self) -> "GameDatabase":
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _check_readable(self) -> None:
        """Fail early if the connection does not hold a SQLite database."""
        try:
            self._conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
        except sqlite3.Error as e:
            self._conn.close()
            raise EngineInitError(f"Could not read database: {e}") from e

    @classmethod
    def from_bytes(cls, data: bytes) -> GameDatabase:
        """Load a database image (e.g. an uploaded file) into memory."""
        conn = sqlite3.connect(":memory:")
        try:
            conn.deserialize(data)
        except (sqlite3.Error, OverflowError, TypeError) as e:
            conn.close()
            raise EngineInitError(f"Could not load database: {e}") from e
        return cls(conn)

    @classmethod
    def open(cls, path: Path) -> GameDatabase:
        """Open an existing database file read-only."""
        uri = Path(path).resolve().as_uri() + "?mode=ro"
        try:
            conn = sqlite3.connect(uri, uri=True)
        except sqlite3.Error as e:
            raise EngineInitError(f"Could not open database {path}: {e}") from e
        return cls(conn)

    def list_tables(self) -> list[str]:
        """Get user table names in enumeration order (internal tables excluded)."""
        cursor = self._conn.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY rowid"
        )
        return [row["name"] for row in cursor.fetchall()]

    def get_columns(self, table: str) -> list[str]:
        """Get column names of a table, in table order."""
        cursor = self._conn.execute(f"PRAGMA table_info({quote_identifier(table)})")
        return [row["name"] for row in cursor.fetchall()]

    def _missing_columns(self, table: str, columns: list[str]) -> list[str]:
        """Columns not present in table.

        Checked up front because SQLite reads an unknown double-quoted
        identifier as a string literal instead of failing.
        """
        present = {c.lower() for c in self.get_columns(table)}
        return [c for c in columns if c.lower() not in present]

    def load_identity_map(self) -> dict[int, str]:
        """Read game_id -> name pairs from the game_dict table.

        Rows with a non-numeric id or an empty/sentinel name are skipped. The
        table is optional, so a failed read only logs a warning.
        """
        try:
            missing = self._missing_columns(GAME_DICT_TABLE, ["game_id", "name"])
            if missing:
                logger.warning(
                    "Found '%s' but it has no %s column", GAME_DICT_TABLE, ", ".join(missing)
                )
                return {}
            cursor = self._conn.execute(
                f'SELECT "game_id", "name" FROM {quote_identifier(GAME_DICT_TABLE)}'
            )
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            logger.warning("Found '%s' but failed to query it: %s", GAME_DICT_TABLE, e)
            return {}

        names: dict[int, str] = {}
        for row in rows:
            game_id = coerce_game_id(row[0])
            name = row[1]
            if game_id is None or name is None:
                continue
            if isinstance(name, bytes):
                try:
                    name = name.decode("utf-8")
                except UnicodeDecodeError:
                    continue
            name = str(name)
            if not name or name in _NAME_SENTINELS:
                continue
            names[game_id] = name
        logger.debug("Loaded %d game names from %s", len(names), GAME_DICT_TABLE)
        return names

    def resolve(self) -> ResolvedSchema:
        """Work out where the sessions live and load the optional name table.

        Raises:
            EmptyDatabaseError: If there are no user tables.
            NoSessionTableFoundError: If no table looks like a session table.
        """
        tables = self.list_tables()
        if not tables:
            raise EmptyDatabaseError()

        identity_map = self.load_identity_map() if GAME_DICT_TABLE in tables else {}

        match = resolve_session_table(tables, self.get_columns)
        logger.info(
            "Using table %s (%s match): id=%s time=%s duration=%s",
            match.table,
            match.matched_by,
            match.id_column,
            match.time_column,
            match.duration_column,
        )
        return ResolvedSchema(
            session_table=match.table,
            id_column=match.id_column,
            time_column=match.time_column,
            duration_column=match.duration_column,
            matched_by=match.matched_by,
            identity_map=identity_map,
        )

    def fetch_raw_rows(self, schema: ResolvedSchema | SessionTableMatch) -> list[RawRow]:
        """Read (id, time, duration) rows from the session table.

        A time column that is unset or absent from the table reads as NULL,
        and a duration column likewise reads as 0.

        Raises:
            PlaystatsError: If the id column is absent from the table.
            EmptySessionTableError: If the table has no rows.
        """
        if isinstance(schema, SessionTableMatch):
            table = schema.table
        else:
            table = schema.session_table

        if self._missing_columns(table, [schema.id_column]):
            raise PlaystatsError(f"Table {table} has no column {schema.id_column}.")

        time_column = schema.time_column
        if time_column and self._missing_columns(table, [time_column]):
            logger.warning("Table %s has no column %s; start times read as NULL", table, time_column)
            time_column = None
        duration_column = schema.duration_column
        if duration_column and self._missing_columns(table, [duration_column]):
            logger.warning("Table %s has no column %s; durations read as 0", table, duration_column)
            duration_column = None

        time_expr = quote_identifier(time_column) if time_column else "NULL"
        duration_expr = quote_identifier(duration_column) if duration_column else "0"
        query = (
            f"SELECT {quote_identifier(schema.id_column)}, {time_expr}, {duration_expr} "
            f"FROM {quote_identifier(table)}"
        )
        try:
            rows = self._conn.execute(query).fetchall()
        except sqlite3.Error as e:
            raise PlaystatsError(f"Failed to read sessions from {table}: {e}") from e
        if not rows:
            raise EmptySessionTableError(table)
        return [RawRow.from_db(tuple(row)) for row in rows]
