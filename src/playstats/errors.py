"""Errors raised while loading a playtime database."""

from __future__ import annotations


class PlaystatsError(Exception):
    """Base exception for fatal pipeline errors."""

    pass


class EngineInitError(PlaystatsError):
    """Raised when the file cannot be opened as a SQLite database."""

    pass


class EmptyDatabaseError(PlaystatsError):
    """Raised when the database has no user tables."""

    def __init__(self) -> None:
        super().__init__("The database appears to be empty or contains no tables.")


class NoSessionTableFoundError(PlaystatsError):
    """Raised when no table looks like a gaming session table."""

    def __init__(self) -> None:
        super().__init__("Could not find a gaming session table (expected 'play_time').")


class EmptySessionTableError(PlaystatsError):
    """Raised when the session table exists but has no rows."""

    def __init__(self, table: str) -> None:
        super().__init__(f"Table {table} exists but returned no data.")
        self.table = table
