"""Shared fixtures for building playtime databases."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Callable

import pytest

# table name -> (column definitions, rows)
TableSpec = dict[str, tuple[str, list[tuple[Any, ...]]]]


def populate(conn: sqlite3.Connection, tables: TableSpec) -> None:
    """Create tables and insert rows, in the given order."""
    for name, (columns, rows) in tables.items():
        conn.execute(f'CREATE TABLE "{name}" ({columns})')
        if rows:
            placeholders = ",".join("?" * len(rows[0]))
            conn.executemany(f'INSERT INTO "{name}" VALUES ({placeholders})', rows)
    conn.commit()


def database_bytes(tables: TableSpec) -> bytes:
    """Build a database in memory and return its file image."""
    conn = sqlite3.connect(":memory:")
    try:
        if not tables:
            # Force a real header page so the image is not zero bytes
            conn.execute("CREATE TABLE scratch (x)")
            conn.execute("DROP TABLE scratch")
            conn.commit()
        populate(conn, tables)
        return conn.serialize()
    finally:
        conn.close()


@pytest.fixture
def make_db(tmp_path: Path) -> Callable[..., Path]:
    """Factory that writes a database file and returns its path."""

    def _make(tables: TableSpec, name: str = "playtime.db") -> Path:
        path = tmp_path / name
        path.write_bytes(database_bytes(tables))
        return path

    return _make


def play_time_table(rows: list[tuple[Any, ...]]) -> TableSpec:
    return {"play_time": ("game_id INTEGER, date_time INTEGER, duration INTEGER", rows)}


def game_dict_table(rows: list[tuple[Any, ...]]) -> TableSpec:
    return {"game_dict": ("game_id INTEGER, name TEXT", rows)}
