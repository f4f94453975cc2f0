"""Gaming session statistics from local SQLite playtime databases."""
