"""Data models for raw rows, normalized sessions and the stats rollup."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Absent(BaseModel):
    """SQL NULL, or a column that was not found."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["absent"] = "absent"


class Numeric(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["numeric"] = "numeric"
    value: float


class Textual(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["textual"] = "textual"
    value: str


RawValue = Annotated[Union[Absent, Numeric, Textual], Field(discriminator="kind")]


def classify_value(value: Any) -> Absent | Numeric | Textual:
    """Tag a value read verbatim from SQLite.

    SQLite hands back None, int, float, str or bytes. Bytes are decoded as
    UTF-8; anything that cannot be decoded is treated as absent.
    """
    if isinstance(value, (Absent, Numeric, Textual)):
        return value
    if value is None:
        return Absent()
    if isinstance(value, (int, float)):
        return Numeric(value=float(value))
    if isinstance(value, bytes):
        try:
            value = value.decode("utf-8")
        except UnicodeDecodeError:
            return Absent()
    return Textual(value=str(value))


class RawRow(BaseModel):
    """One (id, time, duration) row as read from the session table."""

    model_config = ConfigDict(frozen=True)

    game_id: Any
    time: RawValue
    duration: RawValue

    @classmethod
    def from_db(cls, row: tuple[Any, Any, Any]) -> RawRow:
        game_id, time_value, duration_value = row
        return cls(
            game_id=game_id,
            time=classify_value(time_value),
            duration=classify_value(duration_value),
        )


class GamingSession(BaseModel):
    """A normalized play session. Duration is in minutes."""

    model_config = ConfigDict(frozen=True)

    game_id: int
    start_time: datetime
    duration: float = Field(ge=0)


RejectionReason = Literal["missing_time", "unparseable_time", "before_epoch"]


class Rejection(BaseModel):
    """Why a raw row did not become a session."""

    model_config = ConfigDict(frozen=True)

    reason: RejectionReason
    row: RawRow


class SessionTableMatch(BaseModel):
    """Which table holds sessions and which columns to read from it."""

    model_config = ConfigDict(frozen=True)

    table: str
    id_column: str
    time_column: str | None = None
    duration_column: str | None = None
    matched_by: Literal["exact", "synonyms"]


class ResolvedSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_table: str
    id_column: str
    time_column: str | None = None
    duration_column: str | None = None
    matched_by: Literal["exact", "synonyms"]
    identity_map: dict[int, str] = Field(default_factory=dict)


# Rollup entries. Field names match the JSON contract consumed by the
# presentation layer.


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class TopGame(_Frozen):
    game_id: int
    name: str
    hours: float


class WeekdayHours(_Frozen):
    day: str
    hours: float


class MonthHours(_Frozen):
    month: str
    hours: float


class HourOfDayHours(_Frozen):
    hour: str
    hours: float


class StatsData(_Frozen):
    """Precomputed statistics for one uploaded database.

    Attributes are snake_case; serialize with ``to_json_dict()`` (or
    ``model_dump(by_alias=True)``) to get the camelCase contract.
    """

    total_games: int = Field(alias="totalGames")
    total_hours: float = Field(alias="totalHours")
    top_games: list[TopGame] = Field(alias="topGames")
    weekly_distribution: list[WeekdayHours] = Field(alias="weeklyDistribution")
    monthly_distribution: list[MonthHours] = Field(alias="monthlyDistribution")
    time_of_day_distribution: list[HourOfDayHours] = Field(alias="timeOfDayDistribution")
    sessions: list[GamingSession]

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
