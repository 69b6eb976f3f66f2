from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from checkin_app.models.team import RecordShapeError, optional_text, read_field
from checkin_app.utils.time import coerce_datetime


@dataclass(frozen=True, slots=True)
class AttendanceRecord:
    id: int
    team_code: int
    check_in_time: datetime
    location: str = ""
    notes: str = ""
    created_by: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AttendanceRecord":
        record_id = read_field(row, "id", int)
        team_code = read_field(row, "team_code", int)
        check_in_time = read_field(row, "check_in_time", coerce_datetime)
        if record_id is None or team_code is None or check_in_time is None:
            raise RecordShapeError("Attendance rows require id, team_code and check_in_time values.")

        return cls(
            id=record_id,
            team_code=team_code,
            check_in_time=check_in_time,
            location=read_field(row, "location", optional_text),
            notes=read_field(row, "notes", optional_text),
            created_by=read_field(row, "created_by", optional_text),
        )


@dataclass(frozen=True, slots=True)
class TeamRef:
    """The slice of a team that the attendance log joins in."""

    team_name: str
    round: Optional[int]
    round_time: str


@dataclass(frozen=True, slots=True)
class AttendanceEntry:
    record: AttendanceRecord
    team: Optional[TeamRef] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AttendanceEntry":
        record = AttendanceRecord.from_row(row)
        team_name = read_field(row, "team_name")
        if team_name is None:
            return cls(record=record, team=None)

        team = TeamRef(
            team_name=str(team_name),
            round=read_field(row, "round", int),
            round_time=read_field(row, "round_time", optional_text),
        )
        return cls(record=record, team=team)

    @property
    def team_code(self) -> int:
        return self.record.team_code

    @property
    def team_name(self) -> Optional[str]:
        return self.team.team_name if self.team else None

    @property
    def round(self) -> Optional[int]:
        return self.team.round if self.team else None
