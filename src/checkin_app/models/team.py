from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from checkin_app.utils.time import coerce_datetime

TEAM_COLUMNS: tuple[str, ...] = (
    "id",
    "team_name",
    "full_name1",
    "phone_num1",
    "email1",
    "full_name2",
    "phone_num2",
    "email2",
    "code",
    "round",
    "round_time",
    "created_at",
)


class RecordShapeError(ValueError):
    """Raised when a stored row does not match the expected record shape."""


def read_field(row: Mapping[str, Any], key: str, convert: Callable[[Any], Any] | None = None) -> Any:
    try:
        value = row[key]
    except (KeyError, IndexError) as exc:
        raise RecordShapeError(f"Missing column {key!r}") from exc

    if convert is None or value is None:
        return value

    try:
        return convert(value)
    except (TypeError, ValueError) as exc:
        raise RecordShapeError(f"Column {key!r} has unexpected value {value!r}") from exc


def optional_text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True, slots=True)
class TeamMember:
    full_name: str
    phone: str = ""
    email: str = ""


@dataclass(frozen=True, slots=True)
class Team:
    id: int
    team_name: str
    members: tuple[TeamMember, TeamMember]
    code: int
    round: int
    round_time: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Team":
        team_id = read_field(row, "id", int)
        code = read_field(row, "code", int)
        round_number = read_field(row, "round", int)
        if team_id is None or code is None or round_number is None:
            raise RecordShapeError("Team rows require id, code and round values.")

        members = (
            TeamMember(
                full_name=read_field(row, "full_name1", optional_text),
                phone=read_field(row, "phone_num1", optional_text),
                email=read_field(row, "email1", optional_text),
            ),
            TeamMember(
                full_name=read_field(row, "full_name2", optional_text),
                phone=read_field(row, "phone_num2", optional_text),
                email=read_field(row, "email2", optional_text),
            ),
        )

        return cls(
            id=team_id,
            team_name=read_field(row, "team_name", optional_text),
            members=members,
            code=code,
            round=round_number,
            round_time=read_field(row, "round_time", optional_text),
            created_at=read_field(row, "created_at", coerce_datetime),
        )

    def to_row(self) -> dict[str, Any]:
        first, second = self.members
        return {
            "team_name": self.team_name,
            "full_name1": first.full_name,
            "phone_num1": first.phone,
            "email1": first.email,
            "full_name2": second.full_name,
            "phone_num2": second.phone,
            "email2": second.email,
            "code": self.code,
            "round": self.round,
            "round_time": self.round_time,
        }
