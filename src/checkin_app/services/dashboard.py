from __future__ import annotations

import csv
import io
import logging
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol, TextIO

from checkin_app.errors import CheckInError
from checkin_app.models import AttendanceEntry
from checkin_app.utils.time import format_check_in_time

log = logging.getLogger(__name__)

ALL_ROUNDS = "all"
LOAD_FAILED_MESSAGE = "An unexpected error occurred. Please try again."
EXPORT_MIME_TYPE = "text/csv"
EXPORT_HEADERS: tuple[str, ...] = (
    "Team Code",
    "Team Name",
    "Round",
    "Round Time",
    "Check-in Time",
    "Location",
    "Notes",
)


class AttendanceSource(Protocol):
    def list_attendance(self) -> list[AttendanceEntry]: ...


def load_attendance(source: AttendanceSource) -> tuple[Optional[list[AttendanceEntry]], Optional[str]]:
    """Fetch the log, returning either the entries or a message to show instead."""

    try:
        return source.list_attendance(), None
    except CheckInError as exc:
        return None, str(exc)
    except Exception:
        log.exception("Loading attendance failed unexpectedly")
        return None, LOAD_FAILED_MESSAGE


def parse_round_choice(choice: str | int | None) -> int | None:
    """Turn a round selector value into a round number, or None for all rounds."""

    if choice is None:
        return None
    if isinstance(choice, int):
        return choice

    cleaned = choice.strip().lower()
    if cleaned in ("", ALL_ROUNDS):
        return None
    if cleaned.startswith("round "):
        cleaned = cleaned[len("round "):].strip()
    try:
        return int(cleaned)
    except ValueError as exc:
        raise ValueError(f"Unknown round selection: {choice!r}") from exc


def matches_text(entry: AttendanceEntry, text: str | None) -> bool:
    term = (text or "").strip().lower()
    if not term:
        return True
    team_name = (entry.team_name or "").lower()
    return term in team_name or term in str(entry.team_code)


def matches_round(entry: AttendanceEntry, round_number: int | None) -> bool:
    if round_number is None:
        return True
    return entry.round == round_number


def filter_entries(
    entries: Iterable[AttendanceEntry],
    text: str | None = "",
    round_choice: str | int | None = ALL_ROUNDS,
) -> list[AttendanceEntry]:
    round_number = parse_round_choice(round_choice)
    filtered = [entry for entry in entries if matches_text(entry, text)]
    return [entry for entry in filtered if matches_round(entry, round_number)]


def available_rounds(entries: Iterable[AttendanceEntry]) -> list[int]:
    return sorted({entry.round for entry in entries if entry.round is not None})


def export_row(entry: AttendanceEntry) -> list[Any]:
    record = entry.record
    team = entry.team
    return [
        record.team_code,
        (team.team_name if team else None) or "Unknown",
        team.round if team and team.round is not None else "N/A",
        (team.round_time if team else None) or "N/A",
        format_check_in_time(record.check_in_time),
        record.location or "N/A",
        record.notes or "",
    ]


def write_csv(entries: Iterable[AttendanceEntry], handle: TextIO) -> int:
    """Write the header plus one row per entry and return the row count."""

    writer = csv.writer(handle, delimiter=",", quotechar='"', lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    count = 0
    for entry in entries:
        writer.writerow(export_row(entry))
        count += 1
    return count


def render_csv(entries: Iterable[AttendanceEntry]) -> str:
    buffer = io.StringIO()
    write_csv(entries, buffer)
    return buffer.getvalue()


def export_filename(today: date | None = None) -> str:
    return f"attendance_export_{(today or date.today()).isoformat()}.csv"


def export_to_path(entries: Iterable[AttendanceEntry], path: Path | str) -> int:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", newline="", encoding="utf-8") as handle:
        return write_csv(entries, handle)
