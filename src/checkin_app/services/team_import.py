from __future__ import annotations

import argparse
import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from checkin_app.models import Team, TeamMember
from checkin_app.services.attendance_service import AttendanceService, DuplicateTeamCodeError
from checkin_app.utils.codes import parse_team_code
from checkin_app.errors import ValidationError

log = logging.getLogger(__name__)

REQUIRED_COLUMNS: tuple[str, ...] = ("team_name", "full_name1", "full_name2", "code", "round")


@dataclass
class ImportReport:
    imported: int = 0
    errors: list[str] = field(default_factory=list)


def team_from_csv_row(row: Mapping[str, str]) -> Team:
    def _text(key: str) -> str:
        return (row.get(key) or "").strip()

    team_name = _text("team_name")
    if not team_name:
        raise ValueError("Missing team name")

    try:
        round_number = int(_text("round"))
    except ValueError as exc:
        raise ValueError(f"Invalid round {_text('round')!r}") from exc
    if round_number <= 0:
        raise ValueError(f"Invalid round {round_number}")

    try:
        code = parse_team_code(_text("code"))
    except ValidationError as exc:
        raise ValueError(f"Invalid code {_text('code')!r}: {exc}") from exc

    return Team(
        id=0,
        team_name=team_name,
        members=(
            TeamMember(_text("full_name1"), _text("phone_num1"), _text("email1")),
            TeamMember(_text("full_name2"), _text("phone_num2"), _text("email2")),
        ),
        code=code,
        round=round_number,
        round_time=_text("round_time"),
    )


def import_team_rows(rows: Iterable[Mapping[str, str]], service: AttendanceService) -> ImportReport:
    report = ImportReport()
    # Row 1 is the header.
    for row_number, row in enumerate(rows, start=2):
        try:
            team = team_from_csv_row(row)
        except ValueError as exc:
            report.errors.append(f"Row {row_number}: {exc}")
            continue

        try:
            service.add_team(team)
        except DuplicateTeamCodeError as exc:
            report.errors.append(f"Row {row_number}: {exc}")
            continue
        report.imported += 1

    return report


def import_teams_csv(path: Path | str, service: AttendanceService) -> ImportReport:
    with Path(path).open("r", newline="", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle)
        missing = [column for column in REQUIRED_COLUMNS if column not in (reader.fieldnames or [])]
        if missing:
            return ImportReport(errors=[f"Missing columns: {', '.join(missing)}"])
        report = import_team_rows(reader, service)

    log.info("Imported %d team(s) from %s with %d error(s)", report.imported, path, len(report.errors))
    return report


def main(argv: Sequence[str] | None = None) -> int:
    from checkin_app.config.settings import settings
    from checkin_app.data import Database

    parser = argparse.ArgumentParser(description="Load a registration export into the local team registry.")
    parser.add_argument("csv_path", type=Path, help="CSV file with one registered team per row")
    parser.add_argument("--database", type=Path, default=settings.database_path, help="SQLite database to import into")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    service = AttendanceService(Database(args.database), operator=settings.operator_name)
    service.initialize()
    report = import_teams_csv(args.csv_path, service)

    for message in report.errors:
        print(message)
    print(f"Imported {report.imported} team(s).")
    return 1 if report.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
