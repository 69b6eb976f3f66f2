import sqlite3

import pytest

from checkin_app.data import Database
from checkin_app.errors import StoreReadError, StoreWriteError
from checkin_app.models import Team, TeamMember
from checkin_app.services import AttendanceService, DuplicateTeamCodeError


def _make_team(code: int, name: str, round_number: int = 1) -> Team:
    return Team(
        id=0,
        team_name=name,
        members=(
            TeamMember("Ada Lovelace", "555-0101", "ada@example.com"),
            TeamMember("Alan Turing", "555-0102", "alan@example.com"),
        ),
        code=code,
        round=round_number,
        round_time="10:00 AM",
    )


def _make_service(tmp_path, operator="station-1"):
    database = Database(tmp_path / "checkin.db")
    service = AttendanceService(database, operator=operator)
    service.initialize()
    return database, service


def test_find_team_by_code_returns_registered_team(tmp_path):
    _, service = _make_service(tmp_path)
    team_id = service.add_team(_make_team(1001, "Alpha"))

    team = service.find_team_by_code(1001)

    assert team is not None
    assert team.id == team_id
    assert team.team_name == "Alpha"
    assert team.code == 1001
    assert team.round == 1
    assert team.members[0].full_name == "Ada Lovelace"
    assert team.members[1].email == "alan@example.com"
    assert team.created_at is not None


def test_find_team_by_code_returns_none_for_unknown_code(tmp_path):
    _, service = _make_service(tmp_path)
    service.add_team(_make_team(1001, "Alpha"))

    assert service.find_team_by_code(9999) is None


def test_find_team_by_code_raises_read_error_when_store_unavailable(tmp_path):
    service = AttendanceService(Database(tmp_path / "empty.db"))

    with pytest.raises(StoreReadError) as excinfo:
        service.find_team_by_code(1001)

    assert str(excinfo.value) == "Error fetching team data. Please try again."


def test_add_team_rejects_duplicate_code(tmp_path):
    _, service = _make_service(tmp_path)
    service.add_team(_make_team(1001, "Alpha"))

    with pytest.raises(DuplicateTeamCodeError):
        service.add_team(_make_team(1001, "Alpha Again"))


def test_record_attendance_stores_event(tmp_path):
    database, service = _make_service(tmp_path, operator="gate-a")

    record_id = service.record_attendance(1001, location="Check-in Station", notes="Checked in via QR scan")
    assert record_id > 0

    with database.connect() as connection:
        row = connection.execute(
            "SELECT team_code, location, notes, created_by, check_in_time FROM attendance WHERE id = ?",
            (record_id,),
        ).fetchone()

    assert row["team_code"] == 1001
    assert row["location"] == "Check-in Station"
    assert row["notes"] == "Checked in via QR scan"
    assert row["created_by"] == "gate-a"
    assert row["check_in_time"]


def test_record_attendance_allows_repeat_check_ins(tmp_path):
    _, service = _make_service(tmp_path)

    first = service.record_attendance(1001, location="Check-in Station", notes="Checked in via QR scan")
    second = service.record_attendance(1001, location="Check-in Station", notes="Checked in via manual entry")

    assert second != first
    assert len(service.list_attendance()) == 2


def test_record_attendance_raises_write_error(tmp_path):
    database, service = _make_service(tmp_path)
    with database.connect() as connection:
        connection.execute("DROP TABLE attendance")

    with pytest.raises(StoreWriteError) as excinfo:
        service.record_attendance(1001, location="Check-in Station", notes="Checked in via QR scan")

    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_list_attendance_is_newest_first_and_joins_teams(tmp_path):
    database, service = _make_service(tmp_path)
    service.add_team(_make_team(1001, "Alpha", round_number=1))

    with database.connect() as connection:
        connection.executemany(
            "INSERT INTO attendance (team_code, check_in_time, location, notes) VALUES (?, ?, ?, ?)",
            [
                (1001, "2025-03-01 09:00:00.000", "Check-in Station", "Checked in via QR scan"),
                (4242, "2025-03-01 10:00:00.000", "Check-in Station", "Checked in via manual entry"),
            ],
        )

    entries = service.list_attendance()

    assert [entry.team_code for entry in entries] == [4242, 1001]
    unknown, alpha = entries
    assert unknown.team is None
    assert unknown.team_name is None
    assert alpha.team_name == "Alpha"
    assert alpha.round == 1
    assert alpha.team.round_time == "10:00 AM"


def test_list_attendance_raises_read_error_when_store_unavailable(tmp_path):
    service = AttendanceService(Database(tmp_path / "empty.db"))

    with pytest.raises(StoreReadError):
        service.list_attendance()


def test_find_team_by_code_treats_oversized_code_as_unknown(tmp_path):
    _, service = _make_service(tmp_path)
    service.add_team(_make_team(1001, "Alpha"))

    assert service.find_team_by_code(99999999999999999999) is None
    assert service.find_team_by_code(2**63 - 1) is None


def test_record_attendance_rejects_oversized_code(tmp_path):
    _, service = _make_service(tmp_path)

    with pytest.raises(StoreWriteError):
        service.record_attendance(2**63, location="Check-in Station", notes="Checked in via manual entry")
