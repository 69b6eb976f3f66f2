from __future__ import annotations

import logging
import sqlite3

from checkin_app.data import Database
from checkin_app.errors import StoreReadError, StoreWriteError
from checkin_app.models import AttendanceEntry, RecordShapeError, Team

log = logging.getLogger(__name__)

# SQLite INTEGER is a signed 64-bit value.
SQLITE_MAX_INTEGER = 2**63 - 1


class DuplicateTeamCodeError(RuntimeError):
    """Raised when a registry import would reuse an existing access code."""


class AttendanceService:
    """Store boundary for the team registry and the append-only attendance log.

    Every public method opens its own connection, so a single instance can be
    shared by the Tk thread and the worker threads the views spawn.
    """

    def __init__(self, database: Database, *, operator: str = "station") -> None:
        self._database = database
        self._operator = operator

    def initialize(self) -> None:
        self._database.initialize()

    # ------------------------------------------------------------------
    # Team registry
    # ------------------------------------------------------------------
    def find_team_by_code(self, code: int) -> Team | None:
        if not -SQLITE_MAX_INTEGER - 1 <= int(code) <= SQLITE_MAX_INTEGER:
            # No stored code can be this large.
            log.info("Team code %s is outside the storable range", code)
            return None

        try:
            with self._database.connect() as connection:
                rows = connection.execute(
                    """
                    SELECT id, team_name,
                           full_name1, phone_num1, email1,
                           full_name2, phone_num2, email2,
                           code, round, round_time, created_at
                      FROM teams
                     WHERE code = ?
                     LIMIT 2
                    """,
                    (int(code),),
                ).fetchall()
        except sqlite3.Error as exc:
            log.error("Team lookup for code %s failed: %s", code, exc)
            raise StoreReadError("Error fetching team data. Please try again.") from exc

        if not rows:
            return None
        if len(rows) > 1:
            log.error("Registry holds %d teams for code %s", len(rows), code)
            raise StoreReadError("Error fetching team data. Please try again.")

        try:
            return Team.from_row(rows[0])
        except RecordShapeError as exc:
            log.error("Team row for code %s is malformed: %s", code, exc)
            raise StoreReadError("Error fetching team data. Please try again.") from exc

    def add_team(self, team: Team) -> int:
        payload = team.to_row()
        columns = ", ".join(payload)
        placeholders = ", ".join(["?"] * len(payload))

        with self._database.connect() as connection:
            try:
                cursor = connection.execute(
                    f"INSERT INTO teams ({columns}) VALUES ({placeholders})",
                    tuple(payload.values()),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateTeamCodeError(f"Team code {team.code} is already registered.") from exc
            return int(cursor.lastrowid)

    # ------------------------------------------------------------------
    # Attendance log
    # ------------------------------------------------------------------
    def record_attendance(self, team_code: int, *, location: str, notes: str) -> int:
        try:
            with self._database.connect() as connection:
                cursor = connection.execute(
                    """
                    INSERT INTO attendance (team_code, location, notes, created_by)
                    VALUES (?, ?, ?, ?)
                    """,
                    (int(team_code), location, notes, self._operator),
                )
                record_id = int(cursor.lastrowid)
        except (sqlite3.Error, OverflowError) as exc:
            log.error("Recording attendance for code %s failed: %s", team_code, exc)
            raise StoreWriteError("Error recording attendance. Please try again.") from exc

        log.info("Recorded attendance %s for team code %s (%s)", record_id, team_code, notes)
        return record_id

    def list_attendance(self) -> list[AttendanceEntry]:
        try:
            with self._database.connect() as connection:
                rows = connection.execute(
                    """
                    SELECT a.id,
                           a.team_code,
                           a.check_in_time,
                           a.location,
                           a.notes,
                           a.created_by,
                           t.team_name,
                           t.round,
                           t.round_time
                      FROM attendance AS a
                 LEFT JOIN teams AS t ON t.code = a.team_code
                  ORDER BY a.check_in_time DESC, a.id DESC
                    """
                ).fetchall()
        except sqlite3.Error as exc:
            log.error("Loading attendance records failed: %s", exc)
            raise StoreReadError("Error fetching attendance data. Please try again.") from exc

        try:
            return [AttendanceEntry.from_row(row) for row in rows]
        except RecordShapeError as exc:
            log.error("Attendance row is malformed: %s", exc)
            raise StoreReadError("Error fetching attendance data. Please try again.") from exc
