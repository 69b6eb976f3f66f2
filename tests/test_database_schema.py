from __future__ import annotations

from pathlib import Path

from checkin_app.data import Database


def test_initialize_creates_tables(tmp_path: Path) -> None:
    db_path = tmp_path / "checkin.db"
    database = Database(db_path)
    database.initialize()

    with database.connect() as connection:
        tables = {
            row[0]
            for row in connection.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            )
        }

    assert {"teams", "attendance", "schema_migrations"}.issubset(tables)


def test_initialize_applies_each_migration_once(tmp_path: Path) -> None:
    database = Database(tmp_path / "nested" / "checkin.db")

    first = database.initialize()
    second = database.initialize()

    assert first == ["001_initial.sql"]
    assert second == []
    assert database.path.exists()


def test_connect_rolls_back_on_error(tmp_path: Path) -> None:
    database = Database(tmp_path / "checkin.db")
    database.initialize()

    try:
        with database.connect() as connection:
            connection.execute("INSERT INTO attendance (team_code) VALUES (1001)")
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    with database.connect() as connection:
        count = connection.execute("SELECT COUNT(*) FROM attendance").fetchone()[0]

    assert count == 0
