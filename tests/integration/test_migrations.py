import sqlite3

import pytest

from src.adapters.sqlite.migrator import SQLiteMigrator


@pytest.fixture
def temp_db_path(tmp_path):
    return str(tmp_path / "test_db.sqlite")


@pytest.fixture
def migrations_dir():
    # Real migrations, so the shipped SQL is what gets exercised
    return "migrations"


def test_migrator_creates_migration_table(temp_db_path, migrations_dir):
    SQLiteMigrator(temp_db_path, migrations_dir).run_migrations()

    conn = sqlite3.connect(temp_db_path)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='_migrations'"
    )
    assert cursor.fetchone() is not None
    conn.close()


def test_migrator_applies_assets_schema(temp_db_path, migrations_dir):
    applied = SQLiteMigrator(temp_db_path, migrations_dir).run_migrations()

    assert applied == ["0001_assets.sql"]
    conn = sqlite3.connect(temp_db_path)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='assets'")
    assert cursor.fetchone() is not None
    columns = {row[1] for row in conn.execute("PRAGMA table_info(assets)")}
    assert {"id", "owner_id", "location", "metadata", "visibility", "deleted_at"} <= columns
    conn.close()


def test_migrator_idempotency(temp_db_path, migrations_dir):
    migrator = SQLiteMigrator(temp_db_path, migrations_dir)
    migrator.run_migrations()

    assert migrator.run_migrations() == []

    conn = sqlite3.connect(temp_db_path)
    count = conn.execute("SELECT count(*) FROM _migrations").fetchone()[0]
    assert count == 1
    conn.close()


def test_down_section_not_applied(temp_db_path, tmp_path):
    mig_dir = tmp_path / "mig"
    mig_dir.mkdir()
    (mig_dir / "0001_t.sql").write_text(
        "CREATE TABLE t (x INTEGER);\n-- Down\nDROP TABLE t;\n"
    )

    SQLiteMigrator(temp_db_path, str(mig_dir)).run_migrations()

    conn = sqlite3.connect(temp_db_path)
    assert conn.execute("SELECT name FROM sqlite_master WHERE name='t'").fetchone() is not None
    conn.close()


def test_broken_migration_not_recorded(temp_db_path, tmp_path):
    mig_dir = tmp_path / "mig"
    mig_dir.mkdir()
    (mig_dir / "0001_bad.sql").write_text("CREATE TABLE oops (;\n")

    with pytest.raises(RuntimeError, match="0001_bad.sql"):
        SQLiteMigrator(temp_db_path, str(mig_dir)).run_migrations()

    conn = sqlite3.connect(temp_db_path)
    assert conn.execute("SELECT count(*) FROM _migrations").fetchone()[0] == 0
    conn.close()


def test_visibility_check_constraint(temp_db_path, migrations_dir):
    SQLiteMigrator(temp_db_path, migrations_dir).run_migrations()
    conn = sqlite3.connect(temp_db_path)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO assets (id, owner_id, type, location, visibility, created_at, updated_at)"
            " VALUES ('a', 'u', 'logo', 'uploads/x', 'internal', 'now', 'now')"
        )
    conn.close()
