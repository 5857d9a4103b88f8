"""
Tests for the connection guard and migration ledger.
"""
import sqlite3
import threading

import pytest

from localboard.db import Database, ContentionError, DatabaseError, transaction
from localboard.migrations import MIGRATIONS, MigrationError, applied_migrations, run_migrations
from localboard.store import BoardStore


def _tables(conn):
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {r[0] for r in rows}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Connection setup
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_connection_pragmas(db):
    """WAL, foreign keys and busy timeout are set on open."""
    def pragmas(conn):
        return (
            conn.execute("PRAGMA journal_mode").fetchone()[0],
            conn.execute("PRAGMA foreign_keys").fetchone()[0],
            conn.execute("PRAGMA busy_timeout").fetchone()[0],
        )

    assert db.run(pragmas) == ("wal", 1, 5000)


def test_run_releases_lock_after_error(db):
    """An exception inside run() does not leave the lock held."""
    def boom(conn):
        raise RuntimeError("logic error")

    with pytest.raises(RuntimeError):
        db.run(boom)

    # Lock must be free again
    assert db.run(lambda conn: conn.execute("SELECT 1").fetchone()[0]) == 1


def test_run_translates_sqlite_errors(db):
    """Driver errors surface as DatabaseError with the message kept."""
    with pytest.raises(DatabaseError) as exc:
        db.run(lambda conn: conn.execute("SELECT * FROM no_such_table"))
    assert "no_such_table" in str(exc.value)


def test_run_serializes_callers(db):
    """Concurrent run() calls never overlap."""
    active = []
    overlaps = []

    def work(conn):
        active.append(1)
        if len(active) > 1:
            overlaps.append(len(active))
        conn.execute("SELECT COUNT(*) FROM boards").fetchone()
        active.pop()

    threads = [threading.Thread(target=lambda: [db.run(work) for _ in range(50)]) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlaps == []


def test_contention_surfaces_as_error(tmp_path):
    """A write blocked past the busy timeout raises ContentionError."""
    path = tmp_path / "kanban.db"
    database = Database(path, busy_timeout_ms=100)
    database.migrate()

    other = sqlite3.connect(str(path), isolation_level=None)
    other.execute("BEGIN IMMEDIATE")
    try:
        with pytest.raises(ContentionError):
            BoardStore(database).create("blocked")
    finally:
        other.execute("ROLLBACK")
        other.close()
        database.close()


def test_transaction_rolls_back(db):
    """An error inside transaction() undoes every statement."""
    def partial(conn):
        with transaction(conn):
            conn.execute(
                "INSERT INTO boards (id, name, created_at, updated_at) VALUES ('b1', 'x', 't', 't')"
            )
            raise ValueError("abort")

    with pytest.raises(ValueError):
        db.run(partial)

    assert db.run(lambda conn: conn.execute("SELECT COUNT(*) FROM boards").fetchone()[0]) == 0


def test_closed_database_rejects_calls(tmp_path):
    """run() after close() raises instead of touching a dead handle."""
    database = Database(tmp_path / "kanban.db")
    database.close()
    with pytest.raises(DatabaseError):
        database.run(lambda conn: conn.execute("SELECT 1"))


def test_integrity_check_passes_on_fresh_store(db):
    """A freshly migrated store passes the integrity check."""
    assert db.integrity_check() is True


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Migrations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.fixture
def raw_conn(tmp_path):
    conn = sqlite3.connect(str(tmp_path / "raw.db"), isolation_level=None)
    yield conn
    conn.close()


def test_migrations_create_schema_and_ledger(raw_conn):
    """First run creates all tables and records the migration."""
    applied = run_migrations(raw_conn)

    assert applied == [name for name, _ in MIGRATIONS]
    assert {"boards", "columns", "cards", "_migrations"} <= _tables(raw_conn)
    ledger = applied_migrations(raw_conn)
    assert [row["name"] for row in ledger] == ["001_initial_schema"]
    assert ledger[0]["appliedAt"]


def test_migrations_idempotent(raw_conn):
    """Re-running applies nothing."""
    run_migrations(raw_conn)
    assert run_migrations(raw_conn) == []
    assert len(applied_migrations(raw_conn)) == len(MIGRATIONS)


def test_new_migration_applied_after_existing(raw_conn):
    """Only the new migration runs on an existing store."""
    run_migrations(raw_conn)
    extended = MIGRATIONS + (("002_labels", "CREATE TABLE labels (id TEXT PRIMARY KEY);"),)

    assert run_migrations(raw_conn, extended) == ["002_labels"]
    assert "labels" in _tables(raw_conn)
    assert [r["name"] for r in applied_migrations(raw_conn)] == ["001_initial_schema", "002_labels"]


def test_failed_migration_rolls_back_whole_script(raw_conn):
    """A failing script leaves no schema change and no ledger row."""
    run_migrations(raw_conn)
    broken = MIGRATIONS + ((
        "002_broken",
        "CREATE TABLE half_done (id TEXT); INSERT INTO missing_table VALUES (1);",
    ),)

    with pytest.raises(MigrationError) as exc:
        run_migrations(raw_conn, broken)

    assert "002_broken" in str(exc.value)
    assert "half_done" not in _tables(raw_conn)
    assert not raw_conn.in_transaction
    assert [r["name"] for r in applied_migrations(raw_conn)] == ["001_initial_schema"]


def test_database_migrate_reports_applied(tmp_path):
    """Database.migrate() returns names applied in this run."""
    with Database(tmp_path / "kanban.db") as database:
        assert database.migrate() == ["001_initial_schema"]
        assert database.migrate() == []
        assert [r["name"] for r in database.applied_migrations()] == ["001_initial_schema"]
