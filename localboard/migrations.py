"""
Schema migrations.

Migrations are append-only: never edit or reorder an entry once it has
shipped, add a new one instead. Each applied migration is recorded in the
_migrations ledger so re-running is a no-op.
"""
import logging
import sqlite3
from typing import List, Tuple

from .schema import LocalboardError

logger = logging.getLogger(__name__)


class MigrationError(LocalboardError):
    """Raised when a migration cannot be applied. Fatal at startup."""
    pass


MIGRATIONS: Tuple[Tuple[str, str], ...] = (
    ("001_initial_schema", """
        CREATE TABLE IF NOT EXISTS boards (
            id TEXT PRIMARY KEY NOT NULL,
            name TEXT NOT NULL,
            last_opened_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS columns (
            id TEXT PRIMARY KEY NOT NULL,
            board_id TEXT NOT NULL,
            name TEXT NOT NULL,
            "order" REAL NOT NULL,
            archived INTEGER DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (board_id) REFERENCES boards(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS cards (
            id TEXT PRIMARY KEY NOT NULL,
            column_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            "order" REAL NOT NULL,
            archived INTEGER DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY (column_id) REFERENCES columns(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_columns_board ON columns(board_id, "order");
        CREATE INDEX IF NOT EXISTS idx_cards_column ON cards(column_id, "order");
        CREATE INDEX IF NOT EXISTS idx_boards_last_opened ON boards(last_opened_at);
    """),
)


def _ensure_ledger(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS _migrations (
            name TEXT PRIMARY KEY NOT NULL,
            applied_at TEXT NOT NULL
        )
    """)


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def applied_migrations(conn: sqlite3.Connection) -> List[dict]:
    """Ledger rows in the order they were applied."""
    _ensure_ledger(conn)
    rows = conn.execute(
        "SELECT name, applied_at FROM _migrations ORDER BY rowid ASC"
    ).fetchall()
    return [{"name": r[0], "appliedAt": r[1]} for r in rows]


def run_migrations(conn: sqlite3.Connection, migrations=MIGRATIONS) -> List[str]:
    """
    Apply every migration missing from the ledger, in list order.

    Each script runs together with its ledger insert in a single transaction,
    so a failing script leaves neither schema changes nor a ledger row.
    Expects a connection in autocommit mode (isolation_level=None).

    Returns the names applied during this call.
    """
    try:
        _ensure_ledger(conn)
        done = {
            row[0] for row in conn.execute("SELECT name FROM _migrations").fetchall()
        }
    except sqlite3.Error as e:
        raise MigrationError(f"Cannot read migration ledger: {e}") from e

    applied = []
    for name, sql in migrations:
        if name in done:
            continue

        # executescript() cannot bind parameters; the name is a module constant
        script = (
            "BEGIN;\n"
            f"{sql}\n"
            "INSERT INTO _migrations (name, applied_at) "
            f"VALUES ({_quote(name)}, datetime('now'));\n"
            "COMMIT;"
        )
        try:
            conn.executescript(script)
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise MigrationError(f"Migration {name} failed: {e}") from e

        logger.info(f"Applied migration: {name}")
        applied.append(name)

    return applied
