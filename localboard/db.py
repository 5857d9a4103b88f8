"""
Connection guard for the SQLite store.

One connection, one lock. Every repository call goes through Database.run(),
which holds the lock for the whole unit of work and releases it on every exit
path. The raw connection never leaves this module except as the argument of
the function passed to run().
"""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, List, TypeVar

from .migrations import applied_migrations, run_migrations
from .schema import LocalboardError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BUSY_TIMEOUT_MS = 5000


class DatabaseError(LocalboardError):
    """Raised for store failures that are not constraint or contention errors."""
    pass


class ConstraintError(DatabaseError):
    """Foreign key, NOT NULL or uniqueness violation."""
    pass


class ContentionError(DatabaseError):
    """The store stayed locked longer than the busy timeout."""
    pass


def _translate(e: sqlite3.Error) -> DatabaseError:
    msg = str(e)
    if isinstance(e, sqlite3.IntegrityError):
        return ConstraintError(msg)
    if isinstance(e, sqlite3.OperationalError):
        lowered = msg.lower()
        if "locked" in lowered or "busy" in lowered:
            return ContentionError(msg)
    return DatabaseError(msg)


def _connect(db_path: str, busy_timeout_ms: int) -> sqlite3.Connection:
    """Open a connection with WAL mode, FK enforcement and a busy timeout."""
    conn = sqlite3.connect(
        db_path,
        timeout=busy_timeout_ms / 1000,
        isolation_level=None,  # explicit transactions only
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection):
    """BEGIN/COMMIT around a multi-statement unit; ROLLBACK and re-raise on error."""
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


class Database:
    """Single guarded SQLite connection."""

    def __init__(self, db_path, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.busy_timeout_ms = busy_timeout_ms
        self._lock = threading.Lock()
        try:
            self._conn = _connect(str(self.db_path), busy_timeout_ms)
        except sqlite3.Error as e:
            raise _translate(e) from e

    def run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Execute fn(conn) with exclusive access to the connection."""
        with self._lock:
            if self._conn is None:
                raise DatabaseError("Database is closed")
            try:
                return fn(self._conn)
            except sqlite3.Error as e:
                raise _translate(e) from e

    def migrate(self) -> List[str]:
        return self.run(run_migrations)

    def applied_migrations(self) -> List[dict]:
        return self.run(applied_migrations)

    def integrity_check(self) -> bool:
        """Run PRAGMA integrity_check. Failures are logged, never repaired."""
        rows = self.run(lambda conn: conn.execute("PRAGMA integrity_check").fetchall())
        results = [r[0] for r in rows]
        if results == ["ok"]:
            return True
        logger.error(f"Database integrity check failed: {'; '.join(results)}")
        return False

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
