"""
Application bootstrap.

Startup order matters: the startup snapshot is taken before the database is
opened so it captures the file as the previous session left it.
"""
import logging
from pathlib import Path
from typing import Optional

from .backup import BackupService
from .config import Config
from .db import Database
from .store import BoardStore, ColumnStore, CardStore

logger = logging.getLogger(__name__)


class KanbanApp:
    """Everything the command surface needs, wired to one database."""

    def __init__(self, config: Config, db: Database, backups: BackupService):
        self.config = config
        self.db = db
        self.backups = backups
        self.boards = BoardStore(db)
        self.columns = ColumnStore(db)
        self.cards = CardStore(db)

    @classmethod
    def open(cls, config: Optional[Config] = None) -> "KanbanApp":
        """
        Startup sequence:
          1. ensure data dir
          2. snapshot an existing store, keep the newest N
          3. open connection, run migrations (fatal on failure)
          4. integrity check (logged, never repaired)
        """
        config = config or Config.load()
        Path(config.data_dir).mkdir(parents=True, exist_ok=True)

        backups = BackupService(config.db_path, config.backups_dir)
        backups.startup_backup(keep=config.startup_keep_backups)

        db = Database(config.db_path, busy_timeout_ms=config.busy_timeout_ms)
        try:
            applied = db.migrate()
        except Exception:
            db.close()
            raise
        if applied:
            logger.info(f"Schema up to date ({len(applied)} migration(s) applied)")

        db.integrity_check()
        logger.info(f"Opened {config.db_path}")
        return cls(config, db, backups)

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "KanbanApp":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
