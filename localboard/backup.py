"""
Backup and retention for the store file.

Snapshots are plain file copies of the database plus its -wal/-shm side
files, named <stem>_<label>_YYYYMMDD_HHMMSS<suffix> so the name sorts by
creation time. Side-file copies and every delete during retention are
best-effort: failures are logged and the rest of the batch continues.
"""
import logging
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from .schema import LocalboardError

logger = logging.getLogger(__name__)

SIDE_SUFFIXES = ("-wal", "-shm")
STAMP_FORMAT = "%Y%m%d_%H%M%S"
STARTUP_KEEP = 7

_STAMP_RE = re.compile(r"_(\d{8}_\d{6})(?:_\d+)?$")


class BackupError(LocalboardError):
    """Raised when a snapshot cannot be written."""
    pass


@dataclass
class BackupInfo:
    filename: str
    path: str
    size: int

    def to_dict(self):
        return {"filename": self.filename, "path": self.path, "size": self.size}


def _side_path(path: Path, suffix: str) -> Path:
    return path.with_name(path.name + suffix)


def _sort_key(path: Path):
    match = _STAMP_RE.search(path.stem)
    return (match.group(1) if match else "", path.name)


class BackupService:
    """Snapshots of one database file into one backups directory."""

    def __init__(self, db_path, backups_dir, clock: Optional[Callable[[], datetime]] = None):
        self.db_path = Path(db_path)
        self.backups_dir = Path(backups_dir)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _target_path(self, label: str) -> Path:
        stamp = self._clock().strftime(STAMP_FORMAT)
        base = f"{self.db_path.stem}_{label}_{stamp}"
        suffix = self.db_path.suffix
        target = self.backups_dir / f"{base}{suffix}"
        n = 1
        # same-second snapshots must not overwrite each other
        while target.exists():
            target = self.backups_dir / f"{base}_{n:02d}{suffix}"
            n += 1
        return target

    def snapshot(self, label: str = "backup") -> Path:
        """Copy the store (and side files, if present) into the backups dir."""
        if not re.fullmatch(r"[A-Za-z0-9-]+", label):
            raise BackupError(f"Invalid backup label: {label!r}")
        if not self.db_path.exists():
            raise BackupError(f"Database file not found: {self.db_path}")

        try:
            self.backups_dir.mkdir(parents=True, exist_ok=True)
            target = self._target_path(label)
            shutil.copy2(self.db_path, target)
        except OSError as e:
            raise BackupError(f"Failed to create backup: {e}") from e

        for suffix in SIDE_SUFFIXES:
            side = _side_path(self.db_path, suffix)
            if not side.exists():
                continue
            try:
                shutil.copy2(side, _side_path(target, suffix))
            except OSError as e:
                logger.warning(f"Could not copy {side.name} into backup: {e}")

        logger.info(f"Created backup {target.name}")
        return target

    def list(self) -> List[BackupInfo]:
        """Primary backup files, newest first."""
        if not self.backups_dir.is_dir():
            return []
        suffix = self.db_path.suffix
        paths = [
            p for p in self.backups_dir.iterdir()
            if p.is_file() and p.suffix == suffix and not p.name.endswith(SIDE_SUFFIXES)
        ]
        paths.sort(key=_sort_key, reverse=True)
        return [
            BackupInfo(filename=p.name, path=str(p), size=p.stat().st_size)
            for p in paths
        ]

    def retain(self, keep_count: int) -> int:
        """Delete all but the newest keep_count backups. Returns number deleted."""
        if keep_count < 0:
            raise ValueError("keep_count must be >= 0")
        deleted = 0
        for backup in self.list()[keep_count:]:
            path = Path(backup.path)
            try:
                path.unlink()
            except OSError as e:
                logger.warning(f"Could not delete backup {backup.filename}: {e}")
                continue
            deleted += 1
            for suffix in SIDE_SUFFIXES:
                try:
                    _side_path(path, suffix).unlink(missing_ok=True)
                except OSError as e:
                    logger.warning(f"Could not delete {backup.filename}{suffix}: {e}")
        if deleted:
            logger.info(f"Removed {deleted} old backup(s), kept {keep_count}")
        return deleted

    def startup_backup(self, keep: int = STARTUP_KEEP) -> Optional[Path]:
        """
        Snapshot an existing store before it is opened, then prune.

        Never fatal: a failed startup snapshot is logged and startup goes on.
        Old backups are pruned either way.
        """
        if not self.db_path.exists():
            return None
        path = None
        try:
            path = self.snapshot("startup")
        except BackupError as e:
            logger.error(f"Startup backup failed: {e}")
        self.retain(keep)
        return path
