# localboard — configuration
# Override paths and server settings via a YAML file, env vars or CLI args.

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV = "LOCALBOARD_CONFIG"
DATA_DIR_ENV = "LOCALBOARD_DATA_DIR"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "localboard" / "config.yaml"


@dataclass
class Config:
    """Runtime configuration for localboard."""

    # Storage
    data_dir: str = "~/.local/share/localboard"
    db_filename: str = "kanban.db"
    backups_dirname: str = "backups"

    # Behavior
    startup_keep_backups: int = 7
    busy_timeout_ms: int = 5000

    # HTTP shell
    host: str = "127.0.0.1"
    port: int = 3000

    log_level: str = "INFO"

    def resolve_paths(self):
        """Apply env overrides and expand ~."""
        env_dir = os.environ.get(DATA_DIR_ENV)
        if env_dir:
            self.data_dir = env_dir
        self.data_dir = str(Path(self.data_dir).expanduser())

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir) / self.db_filename

    @property
    def backups_dir(self) -> Path:
        return Path(self.data_dir) / self.backups_dirname

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        if path is None:
            path = os.environ.get(CONFIG_ENV)
        cfg_path = Path(path) if path else DEFAULT_CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                known = {fld.name for fld in fields(cls)}
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except (OSError, yaml.YAMLError, TypeError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable config {cfg_path}: {e}")
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg
