"""
Tests for YAML config loading and the command line.
"""
from pathlib import Path

import pytest

from localboard.cli import main, run_verify
from localboard.config import CONFIG_ENV, DATA_DIR_ENV, Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    monkeypatch.delenv(DATA_DIR_ENV, raising=False)


class TestConfig:

    def test_defaults_when_file_missing(self, tmp_path):
        cfg = Config.load(str(tmp_path / "nope.yaml"))
        assert cfg.db_filename == "kanban.db"
        assert cfg.startup_keep_backups == 7
        assert cfg.port == 3000
        assert "~" not in cfg.data_dir

    def test_yaml_values_applied(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            f"data_dir: {tmp_path / 'store'}\n"
            "startup_keep_backups: 3\n"
            "port: 4100\n"
        )
        cfg = Config.load(str(path))
        assert cfg.data_dir == str(tmp_path / "store")
        assert cfg.startup_keep_backups == 3
        assert cfg.port == 4100
        assert cfg.db_path == tmp_path / "store" / "kanban.db"
        assert cfg.backups_dir == tmp_path / "store" / "backups"

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("port: 4200\ndb_path: /etc/passwd\ntheme: dark\n")
        cfg = Config.load(str(path))
        assert cfg.port == 4200
        assert cfg.db_path.name == "kanban.db"

    def test_unreadable_yaml_falls_back(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("port: [unclosed\n")
        cfg = Config.load(str(path))
        assert cfg.port == 3000

    def test_non_mapping_yaml_falls_back(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        assert Config.load(str(path)).port == 3000

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text("port: 5000\n")
        monkeypatch.setenv(CONFIG_ENV, str(path))
        assert Config.load().port == 5000

    def test_data_dir_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("data_dir: /somewhere/else\n")
        monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "from-env"))
        cfg = Config.load(str(path))
        assert cfg.data_dir == str(tmp_path / "from-env")


class TestCli:

    def _run(self, tmp_path, *argv):
        return main(["--config", str(tmp_path / "none.yaml"), "--data-dir", str(tmp_path / "data"), *argv])

    def test_backup_then_list(self, tmp_path, capsys):
        assert self._run(tmp_path, "backup") == 0
        path = capsys.readouterr().out.strip().splitlines()[-1]
        assert Path(path).exists()

        assert self._run(tmp_path, "backups") == 0
        out = capsys.readouterr().out
        assert Path(path).name in out

    def test_cleanup(self, tmp_path, capsys):
        self._run(tmp_path, "backup")
        self._run(tmp_path, "backup")
        capsys.readouterr()

        assert self._run(tmp_path, "cleanup", "--keep", "0") == 0
        # runs after the first also took a startup snapshot
        assert "Deleted 4 backup(s)" in capsys.readouterr().out

    def test_check(self, tmp_path, capsys):
        assert self._run(tmp_path, "check") == 0
        assert "integrity ok" in capsys.readouterr().out

    def test_data_dir_flag_beats_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "env-dir"))
        self._run(tmp_path, "check")
        assert (tmp_path / "data" / "kanban.db").exists()
        assert not (tmp_path / "env-dir").exists()

    def test_verify(self, capsys):
        assert run_verify() == 0
        assert "ALL CHECKS PASSED" in capsys.readouterr().out
