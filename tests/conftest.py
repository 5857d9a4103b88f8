"""Shared fixtures for localboard tests."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from localboard.app import KanbanApp
from localboard.config import Config
from localboard.db import Database
from localboard.store import BoardStore, ColumnStore, CardStore


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "kanban.db")
    database.migrate()
    yield database
    database.close()


@pytest.fixture
def boards(db):
    return BoardStore(db)


@pytest.fixture
def columns(db):
    return ColumnStore(db)


@pytest.fixture
def cards(db):
    return CardStore(db)


@pytest.fixture
def clock(monkeypatch):
    """Strictly increasing timestamps for the repositories (1s apart)."""
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    ticks = itertools.count()

    def fake_now():
        return (start + timedelta(seconds=next(ticks))).isoformat()

    monkeypatch.setattr("localboard.store.utc_now", fake_now)
    return fake_now


@pytest.fixture
def kanban(tmp_path, monkeypatch):
    monkeypatch.delenv("LOCALBOARD_DATA_DIR", raising=False)
    app = KanbanApp.open(Config(data_dir=str(tmp_path / "data")))
    yield app
    app.close()
