"""pytest configuration for satellite survey tests."""

from __future__ import annotations

import sqlite3

import pytest

from satsurvey.db import init_db
from satsurvey.storage.local import LocalBackend, LocalStore


# Configure asyncio mode for pytest-asyncio
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


class RecordingPresenter:
    """Presenter that keeps every call for assertions."""

    def __init__(self) -> None:
        self.notifications: list[tuple[str, str]] = []
        self.renders: list = []
        self.field_errors: list = []

    def notify(self, message: str, level: str = "info") -> None:
        self.notifications.append((message, level))

    def render(self, snapshot) -> None:
        self.renders.append(snapshot)

    def show_field_errors(self, errors) -> None:
        self.field_errors = list(errors)

    def clear_field_errors(self) -> None:
        self.field_errors = []


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "survey.db"
    init_db(db_path)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


@pytest.fixture
def local_store(db_conn):
    return LocalStore(db_conn)


@pytest.fixture
def local_backend(local_store):
    return LocalBackend(local_store, seed_sample=False)


@pytest.fixture
def presenter():
    return RecordingPresenter()
