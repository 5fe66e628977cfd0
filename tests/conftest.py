"""Pytest configuration shared by the support hub test suite.

The optional ``.env.test`` file is loaded first with override=True so tests
never pick up merchant platform credentials or database URLs from the shell.
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

_TEST_ENV_FILE = Path(__file__).parent.parent / ".env.test"
if _TEST_ENV_FILE.exists():
    load_dotenv(_TEST_ENV_FILE, override=True)

from typing import Generator, Iterator

import pytest
import sqlalchemy as sa

from support_hub.config.settings import Settings, get_settings

_ISOLATED_ENV_VARS = (
    "ENVIRONMENT",
    "LOG_LEVEL",
    "DATABASE_URL",
    "SUPPORT_HUB_DATABASE_URI",
    "SUPPORT_HUB_FRANCHISE_API_BASE_URL",
    "SUPPORT_HUB_FRANCHISE_API_EMAIL",
    "SUPPORT_HUB_FRANCHISE_API_PASSWORD",
    "SUPPORT_HUB_FRANCHISE_API_TIMEOUT",
    "SUPPORT_HUB_LOOKUP_MAX_CONCURRENCY",
    "SUPPORT_HUB_BACKFILL_DRAIN_TIMEOUT",
    "SUPPORT_HUB_TICKETS_TABLE",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch) -> Iterator[None]:
    """Fresh settings per test, independent of the developer's environment."""
    for name in _ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setitem(Settings.model_config, "env_file", None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


TICKETS_DDL = """
CREATE TABLE support_requests (
    id INTEGER PRIMARY KEY,
    fid TEXT,
    oid TEXT,
    outlet_name TEXT,
    franchise_name_resolved TEXT,
    outlet_name_resolved TEXT
)
"""


@pytest.fixture
def sqlite_engine(tmp_path) -> Generator[sa.engine.Engine, None, None]:
    """File-backed SQLite engine with an empty support_requests table.

    A file database gives each worker thread its own connection.
    """
    engine = sa.create_engine(
        f"sqlite:///{tmp_path / 'tickets.db'}",
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        conn.execute(sa.text(TICKETS_DDL))
    yield engine
    engine.dispose()


@pytest.fixture
def insert_tickets(sqlite_engine):
    """Insert ticket rows: ``insert_tickets({"id": 1, "fid": "10", ...}, ...)``."""

    def _insert(*rows: dict) -> None:
        columns = ["id", "fid", "oid", "outlet_name", "franchise_name_resolved", "outlet_name_resolved"]
        with sqlite_engine.begin() as conn:
            for row in rows:
                conn.execute(
                    sa.text(
                        "INSERT INTO support_requests "
                        "(id, fid, oid, outlet_name, franchise_name_resolved, outlet_name_resolved) "
                        "VALUES (:id, :fid, :oid, :outlet_name, :franchise_name_resolved, :outlet_name_resolved)"
                    ),
                    {column: row.get(column) for column in columns},
                )

    return _insert
