"""
Pytest configuration for dbtools.

Provides fixtures for:
- A fake connection recording SQL and returning canned rows (unit tests)
- Database connection management against PostgreSQL (integration tests)
- Settings override for integration tests
"""

from __future__ import annotations

import os
from typing import Any, Dict, Generator, Iterable, List, Optional

import psycopg
import pytest

from dbtools.config import Settings
from dbtools.query.filters import quote_value


class FakeCursor:
    """Cursor double with dict rows."""

    def __init__(self, rows: Iterable[Dict[str, Any]]) -> None:
        self._rows = list(rows)
        names = list(self._rows[0]) if self._rows else []
        self.description = [(name,) for name in names]

    def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._rows[0] if self._rows else None

    def fetchall(self) -> List[Dict[str, Any]]:
        return list(self._rows)


class FakeConnection:
    """
    Connection double: answers COUNT queries with ``total`` and any other
    query with ``rows``. Every statement is recorded in ``queries``.
    """

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, total: Optional[int] = None) -> None:
        self.rows = list(rows or [])
        self.total = len(self.rows) if total is None else total
        self.queries: List[str] = []

    def query(self, sql: str) -> FakeCursor:
        self.queries.append(sql)
        if sql.startswith("SELECT COUNT(*)"):
            return FakeCursor([{"count": self.total}])
        return FakeCursor(self.rows)

    def quote(self, value: Any) -> str:
        return quote_value(value)


@pytest.fixture
def fake_connection_factory():
    """Build fake connections: ``fake_connection_factory(rows, total=None)``."""
    return FakeConnection


@pytest.fixture
def items_rows() -> List[Dict[str, Any]]:
    return [
        {"id": 1, "name": "apple", "category": "fruit"},
        {"id": 2, "name": "carrot", "category": "vegetable"},
        {"id": 3, "name": "banana", "category": "fruit"},
    ]


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "dbtools"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1;").fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped autocommit connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def seeded_items_table(db_connection: psycopg.Connection) -> Generator[str, None, None]:
    """
    Create and fill a scratch ``dbtools_items`` table; dropped after the test.

    Returns the table name.
    """
    table = "dbtools_items"
    db_connection.execute(f"DROP TABLE IF EXISTS {table}")
    db_connection.execute(
        f"""
        CREATE TABLE {table} (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            category TEXT,
            price NUMERIC(10, 2) NOT NULL DEFAULT 0
        )
        """
    )
    with db_connection.cursor() as cur:
        cur.executemany(
            f"INSERT INTO {table} (name, category, price) VALUES (%s, %s, %s)",
            [(f"item-{i:02d}", None if i % 5 == 0 else ("a" if i % 2 else "b"), i) for i in range(1, 26)],
        )
    yield table
    db_connection.execute(f"DROP TABLE IF EXISTS {table}")
