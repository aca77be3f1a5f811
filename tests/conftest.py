"""
Pytest configuration for pgrecord.

Provides fixtures for:
- Settings override for integration tests
- Database connection management, one rolled-back transaction per test
- The `t` table used by the record tests
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest

from pgrecord.config import Settings
from pgrecord.infrastructure.db_factory import build_dsn
from pgrecord.table import Table

T_DDL = (
    "create temporary table t ("
    " id int primary key generated by default as identity,"
    " name text not null,"
    " age int"
    ")"
)


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
        db_name=os.getenv("DB_NAME", "pgrecord"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return build_dsn(test_settings)


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("select 1").fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a connection whose work is rolled back after the test.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.rollback()
        conn.close()


@pytest.fixture
def t_table(db_connection: psycopg.Connection) -> Table:
    """
    Create the temporary `t` table and return it loaded and finalized.
    """
    db_connection.execute(T_DDL)
    table = Table("t")
    table.load_all_columns(db_connection)
    table.finalize()
    return table
