from __future__ import annotations

from typing import Any, List

import psycopg
import pytest
from tenacity import wait_none

from pgrecord.config import Settings
from pgrecord.infrastructure import db_factory
from pgrecord.infrastructure.db_factory import PoolManager, apply_statement_timeout, build_dsn


class _FakeConnection:
    def __init__(self) -> None:
        self.executed: List[tuple[str, Any]] = []
        self.commits = 0

    def execute(self, query: str, params: Any = None) -> None:
        self.executed.append((query, params))

    def commit(self) -> None:
        self.commits += 1


class _FakePool:
    instances: List["_FakePool"] = []

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.closed = False
        _FakePool.instances.append(self)

    def close(self) -> None:
        self.closed = True


def _settings(**overrides: Any) -> Settings:
    values = {"db_connect_retries": 3, "db_statement_timeout_ms": 250}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    settings = _settings()
    monkeypatch.setattr(db_factory, "get_settings", lambda: settings)
    monkeypatch.setattr(db_factory, "wait_exponential", lambda **kwargs: wait_none())
    return settings


@pytest.fixture
def pool_manager(monkeypatch: pytest.MonkeyPatch, settings: Settings):
    _FakePool.instances.clear()
    monkeypatch.setattr(db_factory, "ConnectionPool", _FakePool)
    monkeypatch.setattr(PoolManager, "_instance", None)
    manager = PoolManager()
    yield manager
    manager.close_all()


def test_build_dsn_from_settings() -> None:
    settings = _settings(db_user="app", db_password="secret", db_host="db", db_port=6543, db_name="people")
    assert build_dsn(settings) == "postgresql://app:secret@db:6543/people"


def test_apply_statement_timeout_sets_session_value() -> None:
    conn = _FakeConnection()
    apply_statement_timeout(conn, 1500)
    assert conn.executed == [("select set_config('statement_timeout', %s, false)", ("1500",))]


def test_apply_statement_timeout_zero_keeps_server_default() -> None:
    conn = _FakeConnection()
    apply_statement_timeout(conn, 0)
    assert conn.executed == []


def test_get_sync_connection_retries_transient_errors(monkeypatch, settings) -> None:
    conn = _FakeConnection()
    attempts: List[str] = []

    def connect(dsn: str, autocommit: bool = False):
        attempts.append(dsn)
        if len(attempts) < 3:
            raise psycopg.OperationalError("connection refused")
        return conn

    monkeypatch.setattr(db_factory.psycopg, "connect", connect)

    result = db_factory.get_sync_connection("postgresql://override/db")

    assert result is conn
    assert attempts == ["postgresql://override/db"] * 3
    assert conn.executed[0][1] == ("250",)
    assert conn.commits == 1


def test_get_sync_connection_gives_up_after_configured_attempts(monkeypatch, settings) -> None:
    attempts: List[str] = []

    def connect(dsn: str, autocommit: bool = False):
        attempts.append(dsn)
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(db_factory.psycopg, "connect", connect)

    with pytest.raises(psycopg.OperationalError):
        db_factory.get_sync_connection()
    assert len(attempts) == settings.db_connect_retries


def test_get_sync_connection_does_not_retry_other_errors(monkeypatch, settings) -> None:
    attempts: List[str] = []

    def connect(dsn: str, autocommit: bool = False):
        attempts.append(dsn)
        raise psycopg.ProgrammingError("invalid dsn")

    monkeypatch.setattr(db_factory.psycopg, "connect", connect)

    with pytest.raises(psycopg.ProgrammingError):
        db_factory.get_sync_connection()
    assert len(attempts) == 1


def test_pool_manager_is_a_singleton(pool_manager) -> None:
    assert PoolManager() is pool_manager


def test_pool_manager_creates_pool_once(pool_manager, settings) -> None:
    first = pool_manager.get_sync_pool()
    second = pool_manager.get_sync_pool()

    assert first is second
    assert len(_FakePool.instances) == 1
    assert first.kwargs["conninfo"] == build_dsn(settings)
    assert first.kwargs["min_size"] == settings.db_pool_min_size
    assert first.kwargs["max_size"] == settings.db_pool_max_size


def test_pooled_connections_get_statement_timeout(pool_manager) -> None:
    pool = pool_manager.get_sync_pool()
    conn = _FakeConnection()

    pool.kwargs["configure"](conn)

    assert conn.executed[0][1] == ("250",)
    assert conn.commits == 1


def test_close_all_closes_and_forgets_pool(pool_manager) -> None:
    pool = pool_manager.get_sync_pool()
    pool_manager.close_all()

    assert pool.closed is True
    assert pool_manager.get_sync_pool() is not pool
