"""
Database connection factory utilities for pgrecord.

Builds DSNs from settings and hands out sync/async psycopg connections that
satisfy the `Queryer` / `AsyncQueryer` capabilities. Connections get the
configured `statement_timeout`, which is how deadlines reach the server for
the synchronous API. The PoolManager singleton owns a shared sync pool and
closes it on exit.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

import atexit
import threading
from contextlib import contextmanager
from typing import Generator, Optional

import psycopg
from psycopg import AsyncConnection, Connection
from psycopg_pool import ConnectionPool
from tenacity import (
    AsyncRetrying,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pgrecord.config import Settings, get_settings
from pgrecord.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def apply_statement_timeout(conn: Connection, timeout_ms: int) -> None:
    """
    Set the session `statement_timeout` on conn. A value of 0 leaves the
    server default in place.

    Queries running longer fail with `psycopg.errors.QueryCanceled`.
    """
    if timeout_ms <= 0:
        return
    conn.execute("select set_config('statement_timeout', %s, false)", (str(timeout_ms),))


async def apply_statement_timeout_async(conn: AsyncConnection, timeout_ms: int) -> None:
    """Async `apply_statement_timeout`."""
    if timeout_ms <= 0:
        return
    await conn.execute("select set_config('statement_timeout', %s, false)", (str(timeout_ms),))


def _retrying(settings: Settings, cls=Retrying):
    return cls(
        stop=stop_after_attempt(settings.db_connect_retries),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        reraise=True,
    )


def get_sync_connection(dsn_override: Optional[str] = None, autocommit: bool = False) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries with exponential backoff for transient connection errors, up to
    `DB_CONNECT_RETRIES` attempts.

    Returns
    -------
    Connection
        A new psycopg connection with the configured statement timeout.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    settings = get_settings()
    dsn = dsn_override or build_dsn(settings)
    conn = _retrying(settings)(psycopg.connect, dsn, autocommit=autocommit)
    apply_statement_timeout(conn, settings.db_statement_timeout_ms)
    if not autocommit:
        conn.commit()
    return conn


async def get_async_connection(
    dsn_override: Optional[str] = None, autocommit: bool = False
) -> AsyncConnection:
    """
    Acquire an asynchronous connection with automatic retry.

    Returns
    -------
    AsyncConnection
        A new psycopg async connection with the configured statement timeout.
    """
    settings = get_settings()
    dsn = dsn_override or build_dsn(settings)
    async for attempt in _retrying(settings, AsyncRetrying):
        with attempt:
            conn = await AsyncConnection.connect(dsn, autocommit=autocommit)
    await apply_statement_timeout_async(conn, settings.db_statement_timeout_ms)
    if not autocommit:
        await conn.commit()
    return conn


class PoolManager:
    """
    Thread-safe singleton owning the shared synchronous connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._sync_pool = None
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_sync_pool(self, dsn_override: Optional[str] = None) -> ConnectionPool:
        """
        Get or create the synchronous connection pool.

        Pool sizes come from `DB_POOL_MIN_SIZE` / `DB_POOL_MAX_SIZE`; every
        new pooled connection gets the configured statement timeout.
        """
        with self._lock:
            if self._sync_pool is None:
                settings = get_settings()
                timeout_ms = settings.db_statement_timeout_ms

                def _configure(conn: Connection) -> None:
                    apply_statement_timeout(conn, timeout_ms)
                    conn.commit()

                self._sync_pool = ConnectionPool(
                    conninfo=dsn_override or build_dsn(settings),
                    min_size=settings.db_pool_min_size,
                    max_size=settings.db_pool_max_size,
                    configure=_configure,
                    open=True,
                )
                log.info(
                    "Opened connection pool",
                    extra={
                        "min_size": settings.db_pool_min_size,
                        "max_size": settings.db_pool_max_size,
                    },
                )
            return self._sync_pool

    @contextmanager
    def sync_connection(self) -> Generator[Connection, None, None]:
        """
        Context manager for obtaining a pooled connection.

        The pool commits on clean exit and rolls back if the block raises.

        Example
        -------
            manager = PoolManager()
            with manager.sync_connection() as conn:
                record = table.find_by_pk(conn, 1)
        """
        pool = self.get_sync_pool()
        with pool.connection() as conn:
            yield conn

    def close_all(self) -> None:
        """
        Close the managed pool and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._sync_pool is not None:
                try:
                    self._sync_pool.close()
                except psycopg.Error:
                    log.warning("Error closing connection pool", exc_info=True)
                finally:
                    self._sync_pool = None


def get_sync_pool(dsn_override: Optional[str] = None) -> ConnectionPool:
    """Get or create the shared synchronous pool via PoolManager."""
    return PoolManager().get_sync_pool(dsn_override=dsn_override)


__all__ = [
    "PoolManager",
    "apply_statement_timeout",
    "apply_statement_timeout_async",
    "build_dsn",
    "get_async_connection",
    "get_sync_connection",
    "get_sync_pool",
]
