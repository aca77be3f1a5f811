"""
Infrastructure package for pgrecord.

Centralizes database connectivity concerns (sync/async factories, pooling,
statement timeouts). Keep this layer focused on I/O and resource management,
decoupled from table and record logic.
"""

from pgrecord.infrastructure.db_factory import (
    PoolManager,
    build_dsn,
    get_async_connection,
    get_sync_connection,
    get_sync_pool,
)

__all__ = [
    "PoolManager",
    "build_dsn",
    "get_async_connection",
    "get_sync_connection",
    "get_sync_pool",
]
