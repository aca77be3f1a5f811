"""
pgrecord - schema-introspecting active records for PostgreSQL.

Tables are described at runtime from the database catalog instead of through
a class per table:

- Table: loads column names, type OIDs, nullability and primary-key membership,
  then freezes itself and caches the SQL fragments records need
- Record: a dict-like attribute bag bound to a Table that knows whether it
  mirrors an existing row, and saves itself with an insert or an update
- crud / aio: capability-based insert, update, delete, select_one and
  select_all with exactly-one-row checks, pre-save hooks and driver error
  translation, for sync and asyncio psycopg connections
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from pgrecord import aio
from pgrecord.config import Settings, get_settings
from pgrecord.crud import delete, insert, select_all, select_one, select_row, update
from pgrecord.domain.models import Column, Op
from pgrecord.errors import (
    MissingPrimaryKeyError,
    MultipleRowsError,
    NoSuchColumnError,
    NotFoundError,
    PgRecordError,
    TableFinalizedError,
    TableNotFinalizedError,
    TableNotFoundError,
    TableNotLoadedError,
    not_found,
)
from pgrecord.record import Record, RecordList
from pgrecord.statement import SelectStatement, build, where
from pgrecord.table import Table
from pgrecord.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Metadata and records
    "Column",
    "Op",
    "Record",
    "RecordList",
    "Table",
    # Statements
    "SelectStatement",
    "build",
    "where",
    # CRUD
    "aio",
    "delete",
    "insert",
    "select_all",
    "select_one",
    "select_row",
    "update",
    # Errors
    "MissingPrimaryKeyError",
    "MultipleRowsError",
    "NoSuchColumnError",
    "NotFoundError",
    "PgRecordError",
    "TableFinalizedError",
    "TableNotFinalizedError",
    "TableNotFoundError",
    "TableNotLoadedError",
    "not_found",
    # Logging
    "configure_logging",
    "get_logger",
]
