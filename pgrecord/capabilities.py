"""
Capability interfaces consumed by the CRUD layer.

Each operation in `pgrecord.crud` asks for the smallest capability it needs,
so one record type can opt into inserts, updates, selects, deletes, hooks,
and error translation independently. `Record` implements the core set; the
optional hooks (`before_save`, `map_pg_error`) are picked up from subclasses
via `isinstance` checks against these runtime-checkable protocols.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

import psycopg

from pgrecord.domain.models import Op
from pgrecord.statement import InsertStatement, SelectStatement, TableName, UpdateStatement


@runtime_checkable
class Queryer(Protocol):
    """
    Anything that executes a query and returns a fresh cursor.

    `psycopg.Connection` qualifies, including a connection inside a
    transaction block. The cursor is closed by the caller.
    """

    def execute(self, query: Any, params: Sequence[Any] | None = None) -> psycopg.Cursor:
        ...


@runtime_checkable
class AsyncQueryer(Protocol):
    """Async counterpart of `Queryer`, satisfied by `psycopg.AsyncConnection`."""

    async def execute(
        self, query: Any, params: Sequence[Any] | None = None
    ) -> psycopg.AsyncCursor:
        ...


@runtime_checkable
class BeforeSaver(Protocol):
    def before_save(self, op: Op) -> None:
        """
        Raise to cancel the operation. `op` is either Op.INSERT or Op.UPDATE.
        """
        ...


@runtime_checkable
class Inserter(Protocol):
    def insert_statement(self) -> InsertStatement:
        ...


@runtime_checkable
class InsertScanner(Protocol):
    def insert_scan(self, row: Any) -> None:
        """Absorb the row produced by the returning clause into the record."""
        ...


@runtime_checkable
class Updater(Protocol):
    def update_statement(self) -> UpdateStatement:
        ...


@runtime_checkable
class Deleter(Protocol):
    def table_name(self) -> TableName:
        ...

    def where_primary_key(self) -> SelectStatement:
        ...


@runtime_checkable
class Selector(Protocol):
    def select_statement(self) -> SelectStatement:
        """Return a select statement that selects a record."""
        ...

    def select_scan(self, row: Any) -> None:
        """Absorb the current row into the record."""
        ...


@runtime_checkable
class SelectCollection(Protocol):
    def new_record(self) -> Selector:
        """Allocate a new record that can be appended to this collection."""
        ...

    def append(self, record: Any) -> None:
        ...


@runtime_checkable
class PgErrorMapper(Protocol):
    def map_pg_error(self, error: psycopg.Error) -> BaseException:
        """
        Convert a server-reported error to another exception, e.g. a unique
        violation to an application validation error.
        """
        ...


__all__ = [
    "AsyncQueryer",
    "BeforeSaver",
    "Deleter",
    "InsertScanner",
    "Inserter",
    "PgErrorMapper",
    "Queryer",
    "SelectCollection",
    "Selector",
    "Updater",
]
