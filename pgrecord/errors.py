"""
Error taxonomy for pgrecord.

Driver failures are not wrapped: they surface as `psycopg.Error` subclasses
unless a record's `map_pg_error` hook translates them. Errors raised by
`before_save` hooks propagate untouched.
"""

from __future__ import annotations

from typing import Sequence


def _display_name(table: Sequence[str] | str) -> str:
    if isinstance(table, str):
        return table
    return ".".join(table)


class PgRecordError(Exception):
    """Base class for errors raised by pgrecord."""


class NotFoundError(PgRecordError):
    """A single-entity operation selected or affected zero rows."""

    def __init__(self, message: str = "not found") -> None:
        super().__init__(message)


class MultipleRowsError(PgRecordError):
    """A single-entity operation selected or affected more than one row."""

    def __init__(self, row_count: int) -> None:
        self.row_count = row_count
        super().__init__(f"expected 1 row got {row_count}")


class NoSuchColumnError(PgRecordError, KeyError):
    """An attribute name is not one of the table's columns."""

    def __init__(self, table: Sequence[str] | str, column: str) -> None:
        self.table = _display_name(table)
        self.column = column
        super().__init__(f"no column {column!r} in table {self.table}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return self.args[0]


class TableNotFoundError(PgRecordError):
    """The catalog reported no columns for the table."""

    def __init__(self, table: Sequence[str] | str) -> None:
        self.table = _display_name(table)
        super().__init__(f"table {self.table} not found")


class TableNotLoadedError(PgRecordError):
    """`finalize` was called before any columns were loaded."""


class TableNotFinalizedError(PgRecordError):
    """A statement was requested from a table that has not been finalized."""


class TableFinalizedError(PgRecordError):
    """A finalized table was asked to change."""


class MissingPrimaryKeyError(PgRecordError):
    """A primary-key based operation was used on a table without a primary key."""

    def __init__(self, table: Sequence[str] | str) -> None:
        self.table = _display_name(table)
        super().__init__(f"table {self.table} has no primary key")


def not_found(err: BaseException | None) -> bool:
    """Return True if err is a not found error."""
    return isinstance(err, NotFoundError)


__all__ = [
    "PgRecordError",
    "NotFoundError",
    "MultipleRowsError",
    "NoSuchColumnError",
    "TableNotFoundError",
    "TableNotLoadedError",
    "TableNotFinalizedError",
    "TableFinalizedError",
    "MissingPrimaryKeyError",
    "not_found",
]
