"""
CRUD orchestration for anything exposing the capabilities in
`pgrecord.capabilities`.

Insert, update, delete and select_one expect a statement that targets exactly
one row: zero rows raise NotFoundError (check with `not_found`), more than one
raises MultipleRowsError. select_all accepts any number of rows.

Server-reported errors (those carrying a SQLSTATE) are passed to the target's
`map_pg_error` hook when it has one, on every execute, fetch, and scan path.
Errors raised by `before_save` propagate untouched and prevent any I/O.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Generator, List, Optional, Sequence, Tuple

import psycopg
from psycopg import sql

from pgrecord.capabilities import (
    BeforeSaver,
    Deleter,
    Inserter,
    InsertScanner,
    PgErrorMapper,
    Queryer,
    SelectCollection,
    Selector,
    Updater,
)
from pgrecord.domain.models import Op
from pgrecord.errors import MultipleRowsError, NotFoundError
from pgrecord.statement import DeleteStatement, SelectStatement, build, identifier
from pgrecord.utils.logging import get_logger

log = get_logger(__name__)

ScanFunc = Callable[[Any], None]
Prepared = Tuple[sql.Composable, List[Any], Optional[ScanFunc]]


def _translate_error(target: Any, error: psycopg.Error) -> BaseException:
    if isinstance(target, PgErrorMapper) and error.sqlstate is not None:
        return target.map_pg_error(error)
    return error


@contextmanager
def _translating(target: Any) -> Generator[None, None, None]:
    """Route server errors raised inside the block through the target's mapper."""
    try:
        yield
    except psycopg.Error as exc:
        mapped = _translate_error(target, exc)
        if mapped is exc:
            raise
        raise mapped from exc


def _check_row_count(operation: str, row_count: int) -> None:
    if row_count == 0:
        log.debug(f"{operation} matched no rows", extra={"operation": operation})
        raise NotFoundError()
    if row_count > 1:
        log.debug(
            f"{operation} matched {row_count} rows",
            extra={"operation": operation, "rows": row_count},
        )
        raise MultipleRowsError(row_count)


def _prepare_insert(record: Inserter) -> Prepared:
    if isinstance(record, BeforeSaver):
        record.before_save(Op.INSERT)
    query, args = build(record.insert_statement())
    scan = record.insert_scan if isinstance(record, InsertScanner) else None
    return query, args, scan


def _prepare_update(record: Updater) -> Prepared:
    if isinstance(record, BeforeSaver):
        record.before_save(Op.UPDATE)
    query, args = build(record.update_statement())
    return query, args, None


def _prepare_delete(record: Deleter) -> Prepared:
    stmt = DeleteStatement(table=identifier(record.table_name())).apply(record.where_primary_key())
    query, args = build(stmt)
    return query, args, None


def _prepare_select(record: Selector, scopes: Sequence[SelectStatement]) -> Prepared:
    query, args = build(record.select_statement().apply(*scopes))
    return query, args, record.select_scan


def _query_one(
    operation: str,
    db: Queryer,
    target: Any,
    query: sql.Composable,
    args: List[Any],
    scan: Optional[ScanFunc],
) -> None:
    with _translating(target):
        with db.execute(query, args) as cur:
            row_count = cur.rowcount
            log.debug(f"{operation} executed", extra={"operation": operation, "rows": row_count})
            # The target absorbs a row only when exactly one came back.
            _check_row_count(operation, row_count)
            row = cur.fetchone() if cur.description is not None else None
            if row is not None and scan is not None:
                scan(row)


def insert(db: Queryer, record: Inserter) -> None:
    """
    Insert record into db.

    If record implements `before_save` it is called first and any exception
    aborts the insert. If record implements `insert_scan` the row produced by
    the returning clause is passed to it.
    """
    _query_one("insert", db, record, *_prepare_insert(record))


def update(db: Queryer, record: Updater) -> None:
    """
    Update record in db.

    If record implements `before_save` it is called first and any exception
    aborts the update. The update must affect exactly one row.
    """
    _query_one("update", db, record, *_prepare_update(record))


def delete(db: Queryer, record: Deleter) -> None:
    """Delete record by primary key. The delete must affect exactly one row."""
    _query_one("delete", db, record, *_prepare_delete(record))


def select_one(db: Queryer, record: Selector, *scopes: SelectStatement) -> None:
    """
    Select a single row into record, applying scopes to its select statement.

    Raises NotFoundError when no row matches and MultipleRowsError when more
    than one does.
    """
    _query_one("select_one", db, record, *_prepare_select(record, scopes))


def select_all(db: Queryer, collection: SelectCollection, *scopes: SelectStatement) -> None:
    """
    Select every matching row into collection, applying scopes.

    Each row is scanned into a record from `collection.new_record()` and
    appended in the order the database returns them.
    """
    record = collection.new_record()
    query, args, _ = _prepare_select(record, scopes)

    row_count = 0
    with _translating(record):
        with db.execute(query, args) as cur:
            for row in cur:
                if row_count > 0:
                    record = collection.new_record()
                record.select_scan(row)
                collection.append(record)
                row_count += 1
    log.debug("select_all executed", extra={"operation": "select_all", "rows": row_count})


def select_row(
    db: psycopg.Connection,
    query: Any,
    params: Optional[Sequence[Any]] = None,
    row_factory: Any = None,
) -> Any:
    """
    Run query and return exactly one row, shaped by a psycopg row factory.

    Example
    -------
        person = select_row(conn, "select 1, 'John', 42", row_factory=args_row(Person))
    """
    with db.cursor(row_factory=row_factory) as cur:
        cur.execute(query, params)
        row = cur.fetchone()
        row_count = cur.rowcount
    _check_row_count("select_row", row_count)
    return row


__all__ = [
    "delete",
    "insert",
    "select_all",
    "select_one",
    "select_row",
    "update",
]
