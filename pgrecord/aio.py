"""
asyncio variants of the CRUD operations, for `psycopg.AsyncConnection`.

Statement building, hooks, row-cardinality checks and error translation are
shared with `pgrecord.crud`; only the I/O differs. Cancelling the calling task
(directly, or through `asyncio.timeout` / `asyncio.wait_for`) makes psycopg
cancel the running query on the server, and the CancelledError propagates.

Example
-------
    async with await get_async_connection() as conn:
        await aio.load_all_columns(table, conn)
        table.finalize()
        record = await aio.find_by_pk(table, conn, 1)
        record["name"] = "Bill"
        await aio.save(conn, record)
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from psycopg import sql

from pgrecord.capabilities import (
    AsyncQueryer,
    Deleter,
    Inserter,
    SelectCollection,
    Selector,
    Updater,
)
from pgrecord.crud import (
    ScanFunc,
    _check_row_count,
    _prepare_delete,
    _prepare_insert,
    _prepare_select,
    _prepare_update,
    _translating,
)
from pgrecord.record import Record, RecordList
from pgrecord.statement import SelectStatement
from pgrecord.table import Table
from pgrecord.utils.logging import get_logger

log = get_logger(__name__)


async def _query_one(
    operation: str,
    db: AsyncQueryer,
    target: Any,
    query: sql.Composable,
    args: List[Any],
    scan: Optional[ScanFunc],
) -> None:
    with _translating(target):
        async with await db.execute(query, args) as cur:
            row_count = cur.rowcount
            log.debug(f"{operation} executed", extra={"operation": operation, "rows": row_count})
            _check_row_count(operation, row_count)
            row = await cur.fetchone() if cur.description is not None else None
            if row is not None and scan is not None:
                scan(row)


async def insert(db: AsyncQueryer, record: Inserter) -> None:
    """Async `pgrecord.crud.insert`."""
    await _query_one("insert", db, record, *_prepare_insert(record))


async def update(db: AsyncQueryer, record: Updater) -> None:
    """Async `pgrecord.crud.update`."""
    await _query_one("update", db, record, *_prepare_update(record))


async def delete(db: AsyncQueryer, record: Deleter) -> None:
    """Async `pgrecord.crud.delete`."""
    await _query_one("delete", db, record, *_prepare_delete(record))


async def select_one(db: AsyncQueryer, record: Selector, *scopes: SelectStatement) -> None:
    """Async `pgrecord.crud.select_one`."""
    await _query_one("select_one", db, record, *_prepare_select(record, scopes))


async def select_all(
    db: AsyncQueryer, collection: SelectCollection, *scopes: SelectStatement
) -> None:
    """Async `pgrecord.crud.select_all`."""
    record = collection.new_record()
    query, args, _ = _prepare_select(record, scopes)

    row_count = 0
    with _translating(record):
        async with await db.execute(query, args) as cur:
            async for row in cur:
                if row_count > 0:
                    record = collection.new_record()
                record.select_scan(row)
                collection.append(record)
                row_count += 1
    log.debug("select_all executed", extra={"operation": "select_all", "rows": row_count})


async def load_all_columns(table: Table, db: AsyncQueryer) -> None:
    """Async `Table.load_all_columns`."""
    query, args = table.catalog_query()
    async with await db.execute(query, args) as cur:
        rows = await cur.fetchall()
    table.absorb_catalog_rows(rows)


async def find_by_pk(table: Table, db: AsyncQueryer, *pk_values: Any) -> Record:
    """Async `Table.find_by_pk`."""
    scope = table.pk_scope(*pk_values)
    record = table.new_record()
    await select_one(db, record, scope)
    return record


async def find_all(table: Table, db: AsyncQueryer, *scopes: SelectStatement) -> RecordList:
    """Async `Table.select_all`."""
    records = table.new_collection()
    await select_all(db, records, *scopes)
    return records


async def save(db: AsyncQueryer, record: Record) -> None:
    """Async `Record.save`."""
    if record.persisted:
        await update(db, record)
    else:
        await insert(db, record)
    record.mark_saved()


async def delete_record(db: AsyncQueryer, record: Record) -> None:
    """Async `Record.delete`."""
    await delete(db, record)
    record.mark_deleted()


async def select_row(
    db: Any,
    query: Any,
    params: Optional[Sequence[Any]] = None,
    row_factory: Any = None,
) -> Any:
    """Async `pgrecord.crud.select_row`."""
    async with db.cursor(row_factory=row_factory) as cur:
        await cur.execute(query, params)
        row = await cur.fetchone()
        row_count = cur.rowcount
    _check_row_count("select_row", row_count)
    return row


__all__ = [
    "delete",
    "delete_record",
    "find_all",
    "find_by_pk",
    "insert",
    "load_all_columns",
    "save",
    "select_all",
    "select_one",
    "select_row",
    "update",
]
