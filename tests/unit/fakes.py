"""
In-memory stand-ins for psycopg connections and cursors.

They mirror the surface pgrecord uses: `execute` returning a cursor that is a
context manager with `description`, `rowcount`, `fetchone`, `fetchall` and
iteration. Executed statements are recorded as rendered text plus arguments.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Sequence, Tuple

from psycopg import sql

from pgrecord.table import Table

INT4_OID = 23
TEXT_OID = 25

# Catalog rows for: t(id int primary key, name text not null, age int)
T_CATALOG_ROWS = [
    ("id", INT4_OID, True, True),
    ("name", TEXT_OID, True, False),
    ("age", INT4_OID, False, False),
]


def _render(query: Any) -> str:
    if isinstance(query, sql.Composable):
        return query.as_string(None)
    return query


class FakeCursor:
    def __init__(
        self,
        rows: Sequence[Any] = (),
        rowcount: Optional[int] = None,
        returns_rows: bool = True,
        fetch_error: Optional[BaseException] = None,
    ) -> None:
        self._rows = list(rows)
        self.rowcount = len(self._rows) if rowcount is None else rowcount
        self.description = [("column",)] if returns_rows else None
        self.fetch_error = fetch_error
        self.closed = False

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.close()

    def close(self) -> None:
        self.closed = True

    def execute(self, query: Any, params: Optional[Sequence[Any]] = None) -> "FakeCursor":
        return self

    def _check(self) -> None:
        if self.fetch_error is not None:
            raise self.fetch_error

    def fetchone(self) -> Any:
        self._check()
        return self._rows.pop(0) if self._rows else None

    def fetchall(self) -> List[Any]:
        self._check()
        rows, self._rows = self._rows, []
        return rows

    def __iter__(self):
        while True:
            self._check()
            if not self._rows:
                return
            yield self._rows.pop(0)


class FakeQueryer:
    """
    Queryer returning prepared results in order. A result may be an exception,
    which `execute` raises instead of returning a cursor.
    """

    def __init__(self, *results: Any) -> None:
        self.results = list(results)
        self.calls: List[Tuple[str, List[Any]]] = []
        self.cursors: List[Any] = []
        self.row_factories: List[Any] = []
        self.closed = False

    def __enter__(self) -> "FakeQueryer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.closed = True

    def _next(self, query: Any, params: Optional[Sequence[Any]]) -> Any:
        self.calls.append((_render(query), list(params or [])))
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        self.cursors.append(result)
        return result

    def execute(self, query: Any, params: Optional[Sequence[Any]] = None) -> FakeCursor:
        return self._next(query, params)

    def cursor(self, row_factory: Any = None) -> "_RecordingCursor":
        self.row_factories.append(row_factory)
        return _RecordingCursor(self, row_factory)


class _RecordingCursor:
    """Cursor returned by `FakeQueryer.cursor`, delegating to queued results."""

    def __init__(self, queryer: FakeQueryer, row_factory: Any) -> None:
        self._queryer = queryer
        self._row_factory = row_factory
        self._cursor: Optional[FakeCursor] = None
        self.rowcount = -1

    def __enter__(self) -> "_RecordingCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb

    def execute(self, query: Any, params: Optional[Sequence[Any]] = None) -> "_RecordingCursor":
        self._cursor = self._queryer._next(query, params)
        self.rowcount = self._cursor.rowcount
        return self

    def fetchone(self) -> Any:
        row = self._cursor.fetchone()
        if row is None or self._row_factory is None:
            return row
        # psycopg row factories take the cursor and return a row maker.
        return self._row_factory(self)(row)


class FakeAsyncCursor(FakeCursor):
    async def __aenter__(self) -> "FakeAsyncCursor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.close()

    async def fetchone(self) -> Any:  # type: ignore[override]
        return FakeCursor.fetchone(self)

    async def fetchall(self) -> List[Any]:  # type: ignore[override]
        return FakeCursor.fetchall(self)

    def __aiter__(self):
        return self._aiter()

    async def _aiter(self):
        for row in FakeCursor.__iter__(self):
            yield row


class FakeAsyncQueryer(FakeQueryer):
    """Async Queryer; `delay` makes every execute block for that many seconds."""

    def __init__(self, *results: Any, delay: float = 0.0) -> None:
        super().__init__(*results)
        self.delay = delay
        self.cancelled = False

    async def execute(self, query: Any, params: Optional[Sequence[Any]] = None) -> FakeAsyncCursor:  # type: ignore[override]
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        return self._next(query, params)

    def cursor(self, row_factory: Any = None) -> "_AsyncRecordingCursor":  # type: ignore[override]
        self.row_factories.append(row_factory)
        return _AsyncRecordingCursor(self, row_factory)


class _AsyncRecordingCursor(_RecordingCursor):
    async def __aenter__(self) -> "_AsyncRecordingCursor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb

    async def execute(self, query: Any, params: Optional[Sequence[Any]] = None) -> "_AsyncRecordingCursor":  # type: ignore[override]
        return _RecordingCursor.execute(self, query, params)

    async def fetchone(self) -> Any:  # type: ignore[override]
        return _RecordingCursor.fetchone(self)


def make_table(record_class: Any = None, name: Any = ("t",), rows: Sequence[Any] = T_CATALOG_ROWS) -> Table:
    """Load and finalize a table from canned catalog rows."""
    table = Table(name, record_class=record_class)
    table.load_all_columns(FakeQueryer(FakeCursor(rows)))
    table.finalize()
    return table
