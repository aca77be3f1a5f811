"""
Dynamic records bound to a finalized Table.

A Record stores one value per table column, keyed by column name, and knows
whether it mirrors a row that exists in the database. That `persisted` flag,
not the presence of a primary key value, decides whether `save` inserts or
updates. Records are owned by a single caller; they are not safe for
concurrent mutation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Sequence, Set

from pgrecord import crud
from pgrecord.capabilities import Queryer
from pgrecord.errors import NoSuchColumnError, TableNotFinalizedError
from pgrecord.statement import InsertStatement, SelectStatement, UpdateStatement

if TYPE_CHECKING:
    from pgrecord.table import Table


class Record:
    """
    Attribute bag for one row of a Table.

    Subclass and pass `record_class=` to `Table` to add `before_save(op)` or
    `map_pg_error(error)` hooks.
    """

    def __init__(self, table: "Table") -> None:
        if not table.finalized:
            raise TableNotFinalizedError(f"table {table.display_name} is not finalized")
        self._table = table
        self._attributes: Dict[str, Any] = dict.fromkeys(table.column_names)
        # Values as last read from or written to the database.
        self._loaded: Dict[str, Any] = dict(self._attributes)
        self._changed: Set[str] = set()
        self._persisted = False

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self._table.display_name} "
            f"{self._attributes!r} persisted={self._persisted}>"
        )

    @property
    def table(self) -> "Table":
        return self._table

    @property
    def persisted(self) -> bool:
        return self._persisted

    def _check_column(self, name: str) -> None:
        if not self._table.has_column(name):
            raise NoSuchColumnError(self._table.name, name)

    def get(self, name: str) -> Any:
        """Return the current value of column `name` (None when unset)."""
        self._check_column(name)
        return self._attributes[name]

    def set(self, name: str, value: Any) -> None:
        """Store value for column `name` verbatim; the driver checks its type on save."""
        self._check_column(name)
        self._attributes[name] = value
        self._changed.add(name)

    def must_set(self, name: str, value: Any) -> "Record":
        """
        Like `set`, for call sites where the column name is known to be valid.

        An unknown name is a bug in the caller and surfaces as RuntimeError.
        """
        try:
            self.set(name, value)
        except NoSuchColumnError as exc:
            raise RuntimeError(f"must_set: {exc}") from exc
        return self

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._attributes

    def attributes(self) -> Dict[str, Any]:
        """Snapshot of every column's value, in column order."""
        return dict(self._attributes)

    def set_attributes(self, values: Mapping[str, Any]) -> None:
        """
        Apply `set` for each entry. Stops at the first unknown name, leaving
        earlier entries applied.
        """
        for name, value in values.items():
            self.set(name, value)

    def changed_columns(self) -> List[str]:
        """Columns assigned since the record was last loaded or saved, in column order."""
        return [name for name in self._attributes if name in self._changed]

    # Persistence

    def save(self, db: Queryer) -> None:
        """
        Insert the record if it is not persisted yet, otherwise update it.

        After an insert, values produced by the returning clause (generated
        keys, defaults) are absorbed into the record.
        """
        if self._persisted:
            crud.update(db, self)
        else:
            crud.insert(db, self)
        self.mark_saved()

    def delete(self, db: Queryer) -> None:
        """Delete the row with this record's primary key."""
        crud.delete(db, self)
        self.mark_deleted()

    def mark_saved(self) -> None:
        """Record that the current values now match the stored row."""
        self._persisted = True
        self._loaded = dict(self._attributes)
        self._changed.clear()

    def mark_deleted(self) -> None:
        """Record that the stored row is gone; the next save inserts."""
        self._persisted = False
        # A later save re-inserts every current value.
        self._changed = set(self._attributes)

    def _absorb(self, names: Sequence[str], row: Any) -> None:
        if isinstance(row, Mapping):
            for name in names:
                self._attributes[name] = row[name]
            return
        values = list(row)
        if len(values) != len(names):
            raise ValueError(f"expected {len(names)} values in row, got {len(values)}")
        self._attributes.update(zip(names, values))

    def _key_values(self) -> List[Any]:
        source = self._loaded if self._persisted else self._attributes
        return [source[column.name] for column in self._table.pk_columns]

    # Capabilities consumed by pgrecord.crud

    def insert_statement(self) -> InsertStatement:
        return self._table.insert_statement(
            {name: self._attributes[name] for name in self.changed_columns()}
        )

    def insert_scan(self, row: Any) -> None:
        self._absorb([n for n in self._table.column_names if n not in self._changed], row)

    def update_statement(self) -> UpdateStatement:
        names: Iterable[str] = self.changed_columns()
        if not names:
            names = [c.name for c in self._table.columns if not c.primary_key]
        if not names:
            names = self._table.column_names
        return self._table.update_statement(
            {name: self._attributes[name] for name in names}, self._key_values()
        )

    def table_name(self) -> Sequence[str]:
        return self._table.name

    def where_primary_key(self) -> SelectStatement:
        return self._table.pk_scope(*self._key_values())

    def select_statement(self) -> SelectStatement:
        return self._table.select_statement()

    def select_scan(self, row: Any) -> None:
        self._absorb(self._table.column_names, row)
        self.mark_saved()


class RecordList(list):
    """A list of records from one table, usable as a select_all collection."""

    def __init__(self, table: "Table", records: Iterable[Record] = ()) -> None:
        super().__init__(records)
        self.table = table

    def new_record(self) -> Record:
        return self.table.new_record()

    def attributes(self) -> List[Dict[str, Any]]:
        return [record.attributes() for record in self]


__all__ = ["Record", "RecordList"]
