"""
Runtime-discovered table metadata.

A Table goes through two phases:

1. build: construct with a (qualified) name, then `load_all_columns` reads the
   catalog;
2. freeze: `finalize` precomputes every SQL fragment the records need and
   locks the instance.

After `finalize` a Table is immutable and may be shared by any number of
threads without locking. Statement-producing methods refuse to run before it.

Example
-------
    table = Table(("public", "people"))
    with get_sync_connection() as conn:
        table.load_all_columns(conn)
        table.finalize()
        person = table.find_by_pk(conn, 1)
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple, Type

from psycopg import sql

from pgrecord import crud
from pgrecord.capabilities import Queryer
from pgrecord.domain.models import Column
from pgrecord.errors import (
    MissingPrimaryKeyError,
    TableFinalizedError,
    TableNotFinalizedError,
    TableNotFoundError,
    TableNotLoadedError,
)
from pgrecord.record import Record, RecordList
from pgrecord.statement import (
    InsertStatement,
    Predicate,
    SelectStatement,
    UpdateStatement,
    quote_ident,
)
from pgrecord.utils.logging import get_logger

log = get_logger(__name__)

# One row per user column: name, type oid, not null, member of the primary key.
CATALOG_QUERY = sql.SQL(
    "select a.attname, a.atttypid, a.attnotnull,"
    " coalesce(a.attnum = any(i.indkey), false)"
    " from pg_catalog.pg_attribute a"
    " left join pg_catalog.pg_index i on i.indrelid = a.attrelid and i.indisprimary"
    " where a.attrelid = to_regclass(%s) and a.attnum > 0 and not a.attisdropped"
    " order by a.attnum"
)


class Table:
    """
    Column metadata and cached SQL fragments for one database table.

    Parameters
    ----------
    name : str | Sequence[str]
        Table name, optionally schema-qualified as a tuple of parts.
    record_class : type, optional
        Record subclass allocated by `new_record`; subclasses add hooks such
        as `before_save` or `map_pg_error`.
    """

    def __init__(
        self, name: Sequence[str] | str, record_class: Optional[Type[Record]] = None
    ) -> None:
        self._finalized = False
        self.name: Tuple[str, ...] = (name,) if isinstance(name, str) else tuple(name)
        self.record_class: Type[Record] = record_class or Record
        self.columns: Tuple[Column, ...] = ()

    def __setattr__(self, key: str, value: Any) -> None:
        if getattr(self, "_finalized", False):
            raise TableFinalizedError(f"table {self.display_name} is finalized")
        object.__setattr__(self, key, value)

    def __repr__(self) -> str:
        return (
            f"Table({self.display_name!r}, columns={len(self.columns)}, "
            f"finalized={self._finalized})"
        )

    @property
    def display_name(self) -> str:
        return ".".join(self.name)

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    # Loading

    def catalog_query(self) -> Tuple[sql.Composable, list]:
        """Catalog query and arguments describing this table's columns."""
        return CATALOG_QUERY, [sql.Identifier(*self.name).as_string(None)]

    def absorb_catalog_rows(self, rows: Iterable[Sequence[Any]]) -> None:
        """Populate columns from catalog rows; raise if there are none."""
        loaded = []
        for row in rows:
            name, oid, not_null, primary_key = row.values() if isinstance(row, Mapping) else row
            loaded.append(Column(name=name, oid=oid, not_null=not_null, primary_key=primary_key))
        columns = tuple(loaded)
        if not columns:
            raise TableNotFoundError(self.name)
        self.columns = columns
        log.info(
            f"Loaded {len(columns)} columns for {self.display_name}",
            extra={"table": self.display_name, "columns": len(columns)},
        )

    def load_all_columns(self, db: Queryer) -> None:
        """
        Read the table's columns from the catalog, in ordinal order.

        Raises
        ------
        TableNotFoundError
            If the catalog reports no columns (missing table, or no user columns).
        psycopg.Error
            If the catalog query fails.
        """
        query, args = self.catalog_query()
        with db.execute(query, args) as cur:
            rows = cur.fetchall()
        self.absorb_catalog_rows(rows)

    def finalize(self) -> None:
        """
        Precompute SQL fragments and freeze the table.

        Must be called exactly once, after the columns are loaded.
        """
        if self._finalized:
            raise TableFinalizedError(f"table {self.display_name} is already finalized")
        if not self.columns:
            raise TableNotLoadedError(f"table {self.display_name} has no columns loaded")

        qualified = {c.name: quote_ident(*self.name, c.name) for c in self.columns}
        bare = {c.name: quote_ident(c.name) for c in self.columns}
        pk_columns = tuple(c for c in self.columns if c.primary_key)

        self._identifier = quote_ident(*self.name)
        self._select_columns = sql.SQL(", ").join(qualified[c.name] for c in self.columns)
        # Display text: identifiers are quoted but not %-escaped.
        self._select_query = sql.SQL("select {} from {}").format(
            sql.SQL(", ").join(sql.Identifier(*self.name, c.name) for c in self.columns),
            sql.Identifier(*self.name),
        ).as_string(None)
        self._column_index = MappingProxyType({c.name: c for c in self.columns})
        self._insert_identifiers = MappingProxyType(bare)
        self._set_clauses = MappingProxyType(
            {name: sql.SQL("{} = %s").format(ident) for name, ident in bare.items()}
        )
        self.pk_columns = pk_columns
        self._pk_predicate = (
            sql.SQL(" and ").join(
                sql.SQL("{} = %s").format(qualified[c.name]) for c in pk_columns
            )
            if pk_columns
            else None
        )
        self._finalized = True

    def _require_finalized(self) -> None:
        if not self._finalized:
            raise TableNotFinalizedError(f"table {self.display_name} is not finalized")

    # Statements

    def has_column(self, name: str) -> bool:
        self._require_finalized()
        return name in self._column_index

    def select_query(self) -> str:
        """Text of the unscoped select, e.g. `select "t"."id" from "t"`."""
        self._require_finalized()
        return self._select_query

    def select_statement(self) -> SelectStatement:
        self._require_finalized()
        return SelectStatement(columns=self._select_columns, from_=self._identifier)

    def pk_scope(self, *values: Any) -> SelectStatement:
        """Scope restricting a statement to the row with the given primary key."""
        self._require_finalized()
        if self._pk_predicate is None:
            raise MissingPrimaryKeyError(self.name)
        if len(values) != len(self.pk_columns):
            raise ValueError(
                f"table {self.display_name} has {len(self.pk_columns)} primary key "
                f"column(s), got {len(values)} value(s)"
            )
        return SelectStatement(where=[Predicate(self._pk_predicate, tuple(values))])

    def insert_statement(self, values: Mapping[str, Any]) -> InsertStatement:
        """
        Insert of the given column values, returning every other column.

        `values` keys must be column names; they are emitted in column order.
        """
        self._require_finalized()
        supplied = [c.name for c in self.columns if c.name in values]
        return InsertStatement(
            table=self._identifier,
            columns=[self._insert_identifiers[name] for name in supplied],
            values=[values[name] for name in supplied],
            returning=[
                self._insert_identifiers[c.name] for c in self.columns if c.name not in values
            ],
        )

    def update_statement(
        self, values: Mapping[str, Any], pk_values: Sequence[Any]
    ) -> UpdateStatement:
        """Update of the given column values for the row with key `pk_values`."""
        self._require_finalized()
        assignments = [
            Predicate(self._set_clauses[c.name], (values[c.name],))
            for c in self.columns
            if c.name in values
        ]
        return UpdateStatement(table=self._identifier, assignments=assignments).apply(
            self.pk_scope(*pk_values)
        )

    # Records

    def new_record(self) -> Record:
        """Allocate a new, non-persisted record with every attribute unset."""
        self._require_finalized()
        return self.record_class(self)

    def new_collection(self) -> RecordList:
        self._require_finalized()
        return RecordList(self)

    def find_by_pk(self, db: Queryer, *pk_values: Any) -> Record:
        """
        Load the record with the given primary key.

        Raises NotFoundError if no row has that key.
        """
        scope = self.pk_scope(*pk_values)
        record = self.new_record()
        crud.select_one(db, record, scope)
        return record

    def select_all(self, db: Queryer, *scopes: SelectStatement) -> RecordList:
        """Load every record matching scopes, in database order."""
        records = self.new_collection()
        crud.select_all(db, records, *scopes)
        return records


__all__ = ["CATALOG_QUERY", "Table"]
