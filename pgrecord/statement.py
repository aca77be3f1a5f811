"""
Small statement builder on top of `psycopg.sql`.

Statements are plain dataclasses holding composable fragments plus their
bound arguments. `build(stmt)` turns any of them into a `(query, args)` pair
ready for `cursor.execute`. Select statements compose with scopes: a scope is
itself a `SelectStatement` whose parts are merged in by `apply`.

Example
-------
    stmt = SelectStatement(columns=sql.SQL("*"), from_=sql.Identifier("t"))
    query, args = build(stmt.apply(where("age > %s", 30)))
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple, Union

from psycopg import sql

TableName = Union[str, Sequence[str], sql.Composable]


@dataclass(frozen=True)
class Predicate:
    """A boolean SQL fragment with the arguments for its placeholders."""

    expr: sql.Composable
    args: Tuple[Any, ...] = ()


def quote_ident(*parts: str) -> sql.Composable:
    """
    Quoted, dot-joined identifier for a query that is executed with arguments.

    psycopg scans the whole query text for placeholders, including the inside
    of quoted identifiers, so a literal `%` in a name is doubled.
    """
    return sql.SQL(sql.Identifier(*parts).as_string(None).replace("%", "%%"))


def identifier(name: TableName) -> sql.Composable:
    """Normalize a table name given as string, tuple of parts, or composable."""
    if isinstance(name, sql.Composable):
        return name
    if isinstance(name, str):
        return quote_ident(name)
    return quote_ident(*name)


def where(condition: Union[str, sql.Composable], *args: Any) -> "SelectStatement":
    """
    Build a scope that adds one predicate.

    Placeholders in `condition` use the psycopg `%s` style.
    """
    expr = sql.SQL(condition) if isinstance(condition, str) else condition
    return SelectStatement(where=[Predicate(expr, tuple(args))])


def _compose_where(predicates: Sequence[Predicate]) -> Tuple[sql.Composable, List[Any]]:
    args: List[Any] = []
    for predicate in predicates:
        args.extend(predicate.args)
    if len(predicates) == 1:
        return sql.SQL(" where {}").format(predicates[0].expr), args
    joined = sql.SQL(" and ").join(sql.SQL("({})").format(p.expr) for p in predicates)
    return sql.SQL(" where {}").format(joined), args


def _compose_returning(returning: Sequence[sql.Composable]) -> sql.Composable:
    if not returning:
        return sql.SQL("")
    return sql.SQL(" returning {}").format(sql.SQL(", ").join(returning))


@dataclass
class SelectStatement:
    columns: Optional[sql.Composable] = None
    from_: Optional[sql.Composable] = None
    where: List[Predicate] = field(default_factory=list)
    order_by: List[sql.Composable] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None

    def apply(self, *scopes: "SelectStatement") -> "SelectStatement":
        """
        Return a new statement with every scope merged in, left to right.

        Column lists and sources replace the current ones, predicates and
        orderings accumulate, limit and offset override.
        """
        stmt = dataclasses.replace(self, where=list(self.where), order_by=list(self.order_by))
        for scope in scopes:
            if scope.columns is not None:
                stmt.columns = scope.columns
            if scope.from_ is not None:
                stmt.from_ = scope.from_
            stmt.where.extend(scope.where)
            stmt.order_by.extend(scope.order_by)
            if scope.limit is not None:
                stmt.limit = scope.limit
            if scope.offset is not None:
                stmt.offset = scope.offset
        return stmt

    def compose(self) -> Tuple[sql.Composable, List[Any]]:
        if self.columns is None:
            raise ValueError("select statement has no columns")
        parts: List[sql.Composable] = [sql.SQL("select {}").format(self.columns)]
        args: List[Any] = []
        if self.from_ is not None:
            parts.append(sql.SQL(" from {}").format(self.from_))
        if self.where:
            clause, where_args = _compose_where(self.where)
            parts.append(clause)
            args.extend(where_args)
        if self.order_by:
            parts.append(sql.SQL(" order by {}").format(sql.SQL(", ").join(self.order_by)))
        if self.limit is not None:
            parts.append(sql.SQL(" limit %s"))
            args.append(self.limit)
        if self.offset is not None:
            parts.append(sql.SQL(" offset %s"))
            args.append(self.offset)
        return sql.Composed(parts), args


@dataclass
class InsertStatement:
    table: sql.Composable
    columns: List[sql.Composable] = field(default_factory=list)
    values: List[Any] = field(default_factory=list)
    returning: List[sql.Composable] = field(default_factory=list)

    def compose(self) -> Tuple[sql.Composable, List[Any]]:
        if len(self.columns) != len(self.values):
            raise ValueError("insert statement has mismatched columns and values")
        if self.columns:
            body = sql.SQL("insert into {} ({}) values ({})").format(
                self.table,
                sql.SQL(", ").join(self.columns),
                sql.SQL(", ").join(sql.Placeholder() for _ in self.values),
            )
        else:
            body = sql.SQL("insert into {} default values").format(self.table)
        return sql.Composed([body, _compose_returning(self.returning)]), list(self.values)


@dataclass
class UpdateStatement:
    table: sql.Composable
    assignments: List[Predicate] = field(default_factory=list)
    where: List[Predicate] = field(default_factory=list)
    returning: List[sql.Composable] = field(default_factory=list)

    def apply(self, *scopes: SelectStatement) -> "UpdateStatement":
        stmt = dataclasses.replace(self, where=list(self.where))
        for scope in scopes:
            stmt.where.extend(scope.where)
        return stmt

    def compose(self) -> Tuple[sql.Composable, List[Any]]:
        if not self.assignments:
            raise ValueError("update statement has no assignments")
        args: List[Any] = []
        for assignment in self.assignments:
            args.extend(assignment.args)
        parts: List[sql.Composable] = [
            sql.SQL("update {} set {}").format(
                self.table, sql.SQL(", ").join(a.expr for a in self.assignments)
            )
        ]
        if self.where:
            clause, where_args = _compose_where(self.where)
            parts.append(clause)
            args.extend(where_args)
        parts.append(_compose_returning(self.returning))
        return sql.Composed(parts), args


@dataclass
class DeleteStatement:
    table: sql.Composable
    where: List[Predicate] = field(default_factory=list)

    def apply(self, *scopes: SelectStatement) -> "DeleteStatement":
        stmt = dataclasses.replace(self, where=list(self.where))
        for scope in scopes:
            stmt.where.extend(scope.where)
        return stmt

    def compose(self) -> Tuple[sql.Composable, List[Any]]:
        parts: List[sql.Composable] = [sql.SQL("delete from {}").format(self.table)]
        args: List[Any] = []
        if self.where:
            clause, args = _compose_where(self.where)
            parts.append(clause)
        return sql.Composed(parts), args


Statement = Union[SelectStatement, InsertStatement, UpdateStatement, DeleteStatement]


def build(stmt: Statement) -> Tuple[sql.Composable, List[Any]]:
    """Turn a statement into a query and its positional arguments."""
    return stmt.compose()


__all__ = [
    "DeleteStatement",
    "InsertStatement",
    "Predicate",
    "SelectStatement",
    "Statement",
    "TableName",
    "UpdateStatement",
    "build",
    "identifier",
    "quote_ident",
    "where",
]
