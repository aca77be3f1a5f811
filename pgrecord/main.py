from __future__ import annotations

import json
import sys
from typing import List, Optional

import typer
from psycopg import Connection

from pgrecord.config import get_settings
from pgrecord.errors import NotFoundError, TableNotFoundError
from pgrecord.infrastructure.db_factory import get_sync_connection
from pgrecord.reporter import render_records, render_table
from pgrecord.statement import SelectStatement
from pgrecord.table import Table
from pgrecord.utils.logging import configure_logging

app = typer.Typer(help="pgrecord CLI: inspect tables and rows via runtime schema discovery.")

SchemaOption = typer.Option(None, "--schema", "-n", help="Schema of the table.")
DsnOption = typer.Option(None, "--dsn", help="Connection string overriding DB_* settings.")


def _load_table(conn: Connection, table: str, schema: Optional[str]) -> Table:
    """
    Load and finalize a table, exiting with status 1 when it does not exist.
    """
    loaded = Table((schema, table) if schema else (table,))
    try:
        loaded.load_all_columns(conn)
    except TableNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    loaded.finalize()
    return loaded


@app.callback()
def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"statement_timeout_ms={settings.db_statement_timeout_ms} "
        f"pool=({settings.db_pool_min_size},{settings.db_pool_max_size}) "
        f"log_level={settings.log_level}"
    )


@app.command()
def describe(
    table: str = typer.Argument(..., help="Table name."),
    schema: Optional[str] = SchemaOption,
    dsn: Optional[str] = DsnOption,
) -> None:
    """
    Show the columns discovered for a table and the select query built from them.
    """
    with get_sync_connection(dsn) as conn:
        loaded = _load_table(conn, table, schema)
    render_table(loaded)


@app.command()
def find(
    table: str = typer.Argument(..., help="Table name."),
    pk: List[str] = typer.Argument(..., help="Primary key value(s), in key column order."),
    schema: Optional[str] = SchemaOption,
    dsn: Optional[str] = DsnOption,
) -> None:
    """
    Print one row, looked up by primary key, as JSON.
    """
    with get_sync_connection(dsn) as conn:
        loaded = _load_table(conn, table, schema)
        try:
            record = loaded.find_by_pk(conn, *pk)
        except NotFoundError:
            typer.echo(f"{loaded.display_name}: no row with primary key {pk}", err=True)
            raise typer.Exit(code=1)
    typer.echo(json.dumps(record.attributes(), indent=2, default=str))


@app.command("list")
def list_records(
    table: str = typer.Argument(..., help="Table name."),
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Maximum rows to show."),
    schema: Optional[str] = SchemaOption,
    dsn: Optional[str] = DsnOption,
) -> None:
    """
    Show the first rows of a table.
    """
    with get_sync_connection(dsn) as conn:
        loaded = _load_table(conn, table, schema)
        records = loaded.select_all(conn, SelectStatement(limit=limit))
    render_records(loaded, records.attributes())


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
