from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table as RichTable

from pgrecord.table import Table


def _format_value(value: Any) -> str:
    if value is None:
        return "[dim]NULL[/dim]"
    return escape(str(value))


def build_columns_table(table: Table) -> RichTable:
    """
    Build a rich table describing the columns of a loaded table.
    """
    rich_table = RichTable(
        title=f"{table.display_name} ({len(table.columns)} columns)",
        box=box.SIMPLE_HEAVY,
        show_lines=False,
    )
    rich_table.add_column("#", justify="right", style="dim")
    rich_table.add_column("Column", style="bold cyan")
    rich_table.add_column("Type OID", justify="right")
    rich_table.add_column("Not Null", justify="center")
    rich_table.add_column("Primary Key", justify="center")

    for position, column in enumerate(table.columns, start=1):
        rich_table.add_row(
            str(position),
            column.name,
            str(column.oid),
            "yes" if column.not_null else "",
            "[bold green]yes[/bold green]" if column.primary_key else "",
        )
    return rich_table


def build_records_table(table: Table, rows: Iterable[Dict[str, Any]]) -> RichTable:
    """
    Build a rich table with one row per record attribute mapping.
    """
    rich_table = RichTable(title=table.display_name, box=box.SIMPLE_HEAVY)
    for name in table.column_names:
        rich_table.add_column(name)
    for attributes in rows:
        rich_table.add_row(*(_format_value(attributes[name]) for name in table.column_names))
    return rich_table


def render_table(table: Table, console: Optional[Console] = None) -> None:
    """Print a finalized table's columns and its select query."""
    console = console or Console()
    console.print(build_columns_table(table))
    console.print(f"[bold]select query:[/bold] {escape(table.select_query())}", highlight=False)


def render_records(
    table: Table, rows: Iterable[Dict[str, Any]], console: Optional[Console] = None
) -> None:
    console = console or Console()
    console.print(build_records_table(table, rows))


__all__ = ["build_columns_table", "build_records_table", "render_records", "render_table"]
