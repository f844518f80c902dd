from __future__ import annotations

import sys

import psycopg
import typer
from rich.console import Console
from rich.table import Table

from pgtable.config import get_settings
from pgtable.exceptions import PgTableError
from pgtable.infrastructure.connection import PgConnection
from pgtable.utils.logging import configure_logging

app = typer.Typer(help="pgtable CLI.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"autocommit={settings.db_autocommit} statement_timeout_ms={settings.db_statement_timeout_ms} "
        f"env={settings.app_env} log_level={settings.log_level}"
    )


@app.command()
def describe(
    table: str = typer.Argument(..., help="Table to describe."),
) -> None:
    """
    Print the column names and types of a table, as the row codec sees them.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    try:
        with PgConnection.connect(settings) as conn:
            columns = conn.column_types(table)
    except (PgTableError, psycopg.OperationalError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    if not columns:
        typer.echo(f"Table '{table}' not found.", err=True)
        raise typer.Exit(code=1)

    output = Table(title=f"{table}")
    output.add_column("Column", style="cyan")
    output.add_column("Type", style="magenta")
    for name, type_name in columns.items():
        output.add_row(name, type_name)
    Console().print(output)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
