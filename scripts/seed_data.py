"""
Sample schema and data seeding for development databases.

Creates the `user` table (uuid ids generated client-side) and the `task`
table (serial ids generated by the database, with a deferrable unique
`position` so a batch save can reorder tasks), then fills `user` with
deterministic pseudo-random rows using batch inserts.
"""

from __future__ import annotations

import random
import sys
import time
from typing import Any, Dict, List

import typer

from pgtable.constraints import Constraint, DeferConfig
from pgtable.ids import generate_uuid
from pgtable.infrastructure.connection import PgConnection
from pgtable.query_builder import build_batch_insert
from pgtable.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Create the sample schema and seed it with synthetic rows.")
log = get_logger(__name__)


def _connect(dsn: str | None) -> PgConnection:
    return PgConnection.connect(dsn=dsn)


def _create_tables(conn: PgConnection, drop: bool) -> None:
    user_table = conn.escape_identifier("user")
    task_table = conn.escape_identifier("task")

    with conn.transaction():
        if drop:
            conn.execute(f"DROP TABLE IF EXISTS {task_table}")
            conn.execute(f"DROP TABLE IF EXISTS {user_table}")

        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {user_table} (
                id uuid PRIMARY KEY,
                name varchar(255) NOT NULL,
                email varchar(255) NOT NULL,
                nickname varchar(255),
                age integer,
                is_active boolean NOT NULL DEFAULT TRUE,
                balance numeric(12, 2) NOT NULL DEFAULT 0
            )
            """
        )
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {task_table} (
                id serial PRIMARY KEY,
                title text NOT NULL,
                position integer NOT NULL,
                done boolean NOT NULL DEFAULT FALSE
            )
            """
        )

        position_unique = Constraint.unique(
            conn, "task", "task_position_unique", ["position"], DeferConfig.INITIALLY_IMMEDIATE
        )
        existing = conn.execute(
            "SELECT 1 FROM pg_catalog.pg_constraint"
            f" WHERE conname = {conn.escape_literal(position_unique.name)}"
        )
        if not existing:
            conn.execute(position_unique.sql_create)


def _generate_user_rows(rows: int, seed: int) -> List[Dict[str, Any]]:
    rng = random.Random(seed)
    first_names = ["alice", "bob", "carol", "dave", "erin", "frank"]
    generated: List[Dict[str, Any]] = []

    for i in range(rows):
        name = f"{rng.choice(first_names)}{i}"
        generated.append(
            {
                "id": generate_uuid(),
                "name": name,
                "email": f"{name}@example.com",
                "nickname": name[:3] if rng.random() < 0.5 else None,
                "age": rng.randint(18, 90),
                "is_active": rng.choice([True, False]),
                "balance": round(rng.uniform(0, 10_000), 2),
            }
        )
    return generated


def _insert_rows(conn: PgConnection, table: str, rows: List[Dict[str, Any]], batch_size: int) -> int:
    inserted = 0
    for start in range(0, len(rows), batch_size):
        batch = rows[start : start + batch_size]
        conn.execute(build_batch_insert(conn, table, batch))
        inserted += len(batch)
        log.debug("Inserted batch", extra={"table": table, "rows": inserted})
    return inserted


@app.command()
def schema(
    drop: bool = typer.Option(
        False,
        "--drop",
        help="Drop the sample tables before creating them.",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
) -> None:
    """
    Create the sample `user` and `task` tables.
    """
    with _connect(dsn) as conn:
        _create_tables(conn, drop=drop)
    typer.echo("Schema ready (tables: user, task).")


@app.command()
def users(
    rows: int = typer.Option(
        1_000,
        "--rows",
        "-r",
        help="Number of users to generate.",
    ),
    batch_size: int = typer.Option(
        500,
        "--batch-size",
        "-b",
        help="Rows per INSERT statement.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
) -> None:
    """
    Generate synthetic users and insert them with batch INSERTs.
    """
    configure_logging(level="INFO", force=False)
    start = time.perf_counter()
    generated = _generate_user_rows(rows, seed)

    with _connect(dsn) as conn:
        inserted = _insert_rows(conn, "user", generated, batch_size)

    duration = time.perf_counter() - start
    typer.echo(
        f"Inserted {inserted:,} users in {duration:.2f}s "
        f"({inserted / duration if duration > 0 else 0:,.0f} rows/s, batch={batch_size}, seed={seed})."
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
