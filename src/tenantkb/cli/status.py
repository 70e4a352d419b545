"""tenantkb status — knowledge diagnostics for one tenant.

Shows record counts per category and per vector field, and flags records
whose vector does not match the tenant's configured embedding model (stale
after a model change, or missing).
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tenantkb.cli.errors import err_no_db, err_tenant_not_found
from tenantkb.config import TenantKBConfig, load_config
from tenantkb.db.connection import Database
from tenantkb.db.models import VectorField
from tenantkb.db.repository import Repository
from tenantkb.db.schema import initialize

console = Console()

_DEFAULT_DB = Path(".tenantkb.db")


def status_cmd(
    tenant: Annotated[
        str,
        typer.Option("--tenant", "-t", help="Tenant to diagnose."),
    ],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the knowledge database."),
    ] = _DEFAULT_DB,
) -> None:
    """Show a tenant's knowledge records and vector consistency."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    conn = _open_db(db, load_config())
    try:
        repo = Repository(conn)
        t = repo.get_tenant(tenant)
        if t is None:
            console.print(err_tenant_not_found(tenant))
            raise typer.Exit(1)
        total = repo.count_chunks(tenant)
        by_category = repo.count_by_category(tenant)
        by_field = repo.count_by_field(tenant)
    finally:
        conn.close()

    expected = t.embedding_model.field
    stale = total - by_field[expected]

    lines = [
        f"Tenant:          [bold]{t.tenant_id}[/]" + (f"  ({t.display_name})" if t.display_name else ""),
        f"Embedding model: {t.embedding_model.value} → {expected.value}",
        f"Records:         {total}",
    ]
    console.print(Panel("\n".join(lines), title="Knowledge base", expand=False))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Category")
    table.add_column("Records", justify="right")
    for category, count in by_category.items():
        table.add_row(category.value, str(count))
    console.print(table)

    vectors = Table(show_header=True, header_style="bold")
    vectors.add_column("Vector field")
    vectors.add_column("Records", justify="right")
    for field in VectorField:
        marker = " [green]✓[/]" if field is expected else ""
        vectors.add_row(field.value + marker, str(by_field[field]))
    vectors.add_row("(none)", str(by_field[None]))
    console.print(vectors)

    if stale:
        console.print(
            f"[yellow]⚠ {stale} record(s) have no {expected.value} vector.[/]\n"
            f"  Run:  tenantkb reembed --tenant {t.tenant_id}"
        )
    elif total:
        console.print("[green]✓[/] All vectors match the configured model")


def _open_db(db_path: Path, cfg: TenantKBConfig) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn, cfg.embedding.small_dimensions, cfg.embedding.large_dimensions)
    return conn
