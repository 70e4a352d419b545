"""tenantkb tenant commands.

Commands:
  tenantkb tenant add <id> [--model small|large]   — register a tenant
  tenantkb tenant set-model <id> <small|large>     — change the embedding model
  tenantkb tenant list                             — show tenants and record counts
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from tenantkb.cli.errors import err_no_db, err_tenant_exists, err_tenant_not_found, warn_model_changed
from tenantkb.config import TenantKBConfig, load_config
from tenantkb.db.connection import Database
from tenantkb.db.models import EmbeddingModel, Tenant
from tenantkb.db.repository import Repository
from tenantkb.db.schema import initialize
from tenantkb.errors import TenantNotFoundError

console = Console()

tenant_app = typer.Typer(
    name="tenant",
    help="Register tenants and set their embedding model.",
    add_completion=False,
)

_DEFAULT_DB = Path(".tenantkb.db")


@tenant_app.command("add")
def tenant_add_cmd(
    tenant_id: Annotated[str, typer.Argument(help="Tenant ID.")],
    model: Annotated[
        EmbeddingModel,
        typer.Option("--model", "-m", case_sensitive=False, help="Embedding model: small or large."),
    ] = EmbeddingModel.SMALL,
    name: Annotated[str, typer.Option("--name", help="Display name.")] = "",
    db: Annotated[Path, typer.Option("--db", help="Path to the knowledge database.")] = _DEFAULT_DB,
) -> None:
    """Register a tenant (creates the database if missing)."""
    conn = _open_db(db, load_config())
    try:
        repo = Repository(conn)
        if repo.get_tenant(tenant_id) is not None:
            console.print(err_tenant_exists(tenant_id))
            raise typer.Exit(1)
        repo.add_tenant(Tenant(tenant_id=tenant_id, embedding_model=model, display_name=name))
    finally:
        conn.close()
    console.print(f"[green]✓[/] Registered tenant '{tenant_id}' ({model.value} embeddings)")


@tenant_app.command("set-model")
def tenant_set_model_cmd(
    tenant_id: Annotated[str, typer.Argument(help="Tenant ID.")],
    model: Annotated[
        EmbeddingModel,
        typer.Argument(case_sensitive=False, help="Embedding model: small or large."),
    ],
    db: Annotated[Path, typer.Option("--db", help="Path to the knowledge database.")] = _DEFAULT_DB,
) -> None:
    """Change a tenant's embedding model. Run `tenantkb reembed` afterwards."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    conn = _open_db(db, load_config())
    try:
        repo = Repository(conn)
        try:
            previous = repo.get_embedding_model(tenant_id)
            repo.set_embedding_model(tenant_id, model)
        except TenantNotFoundError:
            console.print(err_tenant_not_found(tenant_id))
            raise typer.Exit(1)
        has_records = repo.count_chunks(tenant_id) > 0
    finally:
        conn.close()

    if previous is model:
        console.print(f"[dim]Tenant '{tenant_id}' already uses {model.value} embeddings.[/]")
        return
    console.print(f"[green]✓[/] Tenant '{tenant_id}': {previous.value} → {model.value}")
    if has_records:
        console.print(warn_model_changed(tenant_id))


@tenant_app.command("list")
def tenant_list_cmd(
    db: Annotated[Path, typer.Option("--db", help="Path to the knowledge database.")] = _DEFAULT_DB,
) -> None:
    """List registered tenants."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    conn = _open_db(db, load_config())
    try:
        repo = Repository(conn)
        tenants = repo.list_tenants()
        rows = [(t, repo.count_chunks(t.tenant_id)) for t in tenants]
    finally:
        conn.close()

    if not rows:
        console.print("[yellow]No tenants registered.[/]\n  Run:  tenantkb tenant add <tenant-id>")
        raise typer.Exit(0)

    table = Table(title="Tenants", show_header=True, header_style="bold")
    table.add_column("Tenant", style="bold")
    table.add_column("Name")
    table.add_column("Embedding model")
    table.add_column("Records", justify="right")
    for t, count in rows:
        table.add_row(t.tenant_id, t.display_name, t.embedding_model.value, str(count))
    console.print(table)


def _open_db(db_path: Path, cfg: TenantKBConfig) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn, cfg.embedding.small_dimensions, cfg.embedding.large_dimensions)
    return conn
