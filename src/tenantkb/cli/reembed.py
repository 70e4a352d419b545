"""tenantkb reembed — recompute a tenant's vectors after an embedding-model change.

Usage:
  tenantkb tenant set-model acme large
  tenantkb reembed --tenant acme
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from tenantkb import llm_client
from tenantkb.cli.errors import err_no_api_key, err_no_db, err_tenant_not_found
from tenantkb.config import TenantKBConfig, load_config
from tenantkb.db.connection import Database
from tenantkb.db.models import EmbeddingModel
from tenantkb.db.repository import Repository
from tenantkb.db.schema import initialize
from tenantkb.errors import TenantNotFoundError
from tenantkb.ingest.reembed import ReEmbedder

console = Console()

_DEFAULT_DB = Path(".tenantkb.db")


def reembed_cmd(
    tenant: Annotated[
        str,
        typer.Option("--tenant", "-t", help="Tenant whose records are re-embedded."),
    ],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the knowledge database."),
    ] = _DEFAULT_DB,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Re-embed every record of a tenant with its configured embedding model."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    cfg = load_config()
    conn = _open_db(db, cfg)
    try:
        repo = Repository(conn)
        try:
            model = repo.get_embedding_model(tenant)
        except TenantNotFoundError:
            console.print(err_tenant_not_found(tenant))
            raise typer.Exit(1)

        model_name = cfg.embedding.small_model if model is EmbeddingModel.SMALL else cfg.embedding.large_model
        try:
            llm_client.validate_api_key(model_name)
        except EnvironmentError:
            console.print(err_no_api_key(model_name))
            raise typer.Exit(1)

        count = repo.count_chunks(tenant)
        if count == 0:
            console.print(f"[yellow]Tenant '{tenant}' has no records — nothing to re-embed.[/]")
            raise typer.Exit(0)

        console.print(
            f"[bold]{count}[/] records will be re-embedded with [bold]{model_name}[/] "
            f"({model.field.value})"
        )
        if not yes and not typer.confirm("  Proceed?", default=True):
            console.print("  [dim]Cancelled.[/]")
            raise typer.Exit(0)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task("Re-embedding…", total=None)

            def _on_batch(done: int, total: int) -> None:
                prog.update(task, completed=done, total=total)

            report = ReEmbedder(repo, cfg.embedding).run(tenant, on_batch=_on_batch)
    finally:
        conn.close()

    console.print(f"[green]✓[/] {report.updated}/{report.total} records re-embedded")
    if report.batches_skipped:
        console.print(
            f"[yellow]⚠ {report.batches_skipped} batch(es) failed.[/] "
            f"Run:  tenantkb reembed --tenant {tenant}  again to retry them."
        )
        raise typer.Exit(1)


def _open_db(db_path: Path, cfg: TenantKBConfig) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn, cfg.embedding.small_dimensions, cfg.embedding.large_dimensions)
    return conn
