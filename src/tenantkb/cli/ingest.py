"""tenantkb ingest / add — push tenant text into the knowledge store.

  tenantkb ingest --tenant acme --text "FAQ ..."        pasted text
  tenantkb ingest --tenant acme --file menu.pdf         pdf / docx / csv / txt upload
  tenantkb add --tenant acme --category PRICE "..."     one record, stored as typed

Inputs over ingest.macro_batch_chars are cut into slices and ingested one
slice at a time; slices already written stay written if a later one fails.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from tenantkb import llm_client
from tenantkb.categories import Category
from tenantkb.cli.errors import (
    err_both_inputs,
    err_extraction,
    err_no_api_key,
    err_no_input,
    err_tenant_not_found,
)
from tenantkb.config import TenantKBConfig, load_config
from tenantkb.db.connection import Database
from tenantkb.db.models import EmbeddingModel
from tenantkb.db.repository import Repository
from tenantkb.db.schema import initialize
from tenantkb.errors import ExtractionError, TenantNotFoundError
from tenantkb.ingest.extract import detect_kind, extract_text
from tenantkb.ingest.pipeline import IngestionOrchestrator, IngestReport, MacroReport

console = Console()

_DEFAULT_DB = Path(".tenantkb.db")


def ingest_cmd(
    tenant: Annotated[
        str,
        typer.Option("--tenant", "-t", help="Tenant ID that owns the knowledge."),
    ],
    text: Annotated[
        str | None,
        typer.Option("--text", help="Text to ingest (category headers allowed)."),
    ] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", exists=True, dir_okay=False, help="File to ingest."),
    ] = None,
    kind: Annotated[
        str | None,
        typer.Option("--kind", help="File kind: pdf, docx, csv, txt (default: from extension)."),
    ] = None,
    category: Annotated[
        Category,
        typer.Option("--category", "-c", case_sensitive=False, help="Category for text before the first header."),
    ] = Category.FAQ,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the knowledge database."),
    ] = _DEFAULT_DB,
) -> None:
    """Segment, synthesize, deduplicate, embed, and store tenant knowledge."""
    if text is None and file is None:
        console.print(err_no_input())
        raise typer.Exit(1)
    if text is not None and file is not None:
        console.print(err_both_inputs())
        raise typer.Exit(1)

    if file is not None:
        try:
            content = extract_text(file.read_bytes(), kind or detect_kind(file))
        except ExtractionError as exc:
            console.print(err_extraction(str(file), str(exc)))
            raise typer.Exit(1)
    else:
        content = text or ""

    if not content.strip():
        console.print("[yellow]Nothing to ingest (input is empty).[/]")
        raise typer.Exit(0)

    cfg = load_config()
    conn = _open_db(db, cfg)
    try:
        repo = Repository(conn)
        _require_tenant_and_keys(repo, cfg, tenant)
        orchestrator = IngestionOrchestrator(repo, cfg)
        report = _run_with_progress(orchestrator, tenant, content, category)
    finally:
        conn.close()

    _print_report(report)
    if not report.ok:
        raise typer.Exit(1)


def add_cmd(
    content: Annotated[str, typer.Argument(help="Record content, stored as given.")],
    tenant: Annotated[
        str,
        typer.Option("--tenant", "-t", help="Tenant ID that owns the knowledge."),
    ],
    category: Annotated[
        Category,
        typer.Option("--category", "-c", case_sensitive=False, help="Record category."),
    ] = Category.FAQ,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the knowledge database."),
    ] = _DEFAULT_DB,
) -> None:
    """Add one knowledge record without segmentation or Q&A synthesis."""
    if not content.strip():
        console.print("[yellow]Nothing to add (content is empty).[/]")
        raise typer.Exit(0)

    cfg = load_config()
    conn = _open_db(db, cfg)
    try:
        repo = Repository(conn)
        _require_tenant_and_keys(repo, cfg, tenant, generation=False)
        report = IngestionOrchestrator(repo, cfg).add_entry(tenant, category, content)
    finally:
        conn.close()

    if report.written:
        console.print(f"[green]✓[/] Stored 1 {category.value} record")
    elif report.duplicates:
        console.print("[dim]↷ Identical content already stored — nothing written[/]")
    else:
        console.print("[red]✗ Embedding failed — nothing written[/]")
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _run_with_progress(
    orchestrator: IngestionOrchestrator, tenant: str, content: str, category: Category
) -> MacroReport:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task("Ingesting…", total=None)

        def _on_batch(done: int, total: int) -> None:
            prog.update(task, description="Embedding…", completed=done, total=total)

        def _on_slice(number: int, total: int, report: IngestReport) -> None:
            console.print(
                f"  [green]✓[/] Slice {number}/{total}: "
                f"{report.written} written, {report.duplicates} duplicates"
            )
            prog.update(task, description="Ingesting…", completed=0, total=None)

        return orchestrator.ingest_macro(
            tenant, content, category, on_slice=_on_slice, on_batch=_on_batch
        )


def _print_report(report: MacroReport) -> None:
    totals = report.totals
    console.print(
        f"[bold]{totals.written}[/] records written · {totals.duplicates} duplicates skipped · "
        f"{totals.batches_skipped} batches skipped"
    )
    if totals.synthesis_fallbacks:
        console.print(f"  [dim]{totals.synthesis_fallbacks} part(s) stored without Q&A rewrite[/]")
    if not report.ok:
        console.print(
            f"[red]✗ Slice {report.failed_slice}/{report.slices_total} failed:[/] {report.error}\n"
            f"  Slices 1–{len(report.completed)} are committed. Re-run the same input to resume;\n"
            "  already stored content is skipped."
        )


def _require_tenant_and_keys(
    repo: Repository, cfg: TenantKBConfig, tenant: str, generation: bool = True
) -> None:
    """Exit with an actionable error for an unknown tenant or a missing API key."""
    try:
        model = repo.get_embedding_model(tenant)
    except TenantNotFoundError:
        console.print(err_tenant_not_found(tenant))
        raise typer.Exit(1)

    names = [cfg.embedding.small_model if model is EmbeddingModel.SMALL else cfg.embedding.large_model]
    if generation:
        names.insert(0, cfg.generation.model)
    for name in names:
        try:
            llm_client.validate_api_key(name)
        except EnvironmentError:
            console.print(err_no_api_key(name))
            raise typer.Exit(1)


def _open_db(db_path: Path, cfg: TenantKBConfig) -> sqlite3.Connection:
    """Open (or create) the knowledge database and run migrations."""
    conn = Database(db_path).connect()
    initialize(conn, cfg.embedding.small_dimensions, cfg.embedding.large_dimensions)
    return conn
