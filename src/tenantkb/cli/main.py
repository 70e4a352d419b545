"""tenantkb CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer
from rich.console import Console

from tenantkb.cli.errors import err_config
from tenantkb.cli.ingest import add_cmd, ingest_cmd
from tenantkb.cli.reembed import reembed_cmd
from tenantkb.cli.status import status_cmd
from tenantkb.cli.tenant import tenant_app
from tenantkb.config import load_config
from tenantkb.errors import ConfigError
from tenantkb.log import configure_logging

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tenantkb {_installed_version()}")
        raise typer.Exit()


def _installed_version() -> str:
    try:
        return importlib.metadata.version("tenantkb")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


app = typer.Typer(
    name="tenantkb",
    help=(
        "tenantkb — per-tenant knowledge ingestion.\n\n"
        "  tenantkb ingest   Segment, rewrite as Q&A, deduplicate, embed and store text or files.\n"
        "  tenantkb reembed  Recompute vectors after a tenant's embedding model changes."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override logging.level (DEBUG, INFO, WARNING, ERROR)."),
    ] = None,
) -> None:
    """tenantkb — per-tenant knowledge ingestion."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    configure_logging(log_level or cfg.logging.level, json_output=cfg.logging.json)


app.command("ingest")(ingest_cmd)
app.command("add")(add_cmd)
app.command("reembed")(reembed_cmd)
app.command("status")(status_cmd)
app.add_typer(tenant_app, name="tenant")


@app.command("version")
def version_cmd() -> None:
    """Show the installed tenantkb version."""
    typer.echo(f"tenantkb {_installed_version()}")


if __name__ == "__main__":
    app()
