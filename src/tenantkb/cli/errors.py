"""tenantkb rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from tenantkb.cli.errors import err_tenant_not_found
    console.print(err_tenant_not_found("acme"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape

from tenantkb.llm_client import required_env_var


def err_no_api_key(model: str) -> str:
    """No API key for the provider of *model*."""
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = required_env_var(model) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}' (model {escape(model)}).\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".tenantkb.db") -> str:
    """No database found at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{escape(db_path)}'.\n"
        "  Run:  tenantkb tenant add <tenant-id>"
    )


def err_tenant_not_found(tenant_id: str) -> str:
    """The tenant is not registered."""
    return (
        f"[red]Error:[/] Tenant '{escape(tenant_id)}' is not registered.\n"
        f"  Run:  tenantkb tenant add {escape(tenant_id)} --model small"
    )


def err_tenant_exists(tenant_id: str) -> str:
    return (
        f"[yellow]Tenant already registered:[/] '{escape(tenant_id)}'\n"
        f"  To change its embedding model run:  tenantkb tenant set-model {escape(tenant_id)} large"
    )


def err_no_input() -> str:
    """Neither --text nor --file given."""
    return (
        "[red]Error:[/] Nothing to ingest.\n"
        "  Use:  --text 'FAQ ...'  or  --file knowledge.pdf"
    )


def err_both_inputs() -> str:
    return (
        "[red]Error:[/] --text and --file are mutually exclusive.\n"
        "  Ingest them in two separate runs."
    )


def err_extraction(path: str, detail: str) -> str:
    """File could not be turned into text."""
    return (
        f"[red]Error:[/] Could not read '{escape(path)}': {escape(detail)}\n"
        "  Supported kinds: pdf, docx, csv, txt  (override with --kind)"
    )


def err_config(detail: str) -> str:
    """Config file is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration: {escape(detail)}\n"
        "  Fix tenantkb.yaml or ~/.tenantkb/config.yaml and retry."
    )


def warn_model_changed(tenant_id: str) -> str:
    """Shown after tenant set-model — stored vectors are now stale."""
    return (
        "[yellow]⚠[/] Stored vectors were computed with the previous model.\n"
        f"  Run:  tenantkb reembed --tenant {escape(tenant_id)}"
    )
