"""Configuration commands: show, check."""

from __future__ import annotations

import typer
import yaml

from . import config_app, console
from ..utils.config_loader import config_loader


MEMORY_BACKEND_NOTE = (
    "The memory backend keeps records only for the life of one process; "
    "records made by one command are gone in the next."
)


def _warn_if_memory(backend: str) -> None:
    if backend == "memory":
        console.print(f"[yellow]Note: {MEMORY_BACKEND_NOTE}[/yellow]")


@config_app.command("show")
def show_config():
    """Print the effective configuration with credentials masked."""
    try:
        settings = config_loader.load_config()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[bold]Config file:[/bold] {config_loader.config_file}")
    console.print(yaml.safe_dump(settings.redacted(), sort_keys=False))
    _warn_if_memory(settings.backend)


@config_app.command("check")
def check_config():
    """Validate configuration and report missing credentials."""
    try:
        settings = config_loader.load_config()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Configuration valid[/green] (backend: {settings.backend})")
    _warn_if_memory(settings.backend)
    if settings.backend == "rpc":
        if not settings.api_key:
            console.print("[yellow]Warning: no api_key set; ledger calls are unauthenticated[/yellow]")
        if not settings.signing_key:
            console.print("[yellow]Warning: no signing_key set; operations are sent unsigned[/yellow]")
