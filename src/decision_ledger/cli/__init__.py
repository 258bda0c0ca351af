"""Decision ledger CLI: operator commands over the ledger client."""

from __future__ import annotations

from typing import Callable, TypeVar

import typer
from rich.console import Console

from .. import __version__
from ..client import DecisionLedgerClient
from ..errors import DecisionLedgerError, SubmissionFailed
from ..utils.config_loader import config_loader
from ..utils.logging_config import setup_logging

# ── Shared state ────────────────────────────────────────────────────────────

app = typer.Typer(help="Decision Ledger - auditable record of automated decisions")
console = Console()

payment_app = typer.Typer()
voice_app = typer.Typer()
maintenance_app = typer.Typer()
config_app = typer.Typer()

app.add_typer(payment_app, name="payment", help="Record, inspect and settle rent-payment decisions")
app.add_typer(voice_app, name="voice", help="Record and inspect voice-command authorizations")
app.add_typer(maintenance_app, name="maintenance", help="Record and inspect maintenance decisions")
app.add_typer(config_app, name="config", help="Inspect ledger configuration")

_client: DecisionLedgerClient | None = None

T = TypeVar("T")


# ── Shared helpers ──────────────────────────────────────────────────────────

def get_client() -> DecisionLedgerClient:
    global _client
    if _client is None:
        try:
            settings = config_loader.get_settings()
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        _client = DecisionLedgerClient.from_settings(settings)
    return _client


def set_client(client: DecisionLedgerClient | None) -> None:
    """Install the client used by commands (embedding and tests)."""
    global _client
    _client = client


def ledger_call(fn: Callable[[], T]) -> T:
    """Run a client call, turning ledger errors into a red message and exit 1."""
    try:
        return fn()
    except DecisionLedgerError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/red]")
        if isinstance(e, SubmissionFailed) and e.nonce:
            console.print(f"[yellow]Re-run with --nonce {e.nonce} to retry without duplicating the record[/yellow]")
        raise typer.Exit(1)


@app.callback()
def main(log_level: str = typer.Option("WARNING", "--log-level", help="Log level for JSON logs on stdout")):
    setup_logging(log_level.upper())


@app.command("version")
def show_version():
    """Print the package version."""
    console.print(f"decision-ledger {__version__}")


# ── Register submodule commands (import triggers decorator registration) ────

from . import payment_cmds      # noqa: E402, F401
from . import voice_cmds        # noqa: E402, F401
from . import maintenance_cmds  # noqa: E402, F401
from . import config_cmds       # noqa: E402, F401
