"""Voice authorization commands."""

from __future__ import annotations

import typer

from . import console, get_client, ledger_call, voice_app


@voice_app.command("record")
def record_voice(
    user: str = typer.Option(..., "--user", help="Account address of the speaker"),
    command_type: str = typer.Option(..., "--type", help="Command category, e.g. pay_rent"),
    command: str = typer.Option(..., "--command", help="Transcribed voice command"),
    authorized: bool = typer.Option(True, "--authorized/--denied"),
    nonce: str = typer.Option("", "--nonce", help="Reuse to retry a previous submission safely"),
):
    """Record a voice-command authorization."""
    client = get_client()
    result = ledger_call(
        lambda: client.record_voice_authorization(
            user=user,
            command_type=command_type,
            command=command,
            authorized=authorized,
            nonce=nonce or None,
        )
    )
    console.print("[green]Voice authorization recorded.[/green]")
    console.print(f"  Auth ID:          {result.auth_id}")
    console.print(f"  Transaction:      {result.transaction_hash}")
    console.print(f"  Idempotency key:  {result.idempotency_key}")
    console.print(f"  Nonce:            {result.nonce}")


@voice_app.command("get")
def get_voice(auth_id: str):
    client = get_client()
    auth = ledger_call(lambda: client.get_voice_authorization(auth_id))
    status = "[green]authorized[/green]" if auth.authorized else "[red]denied[/red]"
    console.print(f"{auth.auth_id}: {auth.command_type} by {auth.user}: {status}")
    console.print(f"  Command:    {auth.command}")
    console.print(f"  Recorded:   {auth.timestamp.isoformat()}")


@voice_app.command("total")
def total_voice():
    client = get_client()
    console.print(f"Voice authorizations: {ledger_call(client.get_total_voice_authorizations)}")
