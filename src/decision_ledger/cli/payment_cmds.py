"""Payment decision commands: record, get, mark-executed, total, id-at."""

from __future__ import annotations

import typer
from rich.table import Table

from . import console, get_client, ledger_call, payment_app


@payment_app.command("record")
def record_payment(
    tenant: str = typer.Option(..., "--tenant", help="Tenant account address"),
    landlord: str = typer.Option(..., "--landlord", help="Landlord account address"),
    amount: str = typer.Option(..., "--amount", help="Amount in USDC, e.g. 1500.00"),
    approved: bool = typer.Option(True, "--approved/--rejected", help="Decision outcome"),
    confidence: int = typer.Option(..., "--confidence", help="Confidence score 0-100"),
    reasoning: str = typer.Option(..., "--reasoning", help="Explanation recorded with the decision"),
    nonce: str = typer.Option("", "--nonce", help="Reuse to retry a previous submission safely"),
):
    """Record a payment decision and wait for confirmation."""
    client = get_client()
    result = ledger_call(
        lambda: client.record_payment_decision(
            tenant=tenant,
            landlord=landlord,
            amount=amount,
            approved=approved,
            confidence_score=confidence,
            reasoning=reasoning,
            nonce=nonce or None,
        )
    )
    console.print("[green]Payment decision recorded.[/green]")
    console.print(f"  Decision ID:      {result.decision_id}")
    console.print(f"  Transaction:      {result.transaction_hash}")
    console.print(f"  Idempotency key:  {result.idempotency_key}")
    console.print(f"  Nonce:            {result.nonce}")


@payment_app.command("get")
def get_payment(decision_id: str):
    """Show a payment decision as currently recorded on the ledger."""
    client = get_client()
    decision = ledger_call(lambda: client.get_payment_decision(decision_id))

    table = Table(title=f"Payment Decision {decision.decision_id}")
    table.add_column("Field")
    table.add_column("Value")
    for key, value in decision.to_dict().items():
        if key == "decision_id":
            continue
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


@payment_app.command("mark-executed")
def mark_executed(
    decision_id: str,
    execution_tx_ref: str = typer.Argument(..., help="Settlement transaction reference"),
):
    """Mark a payment decision as executed by a settlement transaction."""
    client = get_client()
    ledger_call(lambda: client.mark_payment_executed(decision_id, execution_tx_ref))
    console.print(f"[green]Decision {decision_id} marked executed ({execution_tx_ref}).[/green]")


@payment_app.command("total")
def total_payments():
    """Count recorded payment decisions."""
    client = get_client()
    total = ledger_call(client.get_total_payment_decisions)
    console.print(f"Payment decisions: {total}")


@payment_app.command("id-at")
def payment_id_at(index: int):
    """Show the id of the payment decision at a ledger index."""
    client = get_client()
    decision_id = ledger_call(lambda: client.payment_decision_id_at(index))
    console.print(decision_id)
