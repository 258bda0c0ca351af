"""Maintenance decision commands."""

from __future__ import annotations

import typer
from rich.table import Table

from . import console, get_client, ledger_call, maintenance_app


@maintenance_app.command("record")
def record_maintenance(
    request_id: int = typer.Option(..., "--request-id", help="Maintenance request number"),
    category: str = typer.Option(..., "--category"),
    priority: str = typer.Option(..., "--priority"),
    cost_min: str = typer.Option(..., "--cost-min", help="Estimated minimum cost in USDC"),
    cost_max: str = typer.Option(..., "--cost-max", help="Estimated maximum cost in USDC"),
    urgency: int = typer.Option(..., "--urgency", help="Urgency score 1-10"),
    reasoning: str = typer.Option(..., "--reasoning"),
    nonce: str = typer.Option("", "--nonce"),
):
    """Record a maintenance triage decision."""
    client = get_client()
    result = ledger_call(
        lambda: client.record_maintenance_decision(
            request_id=request_id,
            category=category,
            priority=priority,
            estimated_cost_min=cost_min,
            estimated_cost_max=cost_max,
            reasoning=reasoning,
            urgency_score=urgency,
            nonce=nonce or None,
        )
    )
    console.print("[green]Maintenance decision recorded.[/green]")
    console.print(f"  Decision ID:  {result.decision_id}")
    console.print(f"  Transaction:  {result.transaction_hash}")
    console.print(f"  Nonce:        {result.nonce}")


@maintenance_app.command("get")
def get_maintenance(decision_id: str):
    client = get_client()
    decision = ledger_call(lambda: client.get_maintenance_decision(decision_id))
    table = Table(title=f"Maintenance Decision {decision.decision_id}")
    table.add_column("Field")
    table.add_column("Value")
    for key, value in decision.to_dict().items():
        if key != "decision_id":
            table.add_row(key, str(value))
    console.print(table)


@maintenance_app.command("total")
def total_maintenance():
    client = get_client()
    console.print(f"Maintenance decisions: {ledger_call(client.get_total_maintenance_decisions)}")
