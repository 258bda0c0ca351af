"""Idempotency keys for ledger submissions."""

from __future__ import annotations

import secrets
from typing import Any

from .utils.deterministic import canonical_json, stable_hash_hex


def new_nonce() -> str:
    return secrets.token_hex(16)


def canonical_payload_hash(kind: str, payload: dict[str, Any]) -> str:
    """Content hash of an encoded record, independent of any nonce."""
    return stable_hash_hex(kind, canonical_json(payload))


def record_idempotency_key(kind: str, payload: dict[str, Any], nonce: str) -> str:
    """Key collapsing retries of one logical record submission.

    Same payload and same nonce give the same key; a fresh nonce records an
    otherwise identical decision as a distinct entry.
    """
    normalized = (nonce or "").strip()
    if not normalized:
        raise ValueError("nonce is required to derive an idempotency key")
    return stable_hash_hex("record", kind, canonical_json(payload), normalized)


def execution_idempotency_key(decision_id: str, execution_tx_ref: str) -> str:
    return stable_hash_hex("mark_executed", decision_id.strip(), execution_tx_ref.strip())
