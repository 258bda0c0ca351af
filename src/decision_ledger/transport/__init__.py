"""Ledger transports: the JSON-RPC network backend and the in-memory ledger."""

from .base import (
    ConfirmationResult,
    ConfirmationStatus,
    LedgerOperation,
    LedgerTransport,
    OperationType,
    SubmissionReceipt,
    REJECT_ALREADY_EXECUTED,
    REJECT_KEY_REUSED,
    REJECT_NOT_FOUND,
)
from .memory import InMemoryLedger
from .rpc import JsonRpcLedgerTransport

__all__ = [
    "ConfirmationResult",
    "ConfirmationStatus",
    "LedgerOperation",
    "LedgerTransport",
    "OperationType",
    "SubmissionReceipt",
    "REJECT_ALREADY_EXECUTED",
    "REJECT_KEY_REUSED",
    "REJECT_NOT_FOUND",
    "InMemoryLedger",
    "JsonRpcLedgerTransport",
]
