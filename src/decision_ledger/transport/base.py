"""Ledger transport protocol: the network boundary.

The client depends on this interface only, so tests substitute an
``InMemoryLedger`` without touching process-wide state.

Transports raise ``TransientError`` for failures that are safe to retry and
``PermanentError`` for everything else. A rejected operation is not an
exception at this layer; it comes back as a ``ConfirmationResult`` with
status ``rejected`` and the ledger's reason.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable


class OperationType(StrEnum):
    RECORD = "record"
    MARK_EXECUTED = "mark_executed"


class ConfirmationStatus(StrEnum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    REJECTED = "rejected"


# Rejection reasons shared by every backend
REJECT_NOT_FOUND = "not_found"
REJECT_ALREADY_EXECUTED = "already_executed"
REJECT_KEY_REUSED = "idempotency_key_reused"


@dataclass(frozen=True)
class LedgerOperation:
    op_type: str
    kind: str
    idempotency_key: str
    payload: dict[str, Any] = field(default_factory=dict)
    record_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SubmissionReceipt:
    """Provisional acceptance of an operation for ordering.

    ``duplicate`` is set when the ledger recognized the idempotency key of an
    earlier submission and returned that submission's receipt.
    """

    tx_hash: str
    idempotency_key: str
    duplicate: bool = False


@dataclass(frozen=True)
class ConfirmationResult:
    status: str
    tx_hash: str
    record_id: str | None = None
    block_number: int | None = None
    reason: str | None = None

    @property
    def confirmed(self) -> bool:
        return self.status == ConfirmationStatus.CONFIRMED

    @property
    def pending(self) -> bool:
        return self.status == ConfirmationStatus.PENDING

    @property
    def rejected(self) -> bool:
        return self.status == ConfirmationStatus.REJECTED


@runtime_checkable
class LedgerTransport(Protocol):
    def submit(self, operation: LedgerOperation) -> SubmissionReceipt:
        """Submit a signed operation; returns once provisionally accepted."""
        ...

    def await_confirmation(self, receipt: SubmissionReceipt) -> ConfirmationResult:
        """One confirmation round trip: confirmed, still pending or rejected."""
        ...

    def query(self, kind: str, record_id: str) -> dict[str, Any]:
        """Latest confirmed state of a record; raises ``NotFound``."""
        ...

    def count(self, kind: str) -> int:
        ...

    def record_id_at(self, kind: str, index: int) -> str:
        """Id of the ``index``-th confirmed record of ``kind``; raises ``NotFound``."""
        ...

    def close(self) -> None:
        ...
