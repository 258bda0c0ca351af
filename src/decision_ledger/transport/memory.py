"""Process-local ledger with the semantics of the real one.

Backs the ``memory`` backend and doubles as the fake transport in tests:
ids and timestamps are assigned at confirmation, duplicate idempotency keys
resolve to the original receipt, confirmation can lag by a configurable
number of polls, and transient faults can be injected.
"""

from __future__ import annotations

import itertools
import threading
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable

from ..errors import NotFound, PermanentError, TransientError
from ..idempotency import canonical_payload_hash
from ..models import RecordKind
from ..utils.deterministic import stable_hash_hex
from ..utils.logging_config import StructuredLogger
from .base import (
    REJECT_ALREADY_EXECUTED,
    REJECT_KEY_REUSED,
    REJECT_NOT_FOUND,
    ConfirmationResult,
    ConfirmationStatus,
    LedgerOperation,
    OperationType,
    SubmissionReceipt,
)

logger = StructuredLogger(__name__)


@dataclass
class _Pending:
    operation: LedgerOperation
    tx_hash: str
    payload_hash: str
    polls_left: int
    result: ConfirmationResult | None = None


@dataclass
class _Fault:
    remaining: int
    lose_response: bool


class InMemoryLedger:
    def __init__(self, *, confirmation_polls: int = 0, clock: Callable[[], float] = time.time):
        self.confirmation_polls = confirmation_polls
        self._clock = clock
        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self._block = 0
        self._by_key: dict[str, _Pending] = {}
        self._by_tx: dict[str, _Pending] = {}
        self._records: dict[str, dict[str, dict[str, Any]]] = {kind.value: {} for kind in RecordKind}
        self._order: dict[str, list[str]] = {kind.value: [] for kind in RecordKind}
        self._faults: list[_Fault] = []
        self.calls: Counter[str] = Counter()

    # ── fault injection ──────────────────────────────────────────────────

    def fail_next(self, count: int = 1, *, lose_response: bool = False) -> None:
        """Make the next ``count`` submissions raise ``TransientError``.

        With ``lose_response`` the submission is applied first, as when a
        request reaches the ledger but the reply times out.
        """
        with self._lock:
            self._faults.append(_Fault(remaining=count, lose_response=lose_response))

    def _take_fault(self) -> _Fault | None:
        while self._faults:
            fault = self._faults[0]
            if fault.remaining <= 0:
                self._faults.pop(0)
                continue
            fault.remaining -= 1
            return fault
        return None

    @property
    def transport_calls(self) -> int:
        return sum(self.calls.values())

    # ── LedgerTransport ──────────────────────────────────────────────────

    def submit(self, operation: LedgerOperation) -> SubmissionReceipt:
        with self._lock:
            self.calls["submit"] += 1
            fault = self._take_fault()
            if fault is not None and not fault.lose_response:
                raise TransientError("ledger temporarily unavailable")

            if operation.op_type not in (OperationType.RECORD, OperationType.MARK_EXECUTED):
                raise PermanentError(f"unsupported operation type: {operation.op_type}")
            if operation.kind not in self._records:
                raise PermanentError(f"unsupported record kind: {operation.kind}")

            payload_hash = canonical_payload_hash(operation.kind, operation.payload)
            existing = self._by_key.get(operation.idempotency_key)
            if existing is not None:
                receipt = SubmissionReceipt(existing.tx_hash, operation.idempotency_key, duplicate=True)
                if existing.payload_hash != payload_hash or existing.operation.record_id != operation.record_id:
                    # Surfaced on confirmation so the caller sees the ledger's reason.
                    receipt = self._reject_new(operation, payload_hash, REJECT_KEY_REUSED)
            else:
                tx_hash = "0x" + stable_hash_hex("tx", operation.idempotency_key, str(next(self._seq)))
                pending = _Pending(operation, tx_hash, payload_hash, self.confirmation_polls)
                self._by_key[operation.idempotency_key] = pending
                self._by_tx[tx_hash] = pending
                receipt = SubmissionReceipt(tx_hash, operation.idempotency_key)

            if fault is not None:
                raise TransientError("ledger response lost after submission")
            return receipt

    def _reject_new(self, operation: LedgerOperation, payload_hash: str, reason: str) -> SubmissionReceipt:
        tx_hash = "0x" + stable_hash_hex("tx", operation.idempotency_key, str(next(self._seq)))
        pending = _Pending(operation, tx_hash, payload_hash, 0)
        pending.result = ConfirmationResult(ConfirmationStatus.REJECTED, tx_hash, reason=reason)
        self._by_tx[tx_hash] = pending
        return SubmissionReceipt(tx_hash, operation.idempotency_key)

    def await_confirmation(self, receipt: SubmissionReceipt) -> ConfirmationResult:
        with self._lock:
            self.calls["await_confirmation"] += 1
            pending = self._by_tx.get(receipt.tx_hash)
            if pending is None:
                raise PermanentError(f"unknown transaction {receipt.tx_hash}")
            if pending.result is not None:
                return pending.result
            if pending.polls_left > 0:
                pending.polls_left -= 1
                return ConfirmationResult(ConfirmationStatus.PENDING, pending.tx_hash)
            pending.result = self._apply(pending)
            return pending.result

    def _apply(self, pending: _Pending) -> ConfirmationResult:
        op = pending.operation
        self._block += 1
        if op.op_type == OperationType.RECORD:
            record_id = "0x" + stable_hash_hex("record", op.kind, pending.tx_hash)
            record = dict(op.payload)
            record["timestamp"] = int(self._clock())
            if op.kind == RecordKind.PAYMENT_DECISION:
                record["executed"] = False
                record["execution_tx_ref"] = None
            self._records[op.kind][record_id] = record
            self._order[op.kind].append(record_id)
            logger.debug("Memory ledger included record", kind=op.kind, record_id=record_id, block=self._block)
            return ConfirmationResult(ConfirmationStatus.CONFIRMED, pending.tx_hash, record_id, self._block)

        record = self._records[op.kind].get(op.record_id or "")
        if record is None:
            return ConfirmationResult(ConfirmationStatus.REJECTED, pending.tx_hash, op.record_id, reason=REJECT_NOT_FOUND)
        tx_ref = op.payload.get("execution_tx_ref")
        if record.get("executed"):
            if record.get("execution_tx_ref") != tx_ref:
                return ConfirmationResult(
                    ConfirmationStatus.REJECTED, pending.tx_hash, op.record_id, reason=REJECT_ALREADY_EXECUTED
                )
        else:
            record["executed"] = True
            record["execution_tx_ref"] = tx_ref
        return ConfirmationResult(ConfirmationStatus.CONFIRMED, pending.tx_hash, op.record_id, self._block)

    def query(self, kind: str, record_id: str) -> dict[str, Any]:
        with self._lock:
            self.calls["query"] += 1
            record = self._records.get(kind, {}).get(record_id)
            if record is None:
                raise NotFound(f"no {kind} record {record_id}", decision_id=record_id)
            return dict(record)

    def count(self, kind: str) -> int:
        with self._lock:
            self.calls["count"] += 1
            return len(self._order.get(kind, []))

    def record_id_at(self, kind: str, index: int) -> str:
        with self._lock:
            self.calls["record_id_at"] += 1
            ids = self._order.get(kind, [])
            if index < 0 or index >= len(ids):
                raise NotFound(f"no {kind} record at index {index}")
            return ids[index]

    def close(self) -> None:
        pass
