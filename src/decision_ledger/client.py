"""Decision ledger client: record, query and settle decision records.

The ledger is the system of record. This client holds no authoritative copy;
it validates and encodes caller input, submits it with an idempotency key,
retries transient failures with bounded exponential backoff and waits for
confirmation before reporting the ledger-assigned id.
"""

from __future__ import annotations

import random
import time
from typing import Any, Callable, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .cache import CountCache, total_key
from .codec import RecordCodec
from .errors import (
    Conflict,
    NotFound,
    PermanentError,
    SubmissionFailed,
    TransientError,
    ValidationError,
)
from .idempotency import execution_idempotency_key, new_nonce, record_idempotency_key
from .models import (
    ExecutionMark,
    MaintenanceDecision,
    MaintenanceDecisionInput,
    PaymentDecision,
    PaymentDecisionInput,
    RecordedAuthorization,
    RecordedDecision,
    RecordKind,
    VoiceAuthorization,
    VoiceAuthorizationInput,
)
from .transport import (
    REJECT_ALREADY_EXECUTED,
    REJECT_NOT_FOUND,
    ConfirmationResult,
    InMemoryLedger,
    JsonRpcLedgerTransport,
    LedgerOperation,
    LedgerTransport,
    OperationType,
    SubmissionReceipt,
)
from .utils.config_loader import LedgerSettings, RetrySettings, TimeoutSettings
from .utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)

_InputT = TypeVar("_InputT", bound=BaseModel)
_T = TypeVar("_T")


def _describe_validation(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "input"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


class DecisionLedgerClient:
    def __init__(
        self,
        transport: LedgerTransport,
        *,
        codec: RecordCodec | None = None,
        retry: RetrySettings | None = None,
        timeouts: TimeoutSettings | None = None,
        cache: CountCache | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._transport = transport
        self._codec = codec or RecordCodec()
        self._retry = retry or RetrySettings()
        self._timeouts = timeouts or TimeoutSettings()
        self._cache = cache
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: LedgerSettings, **kwargs) -> "DecisionLedgerClient":
        if settings.backend == "memory":
            transport: LedgerTransport = InMemoryLedger()
        else:
            transport = JsonRpcLedgerTransport(
                rpc_url=settings.rpc_url,
                contract=settings.contract,
                api_key=settings.api_key,
                signing_key=settings.signing_key,
                timeout_seconds=settings.timeouts.request_seconds,
            )
        cache = CountCache(ttl_seconds=settings.cache.ttl_seconds) if settings.cache.enabled else None
        logger.info("Decision ledger client initialized", backend=settings.backend, contract=settings.contract)
        return cls(
            transport,
            codec=RecordCodec(max_text_bytes=settings.max_text_bytes),
            retry=settings.retry,
            timeouts=settings.timeouts,
            cache=cache,
            **kwargs,
        )

    @property
    def transport(self) -> LedgerTransport:
        return self._transport

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "DecisionLedgerClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── validation ───────────────────────────────────────────────────────

    def _validate(self, model: type[_InputT], **fields: Any) -> _InputT:
        try:
            value = model(**fields)
        except PydanticValidationError as exc:
            raise ValidationError(_describe_validation(exc), cause=exc) from exc
        for name in ("reasoning", "command"):
            text = getattr(value, name, None)
            if isinstance(text, str) and len(text.encode("utf-8")) > self._codec.max_text_bytes:
                raise ValidationError(f"{name} exceeds {self._codec.max_text_bytes} bytes")
        return value

    @staticmethod
    def _require_id(record_id: str, field: str = "decision_id") -> str:
        if not isinstance(record_id, str) or not record_id.strip():
            raise ValidationError(f"{field} must be a non-empty string")
        return record_id

    # ── submission / confirmation ────────────────────────────────────────

    def _backoff(self, attempt: int) -> float:
        delay = self._retry.delay_for(attempt)
        if self._retry.jitter:
            delay *= random.uniform(1.0 - self._retry.jitter, 1.0)
        return delay

    def _submit(
        self, operation: LedgerOperation, *, decision_id: str | None = None
    ) -> tuple[SubmissionReceipt, ConfirmationResult]:
        last_error: TransientError | None = None
        for attempt in range(1, self._retry.max_attempts + 1):
            try:
                receipt = self._transport.submit(operation)
            except TransientError as exc:
                last_error = exc
                logger.warning(
                    "Ledger submission failed, will retry",
                    op_type=operation.op_type,
                    kind=operation.kind,
                    decision_id=decision_id,
                    attempt=attempt,
                    max_attempts=self._retry.max_attempts,
                    error=str(exc),
                )
                if attempt < self._retry.max_attempts:
                    self._sleep(self._backoff(attempt))
                continue

            if receipt.duplicate:
                logger.info(
                    "Ledger recognized a prior submission",
                    idempotency_key=operation.idempotency_key,
                    tx_hash=receipt.tx_hash,
                )
            result = self._await_confirmation(receipt, operation, decision_id=decision_id, attempts=attempt)
            return receipt, result

        raise SubmissionFailed(
            f"{operation.op_type} of {operation.kind} failed after {self._retry.max_attempts} attempts",
            decision_id=decision_id,
            cause=last_error,
            attempts=self._retry.max_attempts,
            idempotency_key=operation.idempotency_key,
        )

    def _await_confirmation(
        self,
        receipt: SubmissionReceipt,
        operation: LedgerOperation,
        *,
        decision_id: str | None,
        attempts: int,
    ) -> ConfirmationResult:
        deadline = self._clock() + self._timeouts.confirmation_seconds
        last_error: TransientError | None = None
        while True:
            try:
                result = self._transport.await_confirmation(receipt)
            except TransientError as exc:
                last_error = exc
                logger.warning("Confirmation poll failed", tx_hash=receipt.tx_hash, error=str(exc))
            else:
                if not result.pending:
                    return result

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.error(
                    "Confirmation wait exceeded",
                    tx_hash=receipt.tx_hash,
                    timeout_seconds=self._timeouts.confirmation_seconds,
                )
                raise SubmissionFailed(
                    f"{operation.kind} transaction {receipt.tx_hash} not confirmed within "
                    f"{self._timeouts.confirmation_seconds}s",
                    decision_id=decision_id,
                    cause=last_error,
                    attempts=attempts,
                    idempotency_key=operation.idempotency_key,
                )
            self._sleep(min(self._timeouts.poll_interval_seconds, remaining))

    def _read(self, description: str, fn: Callable[[], _T]) -> _T:
        """Run a query round trip, retrying transient failures."""
        for attempt in range(1, self._retry.max_attempts + 1):
            try:
                return fn()
            except TransientError as exc:
                if attempt >= self._retry.max_attempts:
                    raise
                logger.warning("Ledger query failed, will retry", query=description, attempt=attempt, error=str(exc))
                self._sleep(self._backoff(attempt))
        raise AssertionError("unreachable")

    def _record(self, kind: RecordKind, payload: dict[str, Any], nonce: str | None) -> tuple[str, str, str, str]:
        nonce = (nonce or "").strip() or new_nonce()
        key = record_idempotency_key(kind, payload, nonce)
        operation = LedgerOperation(OperationType.RECORD, kind, key, payload)
        try:
            receipt, result = self._submit(operation)
        except SubmissionFailed as exc:
            exc.nonce = nonce
            raise
        if result.rejected:
            raise PermanentError(f"ledger rejected {kind} record: {result.reason}")
        if not result.record_id:
            raise PermanentError(f"ledger confirmed {kind} record without an id")
        if self._cache is not None:
            if not receipt.duplicate:
                self._cache.note_included(total_key(kind))
            else:
                # An earlier attempt or an earlier failed call may have been the inclusion
                self._cache.invalidate(total_key(kind))
        logger.info(
            "Decision recorded on ledger",
            kind=kind,
            record_id=result.record_id,
            tx_hash=result.tx_hash,
            block_number=result.block_number,
        )
        return result.record_id, result.tx_hash, key, nonce

    def _total(self, kind: RecordKind) -> int:
        def load() -> int:
            return self._read(f"count {kind}", lambda: self._transport.count(kind))

        if self._cache is None:
            return load()
        return self._cache.get(total_key(kind), load)

    # ── payment decisions ────────────────────────────────────────────────

    def record_payment_decision(
        self,
        *,
        tenant: str,
        landlord: str,
        amount: Any,
        approved: bool,
        confidence_score: int,
        reasoning: str,
        nonce: str | None = None,
    ) -> RecordedDecision:
        decision = self._validate(
            PaymentDecisionInput,
            tenant=tenant,
            landlord=landlord,
            amount=amount,
            approved=approved,
            confidence_score=confidence_score,
            reasoning=reasoning,
        )
        payload = self._codec.encode_payment_decision(decision)
        decision_id, tx_hash, key, nonce = self._record(RecordKind.PAYMENT_DECISION, payload, nonce)
        return RecordedDecision(decision_id=decision_id, transaction_hash=tx_hash, idempotency_key=key, nonce=nonce)

    def get_payment_decision(self, decision_id: str) -> PaymentDecision:
        self._require_id(decision_id)
        raw = self._read(
            f"payment decision {decision_id}",
            lambda: self._transport.query(RecordKind.PAYMENT_DECISION, decision_id),
        )
        return self._codec.decode_payment_decision(decision_id, raw)

    def mark_payment_executed(self, decision_id: str, execution_tx_ref: str) -> None:
        mark = self._validate(ExecutionMark, decision_id=decision_id, execution_tx_ref=execution_tx_ref)
        tx_ref = self._codec.encode_tx_ref(mark.execution_tx_ref)

        current = self.get_payment_decision(mark.decision_id)
        if current.executed:
            self._check_execution_ref(current, tx_ref)
            return

        operation = LedgerOperation(
            OperationType.MARK_EXECUTED,
            RecordKind.PAYMENT_DECISION,
            execution_idempotency_key(mark.decision_id, tx_ref),
            {"execution_tx_ref": tx_ref},
            record_id=mark.decision_id,
        )
        _, result = self._submit(operation, decision_id=mark.decision_id)
        if result.rejected:
            if result.reason == REJECT_NOT_FOUND:
                raise NotFound(f"payment decision {mark.decision_id} not found", decision_id=mark.decision_id)
            if result.reason == REJECT_ALREADY_EXECUTED:
                # Executed concurrently by another caller
                self._check_execution_ref(self.get_payment_decision(mark.decision_id), tx_ref)
                return
            raise PermanentError(
                f"ledger rejected execution mark: {result.reason}", decision_id=mark.decision_id
            )
        logger.info(
            "Payment decision marked executed",
            decision_id=mark.decision_id,
            execution_tx_ref=tx_ref,
            tx_hash=result.tx_hash,
        )

    @staticmethod
    def _check_execution_ref(decision: PaymentDecision, tx_ref: str) -> None:
        if decision.execution_tx_ref == tx_ref:
            logger.info("Payment decision already executed with same reference", decision_id=decision.decision_id)
            return
        logger.warning(
            "Conflicting execution reference",
            decision_id=decision.decision_id,
            stored=decision.execution_tx_ref,
            supplied=tx_ref,
        )
        raise Conflict(
            f"payment decision {decision.decision_id} already executed with a different reference",
            decision_id=decision.decision_id,
        )

    def get_total_payment_decisions(self) -> int:
        return self._total(RecordKind.PAYMENT_DECISION)

    def payment_decision_id_at(self, index: int) -> str:
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise ValidationError("index must be a non-negative integer")
        return self._read(
            f"payment decision index {index}",
            lambda: self._transport.record_id_at(RecordKind.PAYMENT_DECISION, index),
        )

    # ── voice authorizations ─────────────────────────────────────────────

    def record_voice_authorization(
        self,
        *,
        user: str,
        command_type: str,
        command: str,
        authorized: bool,
        nonce: str | None = None,
    ) -> RecordedAuthorization:
        auth = self._validate(
            VoiceAuthorizationInput,
            user=user,
            command_type=command_type,
            command=command,
            authorized=authorized,
        )
        payload = self._codec.encode_voice_authorization(auth)
        auth_id, tx_hash, key, nonce = self._record(RecordKind.VOICE_AUTHORIZATION, payload, nonce)
        return RecordedAuthorization(auth_id=auth_id, transaction_hash=tx_hash, idempotency_key=key, nonce=nonce)

    def get_voice_authorization(self, auth_id: str) -> VoiceAuthorization:
        self._require_id(auth_id, "auth_id")
        raw = self._read(
            f"voice authorization {auth_id}",
            lambda: self._transport.query(RecordKind.VOICE_AUTHORIZATION, auth_id),
        )
        return self._codec.decode_voice_authorization(auth_id, raw)

    def get_total_voice_authorizations(self) -> int:
        return self._total(RecordKind.VOICE_AUTHORIZATION)

    # ── maintenance decisions ────────────────────────────────────────────

    def record_maintenance_decision(
        self,
        *,
        request_id: int,
        category: str,
        priority: str,
        estimated_cost_min: Any,
        estimated_cost_max: Any,
        reasoning: str,
        urgency_score: int,
        nonce: str | None = None,
    ) -> RecordedDecision:
        decision = self._validate(
            MaintenanceDecisionInput,
            request_id=request_id,
            category=category,
            priority=priority,
            estimated_cost_min=estimated_cost_min,
            estimated_cost_max=estimated_cost_max,
            reasoning=reasoning,
            urgency_score=urgency_score,
        )
        payload = self._codec.encode_maintenance_decision(decision)
        decision_id, tx_hash, key, nonce = self._record(RecordKind.MAINTENANCE_DECISION, payload, nonce)
        return RecordedDecision(decision_id=decision_id, transaction_hash=tx_hash, idempotency_key=key, nonce=nonce)

    def get_maintenance_decision(self, decision_id: str) -> MaintenanceDecision:
        self._require_id(decision_id)
        raw = self._read(
            f"maintenance decision {decision_id}",
            lambda: self._transport.query(RecordKind.MAINTENANCE_DECISION, decision_id),
        )
        return self._codec.decode_maintenance_decision(decision_id, raw)

    def get_total_maintenance_decisions(self) -> int:
        return self._total(RecordKind.MAINTENANCE_DECISION)
