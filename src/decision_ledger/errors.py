"""Typed errors raised by the decision ledger client.

Every error carries the decision id when one is known and the underlying
cause, so callers can decide whether re-invoking is safe.
"""

from __future__ import annotations


class DecisionLedgerError(Exception):
    def __init__(self, message: str, *, decision_id: str | None = None, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.decision_id = decision_id
        self.cause = cause

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "decision_id": self.decision_id,
            "cause": repr(self.cause) if self.cause is not None else None,
        }


class ValidationError(DecisionLedgerError):
    """Caller input rejected before any ledger interaction."""


class EncodingError(DecisionLedgerError):
    """A field cannot be represented on the ledger."""


class TransportError(DecisionLedgerError):
    pass


class TransientError(TransportError):
    """Timeout or temporary unavailability; safe to retry."""


class PermanentError(TransportError):
    """Bad credentials, malformed or rejected operation; never retried."""


class NotFound(DecisionLedgerError):
    pass


class Conflict(DecisionLedgerError):
    pass


class SubmissionFailed(DecisionLedgerError):
    """Retry ceiling or confirmation deadline exhausted.

    The caller must treat the operation as not applied and may re-invoke it
    with the same idempotency key. For record operations ``nonce`` is the
    nonce the key was derived from; passing it back converges on one record.
    """

    def __init__(
        self,
        message: str,
        *,
        decision_id: str | None = None,
        cause: BaseException | None = None,
        attempts: int = 0,
        idempotency_key: str | None = None,
        nonce: str | None = None,
    ):
        super().__init__(message, decision_id=decision_id, cause=cause)
        self.attempts = attempts
        self.idempotency_key = idempotency_key
        self.nonce = nonce

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["attempts"] = self.attempts
        data["idempotency_key"] = self.idempotency_key
        data["nonce"] = self.nonce
        return data
