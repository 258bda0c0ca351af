"""Decision Ledger - auditable on-ledger record of automated decisions."""

from .client import DecisionLedgerClient
from .codec import RecordCodec
from .errors import (
    Conflict,
    DecisionLedgerError,
    EncodingError,
    NotFound,
    PermanentError,
    SubmissionFailed,
    TransientError,
    TransportError,
    ValidationError,
)
from .models import (
    MaintenanceDecision,
    PaymentDecision,
    RecordedAuthorization,
    RecordedDecision,
    RecordKind,
    VoiceAuthorization,
)
from .transport import InMemoryLedger, JsonRpcLedgerTransport

__version__ = "1.0.0"

__all__ = [
    "DecisionLedgerClient",
    "RecordCodec",
    "DecisionLedgerError",
    "ValidationError",
    "EncodingError",
    "TransportError",
    "TransientError",
    "PermanentError",
    "NotFound",
    "Conflict",
    "SubmissionFailed",
    "PaymentDecision",
    "VoiceAuthorization",
    "MaintenanceDecision",
    "RecordedDecision",
    "RecordedAuthorization",
    "RecordKind",
    "InMemoryLedger",
    "JsonRpcLedgerTransport",
    "__version__",
]
