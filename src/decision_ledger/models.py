"""Decision record types and validated caller inputs."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, field_validator, model_validator


class RecordKind(StrEnum):
    PAYMENT_DECISION = "payment_decision"
    VOICE_AUTHORIZATION = "voice_authorization"
    MAINTENANCE_DECISION = "maintenance_decision"


def _jsonable(data: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for key, value in data.items():
        if isinstance(value, Decimal):
            out[key] = str(value)
        elif isinstance(value, datetime):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out


# --- Ledger records (decoded) ---

@dataclass(frozen=True)
class PaymentDecision:
    decision_id: str
    tenant: str
    landlord: str
    amount: Decimal
    approved: bool
    confidence_score: int
    reasoning: str
    timestamp: datetime
    executed: bool = False
    execution_tx_ref: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class VoiceAuthorization:
    auth_id: str
    user: str
    command_type: str
    command: str
    authorized: bool
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class MaintenanceDecision:
    decision_id: str
    request_id: int
    category: str
    priority: str
    estimated_cost_min: Decimal
    estimated_cost_max: Decimal
    reasoning: str
    urgency_score: int
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class RecordedDecision:
    decision_id: str
    transaction_hash: str
    idempotency_key: str
    nonce: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RecordedAuthorization:
    auth_id: str
    transaction_hash: str
    idempotency_key: str
    nonce: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# --- Caller inputs ---

class _DecisionInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("*", mode="after")
    @classmethod
    def reject_blank_text(cls, v, info):
        if isinstance(v, str) and not v.strip():
            raise ValueError(f"{info.field_name} must not be blank")
        return v


class PaymentDecisionInput(_DecisionInput):
    tenant: str = Field(..., min_length=1)
    landlord: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, allow_inf_nan=False)
    approved: StrictBool
    confidence_score: StrictInt = Field(..., ge=0, le=100)
    reasoning: str = Field(..., min_length=1)


class VoiceAuthorizationInput(_DecisionInput):
    user: str = Field(..., min_length=1)
    command_type: str = Field(..., min_length=1, max_length=64)
    command: str = Field(..., min_length=1)
    authorized: StrictBool


class MaintenanceDecisionInput(_DecisionInput):
    request_id: StrictInt = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=64)
    priority: str = Field(..., min_length=1, max_length=32)
    estimated_cost_min: Decimal = Field(..., ge=0, allow_inf_nan=False)
    estimated_cost_max: Decimal = Field(..., ge=0, allow_inf_nan=False)
    reasoning: str = Field(..., min_length=1)
    urgency_score: StrictInt = Field(..., ge=1, le=10)

    @model_validator(mode="after")
    def validate_cost_range(self):
        if self.estimated_cost_min > self.estimated_cost_max:
            raise ValueError("estimated_cost_min must not exceed estimated_cost_max")
        return self


class ExecutionMark(_DecisionInput):
    decision_id: str = Field(..., min_length=1)
    execution_tx_ref: str = Field(..., min_length=1)
