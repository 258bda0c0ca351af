"""On-chain representation of decision records.

Amounts travel as integer units of the ledger's smallest denomination
(10**-6 by default, matching USDC) serialized as decimal strings so values up
to 2**256 - 1 survive JSON. Timestamps are assigned by the ledger and arrive
either as epoch seconds or ISO-8601 strings.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, Inexact, InvalidOperation, localcontext
from typing import Any, Mapping

from .errors import EncodingError
from .models import (
    MaintenanceDecision,
    MaintenanceDecisionInput,
    PaymentDecision,
    PaymentDecisionInput,
    VoiceAuthorization,
    VoiceAuthorizationInput,
)

AMOUNT_DECIMALS = 6
# Enough digits to scale any uint256 quantity without rounding
_DECIMAL_PRECISION = 100
MAX_UNITS = 2**256 - 1
_MAX_UNIT_DIGITS = len(str(MAX_UNITS))
MAX_TEXT_BYTES = 2048
MAX_TX_REF_BYTES = 128
MAX_CONFIDENCE = 100


class RecordCodec:
    def __init__(self, *, amount_decimals: int = AMOUNT_DECIMALS, max_text_bytes: int = MAX_TEXT_BYTES):
        self.amount_decimals = amount_decimals
        self.max_text_bytes = max_text_bytes

    # ── scalar fields ────────────────────────────────────────────────────

    def encode_amount(self, value: Any, field: str = "amount") -> int:
        if isinstance(value, bool):
            raise EncodingError(f"{field} must be a decimal quantity, got bool")
        try:
            amount = value if isinstance(value, Decimal) else Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise EncodingError(f"{field} is not a decimal quantity: {value!r}", cause=exc) from exc
        if not amount.is_finite():
            raise EncodingError(f"{field} must be finite")
        if amount < 0:
            raise EncodingError(f"{field} must not be negative")

        if amount and amount.adjusted() + self.amount_decimals >= _MAX_UNIT_DIGITS:
            raise EncodingError(f"{field} exceeds the maximum representable amount")

        with localcontext() as ctx:
            ctx.prec = _DECIMAL_PRECISION
            ctx.traps[Inexact] = True
            try:
                scaled = amount.scaleb(self.amount_decimals)
            except ArithmeticError as exc:
                raise EncodingError(
                    f"{field} has precision beyond {self.amount_decimals} decimal places: {amount}", cause=exc
                ) from exc
        if scaled != scaled.to_integral_value():
            raise EncodingError(
                f"{field} has precision beyond {self.amount_decimals} decimal places: {amount}"
            )
        units = int(scaled)
        if units > MAX_UNITS:
            raise EncodingError(f"{field} exceeds the maximum representable amount")
        return units

    def decode_amount(self, units: Any, field: str = "amount") -> Decimal:
        try:
            value = int(units)
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"{field} units are not an integer: {units!r}", cause=exc) from exc
        if value < 0 or value > MAX_UNITS:
            raise EncodingError(f"{field} units out of range: {value}")
        with localcontext() as ctx:
            ctx.prec = _DECIMAL_PRECISION
            return Decimal(value).scaleb(-self.amount_decimals)

    def encode_text(self, value: str, field: str, max_bytes: int | None = None) -> str:
        if not isinstance(value, str):
            raise EncodingError(f"{field} must be text")
        limit = max_bytes if max_bytes is not None else self.max_text_bytes
        size = len(value.encode("utf-8"))
        if size > limit:
            raise EncodingError(f"{field} is {size} bytes, limit is {limit}")
        return value

    def encode_score(self, value: int, field: str, low: int = 0, high: int = MAX_CONFIDENCE) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
            raise EncodingError(f"{field} must be an integer in [{low}, {high}]")
        return value

    def encode_tx_ref(self, value: str) -> str:
        return self.encode_text(value, "execution_tx_ref", MAX_TX_REF_BYTES)

    @staticmethod
    def decode_timestamp(raw: Any) -> datetime:
        if isinstance(raw, bool):
            raise EncodingError(f"timestamp is not a time value: {raw!r}")
        if isinstance(raw, (int, float)):
            return datetime.fromtimestamp(raw, tz=timezone.utc)
        if isinstance(raw, str) and raw.strip():
            text = raw.strip()
            if text.isdigit():
                return datetime.fromtimestamp(int(text), tz=timezone.utc)
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError as exc:
                raise EncodingError(f"timestamp is not ISO-8601: {raw!r}", cause=exc) from exc
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
        raise EncodingError(f"timestamp is not a time value: {raw!r}")

    # ── payment decisions ────────────────────────────────────────────────

    def encode_payment_decision(self, decision: PaymentDecisionInput) -> dict[str, Any]:
        return {
            "tenant": self.encode_text(decision.tenant, "tenant"),
            "landlord": self.encode_text(decision.landlord, "landlord"),
            "amount_units": str(self.encode_amount(decision.amount)),
            "approved": bool(decision.approved),
            "confidence_score": self.encode_score(decision.confidence_score, "confidence_score"),
            "reasoning": self.encode_text(decision.reasoning, "reasoning"),
        }

    def decode_payment_decision(self, decision_id: str, raw: Mapping[str, Any]) -> PaymentDecision:
        fields = _require(raw, "tenant", "landlord", "amount_units", "approved", "confidence_score", "reasoning", "timestamp")
        executed = raw.get("executed")
        executed = False if executed is None else _require_bool(executed, "executed")
        tx_ref = raw.get("execution_tx_ref") or None
        if executed and tx_ref is None:
            raise EncodingError("executed record has no execution reference", decision_id=decision_id)
        return PaymentDecision(
            decision_id=decision_id,
            tenant=str(fields["tenant"]),
            landlord=str(fields["landlord"]),
            amount=self.decode_amount(fields["amount_units"]),
            approved=_require_bool(fields["approved"], "approved"),
            confidence_score=int(fields["confidence_score"]),
            reasoning=str(fields["reasoning"]),
            timestamp=self.decode_timestamp(fields["timestamp"]),
            executed=executed,
            execution_tx_ref=tx_ref if executed else None,
        )

    # ── voice authorizations ─────────────────────────────────────────────

    def encode_voice_authorization(self, auth: VoiceAuthorizationInput) -> dict[str, Any]:
        return {
            "user": self.encode_text(auth.user, "user"),
            "command_type": self.encode_text(auth.command_type, "command_type"),
            "command": self.encode_text(auth.command, "command"),
            "authorized": bool(auth.authorized),
        }

    def decode_voice_authorization(self, auth_id: str, raw: Mapping[str, Any]) -> VoiceAuthorization:
        fields = _require(raw, "user", "command_type", "command", "authorized", "timestamp")
        return VoiceAuthorization(
            auth_id=auth_id,
            user=str(fields["user"]),
            command_type=str(fields["command_type"]),
            command=str(fields["command"]),
            authorized=_require_bool(fields["authorized"], "authorized"),
            timestamp=self.decode_timestamp(fields["timestamp"]),
        )

    # ── maintenance decisions ────────────────────────────────────────────

    def encode_maintenance_decision(self, decision: MaintenanceDecisionInput) -> dict[str, Any]:
        return {
            "request_id": decision.request_id,
            "category": self.encode_text(decision.category, "category"),
            "priority": self.encode_text(decision.priority, "priority"),
            "estimated_cost_min_units": str(self.encode_amount(decision.estimated_cost_min, "estimated_cost_min")),
            "estimated_cost_max_units": str(self.encode_amount(decision.estimated_cost_max, "estimated_cost_max")),
            "reasoning": self.encode_text(decision.reasoning, "reasoning"),
            "urgency_score": self.encode_score(decision.urgency_score, "urgency_score", 1, 10),
        }

    def decode_maintenance_decision(self, decision_id: str, raw: Mapping[str, Any]) -> MaintenanceDecision:
        fields = _require(
            raw,
            "request_id",
            "category",
            "priority",
            "estimated_cost_min_units",
            "estimated_cost_max_units",
            "reasoning",
            "urgency_score",
            "timestamp",
        )
        return MaintenanceDecision(
            decision_id=decision_id,
            request_id=int(fields["request_id"]),
            category=str(fields["category"]),
            priority=str(fields["priority"]),
            estimated_cost_min=self.decode_amount(fields["estimated_cost_min_units"], "estimated_cost_min"),
            estimated_cost_max=self.decode_amount(fields["estimated_cost_max_units"], "estimated_cost_max"),
            reasoning=str(fields["reasoning"]),
            urgency_score=int(fields["urgency_score"]),
            timestamp=self.decode_timestamp(fields["timestamp"]),
        )


def _require_bool(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise EncodingError(f"ledger field {field} is not a boolean: {value!r}")
    return value


def _require(raw: Mapping[str, Any], *names: str) -> dict[str, Any]:
    if not isinstance(raw, Mapping):
        raise EncodingError(f"ledger record is not a mapping: {type(raw).__name__}")
    missing = [name for name in names if raw.get(name) is None]
    if missing:
        raise EncodingError(f"ledger record is missing fields: {', '.join(missing)}")
    return {name: raw[name] for name in names}
