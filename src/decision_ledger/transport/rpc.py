"""JSON-RPC ledger transport over HTTP."""

from __future__ import annotations

import itertools
from typing import Any

import httpx

from ..errors import NotFound, PermanentError, TransientError
from ..utils.deterministic import canonical_json, sign_payload
from ..utils.logging_config import StructuredLogger
from .base import ConfirmationResult, ConfirmationStatus, LedgerOperation, SubmissionReceipt

logger = StructuredLogger(__name__)

SIGNATURE_HEADER = "X-Ledger-Signature"

# JSON-RPC error codes
RPC_INVALID_REQUEST = -32600
RPC_METHOD_NOT_FOUND = -32601
RPC_INVALID_PARAMS = -32602
RPC_INTERNAL_ERROR = -32603
RPC_RECORD_NOT_FOUND = -32004
RPC_LIMIT_EXCEEDED = -32005

_TRANSIENT_RPC_CODES = {RPC_INTERNAL_ERROR, RPC_LIMIT_EXCEEDED}
_TRANSIENT_HTTP_STATUS = {408, 425, 429, 500, 502, 503, 504}


def _trim_text(text: str, limit: int = 220) -> str:
    clean = " ".join((text or "").split())
    if len(clean) <= limit:
        return clean
    return clean[: limit - 3] + "..."


class JsonRpcLedgerTransport:
    def __init__(
        self,
        *,
        rpc_url: str,
        contract: str,
        api_key: str | None = None,
        signing_key: str | None = None,
        timeout_seconds: float = 10.0,
        http_client: httpx.Client | None = None,
    ):
        self.rpc_url = rpc_url
        self.contract = contract
        self._api_key = api_key
        self._signing_key = signing_key
        self._ids = itertools.count(1)
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout_seconds, follow_redirects=False)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _headers(self, body: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        if self._signing_key:
            headers[SIGNATURE_HEADER] = sign_payload(self._signing_key, body)
        return headers

    def _call(self, method: str, params: dict[str, Any]) -> Any:
        request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": {"contract": self.contract, **params},
        }
        body = canonical_json(request)
        try:
            response = self._client.post(self.rpc_url, content=body, headers=self._headers(body))
        except httpx.TimeoutException as exc:
            raise TransientError(f"{method} timed out", cause=exc) from exc
        except httpx.TransportError as exc:
            raise TransientError(f"{method} transport failure: {exc}", cause=exc) from exc

        if response.status_code in _TRANSIENT_HTTP_STATUS:
            raise TransientError(
                f"{method} failed with HTTP {response.status_code}: {_trim_text(response.text)}"
            )
        if response.status_code in (401, 403):
            raise PermanentError(f"{method} rejected credentials (HTTP {response.status_code})")
        if response.status_code != 200:
            raise PermanentError(
                f"{method} failed with HTTP {response.status_code}: {_trim_text(response.text)}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise PermanentError(f"{method} returned a non-JSON body", cause=exc) from exc
        if not isinstance(data, dict):
            raise PermanentError(f"{method} returned a malformed JSON-RPC envelope")

        error = data.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            detail = f"{method} error {code}: {_trim_text(str(message))}"
            if code == RPC_RECORD_NOT_FOUND:
                raise NotFound(detail)
            if code in _TRANSIENT_RPC_CODES:
                raise TransientError(detail)
            raise PermanentError(detail)
        if "result" not in data:
            raise PermanentError(f"{method} response has neither result nor error")
        return data["result"]

    # ── LedgerTransport ──────────────────────────────────────────────────

    def submit(self, operation: LedgerOperation) -> SubmissionReceipt:
        result = self._call("ledger_submit", {"operation": operation.to_dict()})
        if not isinstance(result, dict) or not result.get("txHash"):
            raise PermanentError("ledger_submit returned no transaction hash")
        logger.debug(
            "Operation accepted for ordering",
            tx_hash=result["txHash"],
            op_type=operation.op_type,
            kind=operation.kind,
        )
        return SubmissionReceipt(
            tx_hash=str(result["txHash"]),
            idempotency_key=operation.idempotency_key,
            duplicate=bool(result.get("duplicate", False)),
        )

    def await_confirmation(self, receipt: SubmissionReceipt) -> ConfirmationResult:
        result = self._call("ledger_getConfirmation", {"txHash": receipt.tx_hash})
        if not isinstance(result, dict):
            raise PermanentError("ledger_getConfirmation returned a malformed result")
        raw_status = str(result.get("status") or "").lower()
        try:
            status = ConfirmationStatus(raw_status)
        except ValueError as exc:
            raise PermanentError(f"unknown confirmation status {raw_status!r}", cause=exc) from exc

        block = result.get("blockNumber")
        return ConfirmationResult(
            status=status,
            tx_hash=str(result.get("txHash") or receipt.tx_hash),
            record_id=result.get("recordId"),
            block_number=int(block) if block is not None else None,
            reason=result.get("reason"),
        )

    def query(self, kind: str, record_id: str) -> dict[str, Any]:
        result = self._call("ledger_getRecord", {"kind": kind, "recordId": record_id})
        if result is None:
            raise NotFound(f"no {kind} record {record_id}", decision_id=record_id)
        if not isinstance(result, dict):
            raise PermanentError("ledger_getRecord returned a malformed record", decision_id=record_id)
        return result

    def count(self, kind: str) -> int:
        result = self._call("ledger_count", {"kind": kind})
        try:
            return int(result)
        except (TypeError, ValueError) as exc:
            raise PermanentError(f"ledger_count returned {result!r}", cause=exc) from exc

    def record_id_at(self, kind: str, index: int) -> str:
        result = self._call("ledger_recordIdAt", {"kind": kind, "index": index})
        if not result:
            raise NotFound(f"no {kind} record at index {index}")
        return str(result)
