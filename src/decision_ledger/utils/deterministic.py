"""Deterministic serialization, hashing and signing helpers."""

import hashlib
import hmac
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """Serialize data into stable JSON so equal payloads hash equally."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def stable_hash_hex(*parts: str) -> str:
    """Create a stable SHA-256 digest over multiple string parts."""
    h = hashlib.sha256()
    for part in parts:
        h.update(part.encode("utf-8"))
        h.update(b"\n")
    return h.hexdigest()


def sign_payload(secret: str, body: str) -> str:
    """HMAC-SHA256 signature of a canonical request body."""
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: str, signature: str) -> bool:
    return hmac.compare_digest(sign_payload(secret, body), signature or "")
