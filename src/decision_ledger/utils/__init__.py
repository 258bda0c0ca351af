"""Decision ledger utilities: logging, config, deterministic hashing.

Individual modules are imported directly by consumers, e.g.:
    from ..utils.logging_config import StructuredLogger
    from ..utils.config_loader import config_loader
"""

from .logging_config import setup_logging, StructuredLogger, JSONFormatter
from .config_loader import (
    config_loader,
    ConfigLoader,
    LedgerSettings,
    RetrySettings,
    TimeoutSettings,
    CacheSettings,
)
from .deterministic import canonical_json, stable_hash_hex, sign_payload

__all__ = [
    "setup_logging", "StructuredLogger", "JSONFormatter",
    "config_loader", "ConfigLoader", "LedgerSettings", "RetrySettings", "TimeoutSettings", "CacheSettings",
    "canonical_json", "stable_hash_hex", "sign_payload",
]
