import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from .logging_config import StructuredLogger

logger = StructuredLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".decision-ledger"
CONFIG_FILENAME = "ledger.yaml"

# Environment variable -> top-level settings key
_ENV_OVERRIDES = {
    "DECISION_LEDGER_BACKEND": "backend",
    "DECISION_LEDGER_RPC_URL": "rpc_url",
    "DECISION_LEDGER_CONTRACT": "contract",
    "DECISION_LEDGER_API_KEY": "api_key",
    "DECISION_LEDGER_SIGNING_KEY": "signing_key",
}

# --- Settings Models ---

class RetrySettings(BaseModel):
    max_attempts: int = Field(4, ge=1, le=10)
    base_delay_seconds: float = Field(0.5, gt=0)
    max_delay_seconds: float = Field(8.0, gt=0)
    jitter: float = Field(0.1, ge=0, le=1)

    @field_validator("max_delay_seconds")
    def validate_max_delay(cls, v, values):
        base = values.data.get("base_delay_seconds")
        if base is not None and v < base:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        return v

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (1-based), without jitter."""
        return min(self.base_delay_seconds * (2 ** (attempt - 1)), self.max_delay_seconds)


class TimeoutSettings(BaseModel):
    request_seconds: float = Field(10.0, gt=0)
    confirmation_seconds: float = Field(60.0, gt=0)
    poll_interval_seconds: float = Field(1.0, gt=0)


class CacheSettings(BaseModel):
    enabled: bool = True
    ttl_seconds: float = Field(15.0, ge=0)


class LedgerSettings(BaseModel):
    version: int = Field(1, ge=1, le=1)
    backend: Literal["rpc", "memory"] = "rpc"
    rpc_url: Optional[str] = None
    contract: Optional[str] = None
    api_key: Optional[str] = None
    signing_key: Optional[str] = None
    max_text_bytes: int = Field(2048, ge=1, le=65536)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    @model_validator(mode="after")
    def validate_backend(self):
        if self.backend == "rpc":
            if not (self.rpc_url or "").strip():
                raise ValueError("rpc_url is required for the rpc backend")
            if not (self.contract or "").strip():
                raise ValueError("contract is required for the rpc backend")
        return self

    def redacted(self) -> dict:
        """Settings as a dict with credentials masked, safe to print or log."""
        data = self.model_dump()
        for key in ("api_key", "signing_key"):
            if data.get(key):
                data[key] = "***"
        return data

# --- Config Loader (Atomic Reload) ---

class ConfigLoader:
    def __init__(self):
        explicit = (os.getenv("DECISION_LEDGER_CONFIG") or "").strip()
        if explicit:
            self.config_file = Path(explicit).expanduser()
            self.config_dir = self.config_file.parent
        else:
            self.config_dir = Path(os.getenv("DECISION_LEDGER_CONFIG_DIR", str(DEFAULT_CONFIG_DIR))).expanduser()
            self.config_file = self.config_dir / CONFIG_FILENAME
        self.config: Optional[LedgerSettings] = None

    def _read_file(self) -> dict:
        if not self.config_file.exists():
            logger.warning("Config file not found, using defaults and environment", path=str(self.config_file))
            return {}
        with open(self.config_file, "r") as f:
            raw_data = yaml.safe_load(f)
        if raw_data is None:
            return {}
        if not isinstance(raw_data, dict):
            raise ValueError(f"Config file {self.config_file} must contain a mapping")
        return raw_data

    @staticmethod
    def _apply_env(raw_data: dict) -> dict:
        merged = dict(raw_data)
        for env_name, key in _ENV_OVERRIDES.items():
            value = (os.getenv(env_name) or "").strip()
            if value:
                merged[key] = value
        return merged

    def load_config(self) -> LedgerSettings:
        """
        Loads and validates configuration from ledger.yaml plus environment.
        ATOMIC: On failure, previous config is preserved.
        Raises ValueError if invalid.
        """
        load_dotenv(override=False)

        try:
            raw_data = self._apply_env(self._read_file())
            logger.info("Loading configuration", path=str(self.config_file))

            # Validate into a temporary; self.config is untouched until success
            new_config = LedgerSettings(**raw_data)

            self.config = new_config

            logger.info("Configuration loaded successfully",
                        backend=self.config.backend,
                        contract=self.config.contract)
            return self.config

        except (ValueError, OSError, yaml.YAMLError) as e:
            logger.error("Configuration validation failed", error=str(e))
            if self.config is not None:
                logger.warning("Keeping previous valid configuration")
                raise ValueError(f"Invalid configuration (previous config retained): {e}") from e
            logger.critical("No previous configuration to fall back to")
            raise ValueError(f"Invalid configuration (no fallback): {e}") from e

    def get_settings(self) -> LedgerSettings:
        if not self.config:
            self.load_config()
        return self.config


config_loader = ConfigLoader()
