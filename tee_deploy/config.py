# tee_deploy/config.py
import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError, MissingEnvVar

DEFAULT_API_ENDPOINT = "https://cloud-api.phala.network/api/v1"


@dataclass(frozen=True)
class Settings:
    """Operator-side settings. The secret owner needs none of these."""
    api_key: str
    api_endpoint: str = DEFAULT_API_ENDPOINT
    http_timeout: float = 30.0
    teepod_id: Optional[int] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, require_api_key: bool = True) -> "Settings":
        api_key = os.getenv("PHALA_CLOUD_API_KEY", "").strip()
        if require_api_key and not api_key:
            raise MissingEnvVar("PHALA_CLOUD_API_KEY")

        endpoint = os.getenv("PHALA_CLOUD_API_ENDPOINT", DEFAULT_API_ENDPOINT).strip().rstrip("/")

        try:
            timeout = float(os.getenv("TEE_HTTP_TIMEOUT", "30"))
        except ValueError:
            raise ConfigurationError("TEE_HTTP_TIMEOUT must be a number of seconds") from None
        if timeout <= 0:
            raise ConfigurationError("TEE_HTTP_TIMEOUT must be positive")

        raw_teepod = os.getenv("TEEPOD_ID", "").strip()
        try:
            teepod_id = int(raw_teepod) if raw_teepod else None
        except ValueError:
            raise ConfigurationError(f"TEEPOD_ID must be an integer, got '{raw_teepod}'") from None

        return cls(
            api_key=api_key,
            api_endpoint=endpoint or DEFAULT_API_ENDPOINT,
            http_timeout=timeout,
            teepod_id=teepod_id,
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
