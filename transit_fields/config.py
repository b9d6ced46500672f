"""Transit Settings - process-wide configuration, built once at startup

How: Immutable pydantic model; construct it directly or from the environment
with TransitSettings.from_env(), then hand it to TransitManager.

Environment:
- VAULT_ADDR, VAULT_TOKEN, VAULT_NAMESPACE: where and how to reach the service
- TRANSIT_FIELDS_ENABLED: talk to the transit service (false = local cipher)
- TRANSIT_FIELDS_APPLICATION: prefix for default key names
- TRANSIT_FIELDS_CONVERGENT_CONTEXT: secret context for convergent fields
- TRANSIT_FIELDS_RETRY_ATTEMPTS / _RETRY_BASE_DELAY / _RETRY_MAX_WAIT
- TRANSIT_FIELDS_TEXT_ENCODING, TRANSIT_FIELDS_IN_MEMORY_WARNINGS, TRANSIT_FIELDS_TIMEOUT

Changing the convergent context breaks every existing convergent ciphertext
for the keys it was used with.
"""

import codecs
import os
from typing import Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from transit_fields.errors import ConfigurationError

logger = structlog.get_logger()

MIN_CONVERGENT_CONTEXT_BYTES = 16
TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in TRUTHY


class TransitSettings(BaseModel):
    """Process-wide settings consumed by the encryption orchestrator"""

    model_config = ConfigDict(frozen=True)

    address: str = "http://127.0.0.1:8200"
    token: Optional[str] = None
    namespace: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0)

    enabled: bool = False
    application: Optional[str] = None
    convergent_encryption_context: Optional[str] = None

    retry_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=0.05, ge=0)
    retry_max_wait: float = Field(default=2.0, ge=0)

    text_encoding: str = "utf-8"
    in_memory_warnings_enabled: bool = True

    @field_validator("convergent_encryption_context")
    @classmethod
    def _check_context_length(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value.encode("utf-8")) < MIN_CONVERGENT_CONTEXT_BYTES:
            raise ValueError(
                f"convergent_encryption_context must be at least "
                f"{MIN_CONVERGENT_CONTEXT_BYTES} bytes"
            )
        return value

    @field_validator("text_encoding")
    @classmethod
    def _check_encoding(cls, value: str) -> str:
        try:
            codecs.lookup(value)
        except LookupError:
            raise ValueError(f"unknown text encoding: {value}")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TransitSettings":
        """Build settings from environment variables

        Args:
            environ: Mapping to read instead of os.environ (tests)

        Returns:
            Frozen TransitSettings
        """
        env = os.environ if environ is None else environ
        values = {
            "enabled": _env_bool(env.get("TRANSIT_FIELDS_ENABLED"), False),
            "in_memory_warnings_enabled": _env_bool(
                env.get("TRANSIT_FIELDS_IN_MEMORY_WARNINGS"), True
            ),
        }
        optional = {
            "address": "VAULT_ADDR",
            "token": "VAULT_TOKEN",
            "namespace": "VAULT_NAMESPACE",
            "timeout": "TRANSIT_FIELDS_TIMEOUT",
            "application": "TRANSIT_FIELDS_APPLICATION",
            "convergent_encryption_context": "TRANSIT_FIELDS_CONVERGENT_CONTEXT",
            "retry_attempts": "TRANSIT_FIELDS_RETRY_ATTEMPTS",
            "retry_base_delay": "TRANSIT_FIELDS_RETRY_BASE_DELAY",
            "retry_max_wait": "TRANSIT_FIELDS_RETRY_MAX_WAIT",
            "text_encoding": "TRANSIT_FIELDS_TEXT_ENCODING",
        }
        for field_name, env_name in optional.items():
            raw = env.get(env_name)
            if raw:
                values[field_name] = raw

        settings = cls(**values)
        logger.info(
            "Transit settings loaded",
            enabled=settings.enabled,
            address=settings.address,
            application=settings.application,
        )
        return settings

    def require_convergent_context(self) -> bytes:
        """Convergent context secret as bytes

        Raises:
            ConfigurationError: if no context is configured
        """
        if not self.convergent_encryption_context:
            raise ConfigurationError(
                "convergent_encryption_context must be configured to use convergent encryption"
            )
        return self.convergent_encryption_context.encode(self.text_encoding)

    def require_application(self) -> str:
        if not self.application:
            raise ConfigurationError("application must be configured to derive default key names")
        return self.application
