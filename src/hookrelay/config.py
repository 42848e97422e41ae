"""Configuration management for hookrelay."""

import logging
import re
import warnings
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from hookrelay.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_PATH = "/webhooks/inbound"


def normalize_webhook_path(value: str) -> str:
    """Normalize the inbound webhook route.

    Args:
        value: Configured path, e.g. "/webhooks//inbound".

    Returns:
        The trimmed path with repeated slashes collapsed.

    Raises:
        ConfigurationError: If the path does not start with "/".
    """
    trimmed = (value or "").strip()
    if not trimmed.startswith("/"):
        raise ConfigurationError(f"Webhook path must start with '/': {value}")
    return re.sub(r"/{2,}", "/", trimmed)


class Settings(BaseSettings):
    """hookrelay configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the HOOKRELAY_ prefix. For example:
        HOOKRELAY_WEBHOOK_SECRET=whsec_123
        HOOKRELAY_GATEWAY_URL=https://gateway.internal/events

    Security Notes:
        - Without a webhook secret, inbound requests are rejected unless
          allow_unsigned is set
        - In production (HOOKRELAY_ENV=production), unsigned mode without a
          secret is refused at startup
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Inbound verification
    webhook_secret: str | None = Field(
        default=None,
        description="Shared secret for HMAC-SHA256 verification of inbound webhooks",
    )
    allow_unsigned: bool = Field(
        default=False,
        description="Accept unsigned webhooks when no secret is configured",
    )
    max_skew_seconds: float = Field(
        default=300.0,
        ge=0.0,
        description="Maximum accepted difference between signed timestamp and now",
    )
    signature_header: str = Field(
        default="x-webhook-signature",
        description="Header carrying the hex HMAC signature",
    )
    timestamp_header: str = Field(
        default="x-webhook-timestamp",
        description="Header carrying the signing timestamp (seconds or milliseconds)",
    )

    # Delivery
    retry_base_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Initial retry delay (doubles with each failed attempt)",
    )
    retry_max: int = Field(
        default=8,
        ge=1,
        description="Maximum delivery attempts before dead-lettering",
    )
    worker_interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Interval between scheduled delivery scans",
    )
    gateway_url: str | None = Field(
        default=None,
        description="Downstream gateway endpoint receiving relayed events",
    )
    gateway_auth_token: str | None = Field(
        default=None,
        description="Bearer token sent to the gateway (optional)",
    )
    gateway_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Timeout for a single gateway request",
    )
    source_tag: str = Field(
        default="hookrelay",
        description="Value of the 'source' field in the relay envelope",
    )

    # Storage
    store_path: str = Field(
        default=".hookrelay-events.json",
        description="JSON file holding the durable event snapshot",
    )

    # Listener
    webhook_path: str = Field(
        default=DEFAULT_WEBHOOK_PATH,
        description="Route receiving inbound webhooks",
    )
    listen_host: str = Field(
        default="127.0.0.1",
        description="Interface the HTTP listener binds to",
    )
    listen_port: int = Field(
        default=3789,
        ge=0,
        le=65535,
        description="Port the HTTP listener binds to",
    )
    max_body_bytes: int = Field(
        default=2 * 1024 * 1024,
        ge=1,
        description="Largest accepted inbound request body",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    model_config = {
        "env_prefix": "HOOKRELAY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @field_validator("webhook_path")
    @classmethod
    def _normalize_webhook_path(cls, value: str) -> str:
        try:
            return normalize_webhook_path(value)
        except ConfigurationError as exc:
            raise ValueError(exc.message) from exc

    @field_validator("webhook_secret", "gateway_url", "gateway_auth_token")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def validate_security_settings(self) -> "Settings":
        """Validate inbound verification settings based on environment.

        - In production, unsigned mode without a secret is refused
        - Elsewhere, unsigned mode without a secret logs a warning
        """
        if self.webhook_secret is None and self.allow_unsigned:
            if self.env == "production":
                raise ValueError(
                    "HOOKRELAY_ALLOW_UNSIGNED cannot be enabled in production without "
                    "HOOKRELAY_WEBHOOK_SECRET"
                )
            warnings.warn(
                "Accepting unsigned webhooks. Set HOOKRELAY_WEBHOOK_SECRET to verify senders.",
                UserWarning,
                stacklevel=2,
            )
            logger.warning("Unsigned webhook mode enabled - inbound requests are not verified")
        return self

    @property
    def max_skew_ms(self) -> float:
        """Skew tolerance in milliseconds, the unit signature timestamps use."""
        return self.max_skew_seconds * 1000.0
