"""Typed configuration for the RestGate dispatcher.

Settings are grouped into small frozen pydantic models (HTTP, retry, rate
limiting, logging) hanging off a ``pydantic-settings`` root that reads
``RESTGATE_*`` environment variables. Nested fields use ``__`` as the
delimiter, so ``RESTGATE_RETRY__MAX_RETRIES=5`` overrides
``settings.retry.max_retries``.

Example:
    >>> from RestGate.settings import get_settings
    >>> settings = get_settings()
    >>> settings.http.base_url
    'https://discord.com/api/v10'
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import threading
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from RestGate.network.policy import (
    DEFAULT_BASE_URL,
    HTTP2_ENABLED,
    HTTP_CONNECT_TIMEOUT,
    HTTP_POOL_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    KEEPALIVE_EXPIRY,
    MAX_CONNECTIONS,
    MAX_KEEPALIVE_CONNECTIONS,
    USER_AGENT,
)

__all__ = [
    "HttpSettings",
    "RetrySettings",
    "RateLimitSettings",
    "LoggingSettings",
    "RestGateSettings",
    "get_settings",
    "reset_settings",
]

_RATE_LIMIT_PATTERN = re.compile(r"^\s*\d+\s*/\s*(second|sec|minute|min|hour|hr|day)\s*$")


class HttpSettings(BaseModel):
    """HTTP client settings for the pooled HTTPX client."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default=DEFAULT_BASE_URL, description="API root including version")
    http2: bool = Field(default=HTTP2_ENABLED, description="Enable HTTP/2 support")
    timeout_connect: float = Field(default=HTTP_CONNECT_TIMEOUT, gt=0.0, le=60.0)
    timeout_read: float = Field(default=HTTP_READ_TIMEOUT, gt=0.0, le=300.0)
    timeout_write: float = Field(default=HTTP_WRITE_TIMEOUT, gt=0.0, le=300.0)
    timeout_pool: float = Field(default=HTTP_POOL_TIMEOUT, gt=0.0, le=60.0)
    pool_max_connections: int = Field(default=MAX_CONNECTIONS, ge=1, le=1024)
    pool_keepalive_max: int = Field(default=MAX_KEEPALIVE_CONNECTIONS, ge=0, le=1024)
    keepalive_expiry: float = Field(default=KEEPALIVE_EXPIRY, ge=0.0, le=600.0)
    user_agent: str = Field(default=USER_AGENT, description="User-Agent header value")
    verify_tls: bool = Field(default=True, description="Verify server certificates")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Routes always start with ``/``; keep the base URL slash-free."""
        return v.rstrip("/")


class RetrySettings(BaseModel):
    """Backoff for 5xx responses and transport failures."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0, le=20, description="Retries after the first attempt")
    backoff_base: float = Field(default=0.5, ge=0.0, le=60.0, description="First backoff (s)")
    backoff_max: float = Field(default=30.0, ge=0.0, le=600.0, description="Backoff cap (s)")
    jitter: bool = Field(default=True, description="Use full-jitter exponential backoff")


class RateLimitSettings(BaseModel):
    """Scheduler and rate-limit interpretation settings."""

    model_config = ConfigDict(frozen=True)

    global_rate: Optional[str] = Field(
        default="50/second",
        description="Client-side ceiling across all buckets (e.g. '50/second'); None disables",
    )
    max_wait: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Maximum seconds a request may wait before RequestTimeout; None is unbounded",
    )
    retry_after_unit: Literal["seconds", "milliseconds"] = Field(
        default="seconds",
        description="Unit the service uses for Retry-After and retry_after values",
    )
    max_in_flight: int = Field(
        default=8,
        ge=1,
        le=256,
        description="Worker threads performing network I/O for distinct buckets",
    )

    @field_validator("global_rate", mode="before")
    @classmethod
    def validate_rate_string(cls, v: Optional[str]) -> Optional[str]:
        """Validate rate limit string format."""
        if v is None or (isinstance(v, str) and v.strip().lower() in {"", "none", "off"}):
            return None
        if not _RATE_LIMIT_PATTERN.match(v):
            raise ValueError(f"Invalid rate limit format '{v}'; expected 'N/(second|sec|minute|min|hour|hr|day)'")
        return v


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    emit_json_logs: bool = Field(default=False, description="Write JSONL log files")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize and validate logging level."""
        upper = v.upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        """Convert level string to logging module integer."""
        return getattr(logging, self.level)


class RestGateSettings(BaseSettings):
    """Root settings object; environment variables use the ``RESTGATE_`` prefix."""

    model_config = SettingsConfigDict(
        env_prefix="RESTGATE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    token: Optional[SecretStr] = Field(default=None, description="API token attached to requests")
    auth_scheme: str = Field(default="Bot", description="Authorization scheme preceding the token")
    http: HttpSettings = Field(default_factory=HttpSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    ratelimit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def authorization_header(self) -> Optional[str]:
        """Return the ``Authorization`` header value, or ``None`` without a token."""
        if self.token is None:
            return None
        secret = self.token.get_secret_value().strip()
        if not secret:
            return None
        scheme = self.auth_scheme.strip()
        return f"{scheme} {secret}" if scheme else secret

    def config_hash(self) -> str:
        """Compute a deterministic hash of non-secret configuration."""
        config_dict: dict[str, Any] = {
            "auth_scheme": self.auth_scheme,
            "http": self.http.model_dump(mode="json"),
            "retry": self.retry.model_dump(mode="json"),
            "ratelimit": self.ratelimit.model_dump(mode="json"),
            "logging": self.logging.model_dump(mode="json"),
        }
        config_str = json.dumps(config_dict, sort_keys=True, default=str)
        return hashlib.sha256(config_str.encode("utf-8")).hexdigest()[:16]


_SETTINGS_LOCK = threading.RLock()
_SETTINGS_CACHE: Optional[RestGateSettings] = None


def get_settings() -> RestGateSettings:
    """Return the process-wide settings, loading them from the environment once."""
    global _SETTINGS_CACHE

    with _SETTINGS_LOCK:
        if _SETTINGS_CACHE is None:
            _SETTINGS_CACHE = RestGateSettings()
        return _SETTINGS_CACHE


def reset_settings() -> None:
    """Drop cached settings so the next ``get_settings`` re-reads the environment."""
    global _SETTINGS_CACHE

    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None
