"""Configuration loading and validation.

This module is responsible for:

- Loading `.env` into the process environment (without overriding existing vars).
- Converting environment variables into strongly-typed Pydantic models.
- Validating required fields and providing actionable error messages.
"""

import os
from typing import Literal, TypeVar

import dotenv
from pydantic import BaseModel, Field, field_validator

_T = TypeVar("_T", int, float)


def _get_required_env(name: str) -> str:
    """Read a required env var or raise a helpful error."""
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(f"{name} is required. Please set it in your .env file.")
    if value.startswith("your_") and value.endswith("_here"):
        raise ValueError(f"{name} is required. Please replace the placeholder value in your .env file.")
    return value


def _get_optional_env(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _get_env_bool(name: str, default: bool) -> bool:
    """Read a boolean env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    normalized = raw.strip().lower()
    if normalized in {"true", "1", "yes", "y", "on"}:
        return True
    if normalized in {"false", "0", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean (true/false). Got: {raw!r}")


def _get_env_number(name: str, default: _T, cast: type[_T]) -> _T:
    """Read an int/float env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a {cast.__name__}. Got: {raw!r}") from exc


class CollectorConfig(BaseModel):
    """Where and how to reach the telemetry collector."""

    base_url: str = Field(..., description="Collector base URL")
    health_path: str = Field(default="/health", description="Path probed to establish a connection")
    observations_path: str = Field(default="/observations", description="Path observations are posted to")
    responses_path: str = Field(default="/responses", description="Path survey responses are posted to")
    timeout_s: float = Field(default=10.0, description="Per-request timeout (seconds)")
    verify_tls: bool = Field(default=True, description="Verify the collector TLS certificate")

    @field_validator("base_url")
    def validate_base_url(cls, v: str) -> str:
        """Validate the collector URL is set and looks like http(s)."""
        if not v or v == "your_collector_url_here":
            raise ValueError("PROBE_COLLECTOR_URL is required. Please set it in your .env file.")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"PROBE_COLLECTOR_URL must start with http:// or https://. Got: {v!r}")
        return v.rstrip("/")

    @field_validator("health_path", "observations_path", "responses_path")
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"Collector paths must start with '/'. Got: {v!r}")
        return v

    @field_validator("timeout_s")
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"PROBE_COLLECTOR_TIMEOUT must be > 0. Got: {v}")
        return v

    def url(self, path: str) -> str:
        return self.base_url + path


class ObservabilityConfig(BaseModel):
    """Logging and delivery-event recording settings."""

    db_path: str | None = Field(default=None, description="DuckDB file for delivery events (in-memory if unset)")
    log_level: str = Field(default="INFO", description="Log level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log line format")
    max_queue_size: int = Field(default=10000, description="Recorder buffer size")

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        normalized = v.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL must be a standard logging level. Got: {v!r}")
        return normalized


class Config(BaseModel):
    """Top-level application configuration."""

    collector: CollectorConfig = Field(..., description="Collector configuration")
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def load_config() -> Config:
    """Load application configuration from environment variables.

    Notes:
    - Calls `dotenv.load_dotenv()` so local `.env` values are visible to the process.
    - Raises `ValueError` with actionable messages when required configuration is
      missing or still contains placeholder values.
    """
    dotenv.load_dotenv()

    collector = CollectorConfig(
        base_url=_get_required_env("PROBE_COLLECTOR_URL"),
        health_path=os.getenv("PROBE_COLLECTOR_HEALTH_PATH", "/health"),
        observations_path=os.getenv("PROBE_COLLECTOR_OBSERVATIONS_PATH", "/observations"),
        responses_path=os.getenv("PROBE_COLLECTOR_RESPONSES_PATH", "/responses"),
        timeout_s=_get_env_number("PROBE_COLLECTOR_TIMEOUT", 10.0, float),
        verify_tls=_get_env_bool("PROBE_COLLECTOR_VERIFY_TLS", True),
    )
    observability = ObservabilityConfig(
        db_path=_get_optional_env("OBSERVABILITY_DB_PATH"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=os.getenv("LOG_FORMAT", "json"),  # type: ignore[arg-type]
        max_queue_size=_get_env_number("OBSERVABILITY_MAX_QUEUE_SIZE", 10000, int),
    )
    return Config(collector=collector, observability=observability)
