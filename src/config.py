"""Service configuration read from environment variables."""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field

from typed_values import DEFAULT_MAX_DEPTH, MarshalPolicy, TypeTag


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag; ``1``, ``true``, ``yes``, ``y`` and ``on`` are true."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    """Read an integer from environment variables.

    Parameters
    ----------
    name : str
        Environment variable name.
    default : int
        Fallback value when the variable is not set.

    Returns
    -------
    int
        Parsed integer value.
    """
    value = os.getenv(name)
    return default if value is None else int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return default if value is None else float(value)


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


class Settings(BaseModel):
    """Runtime settings loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    port: int = Field(default_factory=lambda: _env_int("PORT", 8080))
    log_level: str = Field(
        default_factory=lambda: _env_str("LOG_LEVEL", "INFO").upper()
    )
    service_name: str = Field(
        default_factory=lambda: _env_str("SERVICE_NAME", "soroban-arg-marshal")
    )
    service_version: str = Field(
        default_factory=lambda: _env_str("SERVICE_VERSION", "dev")
    )
    deployment_env: str = Field(
        default_factory=lambda: _env_str("DEPLOYMENT_ENV", "local")
    )

    max_depth: int = Field(
        default_factory=lambda: _env_int("ARGS_MAX_DEPTH", DEFAULT_MAX_DEPTH)
    )
    default_int_type: str = Field(
        default_factory=lambda: _env_str("ARGS_DEFAULT_INT_TYPE", "i64").strip().lower()
    )

    max_body_bytes: int = Field(
        default_factory=lambda: _env_int("MAX_BODY_BYTES", 1024 * 1024)
    )
    max_arguments: int = Field(
        default_factory=lambda: _env_int("MAX_ARGUMENTS", 256)
    )
    max_inflight: int = Field(default_factory=lambda: _env_int("MAX_INFLIGHT", 16))
    acquire_timeout_s: float = Field(
        default_factory=lambda: _env_float("ACQUIRE_TIMEOUT_S", 0.25)
    )
    batch_workers: int = Field(default_factory=lambda: _env_int("BATCH_WORKERS", 4))

    gunicorn_workers: int = Field(
        default_factory=lambda: _env_int("GUNICORN_WORKERS", 1)
    )
    gunicorn_threads: int = Field(
        default_factory=lambda: _env_int("GUNICORN_THREADS", 4)
    )
    gunicorn_timeout: int = Field(
        default_factory=lambda: _env_int("GUNICORN_TIMEOUT", 60)
    )
    gunicorn_graceful_timeout: int = Field(
        default_factory=lambda: _env_int("GUNICORN_GRACEFUL_TIMEOUT", 30)
    )
    gunicorn_keepalive: int = Field(
        default_factory=lambda: _env_int("GUNICORN_KEEPALIVE", 5)
    )

    prometheus_enabled: bool = Field(
        default_factory=lambda: _env_bool("PROMETHEUS_ENABLED", True)
    )
    prometheus_path: str = Field(
        default_factory=lambda: _env_str("PROMETHEUS_PATH", "/metrics")
    )
    swagger_enabled: bool = Field(
        default_factory=lambda: _env_bool("SWAGGER_ENABLED", False)
    )

    otel_enabled: bool = Field(default_factory=lambda: _env_bool("OTEL_ENABLED", True))
    otel_endpoint: str = Field(
        default_factory=lambda: _env_str("OTEL_EXPORTER_OTLP_ENDPOINT", "").strip()
    )
    otel_headers: str = Field(
        default_factory=lambda: _env_str("OTEL_EXPORTER_OTLP_HEADERS", "")
    )
    otel_timeout_s: float = Field(
        default_factory=lambda: _env_float("OTEL_EXPORTER_OTLP_TIMEOUT", 10.0)
    )

    def marshal_policy(self: Settings) -> MarshalPolicy:
        """Build the marshaling policy described by these settings.

        Returns
        -------
        MarshalPolicy
            Depth limit and default integer kind.

        Raises
        ------
        ValueError
            When the depth is out of bounds or the integer type is unknown.
        """
        try:
            default_integer = TypeTag(self.default_int_type)
        except ValueError:
            raise ValueError(
                f"ARGS_DEFAULT_INT_TYPE must be an integer type, got "
                f"'{self.default_int_type}'"
            ) from None
        return MarshalPolicy(max_depth=self.max_depth, default_integer=default_integer)
