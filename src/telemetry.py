"""OpenTelemetry setup for the marshaling service.

All OpenTelemetry packages are optional; when any of them is missing the
service runs without an exporter and spans become no-ops.
"""

from __future__ import annotations

import importlib
import logging
from typing import Protocol, cast

from fastapi import FastAPI

from config import Settings

log = logging.getLogger("otel")

trace: object | None = None
OTLPSpanExporter: object | None = None
FastAPIInstrumentor: object | None = None
LoggingInstrumentor: object | None = None
Resource: object | None = None
TracerProvider: object | None = None
BatchSpanProcessor: object | None = None


def _load_optional_telemetry_components() -> None:
    global trace
    global OTLPSpanExporter
    global FastAPIInstrumentor
    global LoggingInstrumentor
    global Resource
    global TracerProvider
    global BatchSpanProcessor

    try:
        trace = importlib.import_module("opentelemetry.trace")
        OTLPSpanExporter = importlib.import_module(
            "opentelemetry.exporter.otlp.proto.http.trace_exporter"
        ).OTLPSpanExporter
        FastAPIInstrumentor = importlib.import_module(
            "opentelemetry.instrumentation.fastapi"
        ).FastAPIInstrumentor
        LoggingInstrumentor = importlib.import_module(
            "opentelemetry.instrumentation.logging"
        ).LoggingInstrumentor
        Resource = importlib.import_module("opentelemetry.sdk.resources").Resource
        TracerProvider = importlib.import_module(
            "opentelemetry.sdk.trace"
        ).TracerProvider
        BatchSpanProcessor = importlib.import_module(
            "opentelemetry.sdk.trace.export"
        ).BatchSpanProcessor
    except ImportError:  # pragma: no cover - optional dependency
        trace = None
        OTLPSpanExporter = None
        FastAPIInstrumentor = None
        LoggingInstrumentor = None
        Resource = None
        TracerProvider = None
        BatchSpanProcessor = None


_load_optional_telemetry_components()


class TracerProtocol(Protocol):
    """Protocol for OpenTelemetry tracer-like objects."""

    def start_as_current_span(self: TracerProtocol, name: str) -> object:
        """Start span context manager."""


class SpanContextProtocol(Protocol):
    trace_id: int
    span_id: int
    is_valid: bool


class SpanProtocol(Protocol):
    def get_span_context(self: SpanProtocol) -> SpanContextProtocol:
        """Return the immutable span context."""


class TraceModuleProtocol(Protocol):
    """Protocol for the `opentelemetry.trace` module API used here."""

    def get_tracer(self: TraceModuleProtocol, name: str) -> TracerProtocol:
        """Return tracer by name."""

    def get_current_span(self: TraceModuleProtocol) -> SpanProtocol:
        """Return the active span."""

    def set_tracer_provider(self: TraceModuleProtocol, provider: object) -> None:
        """Set tracer provider."""


class ResourceProtocol(Protocol):
    @staticmethod
    def create(payload: dict[str, str]) -> object:
        """Create resource object."""


class TracerProviderProtocol(Protocol):
    def add_span_processor(self: TracerProviderProtocol, processor: object) -> None:
        """Attach span processor."""


class TracerProviderFactoryProtocol(Protocol):
    def __call__(
        self: TracerProviderFactoryProtocol, *, resource: object
    ) -> TracerProviderProtocol:
        """Create provider instance."""


class ExporterFactoryProtocol(Protocol):
    def __call__(
        self: ExporterFactoryProtocol,
        *,
        endpoint: str,
        headers: dict[str, str],
        timeout: float,
    ) -> object:
        """Create exporter."""


class BatchProcessorFactoryProtocol(Protocol):
    def __call__(self: BatchProcessorFactoryProtocol, exporter: object) -> object:
        """Create batch span processor."""


class LoggingInstrumentorProtocol(Protocol):
    def instrument(
        self: LoggingInstrumentorProtocol, set_logging_format: bool = False
    ) -> None:
        """Enable log record trace correlation."""


class LoggingInstrumentorFactoryProtocol(Protocol):
    def __call__(
        self: LoggingInstrumentorFactoryProtocol,
    ) -> LoggingInstrumentorProtocol:
        """Create instrumentor instance."""


class FastApiInstrumentorProtocol(Protocol):
    @staticmethod
    def instrument_app(application: FastAPI) -> None:
        """Instrument FastAPI application."""


def get_tracer(name: str) -> TracerProtocol | None:
    """Return configured tracer when telemetry dependency is present."""
    if trace is None:
        return None
    return cast(TraceModuleProtocol, trace).get_tracer(name)


def get_current_trace_identifiers() -> dict[str, str]:
    """Return the active trace and span ids as lowercase hex.

    Returns
    -------
    dict[str, str]
        ``{"trace_id": ..., "span_id": ...}``, or an empty mapping when no
        valid span is active.
    """
    if trace is None:
        return {}
    span = cast(TraceModuleProtocol, trace).get_current_span()
    span_context = span.get_span_context()
    if not span_context.is_valid:
        return {}
    return {
        "trace_id": format(span_context.trace_id, "032x"),
        "span_id": format(span_context.span_id, "016x"),
    }


def _parse_headers(s: str) -> dict[str, str]:
    """Parse OTLP headers from a ``k1=v1,k2=v2`` string; bad parts are skipped."""
    parsed_headers = {}
    for part in [p.strip() for p in (s or "").split(",") if p.strip()]:
        if "=" in part:
            k, v = part.split("=", 1)
            parsed_headers[k.strip()] = v.strip()
    return parsed_headers


def setup_telemetry(settings: Settings) -> bool:
    """Configure the OTLP span exporter and log correlation.

    Parameters
    ----------
    settings : Settings
        Runtime settings containing telemetry controls.

    Returns
    -------
    bool
        ``True`` when the exporter has been configured.
    """
    if not settings.otel_enabled:
        log.info("OTEL disabled")
        return False

    if (
        trace is None
        or Resource is None
        or TracerProvider is None
        or OTLPSpanExporter is None
        or BatchSpanProcessor is None
        or LoggingInstrumentor is None
    ):
        log.info("OTEL dependencies unavailable; exporter disabled.")
        return False

    if not settings.otel_endpoint:
        log.info("OTEL enabled but no endpoint configured; exporter disabled.")
        return False

    resource = cast(ResourceProtocol, Resource).create(
        {
            "service.name": settings.service_name,
            "service.version": settings.service_version,
            "deployment.environment": settings.deployment_env,
        }
    )

    provider = cast(TracerProviderFactoryProtocol, TracerProvider)(resource=resource)
    cast(TraceModuleProtocol, trace).set_tracer_provider(provider)

    exporter = cast(ExporterFactoryProtocol, OTLPSpanExporter)(
        endpoint=settings.otel_endpoint,
        headers=_parse_headers(settings.otel_headers),
        timeout=settings.otel_timeout_s,
    )
    provider.add_span_processor(
        cast(BatchProcessorFactoryProtocol, BatchSpanProcessor)(exporter)
    )
    cast(LoggingInstrumentorFactoryProtocol, LoggingInstrumentor)().instrument(
        set_logging_format=True
    )

    log.info("OTEL exporter configured: %s", settings.otel_endpoint)
    return True


def instrument_fastapi_application(settings: Settings, application: FastAPI) -> None:
    """Instrument a FastAPI application when telemetry is enabled."""
    if settings.otel_enabled and FastAPIInstrumentor is not None:
        cast(FastApiInstrumentorProtocol, FastAPIInstrumentor).instrument_app(
            application
        )
