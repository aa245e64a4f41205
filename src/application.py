"""HTTP application factory and marshal request flow."""

from __future__ import annotations

import asyncio
import importlib
import logging
import time
from collections.abc import Awaitable, Callable, Iterator, Sequence
from contextlib import AbstractContextManager, contextmanager
from types import TracebackType
from typing import Literal, Protocol, cast

from fastapi import FastAPI, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from arguments import ArgumentParser
from config import Settings
from errors import ArgumentParseError
from host import HostEnv
from normalize import normalize_arguments, params_from_type_names
from openapi_contract import OPENAPI_CONTRACT_PATH, load_openapi_contract
from telemetry import (
    get_current_trace_identifiers,
    get_tracer,
    instrument_fastapi_application,
    setup_telemetry,
)
from typed_values import MarshalPolicy
from value_types import JsonDict, JsonValue, SpanAttributeValue

log = logging.getLogger("marshal.http")
_OPENAPI_ATTR = "openapi"
_SWAGGER_UI_HTML = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>API Docs</title>
  <link rel="stylesheet" href="https://unpkg.com/swagger-ui-dist@5/swagger-ui.css" />
</head>
<body>
  <div id="swagger-ui"></div>
  <script src="https://unpkg.com/swagger-ui-dist@5/swagger-ui-bundle.js"></script>
  <script>
    window.ui = SwaggerUIBundle({
      url: "/openapi.yaml",
      dom_id: "#swagger-ui",
      deepLinking: true,
      presets: [SwaggerUIBundle.presets.apis],
    });
  </script>
</body>
</html>
"""

try:
    Instrumentator = importlib.import_module(
        "prometheus_fastapi_instrumentator"
    ).Instrumentator
except ImportError:  # pragma: no cover - optional dependency
    Instrumentator = None


class ArgumentLimitExceeded(ValueError):
    """Raised when a request carries more arguments than allowed."""


class _NoopSpan:
    """No-op tracing span used when OpenTelemetry is not available."""

    def __enter__(self: _NoopSpan) -> _NoopSpan:
        return self

    def __exit__(
        self: _NoopSpan,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> Literal[False]:
        return False

    def set_attribute(self: _NoopSpan, _k: str, _v: SpanAttributeValue) -> None:
        return None


@contextmanager
def _noop_span() -> Iterator[_NoopSpan]:
    yield _NoopSpan()


class _SpanLike(Protocol):
    def set_attribute(self: _SpanLike, key: str, value: SpanAttributeValue) -> None:
        """Set span attribute."""


class _TracerLike(Protocol):
    def start_as_current_span(
        self: _TracerLike, name: str
    ) -> AbstractContextManager[_SpanLike]:
        """Start a span context manager."""


class _NoopTracer:
    """No-op tracer used when OpenTelemetry is unavailable."""

    def start_as_current_span(
        self: _NoopTracer, _name: str
    ) -> AbstractContextManager[_NoopSpan]:
        return _noop_span()


tracer: _TracerLike = cast(_TracerLike, get_tracer("marshal") or _NoopTracer())


class MarshalApplicationBuilder:
    """Compose and configure the FastAPI marshaling application."""

    def __init__(self: MarshalApplicationBuilder, settings: Settings) -> None:
        """Initialize builder with runtime settings.

        Parameters
        ----------
        settings : Settings
            Runtime settings.
        """
        self.settings = settings
        self.application = FastAPI(
            title=settings.service_name,
            version=settings.service_version,
            openapi_url=None,
            docs_url=None,
            redoc_url=None,
        )
        self._policy: MarshalPolicy | None = None
        self._semaphore = asyncio.Semaphore(settings.max_inflight)

    def build(self: MarshalApplicationBuilder) -> FastAPI:
        """Build and return configured FastAPI application."""
        self._configure_telemetry()
        self._configure_metrics()
        self._register_body_limit_middleware()
        self._register_routes()
        self._bind_openapi_contract()
        return self.application

    def _bind_openapi_contract(self: MarshalApplicationBuilder) -> None:
        """Serve the checked-in contract, falling back to the generated schema."""
        generated_openapi = self.application.openapi

        def _openapi() -> JsonDict:
            contract = load_openapi_contract()
            if contract is not None:
                return contract
            return cast(JsonDict, generated_openapi())

        setattr(self.application, _OPENAPI_ATTR, _openapi)

    def _configure_telemetry(self: MarshalApplicationBuilder) -> None:
        if setup_telemetry(self.settings):
            instrument_fastapi_application(self.settings, self.application)

    def _configure_metrics(self: MarshalApplicationBuilder) -> None:
        """Expose metrics endpoint when Prometheus is enabled."""
        if not self.settings.prometheus_enabled:
            return
        if Instrumentator is not None:
            Instrumentator().instrument(self.application).expose(
                self.application,
                endpoint=self.settings.prometheus_path,
                include_in_schema=False,
            )
            log.info("Prometheus enabled at %s", self.settings.prometheus_path)
            return

        @self.application.get(self.settings.prometheus_path, include_in_schema=False)
        def _fallback_metrics() -> PlainTextResponse:
            return PlainTextResponse(
                "# HELP marshal_up Service readiness\n"
                "# TYPE marshal_up gauge\nmarshal_up 1\n",
                status_code=200,
            )

    def _register_body_limit_middleware(self: MarshalApplicationBuilder) -> None:
        """Register middleware enforcing maximum payload size."""

        @self.application.middleware("http")
        async def limit_body(
            request: Request,
            call_next: Callable[[Request], Awaitable[Response]],
        ) -> Response:
            body = await request.body()
            if len(body) > self.settings.max_body_bytes:
                return JSONResponse(
                    {
                        "error": "payload_too_large",
                        "max_bytes": self.settings.max_body_bytes,
                    },
                    status_code=413,
                )
            request.state.cached_body = body
            return await call_next(request)

    def _register_routes(self: MarshalApplicationBuilder) -> None:
        """Register health and marshal routes."""

        @self.application.get("/live")
        def live() -> PlainTextResponse:
            """Return process liveness status."""
            return PlainTextResponse("\n", status_code=200)

        @self.application.get("/healthz")
        def healthz() -> PlainTextResponse:
            return PlainTextResponse("\n", status_code=200)

        @self.application.get("/ready")
        def ready() -> PlainTextResponse:
            """Return readiness status.

            Returns
            -------
            fastapi.responses.PlainTextResponse
                HTTP 200 when the marshal policy is valid, otherwise HTTP 500.
            """
            return self._build_readiness_response()

        @self.application.get("/readyz")
        def readyz() -> PlainTextResponse:
            return self._build_readiness_response()

        @self.application.post("/marshal")
        async def marshal(request: Request) -> Response:
            return await self._handle_marshal(request)

        if self.settings.swagger_enabled:

            @self.application.get("/openapi.yaml", include_in_schema=False)
            def openapi_contract() -> Response:
                if not OPENAPI_CONTRACT_PATH.exists():
                    return JSONResponse(
                        {"error": "openapi_contract_not_found"}, status_code=404
                    )
                return PlainTextResponse(
                    OPENAPI_CONTRACT_PATH.read_text(encoding="utf-8"),
                    media_type="application/yaml",
                    status_code=200,
                )

            @self.application.get("/docs", include_in_schema=False)
            def swagger_ui() -> HTMLResponse:
                return HTMLResponse(_SWAGGER_UI_HTML, status_code=200)

    def _build_readiness_response(
        self: MarshalApplicationBuilder,
    ) -> PlainTextResponse:
        try:
            self._ensure_policy_loaded()
        except ValueError:
            log.exception("Readiness check failed")
            return PlainTextResponse("\n", status_code=500)
        return PlainTextResponse("\n", status_code=200)

    def _ensure_policy_loaded(self: MarshalApplicationBuilder) -> MarshalPolicy:
        """Build the marshal policy on first use."""
        if self._policy is None:
            self._policy = self.settings.marshal_policy()
            log.info(
                "Loaded marshal policy max_depth=%d default_integer=%s",
                self._policy.max_depth,
                self._policy.default_integer,
            )
        return self._policy

    async def _handle_marshal(
        self: MarshalApplicationBuilder, request: Request
    ) -> Response:
        """Handle a marshal request with concurrency guard.

        Parameters
        ----------
        request : Request
            Incoming HTTP request.

        Returns
        -------
        Response
            Marshaled arguments or an error description.
        """
        acquired = await self._try_acquire_request_slot()
        if not acquired:
            return JSONResponse({"error": "too_many_requests"}, status_code=429)

        start_time = time.time()
        try:
            return await self._run_marshal(request=request, start_time=start_time)
        except ArgumentParseError as error:
            log.warning("Rejected arguments: %s", error)
            return JSONResponse(error.to_payload(), status_code=400)
        except ArgumentLimitExceeded as error:
            log.warning("Rejected arguments: %s", error)
            return JSONResponse(
                {"error": "too_many_arguments", "message": str(error)},
                status_code=400,
            )
        except Exception:
            log.exception("Marshaling failed")
            return JSONResponse({"error": "internal_server_error"}, status_code=500)
        finally:
            self._semaphore.release()

    async def _try_acquire_request_slot(self: MarshalApplicationBuilder) -> bool:
        """Try to acquire one concurrency slot within timeout."""
        try:
            await asyncio.wait_for(
                self._semaphore.acquire(),
                timeout=self.settings.acquire_timeout_s,
            )
            return True
        except TimeoutError:
            return False

    async def _run_marshal(
        self: MarshalApplicationBuilder, request: Request, start_time: float
    ) -> Response:
        policy = self._ensure_policy_loaded()
        payload = getattr(request.state, "cached_body", None) or await request.body()
        type_names = request.query_params.getlist("param")

        with tracer.start_as_current_span("marshal") as span:
            span.set_attribute("request.bytes", len(payload))
            span.set_attribute("request.params", len(type_names))

            arguments = await asyncio.to_thread(
                self._marshal, payload, type_names, policy
            )
            span.set_attribute("arguments.count", len(arguments))
            span.set_attribute("latency_ms", (time.time() - start_time) * 1000.0)
            response = JSONResponse(
                {"count": len(arguments), "arguments": arguments}, status_code=200
            )
            self._attach_trace_correlation_headers(response)
            return response

    def _marshal(
        self: MarshalApplicationBuilder,
        payload: bytes,
        type_names: Sequence[str],
        policy: MarshalPolicy,
    ) -> list[JsonValue]:
        """Decode, normalize and marshal one request body on a worker thread."""
        parser = ArgumentParser(host=HostEnv(), policy=policy)
        document = parser.load(payload)
        if isinstance(document, list) and len(document) > self.settings.max_arguments:
            raise ArgumentLimitExceeded(
                f"{len(document)} arguments exceed the limit of "
                f"{self.settings.max_arguments}"
            )
        if type_names:
            document = normalize_arguments(document, params_from_type_names(type_names))
        values = parser.parse_document(document)
        return [value.to_tagged_json() for value in values]

    def _attach_trace_correlation_headers(
        self: MarshalApplicationBuilder, response: Response
    ) -> None:
        trace_identifiers = get_current_trace_identifiers()
        trace_id = trace_identifiers.get("trace_id")
        span_id = trace_identifiers.get("span_id")
        if trace_id:
            response.headers["x-trace-id"] = trace_id
        if span_id:
            response.headers["x-span-id"] = span_id


def create_application(settings: Settings) -> FastAPI:
    """Create and configure the marshaling FastAPI application.

    Parameters
    ----------
    settings : Settings
        Runtime settings.

    Returns
    -------
    fastapi.FastAPI
        Configured application instance.
    """
    return MarshalApplicationBuilder(settings).build()
