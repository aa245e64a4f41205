"""Tests for telemetry setup."""

from types import SimpleNamespace as types_SimpleNamespace
from typing import Self

from pytest import MonkeyPatch as pytest_MonkeyPatch
from pytest import mark as pytest_mark

from config import Settings
from telemetry import (
    _parse_headers,
    get_current_trace_identifiers,
    instrument_fastapi_application,
    setup_telemetry,
)

pytestmark = pytest_mark.unit


class _Recorder:
    def __init__(self: Self) -> None:
        self.calls: list[tuple[tuple[object, ...], dict[str, object]]] = []

    def add(self: Self, *args: object, **kwargs: object) -> None:
        self.calls.append((args, kwargs))


def _install_fake_otel(
    monkeypatch: pytest_MonkeyPatch, recorder: _Recorder
) -> None:
    """Replace every optional OpenTelemetry component with recording fakes.

    Parameters
    ----------
    monkeypatch : pytest.MonkeyPatch
        Pytest monkeypatch fixture used to replace module attributes.
    recorder : _Recorder
        Collects one entry per fake component call.
    """
    import telemetry as telemetry_module

    class FakeProvider:
        def __init__(self: Self, resource: object) -> None:
            recorder.add("provider", resource=resource)

        def add_span_processor(self: Self, processor: object) -> None:
            recorder.add("processor", processor=processor)

    monkeypatch.setattr(
        telemetry_module,
        "trace",
        types_SimpleNamespace(
            set_tracer_provider=lambda provider: recorder.add("set_provider")
        ),
    )
    monkeypatch.setattr(
        telemetry_module,
        "Resource",
        types_SimpleNamespace(
            create=lambda payload: recorder.add("resource", payload=payload)
        ),
    )
    monkeypatch.setattr(telemetry_module, "TracerProvider", FakeProvider)
    monkeypatch.setattr(
        telemetry_module,
        "OTLPSpanExporter",
        lambda **kwargs: recorder.add("exporter", **kwargs),
    )
    monkeypatch.setattr(
        telemetry_module, "BatchSpanProcessor", lambda exporter: object()
    )
    monkeypatch.setattr(
        telemetry_module,
        "LoggingInstrumentor",
        lambda: types_SimpleNamespace(
            instrument=lambda set_logging_format: recorder.add(
                "logging", set_logging_format=set_logging_format
            )
        ),
    )


def test_parse_headers_handles_empty_and_pairs() -> None:
    assert _parse_headers("") == {}
    assert _parse_headers("a=b, c=d ,bad, x=1=2") == {"a": "b", "c": "d", "x": "1=2"}


def test_setup_telemetry_returns_false_when_disabled(
    monkeypatch: pytest_MonkeyPatch,
) -> None:
    monkeypatch.setenv("OTEL_ENABLED", "false")
    assert setup_telemetry(Settings()) is False


def test_setup_telemetry_returns_false_when_dependencies_missing(
    monkeypatch: pytest_MonkeyPatch,
) -> None:
    monkeypatch.setenv("OTEL_ENABLED", "true")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector")
    import telemetry as telemetry_module

    monkeypatch.setattr(telemetry_module, "trace", None)
    assert setup_telemetry(Settings()) is False


def test_setup_telemetry_returns_false_without_endpoint(
    monkeypatch: pytest_MonkeyPatch,
) -> None:
    monkeypatch.setenv("OTEL_ENABLED", "true")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")
    recorder = _Recorder()
    _install_fake_otel(monkeypatch, recorder)
    assert setup_telemetry(Settings()) is False
    assert recorder.calls == []


def test_setup_telemetry_happy_path(monkeypatch: pytest_MonkeyPatch) -> None:
    """Configure resource, provider, exporter and log correlation."""
    monkeypatch.setenv("OTEL_ENABLED", "true")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_HEADERS", "a=b")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_TIMEOUT", "3")
    monkeypatch.setenv("SERVICE_NAME", "marshal-test")
    recorder = _Recorder()
    _install_fake_otel(monkeypatch, recorder)

    assert setup_telemetry(Settings()) is True

    calls = {args[0]: kwargs for args, kwargs in recorder.calls}
    assert calls["resource"]["payload"]["service.name"] == "marshal-test"
    assert calls["exporter"] == {
        "endpoint": "http://collector",
        "headers": {"a": "b"},
        "timeout": 3.0,
    }
    assert calls["logging"] == {"set_logging_format": True}
    assert "set_provider" in calls
    assert "processor" in calls


def test_instrument_fastapi_when_enabled(monkeypatch: pytest_MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_ENABLED", "true")
    import telemetry as telemetry_module

    rec = _Recorder()
    monkeypatch.setattr(
        telemetry_module,
        "FastAPIInstrumentor",
        types_SimpleNamespace(
            instrument_app=lambda application: rec.add(application=application)
        ),
    )
    instrument_fastapi_application(Settings(), object())
    assert rec.calls


def test_instrument_fastapi_noop_when_disabled(monkeypatch: pytest_MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_ENABLED", "false")
    import telemetry as telemetry_module

    rec = _Recorder()
    monkeypatch.setattr(
        telemetry_module,
        "FastAPIInstrumentor",
        types_SimpleNamespace(
            instrument_app=lambda application: rec.add(application=application)
        ),
    )
    instrument_fastapi_application(Settings(), object())
    assert rec.calls == []


def test_get_current_trace_identifiers_returns_empty_without_trace(
    monkeypatch: pytest_MonkeyPatch,
) -> None:
    import telemetry as telemetry_module

    monkeypatch.setattr(telemetry_module, "trace", None)
    assert get_current_trace_identifiers() == {}


def test_get_current_trace_identifiers_returns_ids(
    monkeypatch: pytest_MonkeyPatch,
) -> None:
    """Validate current trace identifiers are rendered as lowercase hex."""
    import telemetry as telemetry_module

    span_context = types_SimpleNamespace(trace_id=0x1234, span_id=0xABCD, is_valid=True)
    fake_span = types_SimpleNamespace(get_span_context=lambda: span_context)
    monkeypatch.setattr(
        telemetry_module,
        "trace",
        types_SimpleNamespace(get_current_span=lambda: fake_span),
    )
    assert get_current_trace_identifiers() == {
        "trace_id": "00000000000000000000000000001234",
        "span_id": "000000000000abcd",
    }


def test_get_current_trace_identifiers_returns_empty_for_invalid_context(
    monkeypatch: pytest_MonkeyPatch,
) -> None:
    import telemetry as telemetry_module

    span_context = types_SimpleNamespace(trace_id=1, span_id=2, is_valid=False)
    fake_span = types_SimpleNamespace(get_span_context=lambda: span_context)
    monkeypatch.setattr(
        telemetry_module,
        "trace",
        types_SimpleNamespace(get_current_span=lambda: fake_span),
    )
    assert get_current_trace_identifiers() == {}


def test_get_tracer_returns_value_when_trace_module_present(
    monkeypatch: pytest_MonkeyPatch,
) -> None:
    import telemetry as telemetry_module

    sentinel = object()
    monkeypatch.setattr(
        telemetry_module,
        "trace",
        types_SimpleNamespace(get_tracer=lambda name: sentinel),
    )
    assert telemetry_module.get_tracer("any") is sentinel
