"""Shared fixtures for the marshaling test suite."""

from collections.abc import AsyncIterator, Iterator

from fastapi import FastAPI
from httpx import ASGITransport as httpx_ASGITransport
from httpx import AsyncClient as httpx_AsyncClient
from pytest import MonkeyPatch, fixture
from pytest_asyncio import fixture as asyncio_fixture

from application import create_application
from config import Settings


@fixture
def base_env(monkeypatch: MonkeyPatch) -> Iterator[None]:
    """Set baseline environment variables for application tests.

    Parameters
    ----------
    monkeypatch : pytest.MonkeyPatch
        Pytest monkeypatch fixture used to configure environment.

    Returns
    -------
    Iterator[None]
        Yields once the environment is in place.
    """
    monkeypatch.setenv("ARGS_MAX_DEPTH", "64")
    monkeypatch.setenv("ARGS_DEFAULT_INT_TYPE", "i64")
    monkeypatch.setenv("MAX_BODY_BYTES", "1000000")
    monkeypatch.setenv("MAX_ARGUMENTS", "16")
    monkeypatch.setenv("MAX_INFLIGHT", "4")
    monkeypatch.setenv("ACQUIRE_TIMEOUT_S", "0.2")
    monkeypatch.setenv("PROMETHEUS_ENABLED", "true")
    monkeypatch.setenv("PROMETHEUS_PATH", "/metrics")
    monkeypatch.setenv("SWAGGER_ENABLED", "false")
    monkeypatch.setenv("OTEL_ENABLED", "false")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")
    yield


def _make_client(app: FastAPI) -> httpx_AsyncClient:
    """Create an ASGI test client for the given FastAPI application."""
    transport = httpx_ASGITransport(app=app)
    return httpx_AsyncClient(transport=transport, base_url="http://test")


@fixture
def marshal_app(base_env: None) -> FastAPI:
    """Build the application from the baseline environment."""
    return create_application(Settings())


@asyncio_fixture
async def client(marshal_app: FastAPI) -> AsyncIterator[httpx_AsyncClient]:
    """Provide an async client bound to ``marshal_app``.

    Parameters
    ----------
    marshal_app : FastAPI
        Application fixture built from the baseline environment.

    Returns
    -------
    AsyncIterator[httpx.AsyncClient]
        Client sending requests through the ASGI transport.
    """
    async with _make_client(marshal_app) as async_client:
        yield async_client
