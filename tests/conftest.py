"""
housing-client Test Configuration

Shared pytest fixtures and configuration for all test types.
"""

import asyncio
import os
from typing import Any, Callable, Generator, List, Mapping, Optional
from unittest.mock import AsyncMock

import httpx
import pytest
import structlog

from housing_client.core.config import ClientConfig, RetryPolicy, reset_settings
from housing_client.http.cancellation import CancellationSignal
from housing_client.http.executor import RequestExecutor
from housing_client.http.transport import TransportCancelled


BASE_URL = "http://portal.test/api"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "timing: Tests that rely on real timer expiry")


@pytest.fixture(autouse=True)
def isolated_environment() -> Generator[None, None, None]:
    """Reset settings, HOUSING_CLIENT_ env vars and structlog around each test."""
    reset_settings()
    for key in list(os.environ.keys()):
        if key.startswith("HOUSING_CLIENT_"):
            del os.environ[key]

    yield

    reset_settings()
    structlog.reset_defaults()
    for key in list(os.environ.keys()):
        if key.startswith("HOUSING_CLIENT_"):
            del os.environ[key]


class FakeTransport:
    """Scripted Transport double.

    Each send consumes the next outcome; the last outcome repeats. An
    outcome is an httpx.Response (returned), an exception (raised),
    FakeTransport.HANG (wait for the signal, then raise TransportCancelled)
    or an async callable taking the signal.
    """

    HANG = object()

    def __init__(self, *outcomes: Any) -> None:
        self._outcomes = list(outcomes) or [httpx.Response(204)]
        self.calls: List[dict] = []
        self.closed = False

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        content: Optional[bytes],
        signal: CancellationSignal,
    ) -> httpx.Response:
        loop = asyncio.get_running_loop()
        call = {
            "method": method,
            "url": url,
            "headers": dict(headers),
            "content": content,
            "signal": signal,
            "started": loop.time(),
            "ended": None,
        }
        self.calls.append(call)
        outcome = self._outcomes[min(len(self.calls) - 1, len(self._outcomes) - 1)]

        try:
            if outcome is FakeTransport.HANG:
                reason = await signal.wait()
                raise TransportCancelled(reason)
            if isinstance(outcome, BaseException):
                raise outcome
            if callable(outcome):
                return await outcome(signal)
            return outcome
        finally:
            call["ended"] = loop.time()

    async def aclose(self) -> None:
        self.closed = True

    @property
    def durations(self) -> List[float]:
        return [call["ended"] - call["started"] for call in self.calls]


@pytest.fixture
def fake_transport() -> Callable[..., FakeTransport]:
    """Factory fixture building a FakeTransport from scripted outcomes."""
    return FakeTransport


@pytest.fixture
def hang() -> object:
    """Outcome marker: the transport only returns once cancelled."""
    return FakeTransport.HANG


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Fast policy for executor tests (timeouts in ms)."""
    return RetryPolicy(
        default_timeout_ms=20,
        max_retries=2,
        max_timeout_ms=100,
        backoff_multiplier=2,
        retry_delay_ms=5,
    )


@pytest.fixture
def client_config(retry_policy: RetryPolicy) -> ClientConfig:
    return ClientConfig(base_url=BASE_URL, retry=retry_policy)


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Inter-attempt delay that records its argument without waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def make_executor(client_config: ClientConfig, no_sleep: AsyncMock) -> Callable[..., RequestExecutor]:
    """Factory fixture: RequestExecutor around a transport, with fast defaults."""

    def _make(transport: Any, config: Optional[ClientConfig] = None) -> RequestExecutor:
        return RequestExecutor(config or client_config, transport, sleep=no_sleep)

    return _make


@pytest.fixture
def json_response() -> Callable[..., httpx.Response]:
    """Factory for JSON httpx responses."""

    def _make(status: int, payload: Any) -> httpx.Response:
        return httpx.Response(status, json=payload)

    return _make
