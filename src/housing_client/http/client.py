"""Public call surface for the housing portal API.

ApiClient exposes the four verbs used by the portal's service modules.
All of them route through RequestExecutor.request, return the decoded
payload and raise a RequestError subclass on failure.

Usage:
    from housing_client import create_client

    async with create_client() as client:
        listings = await client.get("/accommodations")
        await client.post("/bookings", {"roomId": 7}, retry_on_timeout=False)
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import structlog

from housing_client.core.config import ClientConfig, Settings, get_settings
from housing_client.http.cancellation import CancellationSignal
from housing_client.http.executor import RequestExecutor, SleepFunc
from housing_client.http.transport import HttpxTransport, Transport

log = structlog.get_logger()


class ApiClient:
    """Verb-level facade over a RequestExecutor.

    Args:
        config: Resolved client configuration.
        transport: Optional transport. When omitted the client creates an
            HttpxTransport and closes it in ``aclose()``.
        sleep: Inter-attempt delay coroutine, injectable for tests.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[Transport] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport()
        self._executor = RequestExecutor(config, self._transport, sleep=sleep)

    @property
    def config(self) -> ClientConfig:
        return self._executor.config

    @property
    def executor(self) -> RequestExecutor:
        return self._executor

    async def get(
        self,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        retry_on_timeout: bool = True,
        signal: Optional[CancellationSignal] = None,
    ) -> Any:
        return await self._executor.request(
            "GET",
            path,
            headers=headers,
            timeout=timeout,
            retry_on_timeout=retry_on_timeout,
            signal=signal,
        )

    async def post(
        self,
        path: str,
        body: Any = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        retry_on_timeout: bool = True,
        signal: Optional[CancellationSignal] = None,
    ) -> Any:
        return await self._executor.request(
            "POST",
            path,
            body=body,
            headers=headers,
            timeout=timeout,
            retry_on_timeout=retry_on_timeout,
            signal=signal,
        )

    async def put(
        self,
        path: str,
        body: Any = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        retry_on_timeout: bool = True,
        signal: Optional[CancellationSignal] = None,
    ) -> Any:
        return await self._executor.request(
            "PUT",
            path,
            body=body,
            headers=headers,
            timeout=timeout,
            retry_on_timeout=retry_on_timeout,
            signal=signal,
        )

    async def delete(
        self,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        retry_on_timeout: bool = True,
        signal: Optional[CancellationSignal] = None,
    ) -> Any:
        return await self._executor.request(
            "DELETE",
            path,
            headers=headers,
            timeout=timeout,
            retry_on_timeout=retry_on_timeout,
            signal=signal,
        )

    async def aclose(self) -> None:
        """Release the transport if this client created it."""
        if self._owns_transport:
            await self._transport.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def create_client(
    settings: Optional[Settings] = None,
    transport: Optional[Transport] = None,
) -> ApiClient:
    """Build an ApiClient from settings (defaults to ``get_settings()``)."""
    settings = settings or get_settings()
    config = settings.to_client_config()
    log.debug("api_client_created", base_url=config.base_url)
    return ApiClient(config, transport=transport)
