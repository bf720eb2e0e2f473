"""Transport collaborator for the request executor.

The executor talks to the network only through the Transport protocol.
HttpxTransport is the default implementation; tests substitute their own.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Mapping, Optional, Protocol

import httpx
import structlog

from housing_client.http.cancellation import CancellationSignal

log = structlog.get_logger()


class TransportCancelled(Exception):
    """The in-flight send was abandoned because its signal fired.

    Attributes:
        reason: The signal's cancellation reason.
    """

    def __init__(self, reason: Any = None) -> None:
        self.reason = reason
        super().__init__(f"Transport cancelled: {reason}")


class Transport(Protocol):
    """Sends one HTTP request.

    Implementations must raise TransportCancelled when ``signal`` fires
    before a response is available. Any other exception is treated as a
    network failure by the executor.
    """

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        content: Optional[bytes],
        signal: CancellationSignal,
    ) -> httpx.Response: ...

    async def aclose(self) -> None: ...


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``.

    Deadlines are owned by the executor, so the client is created without
    its own timeout. Redirects are followed; callers only see the final
    response.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=None, follow_redirects=True)

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        content: Optional[bytes],
        signal: CancellationSignal,
    ) -> httpx.Response:
        if signal.cancelled:
            raise TransportCancelled(signal.reason)

        request_task = asyncio.ensure_future(
            self._client.request(method, url, headers=dict(headers), content=content)
        )
        cancel_task = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait(
                {request_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_task.cancel()
            if not request_task.done():
                request_task.cancel()
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await request_task

        # A signal that fired in the same tick as the response wins.
        if request_task in done and not signal.cancelled:
            return request_task.result()
        if request_task.done() and not request_task.cancelled():
            request_task.exception()

        log.debug("transport_send_cancelled", method=method, url=url, reason=str(signal.reason))
        raise TransportCancelled(signal.reason)

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()
