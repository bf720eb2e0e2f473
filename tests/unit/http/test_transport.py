"""Unit tests for the httpx-backed transport."""

import asyncio

import httpx
import pytest
import respx

from housing_client.http.cancellation import CancellationController
from housing_client.http.transport import HttpxTransport, TransportCancelled

URL = "http://portal.test/api/rooms"


def hanging_client(started: asyncio.Event) -> httpx.AsyncClient:
    """AsyncClient whose requests never complete on their own."""

    async def handler(request: httpx.Request) -> httpx.Response:
        started.set()
        await asyncio.sleep(3600)
        return httpx.Response(200)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestHttpxTransport:
    @respx.mock
    async def test_send_returns_response(self) -> None:
        route = respx.post(URL).mock(return_value=httpx.Response(201, json={"id": 9}))
        transport = HttpxTransport()
        controller = CancellationController()

        response = await transport.send(
            "POST",
            URL,
            headers={"Content-Type": "application/json", "X-Trace": "abc"},
            content=b'{"roomId": 7}',
            signal=controller.signal,
        )
        await transport.aclose()

        assert response.status_code == 201
        assert response.json() == {"id": 9}
        sent = route.calls.last.request
        assert sent.content == b'{"roomId": 7}'
        assert sent.headers["X-Trace"] == "abc"

    @respx.mock
    async def test_connect_error_propagates(self) -> None:
        respx.get(URL).mock(side_effect=httpx.ConnectError("refused"))
        transport = HttpxTransport()

        with pytest.raises(httpx.ConnectError):
            await transport.send(
                "GET", URL, headers={}, content=None, signal=CancellationController().signal
            )
        await transport.aclose()

    @respx.mock
    async def test_pre_cancelled_signal_sends_nothing(self) -> None:
        route = respx.get(URL).mock(return_value=httpx.Response(200))
        transport = HttpxTransport()
        controller = CancellationController()
        controller.cancel("gone")

        with pytest.raises(TransportCancelled) as exc_info:
            await transport.send("GET", URL, headers={}, content=None, signal=controller.signal)
        await transport.aclose()

        assert exc_info.value.reason == "gone"
        assert not route.called

    async def test_signal_abandons_in_flight_request(self) -> None:
        started = asyncio.Event()
        client = hanging_client(started)
        transport = HttpxTransport(client)
        controller = CancellationController()

        send = asyncio.create_task(
            transport.send("GET", URL, headers={}, content=None, signal=controller.signal)
        )
        await asyncio.wait_for(started.wait(), timeout=1)
        controller.cancel("timeout")

        with pytest.raises(TransportCancelled) as exc_info:
            await asyncio.wait_for(send, timeout=1)
        assert exc_info.value.reason == "timeout"
        await client.aclose()

    async def test_injected_client_is_not_closed(self) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(204)))
        transport = HttpxTransport(client)

        await transport.aclose()

        assert not client.is_closed
        await client.aclose()

    async def test_owned_client_is_closed(self) -> None:
        transport = HttpxTransport()
        await transport.aclose()
        assert transport._client.is_closed
