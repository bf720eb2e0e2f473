"""Cooperative cancellation primitives.

A CancellationController owns a CancellationSignal. Code that may be
cancelled observes the signal (``cancelled``, ``wait()``, ``subscribe()``);
only the controller's owner can fire it.

Example:
    >>> controller = CancellationController()
    >>> task = asyncio.create_task(client.get("/bookings", signal=controller.signal))
    >>> controller.cancel("user navigated away")
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional


Unsubscribe = Callable[[], None]


class CancellationSignal:
    """Read side of a cancellation controller.

    Attributes:
        cancelled: Whether the signal has fired.
        reason: Value passed to ``CancellationController.cancel``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Any = None
        self._callbacks: List[Callable[[Any], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Any:
        return self._reason

    async def wait(self) -> Any:
        """Suspend until the signal fires; return its reason."""
        await self._event.wait()
        return self._reason

    def subscribe(self, callback: Callable[[Any], None]) -> Unsubscribe:
        """Register ``callback(reason)`` to run when the signal fires.

        Callbacks registered after the signal fired are not invoked; check
        ``cancelled`` first.

        Returns:
            A function that removes the callback. Calling it more than once
            is harmless.
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def _fire(self, reason: Any) -> bool:
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(reason)
        return True


class CancellationController:
    """Owner handle that can fire a CancellationSignal exactly once."""

    def __init__(self) -> None:
        self._signal = CancellationSignal()

    @property
    def signal(self) -> CancellationSignal:
        return self._signal

    def cancel(self, reason: Optional[Any] = None) -> bool:
        """Fire the signal.

        Returns:
            True if this call fired the signal, False if it had already fired.
        """
        return self._signal._fire(reason if reason is not None else "cancelled")
