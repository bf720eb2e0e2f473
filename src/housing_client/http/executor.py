"""Resilient request executor.

Every HTTP call made by the portal flows through RequestExecutor.execute.
One logical call is a sequence of strictly sequential attempts:

    Idle -> Attempting(0) -> Succeeded
                          -> Failed(HTTP_ERROR | DECODE | NETWORK | ABORTED)
                          -> Retrying(1) -> Attempting(1) -> ... -> Failed(TIMEOUT)

Only timeouts are retried, and only when the call allows it. Each attempt
owns one CancellationController. The attempt's timer and its subscription
to the caller's signal are registered on an ExitStack, so both are released
before the attempt's outcome is acted upon, on every exit path.

Example:
    >>> executor = RequestExecutor(config, HttpxTransport())
    >>> rooms = await executor.request("GET", "/rooms", timeout=5000)
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import math
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, Mapping, Optional

import structlog

from housing_client.core.config import ClientConfig
from housing_client.core.exceptions import (
    NetworkError,
    RequestAbortedError,
    RequestError,
    RequestTimeoutError,
    UnknownRequestError,
)
from housing_client.http.cancellation import CancellationController, CancellationSignal
from housing_client.http.decoder import decode_response
from housing_client.http.transport import Transport

log = structlog.get_logger()

TIMEOUT_REASON = "timeout"

SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RequestConfig:
    """Everything one logical call needs; immutable for the call's lifetime.

    Attributes:
        method: HTTP method.
        path: Path relative to the configured base URL (or an absolute URL).
        body: Payload. str/bytes are sent verbatim, anything else as JSON.
        headers: Per-call header overrides.
        timeout_ms: Per-call override of the first attempt's timeout.
        signal: Caller-owned cancellation signal.
        retry_on_timeout: Whether timed-out attempts may be retried.
    """

    method: str
    path: str
    body: Any = None
    headers: Optional[Mapping[str, str]] = None
    timeout_ms: Optional[float] = None
    signal: Optional[CancellationSignal] = None
    retry_on_timeout: bool = True


@dataclass
class AttemptState:
    """State of the single live attempt of a logical call."""

    index: int
    timeout_ms: float
    controller: CancellationController = field(default_factory=CancellationController)
    timed_out: bool = False

    def expire(self) -> None:
        """Timer callback: abort the attempt and record that we caused it."""
        if self.controller.cancel(TIMEOUT_REASON):
            self.timed_out = True


def build_url(base_url: str, path: str) -> str:
    """Join a path onto the base URL."""
    if path.startswith(("http://", "https://")):
        return path
    if not path.startswith("/"):
        return f"{base_url}/{path}"
    return f"{base_url}{path}"


def merge_headers(
    defaults: Mapping[str, str],
    overrides: Optional[Mapping[str, str]],
) -> Dict[str, str]:
    """Overlay per-call headers on the defaults, matching names case-insensitively."""
    merged = dict(defaults)
    for name, value in (overrides or {}).items():
        for existing in [key for key in merged if key.lower() == name.lower()]:
            del merged[existing]
        merged[name] = value
    return merged


def encode_body(body: Any) -> Optional[bytes]:
    """Serialise a request body.

    Raises:
        TypeError: If a structured body is not JSON serialisable.
    """
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


class RequestExecutor:
    """Owns the attempt loop for every logical call.

    Args:
        config: Resolved client configuration (base URL, retry policy,
            default headers). Read once, never mutated.
        transport: Collaborator that performs the HTTP exchange.
        sleep: Coroutine used for the inter-attempt delay (seconds).
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Transport,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._config = config
        self._policy = config.retry
        self._transport = transport
        self._sleep = sleep

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        retry_on_timeout: bool = True,
        signal: Optional[CancellationSignal] = None,
    ) -> Any:
        """Issue one logical call and return its decoded payload.

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            body: Optional request payload.
            headers: Header overrides for this call.
            timeout: First-attempt timeout override in milliseconds.
            retry_on_timeout: False for calls that must never be resent.
            signal: External cancellation signal.

        Raises:
            RequestError: Exactly one classified kind per call.
        """
        return await self.execute(
            RequestConfig(
                method=method,
                path=path,
                body=body,
                headers=headers,
                timeout_ms=timeout,
                signal=signal,
                retry_on_timeout=retry_on_timeout,
            )
        )

    # -------------------------------------------------------------------------
    # Timeout arithmetic
    # -------------------------------------------------------------------------

    def resolve_timeout(self, override: Optional[float]) -> float:
        """Starting timeout: a valid override, else the default, capped at the ceiling."""
        timeout_ms = self._policy.default_timeout_ms
        if override is not None:
            if (
                isinstance(override, (int, float))
                and not isinstance(override, bool)
                and math.isfinite(override)
                and override > 0
            ):
                timeout_ms = float(override)
            else:
                log.warning("request_timeout_override_invalid", timeout=repr(override))
        return min(timeout_ms, self._policy.max_timeout_ms)

    def next_timeout(self, current_ms: float) -> float:
        """Escalated timeout for the attempt after a timeout; never decreases."""
        escalated = min(current_ms * self._policy.backoff_multiplier, self._policy.max_timeout_ms)
        return max(current_ms, escalated)

    def total_attempts(self, config: RequestConfig) -> int:
        if config.retry_on_timeout:
            return 1 + self._policy.max_retries
        return 1

    # -------------------------------------------------------------------------
    # Attempt loop
    # -------------------------------------------------------------------------

    @contextlib.contextmanager
    def _attempt_scope(
        self,
        index: int,
        timeout_ms: float,
        external: Optional[CancellationSignal],
    ) -> Iterator[AttemptState]:
        attempt = AttemptState(index=index, timeout_ms=timeout_ms)
        loop = asyncio.get_running_loop()

        with contextlib.ExitStack() as cleanup:
            timer = loop.call_later(timeout_ms / 1000.0, attempt.expire)
            cleanup.callback(timer.cancel)

            if external is not None:
                if external.cancelled:
                    attempt.controller.cancel(external.reason)
                else:
                    cleanup.callback(external.subscribe(attempt.controller.cancel))

            yield attempt

    async def _retry_delay(self, external: Optional[CancellationSignal]) -> bool:
        """Wait out the inter-attempt delay.

        Returns:
            False if the caller's signal fired before or during the delay.
        """
        delay = self._sleep(self._policy.retry_delay_ms / 1000.0)
        if external is None:
            await delay
            return True

        sleep_task = asyncio.ensure_future(delay)
        cancel_task = asyncio.ensure_future(external.wait())
        try:
            await asyncio.wait({sleep_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleep_task, cancel_task):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        if external.cancelled:
            return False
        sleep_task.result()
        return True

    async def execute(self, config: RequestConfig) -> Any:
        """Run the attempt loop for one logical call.

        Raises:
            RequestError: The classified outcome. Cancellation of the calling
                task itself propagates as asyncio.CancelledError.
        """
        method = config.method.upper()
        url = build_url(self._config.base_url, config.path)
        bound_log = log.bind(method=method, url=url)

        try:
            return await self._run_attempts(config, method, url, bound_log)
        except RequestError as e:
            bound_log.warning("request_failed", **e.context)
            raise

    async def _run_attempts(
        self,
        config: RequestConfig,
        method: str,
        url: str,
        bound_log: Any,
    ) -> Any:
        headers = merge_headers(self._config.default_headers, config.headers)
        try:
            content = encode_body(config.body)
        except (TypeError, ValueError) as e:
            raise UnknownRequestError(
                message="The request body could not be serialised.",
                method=method,
                url=url,
            ) from e
        external = config.signal
        total = self.total_attempts(config)
        timeout_ms = self.resolve_timeout(config.timeout_ms)

        for index in range(total):
            with self._attempt_scope(index, timeout_ms, external) as attempt:
                if attempt.controller.signal.cancelled:
                    raise RequestAbortedError(method=method, url=url)

                bound_log.debug(
                    "request_attempt_started",
                    attempt=index + 1,
                    total_attempts=total,
                    timeout_ms=timeout_ms,
                )
                try:
                    response = await self._transport.send(
                        method,
                        url,
                        headers=headers,
                        content=content,
                        signal=attempt.controller.signal,
                    )
                except Exception as e:
                    if not attempt.controller.signal.cancelled:
                        raise NetworkError(method=method, url=url) from e
                    cause: Exception = e
                else:
                    payload = decode_response(response, method=method, url=url)
                    bound_log.debug(
                        "request_succeeded",
                        attempt=index + 1,
                        status=response.status_code,
                    )
                    return payload

                if (external is not None and external.cancelled) or not attempt.timed_out:
                    raise RequestAbortedError(method=method, url=url) from cause

                bound_log.info("request_attempt_timed_out", attempt=index + 1, timeout_ms=timeout_ms)
                if index + 1 >= total:
                    raise RequestTimeoutError(
                        timeout_ms=timeout_ms,
                        attempts=index + 1,
                        method=method,
                        url=url,
                    ) from cause

            next_timeout_ms = self.next_timeout(timeout_ms)
            bound_log.warning(
                "request_retry_scheduled",
                attempt=index + 2,
                total_attempts=total,
                timeout_ms=next_timeout_ms,
                delay_ms=self._policy.retry_delay_ms,
            )
            if not await self._retry_delay(external):
                raise RequestAbortedError(method=method, url=url)
            timeout_ms = next_timeout_ms

        raise UnknownRequestError(method=method, url=url)
