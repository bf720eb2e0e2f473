"""Housing Client Exception Hierarchy.

This module defines the structured exception hierarchy for the housing
client. All custom exceptions inherit from HousingClientError, enabling
consistent error handling across the codebase.

Request outcomes form a closed set of kinds (see ErrorKind). Every failed
logical call surfaces exactly one RequestError subclass, so call sites can
branch on ``error.kind`` without knowing anything about the transport:

Usage:
    from housing_client.core.exceptions import ErrorKind, RequestError

    try:
        bookings = await client.get("/bookings")
    except RequestError as e:
        if e.kind is ErrorKind.HTTP_ERROR and e.status == 404:
            bookings = []
        else:
            show_banner(e.message)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class HousingClientError(Exception):
    """Base exception for all housing client errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: Optional[str] = None) -> None:
        """Initialize HousingClientError.

        Args:
            message: Optional custom message. Defaults to a generic message.
        """
        self.message = message or "A housing client error occurred."
        super().__init__(self.message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context dictionary for structured logging."""
        return {}

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigurationError(HousingClientError):
    """Configuration file could not be loaded.

    Raised when a config file is unreadable or is not valid YAML.
    Malformed individual values never raise; they fall back to defaults.

    Attributes:
        config_path: Path to the configuration file.
        key: Optional configuration key that caused the error.
    """

    def __init__(
        self,
        config_path: str,
        key: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.config_path = config_path
        self.key = key

        if message is None:
            key_info = f" (key: {key})" if key else ""
            message = f"Configuration error in '{config_path}'{key_info}."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for configuration error."""
        return {
            "config_path": self.config_path,
            "key": self.key,
        }

    def __repr__(self) -> str:
        """Return debug representation with attributes."""
        return (
            f"ConfigurationError(config_path={self.config_path!r}, "
            f"key={self.key!r})"
        )


# === Request Outcome Classification ===


class ErrorKind(str, Enum):
    """Closed set of request failure kinds."""

    HTTP_ERROR = "HTTP_ERROR"
    TIMEOUT = "TIMEOUT"
    ABORTED = "ABORTED"
    NETWORK = "NETWORK"
    DECODE = "DECODE"
    UNKNOWN = "UNKNOWN"


class RequestError(HousingClientError):
    """Base class for classified request failures.

    Subclasses pin ``kind`` to one ErrorKind member. Callers should not
    instantiate RequestError directly.

    Attributes:
        kind: The ErrorKind of this failure.
        method: HTTP method of the failed call, when known.
        url: Target URL of the failed call, when known.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_message = "The request failed."

    def __init__(
        self,
        message: Optional[str] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        self.method = method
        self.url = url
        super().__init__(message or self.default_message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for request error."""
        return {
            "kind": self.kind.value,
            "method": self.method,
            "url": self.url,
        }

    def to_dict(self) -> dict[str, Any]:
        """Return the stable ``{kind, message, ...}`` shape for callers.

        Only kind-specific fields are added beyond kind and message;
        method and url stay in ``context`` for logging.
        """
        return {"kind": self.kind.value, "message": self.message}

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"{self.__class__.__name__}(kind={self.kind.value!r}, message={self.message!r})"


class HttpError(RequestError):
    """Server responded with a failure status.

    Never retried: the same request yields the same status.

    Attributes:
        status: Numeric HTTP status code.
        body: Decoded response body (object, text, or None).
    """

    kind = ErrorKind.HTTP_ERROR

    def __init__(
        self,
        status: int,
        body: Any = None,
        message: Optional[str] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        self.status = status
        self.body = body

        if message is None:
            message = f"Request failed with status {status}"

        super().__init__(message, method=method, url=url)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for HTTP error."""
        ctx = super().context
        ctx["status"] = self.status
        return ctx

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status"] = self.status
        data["body"] = self.body
        return data

    def __repr__(self) -> str:
        return f"HttpError(status={self.status!r}, message={self.message!r})"


class RequestTimeoutError(RequestError):
    """No response within the escalating deadline across all attempts.

    Attributes:
        timeout_ms: Timeout of the final attempt in milliseconds.
        attempts: Number of transport invocations made.
    """

    kind = ErrorKind.TIMEOUT
    default_message = "The request timed out. Please try again."

    def __init__(
        self,
        timeout_ms: float,
        attempts: int,
        message: Optional[str] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        self.timeout_ms = timeout_ms
        self.attempts = attempts
        super().__init__(message, method=method, url=url)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for timeout error."""
        ctx = super().context
        ctx["timeout_ms"] = self.timeout_ms
        ctx["attempts"] = self.attempts
        return ctx

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["timeout_ms"] = self.timeout_ms
        data["attempts"] = self.attempts
        return data

    def __repr__(self) -> str:
        return (
            f"RequestTimeoutError(timeout_ms={self.timeout_ms!r}, "
            f"attempts={self.attempts!r})"
        )


class RequestAbortedError(RequestError):
    """Caller cancelled the request. Never retried."""

    kind = ErrorKind.ABORTED
    default_message = "The request was cancelled."


class NetworkError(RequestError):
    """Transport could not reach the server. Never retried."""

    kind = ErrorKind.NETWORK
    default_message = (
        "Unable to reach the server. Please check your connection and try again."
    )


class DecodeError(RequestError):
    """Response body could not be interpreted as its declared content type.

    The parser's own diagnostic is kept as ``__cause__`` and is never part
    of the message.

    Attributes:
        content_type: Declared content type of the response.
    """

    kind = ErrorKind.DECODE
    default_message = "Received an unexpected response from the server."

    def __init__(
        self,
        content_type: Optional[str] = None,
        message: Optional[str] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        self.content_type = content_type
        super().__init__(message, method=method, url=url)

    @property
    def context(self) -> dict[str, Any]:
        ctx = super().context
        ctx["content_type"] = self.content_type
        return ctx


class UnknownRequestError(RequestError):
    """Retries exhausted without a more specific cause."""

    kind = ErrorKind.UNKNOWN
    default_message = "The request failed for an unknown reason."
