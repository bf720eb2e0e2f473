"""Response decoding and failure-status classification.

decode_response turns a transport response into the payload handed back to
callers, or raises the classified error for it. It has no knowledge of
retries and keeps no state between calls.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Protocol

from housing_client.core.exceptions import DecodeError, HttpError

NO_CONTENT = 204


class ResponseLike(Protocol):
    """Minimal response surface the decoder needs (httpx.Response fits)."""

    status_code: int

    @property
    def headers(self) -> Any: ...

    @property
    def text(self) -> str: ...


def is_json_content_type(content_type: str) -> bool:
    """Return True for ``application/json`` and ``+json`` media types."""
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def _parse_json(text: str) -> Any:
    return json.loads(text)


def decode_body(response: ResponseLike) -> Any:
    """Decode a response body regardless of its status.

    Returns:
        None for 204 or an empty body, the parsed object for JSON content
        types, otherwise the body text verbatim.

    Raises:
        DecodeError: If a JSON-typed body does not parse. The parser error
            is chained, never included in the message.
    """
    if response.status_code == NO_CONTENT:
        return None

    text = response.text
    if not text:
        return None

    content_type = response.headers.get("content-type") or ""
    if is_json_content_type(content_type):
        try:
            return _parse_json(text)
        except (ValueError, RecursionError) as e:
            raise DecodeError(content_type=content_type) from e

    return text


def error_message(body: Any, status: int) -> str:
    """Pick the message for a failure-status response.

    Preference: non-blank text body, the body's ``message`` field, then a
    default naming the status.
    """
    if isinstance(body, str) and body.strip():
        return body.strip()
    if isinstance(body, dict):
        message = body.get("message")
        if message:
            return str(message)
    return f"Request failed with status {status}"


def decode_response(
    response: ResponseLike,
    method: Optional[str] = None,
    url: Optional[str] = None,
) -> Any:
    """Decode a response, raising HttpError for non-2xx statuses.

    Args:
        response: Transport response.
        method: HTTP method, recorded on raised errors.
        url: Request URL, recorded on raised errors.

    Returns:
        The decoded payload of a 2xx response.

    Raises:
        HttpError: Status outside 200-299.
        DecodeError: Body declared as JSON but not parseable.
    """
    try:
        body = decode_body(response)
    except DecodeError as e:
        e.method = method
        e.url = url
        raise

    status = response.status_code
    if 200 <= status < 300:
        return body

    raise HttpError(
        status=status,
        body=body,
        message=error_message(body, status),
        method=method,
        url=url,
    )
