from .cancellation import CancellationController, CancellationSignal
from .decoder import decode_body, decode_response, is_json_content_type
from .transport import HttpxTransport, Transport, TransportCancelled
from .executor import (
    AttemptState,
    RequestConfig,
    RequestExecutor,
    build_url,
    encode_body,
    merge_headers,
)
from .client import ApiClient, create_client

__all__ = [
    "CancellationController",
    "CancellationSignal",
    "decode_body",
    "decode_response",
    "is_json_content_type",
    "HttpxTransport",
    "Transport",
    "TransportCancelled",
    "AttemptState",
    "RequestConfig",
    "RequestExecutor",
    "build_url",
    "encode_body",
    "merge_headers",
    "ApiClient",
    "create_client",
]
