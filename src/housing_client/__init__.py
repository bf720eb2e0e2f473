"""
housing-client - Resilient request core for the housing portal REST API.

Timeouts, cooperative cancellation, timeout-only retry with escalating
deadlines, response decoding and uniform error classification.
"""

from housing_client.core.exceptions import (
    ErrorKind,
    HousingClientError,
    RequestError,
)
from housing_client.http import (
    ApiClient,
    CancellationController,
    CancellationSignal,
    RequestExecutor,
    create_client,
)

__version__ = "1.0.0"

__all__ = [
    "ApiClient",
    "CancellationController",
    "CancellationSignal",
    "ErrorKind",
    "HousingClientError",
    "RequestError",
    "RequestExecutor",
    "create_client",
]
