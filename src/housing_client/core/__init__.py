"""Core module for the housing client.

Exports the core components: exceptions, configuration and logging setup.
"""

from housing_client.core.exceptions import (
    HousingClientError,
    ConfigurationError,
    ErrorKind,
    RequestError,
    HttpError,
    RequestTimeoutError,
    RequestAbortedError,
    NetworkError,
    DecodeError,
    UnknownRequestError,
)
from housing_client.core.config import (
    get_settings,
    reset_settings,
    create_settings,
    Settings,
    ClientConfig,
    RetryPolicy,
    LoggingConfig,
)
from housing_client.core.logging import configure_logging

__all__ = [
    # Exceptions
    "HousingClientError",
    "ConfigurationError",
    "ErrorKind",
    "RequestError",
    "HttpError",
    "RequestTimeoutError",
    "RequestAbortedError",
    "NetworkError",
    "DecodeError",
    "UnknownRequestError",
    # Configuration
    "get_settings",
    "reset_settings",
    "create_settings",
    "Settings",
    "ClientConfig",
    "RetryPolicy",
    "LoggingConfig",
    # Logging
    "configure_logging",
]
