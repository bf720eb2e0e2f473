"""structlog setup for the housing client.

Library code only ever calls ``structlog.get_logger()``; applications (and
the CLI) call configure_logging once at startup.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog

from housing_client.core.config import LoggingConfig


def _stderr_logger_factory(*args: Any) -> structlog.PrintLogger:
    # Resolve sys.stderr per logger so redirected streams are honoured.
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure structlog processors and the minimum log level.

    Args:
        config: Logging section of the settings. Defaults to LoggingConfig().
    """
    config = config or LoggingConfig()
    level = logging.getLevelName(config.level)

    if config.format == "console":
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger_factory,
        cache_logger_on_first_use=False,
    )
