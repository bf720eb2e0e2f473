"""housing-client CLI Entry Point.

Issues single calls through the resilient request core, mainly for
smoke-testing a portal backend from a terminal.

    housing-client request GET /accommodations
    housing-client request POST /bookings --data '{"roomId": 7}' --no-retry
    housing-client --config ./config.yaml config
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional

import structlog
import typer

from housing_client.core.config import get_settings
from housing_client.core.exceptions import ConfigurationError, RequestError
from housing_client.core.logging import configure_logging
from housing_client.http.client import create_client

log = structlog.get_logger()

app = typer.Typer(
    name="housing-client",
    help="Resilient HTTP client for the housing portal API",
    no_args_is_help=True,
)

VERBS = ("GET", "POST", "PUT", "DELETE")
BODY_VERBS = ("POST", "PUT")


def load_config_callback(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to configuration file", is_eager=True),
) -> Optional[Path]:
    """Load configuration file if provided, then configure logging."""
    try:
        if config:
            if not config.exists():
                typer.echo(f"Error: Config file '{config}' not found", err=True)
                raise typer.Exit(code=1)
            settings = get_settings(force_reload=True, system_config_path=config)
        else:
            settings = get_settings()
    except ConfigurationError as e:
        typer.echo(f"Error loading config: {e}", err=True)
        raise typer.Exit(code=1)

    configure_logging(settings.logging)
    if config:
        log.info("config_loaded", path=str(config))
    return config


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c",
        callback=load_config_callback,
        is_eager=True,
        help="Path to global configuration file",
    ),
) -> None:
    """housing-client CLI."""
    pass


def parse_header(raw: str) -> tuple[str, str]:
    """Split a ``Name: value`` header option."""
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise typer.BadParameter(f"Header must look like 'Name: value', got {raw!r}")
    return name.strip(), value.strip()


def parse_data(raw: Optional[str]) -> Any:
    """Use ``--data`` as JSON when it parses, otherwise as a raw string."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def render_payload(payload: Any) -> Optional[str]:
    if payload is None:
        return None
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, indent=2)


async def _run_request(
    method: str,
    path: str,
    body: Any,
    headers: dict[str, str],
    timeout: Optional[float],
    retry_on_timeout: bool,
) -> Any:
    async with create_client(get_settings()) as client:
        options: dict[str, Any] = {
            "headers": headers or None,
            "timeout": timeout,
            "retry_on_timeout": retry_on_timeout,
        }
        if method in BODY_VERBS:
            return await getattr(client, method.lower())(path, body, **options)
        return await getattr(client, method.lower())(path, **options)


@app.command("request")
def request_command(
    method: str = typer.Argument(..., help="HTTP method: GET, POST, PUT or DELETE"),
    path: str = typer.Argument(..., help="Path relative to the configured base URL"),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="Request body (JSON or raw text)"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="First-attempt timeout in milliseconds"),
    no_retry: bool = typer.Option(False, "--no-retry", help="Never resend the request on timeout"),
    header: List[str] = typer.Option([], "--header", "-H", help="Extra header 'Name: value' (repeatable)"),
) -> None:
    """Issue one request and print the decoded response."""
    verb = method.upper()
    if verb not in VERBS:
        typer.echo(f"Error: Unsupported method '{method}'", err=True)
        raise typer.Exit(code=2)
    if data is not None and verb not in BODY_VERBS:
        typer.echo(f"Error: --data is not supported for {verb}", err=True)
        raise typer.Exit(code=2)

    headers = dict(parse_header(raw) for raw in header)

    try:
        payload = asyncio.run(
            _run_request(verb, path, parse_data(data), headers, timeout, not no_retry)
        )
    except RequestError as e:
        typer.echo(json.dumps(e.to_dict(), indent=2, default=str), err=True)
        raise typer.Exit(code=1)

    rendered = render_payload(payload)
    if rendered is not None:
        typer.echo(rendered)


@app.command("config")
def config_command() -> None:
    """Print the resolved client configuration."""
    client_config = get_settings().to_client_config()
    typer.echo(client_config.model_dump_json(indent=2))


if __name__ == "__main__":  # pragma: no cover
    app()
