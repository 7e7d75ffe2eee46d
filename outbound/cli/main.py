"""CLI commands for the outbound client."""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import click
import httpx
import structlog
from pydantic import ValidationError

from outbound.cancellation import CancellationToken
from outbound.client.models import CallOptions
from outbound.errors import (
    CallCancelledError,
    CallFailedError,
    CredentialConfigError,
    CredentialNotFoundError,
    OutboundError,
)
from outbound.factory import create_rest_client
from outbound.observability.logging import configure_logging
from outbound.redact import redact_url_credentials
from outbound.settings.app import ClientSettings
from outbound.transport.models import HttpMethod, RequestSpec


logger = structlog.get_logger()


@dataclass
class CliContext:
    """Objects shared by all commands.

    ``transport`` lets tests swap the network for httpx.MockTransport.
    """

    settings: ClientSettings
    transport: httpx.BaseTransport | None = None


def _parse_header(value: str) -> tuple[str, str]:
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        msg = f"Header must look like 'Name: value', got {value!r}"
        raise click.BadParameter(msg)
    return name.strip(), header_value.strip()


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--credentials",
    "credentials_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Credentials YAML file (default: OUTBOUND_CREDENTIALS_FILE).",
)
@click.option(
    "--call-log-db",
    "call_log_db",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="SQLite call log database (default: OUTBOUND_CALL_LOG_DB).",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=None,
    help="Use JSON format for logs (default: OUTBOUND_JSON_LOGS or true).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    credentials_file: Path | None,
    call_log_db: Path | None,
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """Outbound REST client CLI."""
    settings = ClientSettings()
    overrides: dict[str, object] = {}
    if credentials_file is not None:
        overrides["credentials_file"] = credentials_file
    if call_log_db is not None:
        overrides["call_log_db"] = call_log_db
    if json_logs is not None:
        overrides["json_logs"] = json_logs
    if overrides:
        settings = settings.model_copy(update=overrides)

    level = logging.DEBUG if verbose else logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    configure_logging(level=level, json_format=settings.json_logs)

    transport = ctx.obj.transport if isinstance(ctx.obj, CliContext) else None
    ctx.obj = CliContext(settings=settings, transport=transport)


@cli.command()
@click.argument(
    "method",
    type=click.Choice([m.value for m in HttpMethod], case_sensitive=False),
)
@click.argument("url")
@click.option("--credential", "credential_name", default=None, help="Credential name.")
@click.option(
    "--header",
    "-H",
    "headers",
    multiple=True,
    help="Extra header, 'Name: value'. Repeatable.",
)
@click.option("--data", "-d", default=None, help="Request body.")
@click.option(
    "--timeout",
    "timeout_seconds",
    type=float,
    default=None,
    help="Per-attempt timeout in seconds.",
)
@click.option(
    "--max-attempts",
    type=click.IntRange(1, 10),
    default=None,
    help="Override the retry policy's maximum attempts.",
)
@click.option(
    "--deadline",
    "deadline_seconds",
    type=float,
    default=None,
    help="Cancel the whole call after this many seconds.",
)
@click.option("--idempotency-key", default=None, help="Idempotency-Key header value.")
@click.pass_obj
def call(  # noqa: PLR0913
    obj: CliContext,
    method: str,
    url: str,
    credential_name: str | None,
    headers: tuple[str, ...],
    data: str | None,
    timeout_seconds: float | None,
    max_attempts: int | None,
    deadline_seconds: float | None,
    idempotency_key: str | None,
) -> None:
    """Call METHOD URL and print the response body."""
    try:
        request = RequestSpec(
            method=method.upper(),  # type: ignore[arg-type]
            url=url,
            headers=[_parse_header(h) for h in headers],  # type: ignore[arg-type]
            body=data.encode("utf-8") if data is not None else None,
            credential_name=credential_name,
        )
    except ValidationError as e:
        msg = "; ".join(err["msg"] for err in e.errors())
        raise click.BadParameter(msg, param_hint="URL") from e

    options = CallOptions(
        timeout_seconds=timeout_seconds,
        cancel=CancellationToken(deadline_seconds) if deadline_seconds else None,
        idempotency_key=idempotency_key,
        max_attempts=max_attempts,
    )
    log = logger.bind(component="cli", url=redact_url_credentials(url))

    try:
        with create_rest_client(obj.settings, transport=obj.transport) as client:
            result = client.call(request, options)
    except CallFailedError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo(f"  Correlation id: {e.correlation_id}", err=True)
        if e.response_body:
            click.echo(e.response_body.decode("utf-8", errors="replace"))
        sys.exit(1)
    except (CallCancelledError, CredentialNotFoundError, CredentialConfigError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    log.debug("cli_call_complete", status_code=result.status_code)
    click.echo(
        f"HTTP {result.status_code} after {result.attempts} attempt(s) "
        f"[{result.correlation_id}]",
        err=True,
    )
    click.echo(result.text)


@cli.command("get-token")
@click.argument("credential_name")
@click.option("--force", is_flag=True, help="Ignore any cached token.")
@click.pass_obj
def get_token(obj: CliContext, credential_name: str, force: bool) -> None:
    """Acquire an access token for CREDENTIAL_NAME (the token is not printed)."""
    try:
        with create_rest_client(obj.settings, transport=obj.transport) as client:
            token = client.token_cache.get_token(credential_name, force_refresh=force)
    except OutboundError as e:
        click.echo(f"Token acquisition failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"Token acquired for {credential_name}")
    click.echo(f"  Type: {token.token_type}")
    click.echo(f"  Length: {len(token.access_token.get_secret_value())}")
