"""Factory for assembling a RestClient from settings."""

from collections.abc import Callable

import httpx
import structlog

from outbound.calllog.logger import CallLogger
from outbound.calllog.sinks import CallLogSink, SqliteCallLogSink, StructlogCallLogSink
from outbound.client.client import RestClient
from outbound.credentials.provider import CredentialProvider
from outbound.credentials.store import (
    CredentialStore,
    InMemoryCredentialStore,
    YamlCredentialStore,
)
from outbound.settings.app import ClientSettings
from outbound.transport.executor import HttpExecutor


logger = structlog.get_logger()


def create_rest_client(
    settings: ClientSettings | None = None,
    *,
    credential_store: CredentialStore | None = None,
    sink: CallLogSink | None = None,
    transport: httpx.BaseTransport | None = None,
) -> RestClient:
    """Create a RestClient wired from settings.

    Credential store priority: explicit ``credential_store`` >
    ``OUTBOUND_CREDENTIALS_FILE`` > empty in-memory store. Sink priority:
    explicit ``sink`` > SQLite at ``OUTBOUND_CALL_LOG_DB`` > structlog.

    Args:
        settings: Client settings (read from the environment if None).
        credential_store: Credential store override.
        sink: Call log sink override.
        transport: httpx transport override (tests use httpx.MockTransport).

    Returns:
        A RestClient ready for use; close it (or use ``with``) when done.
        Closing it also closes a SQLite sink the factory opened, but never
        a caller-supplied ``sink``.

    Raises:
        CredentialConfigError: If the credentials file is invalid.
    """
    settings = settings or ClientSettings()
    config = settings.to_client_config()
    log = logger.bind(component="factory")

    if credential_store is None:
        if settings.credentials_file is not None:
            credential_store = YamlCredentialStore(settings.credentials_file)
        else:
            credential_store = InMemoryCredentialStore()

    on_close: list[Callable[[], None]] = []
    if sink is None:
        if settings.call_log_db is not None:
            sqlite_sink = SqliteCallLogSink(settings.call_log_db)
            sqlite_sink.connect()
            on_close.append(sqlite_sink.close)
            sink = sqlite_sink
        else:
            sink = StructlogCallLogSink()

    client = RestClient(
        HttpExecutor(config, transport=transport),
        CredentialProvider(credential_store),
        config=config,
        call_logger=CallLogger(sink, max_body_chars=config.log_body_max_chars),
        on_close=on_close,
    )
    log.info(
        "rest_client_created",
        sink=type(sink).__name__,
        max_attempts=config.retry_policy.max_attempts,
        timeout_seconds=config.default_timeout_seconds,
    )
    return client
