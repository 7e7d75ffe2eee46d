"""Tests for assembling a RestClient from settings."""

from pathlib import Path

import httpx
import pytest

from outbound.calllog.sinks import SqliteCallLogSink
from outbound.factory import create_rest_client
from outbound.settings import ClientSettings
from outbound.transport.models import RequestSpec
from tests.helpers.fakes import API_URL, ScriptedTransport


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep OUTBOUND_* variables out of factory tests."""
    for name in ("OUTBOUND_CREDENTIALS_FILE", "OUTBOUND_CALL_LOG_DB"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def closed_sinks(monkeypatch: pytest.MonkeyPatch) -> list[Path]:
    """Record the database path of every SQLite sink that gets closed."""
    closed: list[Path] = []
    original_close = SqliteCallLogSink.close

    def tracking_close(self: SqliteCallLogSink) -> None:
        closed.append(self.db_path)
        original_close(self)

    monkeypatch.setattr(SqliteCallLogSink, "close", tracking_close)
    return closed


@pytest.fixture
def transport() -> ScriptedTransport:
    """Transport answering the orders endpoint."""
    return ScriptedTransport(routes={"/orders": [httpx.Response(200, text="ok")]})


class TestSqliteSinkOwnership:
    """Tests for who closes the call log database."""

    def test_closing_client_closes_factory_sink(
        self, tmp_path: Path, transport: ScriptedTransport, closed_sinks: list[Path]
    ) -> None:
        """Test the SQLite sink opened from settings is closed with the client."""
        db_path = tmp_path / "calls.db"
        settings = ClientSettings(call_log_db=db_path, _env_file=None)  # type: ignore[call-arg]

        with create_rest_client(settings, transport=transport.as_transport()) as client:
            client.call(RequestSpec(method="GET", url=API_URL))
            assert closed_sinks == []

        assert closed_sinks == [db_path]
        with SqliteCallLogSink(db_path) as reopened:
            assert reopened.count() == 1

    def test_caller_supplied_sink_stays_open(
        self, tmp_path: Path, transport: ScriptedTransport, closed_sinks: list[Path]
    ) -> None:
        """Test a sink passed in by the caller is left for the caller to close."""
        sink = SqliteCallLogSink(tmp_path / "shared.db")
        sink.connect()

        client = create_rest_client(
            ClientSettings(_env_file=None),  # type: ignore[call-arg]
            sink=sink,
            transport=transport.as_transport(),
        )
        client.call(RequestSpec(method="GET", url=API_URL))
        client.close()

        assert closed_sinks == []
        assert sink.count() == 1
        sink.close()
