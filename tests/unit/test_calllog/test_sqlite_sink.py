"""Unit tests for the SQLite call log sink and its migrations."""

import sqlite3
from collections.abc import Generator
from pathlib import Path

import pytest

from outbound.calllog.migrations import CURRENT_VERSION, MIGRATIONS, MigrationManager
from outbound.calllog.models import CallLogRecord
from outbound.calllog.sinks import SqliteCallLogSink


def make_record(correlation_id: str = "c-1", attempt: int = 1) -> CallLogRecord:
    return CallLogRecord(
        endpoint="https://api.example.com/orders",
        method="GET",
        status_code=503 if attempt == 1 else 200,
        request_headers={"Authorization": "[REDACTED]"},
        response_body="busy" if attempt == 1 else None,
        correlation_id=correlation_id,
        attempt=attempt,
        duration_ms=4.2,
        error=None,
    )


class TestMigrations:
    """Tests for call log migrations."""

    @pytest.fixture
    def conn(self) -> Generator[sqlite3.Connection]:
        """Create an in-memory database."""
        conn = sqlite3.connect(":memory:")
        yield conn
        conn.close()

    def test_current_version_matches_latest_migration(self) -> None:
        """Test current version matches the latest migration."""
        assert MIGRATIONS[-1].version == CURRENT_VERSION

    def test_apply_from_empty(self, conn: sqlite3.Connection) -> None:
        """Test all migrations apply to a fresh database."""
        manager = MigrationManager(conn)

        assert manager.get_current_version() == 0
        assert manager.apply_migrations() == [m.version for m in MIGRATIONS]
        assert manager.get_current_version() == CURRENT_VERSION

    def test_apply_is_idempotent(self, conn: sqlite3.Connection) -> None:
        """Test re-applying does nothing."""
        manager = MigrationManager(conn)
        manager.apply_migrations()

        assert manager.apply_migrations() == []

    def test_table_created(self, conn: sqlite3.Connection) -> None:
        """Test the api_call_log table exists."""
        MigrationManager(conn).apply_migrations()

        row = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='api_call_log'"
        ).fetchone()
        assert row is not None


class TestSqliteCallLogSink:
    """Tests for SqliteCallLogSink."""

    @pytest.fixture
    def sink(self, tmp_path: Path) -> Generator[SqliteCallLogSink]:
        """Create a connected sink in a temp directory."""
        with SqliteCallLogSink(tmp_path / "logs" / "calls.db") as sink:
            yield sink

    def test_append_and_fetch(self, sink: SqliteCallLogSink) -> None:
        """Test records round-trip through the database."""
        first, second = make_record(attempt=1), make_record(attempt=2)
        sink.append(second)
        sink.append(first)

        fetched = sink.fetch_by_correlation_id("c-1")

        assert [r.attempt for r in fetched] == [1, 2]
        assert fetched[0].log_id == first.log_id
        assert fetched[0].status_code == 503
        assert fetched[0].response_body == "busy"
        assert fetched[0].request_headers == {"Authorization": "[REDACTED]"}
        assert fetched[0].timestamp == first.timestamp
        assert fetched[1].response_body is None

    def test_count(self, sink: SqliteCallLogSink) -> None:
        """Test count reflects appended records."""
        sink.append(make_record("a"))
        sink.append(make_record("b"))

        assert sink.count() == 2
        assert sink.fetch_by_correlation_id("missing") == []

    def test_duplicate_log_id_rejected(self, sink: SqliteCallLogSink) -> None:
        """Test the log is append-only: a record id is written once."""
        record = make_record()
        sink.append(record)

        with pytest.raises(sqlite3.IntegrityError):
            sink.append(record)

    def test_not_connected(self, tmp_path: Path) -> None:
        """Test using an unconnected sink raises RuntimeError."""
        sink = SqliteCallLogSink(tmp_path / "calls.db")

        with pytest.raises(RuntimeError, match="not connected"):
            sink.append(make_record())

    def test_reopen_keeps_records(self, tmp_path: Path) -> None:
        """Test records persist across connections."""
        path = tmp_path / "calls.db"
        with SqliteCallLogSink(path) as sink:
            sink.append(make_record())

        with SqliteCallLogSink(str(path)) as sink:
            assert sink.count() == 1
            assert sink.db_path == path
