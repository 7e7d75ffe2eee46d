"""Call log sinks.

A sink accepts sanitized ``CallLogRecord`` appends. Retention and
querying are the sink's concern, not the client's.
"""

import json
import sqlite3
import threading
from pathlib import Path
from types import TracebackType
from typing import Protocol

import structlog
from structlog.typing import BindableLogger

from outbound.calllog.migrations import MigrationManager
from outbound.calllog.models import CallLogRecord


logger = structlog.get_logger()


class CallLogSink(Protocol):
    """Destination for call log records."""

    def append(self, record: CallLogRecord) -> None:
        """Append a record. May raise; the call logger absorbs failures."""
        ...


class InMemoryCallLogSink:
    """Thread-safe list of records, for tests and inspection."""

    def __init__(self) -> None:
        self._records: list[CallLogRecord] = []
        self._lock = threading.Lock()

    def append(self, record: CallLogRecord) -> None:
        """Append a record."""
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> list[CallLogRecord]:
        """Snapshot of appended records, oldest first."""
        with self._lock:
            return list(self._records)

    def for_correlation_id(self, correlation_id: str) -> list[CallLogRecord]:
        """Records of one logical call, in attempt order."""
        return sorted(
            (r for r in self.records if r.correlation_id == correlation_id),
            key=lambda r: r.attempt,
        )

    def clear(self) -> None:
        """Drop all records."""
        with self._lock:
            self._records.clear()


class StructlogCallLogSink:
    """Emits each record as one structured log event."""

    def __init__(
        self,
        event: str = "api_call_logged",
        log: BindableLogger | None = None,
    ) -> None:
        """Initialize the sink.

        Args:
            event: Event name of each emitted record.
            log: Logger to emit through (module logger if None).
        """
        self._event = event
        self._log = (log or logger).bind(component="calllog", sink="structlog")

    def append(self, record: CallLogRecord) -> None:
        """Log the record."""
        payload = record.model_dump(mode="json")
        # structlog's TimeStamper owns the "timestamp" key
        payload["logged_at"] = payload.pop("timestamp")
        self._log.info(self._event, **payload)


class SqliteCallLogSink:
    """Persists records to the ``api_call_log`` table of a SQLite database.

    One connection is shared across threads and guarded by a lock; WAL
    mode keeps concurrent readers off the writer's back.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the sink.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._log = logger.bind(
            component="calllog", sink="sqlite", db_path=str(self._db_path)
        )

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    def connect(self) -> None:
        """Open the database and apply migrations."""
        with self._lock:
            if self._conn is not None:
                return
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            applied = MigrationManager(conn).apply_migrations()
            self._conn = conn
        self._log.info("call_log_connected", migrations_applied=applied)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "SqliteCallLogSink":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        if self._conn is None:
            msg = "Call log database not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._conn

    def append(self, record: CallLogRecord) -> None:
        """Insert a record.

        Raises:
            RuntimeError: If not connected.
            sqlite3.Error: On write failure.
        """
        with self._lock:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO api_call_log (
                    log_id, logged_at, endpoint, method, status_code,
                    request_headers, request_body, response_body,
                    correlation_id, attempt, duration_ms, error
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.log_id,
                    record.timestamp.isoformat(),
                    record.endpoint,
                    record.method,
                    record.status_code,
                    json.dumps(record.request_headers, sort_keys=True),
                    record.request_body,
                    record.response_body,
                    record.correlation_id,
                    record.attempt,
                    record.duration_ms,
                    record.error,
                ),
            )
            conn.commit()

    def fetch_by_correlation_id(self, correlation_id: str) -> list[CallLogRecord]:
        """Load the records of one logical call, in attempt order."""
        with self._lock:
            conn = self._ensure_connected()
            rows = conn.execute(
                """
                SELECT * FROM api_call_log
                WHERE correlation_id = ?
                ORDER BY attempt
                """,
                (correlation_id,),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def count(self) -> int:
        """Number of stored records."""
        with self._lock:
            conn = self._ensure_connected()
            row = conn.execute("SELECT COUNT(*) FROM api_call_log").fetchone()
        return int(row[0])

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> CallLogRecord:
        return CallLogRecord(
            log_id=row["log_id"],
            timestamp=row["logged_at"],
            endpoint=row["endpoint"],
            method=row["method"],
            status_code=row["status_code"],
            request_headers=json.loads(row["request_headers"]),
            request_body=row["request_body"],
            response_body=row["response_body"],
            correlation_id=row["correlation_id"],
            attempt=row["attempt"],
            duration_ms=row["duration_ms"],
            error=row["error"],
        )
