"""Structured call logging."""

from outbound.calllog.logger import CallLogger
from outbound.calllog.models import CallLogRecord
from outbound.calllog.sinks import (
    CallLogSink,
    InMemoryCallLogSink,
    SqliteCallLogSink,
    StructlogCallLogSink,
)


__all__ = [
    "CallLogRecord",
    "CallLogSink",
    "CallLogger",
    "InMemoryCallLogSink",
    "SqliteCallLogSink",
    "StructlogCallLogSink",
]
