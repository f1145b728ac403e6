"""Run state persistence and log sinks."""

from glocal_io.storage.filesystem import FileSystemLogStore, FileSystemRunStateStore
from glocal_io.storage.log_sink import (
    CompositeLogSink,
    ConsoleLogSink,
    NoopLogSink,
    StorageLogSink,
    build_log_sink,
)

__all__ = [
    "CompositeLogSink",
    "ConsoleLogSink",
    "FileSystemLogStore",
    "FileSystemRunStateStore",
    "NoopLogSink",
    "StorageLogSink",
    "build_log_sink",
]
