"""Log sinks for workflow run events."""

from __future__ import annotations

import sys
from collections.abc import Iterable
from typing import TextIO

from glocal_core.ports.workflow import LogSinkProtocol
from glocal_io.storage.filesystem import FileSystemLogStore
from glocal_schemas.config import LoggingConfig, LogSinkConfig
from glocal_schemas.logs import LogEntry
from glocal_schemas.primitives import LogLevel, LogSinkType

LEVEL_RANK = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}


class StorageLogSink(LogSinkProtocol):
    """Append entries to the run's JSONL log file."""

    def __init__(self, store: FileSystemLogStore) -> None:
        """Initialize the sink with the log store it appends to."""
        self._store = store

    async def emit_log(self, entry: LogEntry) -> None:
        """Append the entry to its run log."""
        await self._store.append_log(entry)


class ConsoleLogSink(LogSinkProtocol):
    """Write entries as JSONL to stderr (or a given stream)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        """Initialize the console sink.

        Args:
            stream: Output stream; stderr when omitted.
        """
        self._stream = stream or sys.stderr

    async def emit_log(self, entry: LogEntry) -> None:
        """Write one JSON line for the entry."""
        self._stream.write(entry.model_dump_json() + "\n")
        self._stream.flush()


class NoopLogSink(LogSinkProtocol):
    """Discard every entry."""

    async def emit_log(self, entry: LogEntry) -> None:
        """Drop the entry."""
        return None


class LevelFilterLogSink(LogSinkProtocol):
    """Forward only entries at or above a minimum level."""

    def __init__(self, delegate: LogSinkProtocol, min_level: LogLevel) -> None:
        """Initialize the filter.

        Args:
            delegate: Sink receiving the entries that pass.
            min_level: Lowest level forwarded.
        """
        self._delegate = delegate
        self._threshold = LEVEL_RANK[LogLevel(min_level)]

    async def emit_log(self, entry: LogEntry) -> None:
        """Forward the entry when its level passes the threshold."""
        if LEVEL_RANK[LogLevel(entry.level)] >= self._threshold:
            await self._delegate.emit_log(entry)


class CompositeLogSink(LogSinkProtocol):
    """Fan entries out to several sinks in order."""

    def __init__(self, sinks: Iterable[LogSinkProtocol]) -> None:
        """Initialize the composite with its member sinks."""
        self._sinks = list(sinks)

    async def emit_log(self, entry: LogEntry) -> None:
        """Forward the entry to every member sink."""
        for sink in self._sinks:
            await sink.emit_log(entry)


def _sink_for(
    sink_config: LogSinkConfig,
    log_store: FileSystemLogStore,
    stream: TextIO | None,
) -> LogSinkProtocol:
    match LogSinkType(sink_config.type):
        case LogSinkType.FILE:
            sink: LogSinkProtocol = StorageLogSink(log_store)
        case LogSinkType.CONSOLE:
            sink = ConsoleLogSink(stream=stream)
        case LogSinkType.NOOP:
            return NoopLogSink()
    if sink_config.min_level is None:
        return sink
    return LevelFilterLogSink(sink, LogLevel(sink_config.min_level))


def build_log_sink(
    logging_config: LoggingConfig,
    log_store: FileSystemLogStore,
    *,
    stream: TextIO | None = None,
) -> LogSinkProtocol:
    """Build the sink described by the ``[logging]`` section.

    Args:
        logging_config: Logging configuration.
        log_store: Store backing the file sink.
        stream: Optional stream for the console sink.

    Returns:
        LogSinkProtocol: The single configured sink, or a composite of them.
    """
    sinks = [
        _sink_for(sink_config, log_store, stream)
        for sink_config in logging_config.sinks
    ]
    if len(sinks) == 1:
        return sinks[0]
    return CompositeLogSink(sinks)
