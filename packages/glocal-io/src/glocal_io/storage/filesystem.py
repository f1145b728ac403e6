"""Filesystem-backed run state and log storage.

Layout under the workspace directory::

    runs/<run_id>.json     latest snapshot of each run
    logs/<run_id>.jsonl    append-only run event log
    current_run            id of the most recently saved run
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from uuid import UUID

from pydantic import ValidationError

from glocal_core.ports.storage import (
    RunStateStoreProtocol,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
)
from glocal_schemas.logs import LogEntry
from glocal_schemas.primitives import RunId
from glocal_schemas.workflow import WorkflowRunState

CURRENT_RUN_FILE = "current_run"


class FileSystemRunStateStore(RunStateStoreProtocol):
    """Keep one JSON snapshot per run and a pointer to the current run."""

    def __init__(self, base_dir: str) -> None:
        """Initialize the store rooted at a workspace directory."""
        self._base_dir = Path(base_dir)
        self._current_path = self._base_dir / CURRENT_RUN_FILE

    def state_path(self, run_id: RunId) -> Path:
        """Return the snapshot path for a run."""
        return self._base_dir / "runs" / f"{run_id}.json"

    async def save_run_state(self, state: WorkflowRunState) -> None:
        """Replace the run's snapshot and mark the run as current.

        Raises:
            StorageError: If the snapshot cannot be written.
        """
        path = self.state_path(state.run_id)
        try:
            await asyncio.to_thread(
                _replace_text, path, state.model_dump_json(exclude_none=True)
            )
            await asyncio.to_thread(
                _replace_text, self._current_path, str(state.run_id)
            )
        except OSError as exc:
            raise _storage_error(
                StorageErrorCode.IO_ERROR,
                str(exc),
                "save_run_state",
                path,
                run_id=state.run_id,
            ) from exc

    async def load_run_state(self, run_id: RunId) -> WorkflowRunState | None:
        """Load a run's snapshot.

        Returns:
            WorkflowRunState | None: The snapshot, or None if never saved.

        Raises:
            StorageError: If the snapshot cannot be read or parsed.
        """
        path = self.state_path(run_id)
        raw = await _read_optional(path, "load_run_state", run_id=run_id)
        if raw is None:
            return None
        try:
            return WorkflowRunState.model_validate_json(raw)
        except ValidationError as exc:
            raise _storage_error(
                StorageErrorCode.VALIDATION_ERROR,
                f"Run state snapshot is invalid: {exc.error_count()} error(s)",
                "load_run_state",
                path,
                run_id=run_id,
            ) from exc

    async def load_latest_run_state(self) -> WorkflowRunState | None:
        """Load the run marked as current, if any.

        Raises:
            StorageError: If the pointer or snapshot cannot be read.
        """
        raw = await _read_optional(self._current_path, "load_latest_run_state")
        if raw is None:
            return None
        try:
            run_id = UUID(raw.strip())
        except ValueError as exc:
            raise _storage_error(
                StorageErrorCode.VALIDATION_ERROR,
                "Current run pointer is not a run id",
                "load_latest_run_state",
                self._current_path,
            ) from exc
        return await self.load_run_state(run_id)


class FileSystemLogStore:
    """Append run events to ``logs/<run_id>.jsonl``."""

    def __init__(self, base_dir: str) -> None:
        """Initialize the store rooted at a workspace directory."""
        self._log_dir = Path(base_dir) / "logs"

    def log_path(self, run_id: RunId) -> Path:
        """Return the log file path for a run."""
        return self._log_dir / f"{run_id}.jsonl"

    async def append_log(self, entry: LogEntry) -> None:
        """Append one JSON line for the entry.

        Raises:
            StorageError: If the entry cannot be written.
        """
        path = self.log_path(entry.run_id)
        try:
            await asyncio.to_thread(
                _append_line, path, entry.model_dump_json(exclude_none=True)
            )
        except OSError as exc:
            raise _storage_error(
                StorageErrorCode.IO_ERROR,
                str(exc),
                "append_log",
                path,
                run_id=entry.run_id,
            ) from exc


async def _read_optional(
    path: Path, operation: str, *, run_id: RunId | None = None
) -> str | None:
    try:
        return await asyncio.to_thread(path.read_text, "utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        raise _storage_error(
            StorageErrorCode.IO_ERROR, str(exc), operation, path, run_id=run_id
        ) from exc


def _storage_error(
    code: StorageErrorCode,
    message: str,
    operation: str,
    path: Path,
    *,
    run_id: RunId | None = None,
) -> StorageError:
    return StorageError(
        StorageErrorInfo(
            code=code,
            message=message,
            details=StorageErrorDetails(
                operation=operation, run_id=run_id, path=str(path)
            ),
        )
    )


def _replace_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_suffix(path.suffix + ".tmp")
    staging.write_text(text, encoding="utf-8")
    os.replace(staging, path)


def _append_line(path: Path, line: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(line + "\n")
