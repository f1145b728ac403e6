"""Storage port: persisting run snapshots between operator commands."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from glocal_core.ports.errors import StructuredError, StructuredErrorInfo
from glocal_schemas.base import BaseSchema
from glocal_schemas.primitives import RunId
from glocal_schemas.responses import ErrorDetails
from glocal_schemas.workflow import WorkflowRunState


class StorageErrorCode(StrEnum):
    """Reasons a snapshot could not be read or written."""

    NOT_FOUND = "not_found"
    IO_ERROR = "io_error"
    VALIDATION_ERROR = "validation_error"


class StorageErrorDetails(BaseSchema):
    """Context for a failed storage operation."""

    operation: str | None = Field(None, description="Storage operation name")
    run_id: RunId | None = Field(None, description="Run identifier")
    path: str | None = Field(None, description="Filesystem path")
    reason: str | None = Field(None, description="Underlying failure")


class StorageErrorInfo(StructuredErrorInfo):
    """Structured storage error data."""

    code: StorageErrorCode = Field(..., description="Storage error code")
    details: StorageErrorDetails | None = Field(None, description="Error details")

    def response_details(self) -> ErrorDetails | None:
        """Expose the operation and the path it touched."""
        if self.details is None:
            return None
        return ErrorDetails(field=self.details.operation, provided=self.details.path)


class StorageError(StructuredError[StorageErrorInfo]):
    """Run state could not be persisted or restored."""


@runtime_checkable
class RunStateStoreProtocol(Protocol):
    """Store for workflow run snapshots."""

    async def save_run_state(self, state: WorkflowRunState) -> None:
        """Persist a snapshot, replacing any earlier one for the run."""
        raise NotImplementedError

    async def load_run_state(self, run_id: RunId) -> WorkflowRunState | None:
        """Load the snapshot for a run, or None when it was never saved."""
        raise NotImplementedError

    async def load_latest_run_state(self) -> WorkflowRunState | None:
        """Load the most recently saved snapshot, if any."""
        raise NotImplementedError
