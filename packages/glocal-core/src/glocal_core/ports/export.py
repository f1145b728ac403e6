"""Export port: publishing the consolidated deliverable."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from glocal_core.ports.errors import StructuredError, StructuredErrorInfo
from glocal_schemas.responses import ErrorDetails
from glocal_schemas.workflow import ConsolidatedDeliverable


class ExportErrorCode(StrEnum):
    """Reasons a deliverable could not be written."""

    IO_ERROR = "io_error"


class ExportErrorInfo(StructuredErrorInfo):
    """Structured export error data."""

    code: ExportErrorCode = Field(..., description="Export error code")
    output_path: str | None = Field(None, description="Output file path")

    def response_details(self) -> ErrorDetails | None:
        """Expose the output path that failed."""
        if not self.output_path:
            return None
        return ErrorDetails(field="output_path", provided=self.output_path)


class ExportError(StructuredError[ExportErrorInfo]):
    """Deliverable could not be written."""


@runtime_checkable
class DeliverableExporterProtocol(Protocol):
    """Writer that publishes a consolidated deliverable."""

    async def write_deliverable(
        self, deliverable: ConsolidatedDeliverable, output_path: str
    ) -> str:
        """Write the deliverable and return the output path.

        Raises:
            ExportError: When the output cannot be written.
        """
        raise NotImplementedError
