"""Ingest port: loading upstream segment records into a run."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from glocal_core.ports.errors import StructuredError, StructuredErrorInfo
from glocal_schemas.base import BaseSchema
from glocal_schemas.responses import ErrorDetails
from glocal_schemas.segments import SegmentInput


class IngestErrorCode(StrEnum):
    """Reasons an upstream record set could not be loaded."""

    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"
    DUPLICATE_ID = "duplicate_id"
    IO_ERROR = "io_error"


class IngestErrorDetails(BaseSchema):
    """Where in the source file an ingest problem was found."""

    source_path: str | None = Field(None, description="Source file path")
    line_number: int | None = Field(None, ge=1, description="1-based line number")
    field: str | None = Field(None, description="Record field at fault")
    provided: str | None = Field(None, description="Offending value")


class IngestErrorInfo(StructuredErrorInfo):
    """Structured ingest error data."""

    code: IngestErrorCode = Field(..., description="Ingest error code")
    details: IngestErrorDetails | None = Field(None, description="Error details")

    def response_message(self) -> str:
        """Prefix the message with the offending line when known."""
        if self.details is None or self.details.line_number is None:
            return self.message
        return f"line {self.details.line_number}: {self.message}"

    def response_details(self) -> ErrorDetails | None:
        """Expose the offending field and value."""
        if self.details is None:
            return None
        return ErrorDetails(field=self.details.field, provided=self.details.provided)


class IngestError(StructuredError[IngestErrorInfo]):
    """Fatal ingest failure, such as an unreadable file."""


class IngestBatchError(Exception):
    """Every per-record problem found while loading a source file."""

    def __init__(self, errors: list[IngestErrorInfo]) -> None:
        """Initialize the batch error.

        Args:
            errors: Problems in file order.
        """
        super().__init__(f"{len(errors)} ingest errors")
        self.errors = errors


@runtime_checkable
class SegmentIngestProtocol(Protocol):
    """Adapter that reads upstream records in document order."""

    async def load_segments(self, source_path: str) -> list[SegmentInput]:
        """Load segment records from a source file.

        Raises:
            IngestError: When the file cannot be read at all.
            IngestBatchError: When one or more records are invalid.
        """
        raise NotImplementedError
