"""Protocol definitions, errors and log builders for the review workflow."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from glocal_core.ports.errors import StructuredError, StructuredErrorInfo
from glocal_schemas.base import BaseSchema
from glocal_schemas.events import (
    PhaseEvent,
    PhaseEventData,
    RunCreatedData,
    RunEvent,
    RunFinalizedData,
    SegmentAnalyzedData,
    SegmentDecisionData,
    SegmentEvent,
)
from glocal_schemas.logs import LogEntry
from glocal_schemas.primitives import (
    LogLevel,
    PhaseName,
    RunId,
    RunStatus,
    SegmentId,
    Timestamp,
)
from glocal_schemas.responses import ErrorDetails


@runtime_checkable
class LogSinkProtocol(Protocol):
    """Protocol for emitting JSONL log entries."""

    async def emit_log(self, entry: LogEntry) -> None:
        """Emit a log entry."""
        raise NotImplementedError


class WorkflowErrorCode(StrEnum):
    """Categorized error codes for workflow failures."""

    NOT_FOUND = "not_found"
    GATE_BLOCKED = "gate_blocked"
    PHASE_INCOMPLETE = "phase_incomplete"
    INVALID_STATE = "invalid_state"
    FORBIDDEN_FIELD = "forbidden_field"


class WorkflowErrorDetails(BaseSchema):
    """Detailed workflow error context."""

    phase: PhaseName | None = Field(None, description="Phase associated with error")
    segment_id: SegmentId | None = Field(None, description="Segment identifier")
    field: str | None = Field(None, description="Field associated with the error")
    reasons: list[str] | None = Field(
        None, description="Blocking issues or gate failures"
    )
    incomplete_segment_ids: list[SegmentId] | None = Field(
        None, description="Segments preventing a phase transition"
    )
    valid_options: list[str] | None = Field(
        None, description="Valid options if applicable"
    )


class WorkflowErrorInfo(StructuredErrorInfo):
    """Structured workflow error data."""

    code: WorkflowErrorCode = Field(..., description="Error code")
    details: WorkflowErrorDetails | None = Field(None, description="Error details")

    def response_details(self) -> ErrorDetails | None:
        """Expose the segment and the blocking reasons or open segments."""
        if self.details is None:
            return None
        field = self.details.field
        if field is None and self.details.segment_id:
            field = "segment_id"
        return ErrorDetails(
            field=field,
            provided=self.details.segment_id,
            valid_options=self.details.valid_options,
            reasons=self.details.reasons or self.details.incomplete_segment_ids,
        )


class WorkflowError(StructuredError[WorkflowErrorInfo]):
    """Recoverable workflow failure surfaced to the operator."""


class NotFoundError(WorkflowError):
    """Raised when a segment identifier is unknown."""

    def __init__(self, segment_id: str) -> None:
        """Initialize the error for an unknown segment.

        Args:
            segment_id: Identifier that was not found.
        """
        super().__init__(
            WorkflowErrorInfo(
                code=WorkflowErrorCode.NOT_FOUND,
                message=f"Segment not found: {segment_id}",
                details=WorkflowErrorDetails(segment_id=segment_id),
            )
        )
        self.segment_id = segment_id


class GateBlockedError(WorkflowError):
    """Raised when a phase approval gate refuses sign-off."""

    def __init__(
        self, phase: PhaseName, segment_id: str, reasons: list[str]
    ) -> None:
        """Initialize the error with the gate's blocking reasons.

        Args:
            phase: Phase whose gate refused.
            segment_id: Segment that could not be approved.
            reasons: Blocking issues reported by the gate.
        """
        super().__init__(
            WorkflowErrorInfo(
                code=WorkflowErrorCode.GATE_BLOCKED,
                message=(
                    f"Segment {segment_id} cannot be approved in the "
                    f"{PhaseName(phase).value} phase"
                ),
                details=WorkflowErrorDetails(
                    phase=phase, segment_id=segment_id, reasons=list(reasons)
                ),
            )
        )
        self.segment_id = segment_id
        self.reasons = list(reasons)


class PhaseIncompleteError(WorkflowError):
    """Raised when a phase transition is attempted with open segments."""

    def __init__(self, phase: PhaseName, incomplete_segment_ids: list[str]) -> None:
        """Initialize the error with the segments still open.

        Args:
            phase: Phase that is not complete.
            incomplete_segment_ids: Segments not yet approved in the phase.
        """
        super().__init__(
            WorkflowErrorInfo(
                code=WorkflowErrorCode.PHASE_INCOMPLETE,
                message=(
                    f"{len(incomplete_segment_ids)} segment(s) are not complete "
                    f"in the {PhaseName(phase).value} phase"
                ),
                details=WorkflowErrorDetails(
                    phase=phase,
                    incomplete_segment_ids=list(incomplete_segment_ids),
                ),
            )
        )
        self.incomplete_segment_ids = list(incomplete_segment_ids)


def invalid_state(message: str, *, phase: PhaseName | None = None) -> WorkflowError:
    """Build an invalid-state workflow error.

    Args:
        message: Error message.
        phase: Phase involved, if any.

    Returns:
        WorkflowError: Error ready to raise.
    """
    details = WorkflowErrorDetails(phase=phase) if phase is not None else None
    return WorkflowError(
        WorkflowErrorInfo(
            code=WorkflowErrorCode.INVALID_STATE, message=message, details=details
        )
    )


def build_run_created_log(
    timestamp: Timestamp, run_id: RunId, segment_count: int, phases: list[PhaseName]
) -> LogEntry:
    """Build a log entry for run creation.

    Args:
        timestamp: ISO-8601 timestamp.
        run_id: Workflow run identifier.
        segment_count: Number of segments in the run.
        phases: Ordered review phases.

    Returns:
        LogEntry: Structured run creation log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=RunEvent.CREATED,
        run_id=run_id,
        phase=None,
        message="Run created",
        data=RunCreatedData(segment_count=segment_count, phases=phases).model_dump(
            exclude_none=True
        ),
    )


def build_run_finalized_log(
    timestamp: Timestamp, run_id: RunId, segment_count: int, document_length: int
) -> LogEntry:
    """Build a log entry for run finalization.

    Returns:
        LogEntry: Structured run finalization log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=RunEvent.FINALIZED,
        run_id=run_id,
        phase=PhaseName.QUALITY,
        message="Run finalized",
        data=RunFinalizedData(
            status=RunStatus.FINALIZED,
            segment_count=segment_count,
            document_length=document_length,
        ).model_dump(exclude_none=True),
    )


def build_run_discarded_log(
    timestamp: Timestamp, run_id: RunId, reason: str | None
) -> LogEntry:
    """Build a log entry for a discarded run.

    Returns:
        LogEntry: Structured run discard log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN,
        event=RunEvent.DISCARDED,
        run_id=run_id,
        phase=None,
        message="Run discarded",
        data={"reason": reason} if reason else None,
    )


def build_phase_log(
    timestamp: Timestamp,
    run_id: RunId,
    phase: PhaseName,
    event: PhaseEvent,
    incomplete_segment_ids: list[str] | None = None,
) -> LogEntry:
    """Build a log entry for a phase lifecycle event.

    Args:
        timestamp: ISO-8601 timestamp.
        run_id: Workflow run identifier.
        phase: Phase name.
        event: Phase event.
        incomplete_segment_ids: Open segments when an advance was refused.

    Returns:
        LogEntry: Structured phase log entry.
    """
    level = LogLevel.WARN if event == PhaseEvent.ADVANCE_BLOCKED else LogLevel.INFO
    message = {
        PhaseEvent.STARTED: f"Phase {PhaseName(phase).value} started",
        PhaseEvent.COMPLETED: f"Phase {PhaseName(phase).value} completed",
        PhaseEvent.ADVANCE_BLOCKED: f"Phase {PhaseName(phase).value} has open segments",
    }[event]
    return LogEntry(
        timestamp=timestamp,
        level=level,
        event=event,
        run_id=run_id,
        phase=phase,
        message=message,
        data=PhaseEventData(
            phase=phase, incomplete_segment_ids=incomplete_segment_ids
        ).model_dump(exclude_none=True),
    )


def build_segment_analyzed_log(
    timestamp: Timestamp,
    run_id: RunId,
    phase: PhaseName,
    event: SegmentEvent,
    data: SegmentAnalyzedData,
) -> LogEntry:
    """Build a log entry for an analysis result.

    Degraded and stale analyses log at warn level.

    Returns:
        LogEntry: Structured analysis log entry.
    """
    level = LogLevel.INFO if event == SegmentEvent.ANALYZED else LogLevel.WARN
    message = {
        SegmentEvent.ANALYZED: "Segment analyzed",
        SegmentEvent.ANALYSIS_DEGRADED: "Analysis service unavailable; fallback used",
        SegmentEvent.ANALYSIS_STALE: "Analysis discarded; translation changed",
    }.get(event, "Segment analyzed")
    return LogEntry(
        timestamp=timestamp,
        level=level,
        event=event,
        run_id=run_id,
        phase=phase,
        message=message,
        data=data.model_dump(exclude_none=True),
    )


def build_segment_log(
    timestamp: Timestamp,
    run_id: RunId,
    phase: PhaseName,
    event: SegmentEvent,
    message: str,
    data: SegmentDecisionData,
) -> LogEntry:
    """Build a log entry for an operator action on a segment.

    Returns:
        LogEntry: Structured segment log entry.
    """
    level = (
        LogLevel.WARN if event == SegmentEvent.APPROVAL_BLOCKED else LogLevel.INFO
    )
    return LogEntry(
        timestamp=timestamp,
        level=level,
        event=event,
        run_id=run_id,
        phase=phase,
        message=message,
        data=data.model_dump(exclude_none=True),
    )
