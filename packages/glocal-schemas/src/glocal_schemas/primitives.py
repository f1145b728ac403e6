"""Primitive types and enums shared across glocal schemas."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, Field

ISO_8601_PATTERN = (
    r"^\d{4}-\d{2}-\d{2}T"
    r"\d{2}:\d{2}:\d{2}"
    r"(?:\.\d+)?"
    r"(?:Z|[+-]\d{2}:\d{2})$"
)
EVENT_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"


def _validate_uuid7(value: UUID) -> UUID:
    """Ensure UUID values are version 7.

    Args:
        value: Parsed UUID value.

    Returns:
        UUID: The validated UUIDv7 value.

    Raises:
        ValueError: If the UUID is not version 7.
    """
    if value.version != 7:
        raise ValueError("UUID must be version 7")
    return value


type Uuid7 = Annotated[UUID, AfterValidator(_validate_uuid7)]

type RunId = Uuid7
type ChangeId = Uuid7
type SegmentId = Annotated[str, Field(min_length=1, max_length=128)]
type MarketCode = Annotated[str, Field(min_length=1, max_length=64)]
type Timestamp = Annotated[str, Field(pattern=ISO_8601_PATTERN)]
type EventName = Annotated[str, Field(pattern=EVENT_NAME_PATTERN)]
type Score = Annotated[float, Field(ge=0, le=100)]

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]


class PhaseName(StrEnum):
    """Review phase names."""

    CULTURAL = "cultural"
    REGULATORY = "regulatory"
    QUALITY = "quality"


WORKFLOW_PHASE_ORDER = [
    PhaseName.CULTURAL,
    PhaseName.REGULATORY,
    PhaseName.QUALITY,
]


class SegmentStatus(StrEnum):
    """Per-segment status within a single phase."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"


class PhaseState(StrEnum):
    """Phase position relative to the active phase of a run."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class RunStatus(StrEnum):
    """Overall workflow run status values."""

    IN_REVIEW = "in_review"
    FINALIZED = "finalized"
    DISCARDED = "discarded"


class RiskLevel(StrEnum):
    """Risk level attached to an analysis report."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IssueSeverity(StrEnum):
    """Severity of a single analysis issue."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ChangeRequirement(StrEnum):
    """Whether a regulatory finding must or should be addressed."""

    MUST_CHANGE = "must_change"
    SHOULD_CHANGE = "should_change"


class QualityReadiness(StrEnum):
    """Release readiness derived from the quality score."""

    PRODUCTION_READY = "production_ready"
    NEEDS_REVIEW = "needs_review"


class ChangeKind(StrEnum):
    """Kinds of entries recorded in a segment change log."""

    EDIT = "edit"
    SUGGESTION_APPLIED = "suggestion_applied"
    SUGGESTION_FLAGGED = "suggestion_flagged"
    SUGGESTION_REJECTED = "suggestion_rejected"


class LogLevel(StrEnum):
    """Log level values for JSONL logs."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogSinkType(StrEnum):
    """Supported log sink types."""

    CONSOLE = "console"
    FILE = "file"
    NOOP = "noop"
