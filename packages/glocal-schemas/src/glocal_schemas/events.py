"""Event taxonomy and structured payloads for run observability."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from glocal_schemas.base import BaseSchema
from glocal_schemas.primitives import (
    PhaseName,
    RiskLevel,
    RunStatus,
    Score,
    SegmentId,
)


class RunEvent(StrEnum):
    """Event names for run lifecycle."""

    CREATED = "run_created"
    FINALIZED = "run_finalized"
    DISCARDED = "run_discarded"


class PhaseEvent(StrEnum):
    """Event names for phase lifecycle."""

    STARTED = "phase_started"
    COMPLETED = "phase_completed"
    ADVANCE_BLOCKED = "advance_blocked"


class SegmentEvent(StrEnum):
    """Event names for segment-level operator and analysis actions."""

    SELECTED = "segment_selected"
    ANALYZED = "segment_analyzed"
    ANALYSIS_DEGRADED = "analysis_degraded"
    ANALYSIS_STALE = "analysis_stale"
    APPROVED = "segment_approved"
    APPROVAL_BLOCKED = "approval_blocked"
    TRANSLATION_EDITED = "translation_edited"
    SUGGESTION_DECIDED = "suggestion_decided"


class RunCreatedData(BaseSchema):
    """Payload for run creation events."""

    segment_count: int = Field(..., ge=1, description="Segments in the run")
    phases: list[PhaseName] = Field(..., description="Ordered review phases")


class RunFinalizedData(BaseSchema):
    """Payload for run finalization events."""

    status: RunStatus = Field(..., description="Final run status")
    segment_count: int = Field(..., ge=1, description="Segments consolidated")
    document_length: int = Field(..., ge=0, description="Final document length")


class PhaseEventData(BaseSchema):
    """Payload for phase lifecycle events."""

    phase: PhaseName = Field(..., description="Phase name")
    incomplete_segment_ids: list[SegmentId] | None = Field(
        None, description="Segments still open when advance was refused"
    )


class SegmentAnalyzedData(BaseSchema):
    """Payload for analysis events."""

    segment_id: SegmentId = Field(..., description="Segment identifier")
    overall_score: Score = Field(..., description="Report score")
    risk_level: RiskLevel = Field(..., description="Report risk level")
    issue_count: int = Field(..., ge=0, description="Number of issues")
    generated_by_fallback: bool = Field(..., description="Fallback flag")
    fallback_reason: str | None = Field(None, description="Fallback cause")


class SegmentDecisionData(BaseSchema):
    """Payload for approvals, blocked approvals, edits and suggestion decisions."""

    segment_id: SegmentId = Field(..., description="Segment identifier")
    reasons: list[str] | None = Field(None, description="Blocking reasons")
    revision: int | None = Field(None, ge=0, description="Translation revision")
    reopened_phases: list[PhaseName] | None = Field(
        None, description="Phases re-opened by an edit"
    )
    next_segment_id: SegmentId | None = Field(
        None, description="Segment selected after the action"
    )
