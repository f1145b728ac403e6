"""Workflow run state, progress and deliverable schemas."""

from __future__ import annotations

from pydantic import Field, model_validator

from glocal_schemas.analysis import AnalysisContext
from glocal_schemas.base import BaseSchema
from glocal_schemas.primitives import (
    WORKFLOW_PHASE_ORDER,
    PhaseName,
    PhaseState,
    RunId,
    RunStatus,
    Score,
    SegmentId,
    Timestamp,
)
from glocal_schemas.segments import Segment


class PhaseRecord(BaseSchema):
    """History entry for a phase that was entered during a run."""

    phase: PhaseName = Field(..., description="Phase name")
    started_at: Timestamp = Field(..., description="Phase start timestamp")
    completed_at: Timestamp | None = Field(None, description="Completion timestamp")


class PhaseProgress(BaseSchema):
    """Progress snapshot for a single phase."""

    phase: PhaseName = Field(..., description="Phase name")
    state: PhaseState = Field(..., description="Phase position in the run")
    total_segments: int = Field(..., ge=0, description="Segments in the run")
    pending: int = Field(..., ge=0, description="Segments not yet analyzed")
    in_progress: int = Field(..., ge=0, description="Segments under review")
    complete: int = Field(..., ge=0, description="Approved segments")
    analyzed: int = Field(..., ge=0, description="Segments with a report")
    blocked: int = Field(..., ge=0, description="Segments failing the gate")
    fallback_reports: int = Field(
        ..., ge=0, description="Reports generated without the AI service"
    )
    average_score: Score | None = Field(
        None, description="Average score across analyzed segments"
    )
    percent_complete: float = Field(..., ge=0, le=100, description="Completion %")

    @model_validator(mode="after")
    def validate_counts(self) -> PhaseProgress:
        """Ensure status buckets add up to the total.

        Returns:
            PhaseProgress: Validated progress snapshot.

        Raises:
            ValueError: If the counts do not sum to total_segments.
        """
        if self.pending + self.in_progress + self.complete != self.total_segments:
            raise ValueError("status counts must sum to total_segments")
        return self


class WorkflowProgress(BaseSchema):
    """Progress snapshot for a whole run."""

    run_id: RunId = Field(..., description="Run identifier")
    status: RunStatus = Field(..., description="Run status")
    active_phase: PhaseName = Field(..., description="Active phase")
    selected_segment_id: SegmentId | None = Field(
        None, description="Segment currently selected by the operator"
    )
    phases: list[PhaseProgress] = Field(..., description="Per-phase progress")
    finalized: bool = Field(..., description="Whether a final document exists")


class PhaseSummary(BaseSchema):
    """Score summary for a completed phase, published with the deliverable."""

    phase: PhaseName = Field(..., description="Phase name")
    average_score: Score | None = Field(None, description="Average phase score")
    fallback_reports: int = Field(..., ge=0, description="Fallback report count")


class ConsolidatedDeliverable(BaseSchema):
    """Final document plus the approved segments for audit and delivery."""

    run_id: RunId = Field(..., description="Run identifier")
    final_document: str = Field(..., min_length=1, description="Merged document")
    segments: list[Segment] = Field(..., min_length=1, description="Segments")
    phase_summaries: list[PhaseSummary] = Field(
        ..., description="Per-phase score summaries"
    )
    finalized_at: Timestamp = Field(..., description="Consolidation timestamp")


class WorkflowRunState(BaseSchema):
    """Serializable snapshot of a workflow run."""

    run_id: RunId = Field(..., description="Run identifier")
    status: RunStatus = Field(..., description="Run status")
    active_phase_index: int = Field(
        ..., ge=0, lt=len(WORKFLOW_PHASE_ORDER), description="Active phase index"
    )
    context: AnalysisContext = Field(..., description="Analysis context")
    segments: list[Segment] = Field(..., min_length=1, description="Segments")
    selected: dict[str, SegmentId | None] = Field(
        default_factory=dict, description="Selected segment per phase"
    )
    phase_history: list[PhaseRecord] = Field(
        default_factory=list, description="Phase history"
    )
    final_document: str | None = Field(None, description="Merged document")
    discard_reason: str | None = Field(None, description="Why the run was discarded")
    created_at: Timestamp = Field(..., description="Run creation timestamp")
    updated_at: Timestamp = Field(..., description="Last update timestamp")
