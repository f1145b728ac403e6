"""Segment schemas for the localization workflow."""

from __future__ import annotations

from pydantic import Field

from glocal_schemas.analysis import AnalysisReport
from glocal_schemas.base import BaseSchema
from glocal_schemas.primitives import (
    ChangeId,
    ChangeKind,
    MarketCode,
    PhaseName,
    SegmentId,
    SegmentStatus,
    Timestamp,
)


class SegmentInput(BaseSchema):
    """Upstream record produced by the draft-translation stage."""

    id: SegmentId = Field(..., description="Stable segment identifier")
    source_text: str = Field(..., min_length=1, description="Original text")
    translation: str = Field(..., min_length=1, description="Draft translation")
    type: str | None = Field(
        None, description="Display label for the segment role (subject, body, ...)"
    )
    target_market: MarketCode = Field(..., description="Target market or locale")


class SegmentPhaseState(BaseSchema):
    """Per-phase namespace of a segment."""

    status: SegmentStatus = Field(
        SegmentStatus.PENDING, description="Segment status within the phase"
    )
    report: AnalysisReport | None = Field(
        None, description="Most recent analysis report for the phase"
    )
    approved: bool = Field(False, description="Operator sign-off for the phase")
    approved_at: Timestamp | None = Field(None, description="Sign-off timestamp")


SEGMENT_PHASE_FIELDS = frozenset(SegmentPhaseState.model_fields)


class ChangeRecord(BaseSchema):
    """Audit entry describing a change or decision on a segment."""

    change_id: ChangeId = Field(..., description="Change identifier")
    kind: ChangeKind = Field(..., description="Change kind")
    phase: PhaseName = Field(..., description="Active phase when recorded")
    original: str | None = Field(None, description="Text before the change")
    updated: str | None = Field(None, description="Text after the change")
    rationale: str | None = Field(None, description="Reason for the change")
    recorded_at: Timestamp = Field(..., description="Record timestamp")


class Segment(BaseSchema):
    """One translatable unit of content moving through the review phases."""

    id: SegmentId = Field(..., description="Stable segment identifier")
    source_text: str = Field(..., min_length=1, description="Original text")
    translation: str = Field(..., min_length=1, description="Current translation")
    type: str | None = Field(None, description="Display label for the segment")
    target_market: MarketCode = Field(..., description="Target market or locale")
    revision: int = Field(0, ge=0, description="Translation revision counter")
    phases: dict[str, SegmentPhaseState] = Field(
        default_factory=dict, description="Per-phase state keyed by phase name"
    )
    changes: list[ChangeRecord] = Field(
        default_factory=list, description="Change log for the segment"
    )

    @classmethod
    def from_input(cls, record: SegmentInput) -> Segment:
        """Build a segment from an upstream record.

        Args:
            record: Upstream segment record.

        Returns:
            Segment: Segment with no phase state yet.
        """
        return cls(
            id=record.id,
            source_text=record.source_text,
            translation=record.translation,
            type=record.type,
            target_market=record.target_market,
        )

    def phase_state(self, phase: PhaseName | str) -> SegmentPhaseState | None:
        """Return the state for a phase, or None if not yet entered."""
        return self.phases.get(PhaseName(phase).value)

    def status(self, phase: PhaseName | str) -> SegmentStatus:
        """Return the status for a phase (pending when not yet entered)."""
        state = self.phase_state(phase)
        if state is None:
            return SegmentStatus.PENDING
        return SegmentStatus(state.status)

    def report(self, phase: PhaseName | str) -> AnalysisReport | None:
        """Return the latest report for a phase."""
        state = self.phase_state(phase)
        return state.report if state is not None else None

    def is_approved(self, phase: PhaseName | str) -> bool:
        """Return True if the operator signed off on the phase."""
        state = self.phase_state(phase)
        return state.approved if state is not None else False
