"""In-memory authoritative store for segments and their per-phase state."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from glocal_core.ports.workflow import (
    NotFoundError,
    WorkflowError,
    WorkflowErrorCode,
    WorkflowErrorDetails,
    WorkflowErrorInfo,
    invalid_state,
)
from glocal_schemas.primitives import WORKFLOW_PHASE_ORDER, PhaseName, SegmentStatus
from glocal_schemas.segments import (
    SEGMENT_PHASE_FIELDS,
    ChangeRecord,
    Segment,
    SegmentPhaseState,
)


class SegmentStore:
    """Single source of truth for segment data in a run.

    Reads return deep copies so callers cannot mutate stored state without going
    through ``update``. Every operation is synchronous and therefore atomic with
    respect to other coroutines on the event loop.
    """

    def __init__(self, segments: Iterable[Segment]) -> None:
        """Initialize the store.

        Args:
            segments: Segments in document order.

        Raises:
            WorkflowError: If segment identifiers are duplicated or empty.
        """
        self._order: list[str] = []
        self._segments: dict[str, Segment] = {}
        for segment in segments:
            if segment.id in self._segments:
                raise invalid_state(f"Duplicate segment id: {segment.id}")
            self._order.append(segment.id)
            self._segments[segment.id] = segment.model_copy(deep=True)
        if not self._order:
            raise invalid_state("A run requires at least one segment")

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, segment_id: object) -> bool:
        return segment_id in self._segments

    @property
    def ids(self) -> list[str]:
        """Segment identifiers in document order."""
        return list(self._order)

    def get(self, segment_id: str) -> Segment:
        """Return a copy of a segment.

        Raises:
            NotFoundError: If the segment is unknown.
        """
        return self._require(segment_id).model_copy(deep=True)

    def list(self) -> list[Segment]:
        """Return copies of all segments in document order."""
        return [self._segments[sid].model_copy(deep=True) for sid in self._order]

    def index_of(self, segment_id: str) -> int:
        """Return the document position of a segment.

        Raises:
            NotFoundError: If the segment is unknown.
        """
        self._require(segment_id)
        return self._order.index(segment_id)

    def enter_phase(self, phase: PhaseName) -> None:
        """Seed pending state for every segment that has not entered a phase."""
        key = PhaseName(phase).value
        for segment in self._segments.values():
            if key not in segment.phases:
                segment.phases[key] = SegmentPhaseState()

    def update(
        self,
        segment_id: str,
        patch: Mapping[str, object],
        *,
        phase: PhaseName,
    ) -> Segment:
        """Merge a partial update into one phase namespace of a segment.

        Only phase-state fields may be patched. Source text, translation and the
        revision counter are changed through ``edit_translation``.

        Args:
            segment_id: Segment identifier.
            patch: Field values to merge.
            phase: Phase namespace to update.

        Returns:
            Segment: Copy of the updated segment.

        Raises:
            NotFoundError: If the segment is unknown.
            WorkflowError: If the patch names a field outside the phase
                namespace or produces an invalid state.
        """
        segment = self._require(segment_id)
        forbidden = sorted(set(patch) - SEGMENT_PHASE_FIELDS)
        if forbidden:
            raise WorkflowError(
                WorkflowErrorInfo(
                    code=WorkflowErrorCode.FORBIDDEN_FIELD,
                    message=f"Fields cannot be patched: {', '.join(forbidden)}",
                    details=WorkflowErrorDetails(
                        phase=phase,
                        segment_id=segment_id,
                        field=forbidden[0],
                        valid_options=sorted(SEGMENT_PHASE_FIELDS),
                    ),
                )
            )
        key = PhaseName(phase).value
        current = segment.phases.get(key) or SegmentPhaseState()
        merged: dict[str, object] = {
            name: getattr(current, name) for name in SEGMENT_PHASE_FIELDS
        }
        merged.update(patch)
        try:
            updated = SegmentPhaseState.model_validate(
                {
                    **merged,
                    "status": SegmentStatus(str(merged["status"])),
                }
            )
        except ValueError as exc:
            raise invalid_state(
                f"Invalid phase state for segment {segment_id}: {exc}", phase=phase
            ) from exc
        if updated.status == SegmentStatus.COMPLETE and not updated.approved:
            raise invalid_state(
                f"Segment {segment_id} cannot be complete without approval",
                phase=phase,
            )
        segment.phases[key] = updated
        return segment.model_copy(deep=True)

    def edit_translation(
        self,
        segment_id: str,
        text: str,
        *,
        current_phase: PhaseName,
        change: ChangeRecord,
    ) -> Segment:
        """Replace a translation and re-open the current and downstream gates.

        Every phase at or after ``current_phase`` that the segment has entered
        loses its approval and returns to in-progress. Earlier phases keep their
        approvals.

        Args:
            segment_id: Segment identifier.
            text: New translation text.
            current_phase: Phase active when the edit was made.
            change: Audit record for the edit.

        Returns:
            Segment: Copy of the updated segment.

        Raises:
            NotFoundError: If the segment is unknown.
            WorkflowError: If the new translation is empty.
        """
        segment = self._require(segment_id)
        if not text.strip():
            raise invalid_state(
                f"Translation for segment {segment_id} cannot be empty",
                phase=current_phase,
            )
        segment.translation = text
        segment.revision += 1
        start = WORKFLOW_PHASE_ORDER.index(PhaseName(current_phase))
        for phase in WORKFLOW_PHASE_ORDER[start:]:
            state = segment.phases.get(phase.value)
            if state is None:
                continue
            segment.phases[phase.value] = state.model_copy(
                update={
                    "approved": False,
                    "approved_at": None,
                    "status": SegmentStatus.IN_PROGRESS,
                }
            )
        segment.changes.append(change)
        return segment.model_copy(deep=True)

    def record_change(self, segment_id: str, change: ChangeRecord) -> None:
        """Append a change record without altering the translation."""
        self._require(segment_id).changes.append(change)

    def _require(self, segment_id: str) -> Segment:
        segment = self._segments.get(segment_id)
        if segment is None:
            raise NotFoundError(segment_id)
        return segment
