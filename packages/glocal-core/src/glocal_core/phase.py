"""Phase controller shared by the cultural, regulatory and quality phases."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from uuid import uuid7

from glocal_core.analysis.gateway import AnalysisGateway
from glocal_core.gates import ApprovalGate, GateDecision
from glocal_core.ports.workflow import GateBlockedError, invalid_state
from glocal_core.store import SegmentStore
from glocal_schemas.analysis import (
    AdaptationSuggestion,
    AnalysisContext,
    AnalysisReport,
)
from glocal_schemas.primitives import (
    ChangeKind,
    PhaseName,
    PhaseState,
    SegmentStatus,
    Timestamp,
)
from glocal_schemas.segments import ChangeRecord, Segment
from glocal_schemas.workflow import PhaseProgress


@dataclass(frozen=True, slots=True)
class AnalysisOutcome:
    """Result of one analysis call made through a phase controller."""

    segment_id: str
    report: AnalysisReport
    recorded: bool
    approval_revoked: bool = False


class PhaseController:
    """Drive analysis and approval for one review phase.

    The controller only writes its own phase namespace of each segment, through
    the segment store. Analyses are serialized per segment so that the most
    recently issued call is the one recorded.
    """

    def __init__(
        self,
        phase: PhaseName,
        store: SegmentStore,
        gateway: AnalysisGateway,
        gate: ApprovalGate,
        *,
        context: AnalysisContext,
        clock: Callable[[], Timestamp],
        selected_segment_id: str | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            phase: Phase this controller owns.
            store: Shared segment store.
            gateway: Analysis gateway.
            gate: Approval gate for the phase.
            context: Phase-specific analysis parameters.
            clock: Timestamp provider.
            selected_segment_id: Segment selected when the run was saved.

        Raises:
            ValueError: If the gate belongs to a different phase.
        """
        self.phase = PhaseName(phase)
        if PhaseName(gate.phase) != self.phase:
            raise ValueError(
                f"Gate for {gate.phase} cannot drive the {self.phase.value} phase"
            )
        self._store = store
        self._gateway = gateway
        self._gate = gate
        self._context = context
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._selected: str | None = None
        if selected_segment_id is not None and selected_segment_id in store:
            self._selected = selected_segment_id

    @property
    def selected_segment_id(self) -> str | None:
        """Identifier of the segment the operator is working on."""
        return self._selected

    def select_segment(self, segment_id: str) -> Segment:
        """Select a segment for analysis and approval.

        Raises:
            NotFoundError: If the segment is unknown.
        """
        segment = self._store.get(segment_id)
        self._selected = segment.id
        return segment

    def select_first(self) -> Segment:
        """Select the first segment in document order."""
        return self.select_segment(self._store.ids[0])

    def select_next(self) -> Segment:
        """Select the following segment; the last segment stays selected."""
        return self._step(1)

    def select_previous(self) -> Segment:
        """Select the preceding segment; the first segment stays selected."""
        return self._step(-1)

    async def analyze(self, segment_id: str | None = None) -> AnalysisOutcome:
        """Analyze a segment and record the report.

        The report is recorded only when the translation did not change while
        the call was in flight. Re-analysis replaces the previous report; if
        a completed segment no longer passes the gate, its approval is revoked.

        Args:
            segment_id: Segment to analyze (defaults to the selection).

        Returns:
            AnalysisOutcome: Report plus whether it was recorded.

        Raises:
            NotFoundError: If the segment is unknown.
            WorkflowError: If nothing is selected and no id was given.
        """
        target = self._resolve(segment_id)
        lock = self._locks.setdefault(target, asyncio.Lock())
        async with lock:
            snapshot = self._store.get(target)
            report = await self._gateway.analyze(self.phase, snapshot, self._context)
            current = self._store.get(target)
            if current.revision != snapshot.revision:
                return AnalysisOutcome(
                    segment_id=target, report=report, recorded=False
                )
            patch: dict[str, object] = {"report": report.model_copy(deep=True)}
            revoked = False
            if current.status(self.phase) == SegmentStatus.COMPLETE:
                candidate = current.model_copy(deep=True)
                state = candidate.phase_state(self.phase)
                if state is not None:
                    state.report = report
                if not self._gate.evaluate(candidate).allowed:
                    patch.update(
                        approved=False,
                        approved_at=None,
                        status=SegmentStatus.IN_PROGRESS,
                    )
                    revoked = True
            else:
                patch["status"] = SegmentStatus.IN_PROGRESS
            self._store.update(target, patch, phase=self.phase)
            return AnalysisOutcome(
                segment_id=target,
                report=report,
                recorded=True,
                approval_revoked=revoked,
            )

    def evaluate_gate(self, segment_id: str | None = None) -> GateDecision:
        """Evaluate the approval gate for a segment.

        Raises:
            NotFoundError: If the segment is unknown.
        """
        return self._gate.evaluate(self._store.get(self._resolve(segment_id)))

    def can_approve(self, segment_id: str | None = None) -> bool:
        """Return True if the segment may be approved now."""
        return self.evaluate_gate(segment_id).allowed

    def approve(self, segment_id: str | None = None) -> Segment:
        """Approve a segment for the phase.

        On success the selection moves to the next segment after it that is not
        complete yet. When none remains, the approved segment stays selected.

        Args:
            segment_id: Segment to approve (defaults to the selection).

        Returns:
            Segment: Updated segment.

        Raises:
            NotFoundError: If the segment is unknown.
            GateBlockedError: If the gate refuses; state is left unchanged.
        """
        target = self._resolve(segment_id)
        decision = self._gate.evaluate(self._store.get(target))
        if not decision.allowed:
            raise GateBlockedError(self.phase, target, decision.reasons)
        updated = self._store.update(
            target,
            {
                "approved": True,
                "approved_at": self._clock(),
                "status": SegmentStatus.COMPLETE,
            },
            phase=self.phase,
        )
        self._selected = self._next_open_after(target) or target
        return updated

    def incomplete_segment_ids(self) -> list[str]:
        """Identifiers of segments not yet complete in this phase."""
        return [
            segment.id
            for segment in self._store.list()
            if segment.status(self.phase) != SegmentStatus.COMPLETE
        ]

    def is_phase_complete(self) -> bool:
        """Return True when every segment is complete for this phase."""
        return not self.incomplete_segment_ids()

    def average_score(self) -> float | None:
        """Average overall score across segments with a report."""
        scores = [
            report.overall_score
            for segment in self._store.list()
            if (report := segment.report(self.phase)) is not None
        ]
        if not scores:
            return None
        return round(sum(scores) / len(scores), 1)

    def progress(self, state: PhaseState) -> PhaseProgress:
        """Build a progress snapshot for the phase.

        Args:
            state: Position of the phase relative to the active phase.

        Returns:
            PhaseProgress: Counts, score average and completion percentage.
        """
        segments = self._store.list()
        counts = dict.fromkeys(SegmentStatus, 0)
        analyzed = blocked = fallback = 0
        for segment in segments:
            counts[segment.status(self.phase)] += 1
            report = segment.report(self.phase)
            if report is None:
                continue
            analyzed += 1
            if report.generated_by_fallback:
                fallback += 1
            if (
                segment.status(self.phase) != SegmentStatus.COMPLETE
                and not self._gate.evaluate(segment).allowed
            ):
                blocked += 1
        total = len(segments)
        complete = counts[SegmentStatus.COMPLETE]
        return PhaseProgress(
            phase=self.phase,
            state=PhaseState(state),
            total_segments=total,
            pending=counts[SegmentStatus.PENDING],
            in_progress=counts[SegmentStatus.IN_PROGRESS],
            complete=complete,
            analyzed=analyzed,
            blocked=blocked,
            fallback_reports=fallback,
            average_score=self.average_score(),
            percent_complete=round(complete / total * 100, 1) if total else 0.0,
        )

    def suggestion(self, segment_id: str, index: int) -> AdaptationSuggestion:
        """Return a suggestion from the segment's latest report.

        Raises:
            NotFoundError: If the segment is unknown.
            WorkflowError: If the report or suggestion does not exist.
        """
        report = self._store.get(segment_id).report(self.phase)
        if report is None or not report.suggestions:
            raise invalid_state(
                f"Segment {segment_id} has no {self.phase.value} suggestions",
                phase=self.phase,
            )
        if not 0 <= index < len(report.suggestions):
            raise invalid_state(
                f"Suggestion index {index} is out of range "
                f"(0-{len(report.suggestions) - 1})",
                phase=self.phase,
            )
        return report.suggestions[index]

    def apply_suggestion(self, segment_id: str, index: int) -> Segment:
        """Apply a suggestion by replacing every occurrence of its text.

        The replacement is a translation edit, so the current and downstream
        phases are re-opened.

        Raises:
            NotFoundError: If the segment is unknown.
            WorkflowError: If the suggestion does not exist or its text is not
                present in the translation.
        """
        suggestion = self.suggestion(segment_id, index)
        segment = self._store.get(segment_id)
        if suggestion.original_text not in segment.translation:
            raise invalid_state(
                f"Suggested text not found in segment {segment_id}: "
                f"{suggestion.original_text!r}",
                phase=self.phase,
            )
        updated = suggestion.suggested_text.join(
            segment.translation.split(suggestion.original_text)
        )
        return self._store.edit_translation(
            segment_id,
            updated,
            current_phase=self.phase,
            change=self._change(
                ChangeKind.SUGGESTION_APPLIED,
                original=segment.translation,
                updated=updated,
                rationale=suggestion.rationale,
            ),
        )

    def decide_suggestion(
        self, segment_id: str, index: int, kind: ChangeKind
    ) -> Segment:
        """Record a flag or reject decision without changing the translation.

        Raises:
            NotFoundError: If the segment is unknown.
            WorkflowError: If the suggestion does not exist or the kind is not
                a decision.
        """
        if kind not in (ChangeKind.SUGGESTION_FLAGGED, ChangeKind.SUGGESTION_REJECTED):
            raise invalid_state(f"Not a suggestion decision: {kind}", phase=self.phase)
        suggestion = self.suggestion(segment_id, index)
        self._store.record_change(
            segment_id,
            self._change(
                kind,
                original=suggestion.original_text,
                updated=suggestion.suggested_text,
                rationale=suggestion.rationale,
            ),
        )
        return self._store.get(segment_id)

    def build_phase_draft(self) -> str:
        """Render the current translations as a numbered preview."""
        return "\n\n".join(
            f"[Segment {number}]\n{segment.translation}"
            for number, segment in enumerate(self._store.list(), start=1)
        )

    def _resolve(self, segment_id: str | None) -> str:
        if segment_id is not None:
            self._store.index_of(segment_id)
            return segment_id
        if self._selected is None:
            raise invalid_state(
                f"No segment selected in the {self.phase.value} phase",
                phase=self.phase,
            )
        return self._selected

    def _step(self, offset: int) -> Segment:
        ids = self._store.ids
        if self._selected is None:
            return self.select_segment(ids[0])
        index = ids.index(self._selected) + offset
        index = max(0, min(index, len(ids) - 1))
        return self.select_segment(ids[index])

    def _next_open_after(self, segment_id: str) -> str | None:
        ids = self._store.ids
        for candidate in ids[ids.index(segment_id) + 1 :]:
            if self._store.get(candidate).status(self.phase) != SegmentStatus.COMPLETE:
                return candidate
        return None

    def _change(
        self,
        kind: ChangeKind,
        *,
        original: str | None,
        updated: str | None,
        rationale: str | None,
    ) -> ChangeRecord:
        return ChangeRecord(
            change_id=uuid7(),
            kind=kind,
            phase=self.phase,
            original=original,
            updated=updated,
            rationale=rationale,
            recorded_at=self._clock(),
        )

