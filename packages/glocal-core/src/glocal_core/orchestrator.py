"""Workflow orchestrator sequencing the review phases of a run."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from uuid import uuid7

from glocal_core.analysis.gateway import AnalysisGateway, now_timestamp
from glocal_core.gates import GateRegistry, get_default_gates
from glocal_core.phase import AnalysisOutcome, PhaseController
from glocal_core.ports.workflow import (
    GateBlockedError,
    LogSinkProtocol,
    PhaseIncompleteError,
    build_phase_log,
    build_run_created_log,
    build_run_discarded_log,
    build_run_finalized_log,
    build_segment_analyzed_log,
    build_segment_log,
    invalid_state,
)
from glocal_core.store import SegmentStore
from glocal_schemas.analysis import AnalysisContext, AnalysisReport
from glocal_schemas.events import (
    PhaseEvent,
    SegmentAnalyzedData,
    SegmentDecisionData,
    SegmentEvent,
)
from glocal_schemas.logs import LogEntry
from glocal_schemas.primitives import (
    WORKFLOW_PHASE_ORDER,
    ChangeKind,
    PhaseName,
    PhaseState,
    RiskLevel,
    RunId,
    RunStatus,
    Timestamp,
)
from glocal_schemas.segments import ChangeRecord, Segment, SegmentInput
from glocal_schemas.workflow import (
    ConsolidatedDeliverable,
    PhaseRecord,
    PhaseSummary,
    WorkflowProgress,
    WorkflowRunState,
)

DOCUMENT_SEPARATOR = "\n\n"


class WorkflowOrchestrator:
    """Own a workflow run and expose the operator operations.

    Phases are traversed strictly forward: cultural, regulatory, quality. The
    orchestrator is the only component that advances phases or writes the final
    document.
    """

    def __init__(
        self,
        store: SegmentStore,
        gateway: AnalysisGateway,
        *,
        run_id: RunId,
        context: AnalysisContext,
        gates: GateRegistry | None = None,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
        max_parallel: int = 4,
        status: RunStatus = RunStatus.IN_REVIEW,
        active_phase_index: int = 0,
        selected: dict[str, str | None] | None = None,
        phase_history: Sequence[PhaseRecord] | None = None,
        final_document: str | None = None,
        discard_reason: str | None = None,
        created_at: Timestamp | None = None,
    ) -> None:
        """Initialize the orchestrator around an existing segment store.

        Prefer ``create_run`` for new runs and ``from_state`` for saved ones.

        Args:
            store: Segment store for the run.
            gateway: Analysis gateway.
            run_id: Run identifier.
            context: Analysis context shared by all phases.
            gates: Gate registry (defaults to the built-in gates).
            log_sink: Optional log sink.
            clock: Optional timestamp provider.
            max_parallel: Cap on concurrent analyses in ``analyze_many``.
            status: Run status.
            active_phase_index: Index of the active phase.
            selected: Selected segment per phase.
            phase_history: Phase history records.
            final_document: Previously consolidated document.
            discard_reason: Reason the run was discarded.
            created_at: Run creation timestamp.

        Raises:
            ValueError: If max_parallel or active_phase_index is out of range.
        """
        if max_parallel < 1:
            raise ValueError("max_parallel must be at least 1")
        if not 0 <= active_phase_index < len(WORKFLOW_PHASE_ORDER):
            raise ValueError("active_phase_index out of range")
        self._store = store
        self._gateway = gateway
        self._run_id = run_id
        self._context = context
        self._log_sink = log_sink
        self._clock = clock or now_timestamp
        self._max_parallel = max_parallel
        self._status = RunStatus(status)
        self._active_index = active_phase_index
        self._phase_history = list(phase_history or [])
        self._final_document = final_document
        self._discard_reason = discard_reason
        self._created_at = created_at or self._clock()
        registry = gates or get_default_gates()
        selected = selected or {}
        self._controllers = {
            phase: PhaseController(
                phase,
                store,
                gateway,
                registry.create(phase),
                context=context,
                clock=self._clock,
                selected_segment_id=selected.get(phase.value),
            )
            for phase in WORKFLOW_PHASE_ORDER
        }

    @classmethod
    async def create_run(
        cls,
        records: Sequence[SegmentInput],
        gateway: AnalysisGateway,
        *,
        context: AnalysisContext,
        run_id: RunId | None = None,
        gates: GateRegistry | None = None,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
        max_parallel: int = 4,
    ) -> WorkflowOrchestrator:
        """Create a run from upstream records and enter the cultural phase.

        Args:
            records: Upstream segment records in document order.
            gateway: Analysis gateway.
            context: Analysis context shared by all phases.
            run_id: Optional run identifier (generated when omitted).
            gates: Gate registry (defaults to the built-in gates).
            log_sink: Optional log sink.
            clock: Optional timestamp provider.
            max_parallel: Cap on concurrent analyses in ``analyze_many``.

        Returns:
            WorkflowOrchestrator: Orchestrator for the new run.

        Raises:
            WorkflowError: If records are empty or ids are duplicated.
        """
        store = SegmentStore(Segment.from_input(record) for record in records)
        orchestrator = cls(
            store,
            gateway,
            run_id=run_id or uuid7(),
            context=context,
            gates=gates,
            log_sink=log_sink,
            clock=clock,
            max_parallel=max_parallel,
        )
        await orchestrator._emit_log(
            build_run_created_log(
                orchestrator._clock(),
                orchestrator.run_id,
                len(store),
                list(WORKFLOW_PHASE_ORDER),
            )
        )
        await orchestrator._enter_phase(WORKFLOW_PHASE_ORDER[0])
        return orchestrator

    @classmethod
    def from_state(
        cls,
        state: WorkflowRunState,
        gateway: AnalysisGateway,
        *,
        gates: GateRegistry | None = None,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
        max_parallel: int = 4,
    ) -> WorkflowOrchestrator:
        """Hydrate an orchestrator from a saved run snapshot.

        Returns:
            WorkflowOrchestrator: Orchestrator resuming the run.
        """
        return cls(
            SegmentStore(state.segments),
            gateway,
            run_id=state.run_id,
            context=state.context,
            gates=gates,
            log_sink=log_sink,
            clock=clock,
            max_parallel=max_parallel,
            status=RunStatus(state.status),
            active_phase_index=state.active_phase_index,
            selected=dict(state.selected),
            phase_history=state.phase_history,
            final_document=state.final_document,
            discard_reason=state.discard_reason,
            created_at=state.created_at,
        )

    def to_state(self) -> WorkflowRunState:
        """Serialize the run into a snapshot.

        Returns:
            WorkflowRunState: Snapshot suitable for persistence.
        """
        return WorkflowRunState(
            run_id=self._run_id,
            status=self._status,
            active_phase_index=self._active_index,
            context=self._context,
            segments=self._store.list(),
            selected={
                phase.value: controller.selected_segment_id
                for phase, controller in self._controllers.items()
            },
            phase_history=[
                record.model_copy() for record in self._phase_history
            ],
            final_document=self._final_document,
            discard_reason=self._discard_reason,
            created_at=self._created_at,
            updated_at=self._clock(),
        )

    @property
    def run_id(self) -> RunId:
        """Run identifier."""
        return self._run_id

    @property
    def status(self) -> RunStatus:
        """Run status."""
        return self._status

    @property
    def active_phase(self) -> PhaseName:
        """Phase currently under review."""
        return WORKFLOW_PHASE_ORDER[self._active_index]

    @property
    def final_document(self) -> str | None:
        """Document produced by the most recent consolidation."""
        return self._final_document

    @property
    def selected_segment_id(self) -> str | None:
        """Segment selected in the active phase."""
        return self._active_controller.selected_segment_id

    def controller(self, phase: PhaseName) -> PhaseController:
        """Return the controller for a phase."""
        return self._controllers[PhaseName(phase)]

    def get_segment(self, segment_id: str) -> Segment:
        """Return a copy of a segment.

        Raises:
            NotFoundError: If the segment is unknown.
        """
        return self._store.get(segment_id)

    def list_segments(self) -> list[Segment]:
        """Return copies of all segments in document order."""
        return self._store.list()

    def can_approve(self, phase: PhaseName, segment_id: str | None = None) -> bool:
        """Return True if the segment may be approved in the phase."""
        return self.controller(phase).can_approve(segment_id)

    def gate_failures(
        self, phase: PhaseName, segment_id: str | None = None
    ) -> list[str]:
        """Reasons the gate would refuse approval (empty when allowed)."""
        return list(self.controller(phase).evaluate_gate(segment_id).reasons)

    def get_phase_progress(self) -> WorkflowProgress:
        """Build a progress snapshot for every phase.

        Returns:
            WorkflowProgress: Run-level progress.
        """
        phases = []
        for index, phase in enumerate(WORKFLOW_PHASE_ORDER):
            if index < self._active_index:
                state = PhaseState.COMPLETED
            elif index == self._active_index:
                state = PhaseState.ACTIVE
            else:
                state = PhaseState.PENDING
            phases.append(self._controllers[phase].progress(state))
        return WorkflowProgress(
            run_id=self._run_id,
            status=self._status,
            active_phase=self.active_phase,
            selected_segment_id=self.selected_segment_id,
            phases=phases,
            finalized=self._final_document is not None,
        )

    def build_phase_draft(self) -> str:
        """Render the current translations as a numbered preview."""
        return self._active_controller.build_phase_draft()

    async def select_segment(self, segment_id: str) -> Segment:
        """Select a segment in the active phase.

        Raises:
            NotFoundError: If the segment is unknown.
        """
        segment = self._active_controller.select_segment(segment_id)
        await self._log_selection(segment.id)
        return segment

    async def select_next(self) -> Segment:
        """Select the following segment without wrapping."""
        segment = self._active_controller.select_next()
        await self._log_selection(segment.id)
        return segment

    async def select_previous(self) -> Segment:
        """Select the preceding segment without wrapping."""
        segment = self._active_controller.select_previous()
        await self._log_selection(segment.id)
        return segment

    async def analyze(
        self, phase: PhaseName, segment_id: str | None = None
    ) -> AnalysisReport:
        """Analyze a segment in the active phase.

        Provider failures never raise; they produce a fallback report.

        Args:
            phase: Phase to analyze for; must be the active phase.
            segment_id: Segment to analyze (defaults to the selection).

        Returns:
            AnalysisReport: The report produced by this call.

        Raises:
            NotFoundError: If the segment is unknown.
            WorkflowError: If the phase is not active or the run is closed.
        """
        controller = self._require_active(phase)
        outcome = await controller.analyze(segment_id)
        await self._log_analysis(controller.phase, outcome)
        return outcome.report

    async def analyze_many(
        self,
        phase: PhaseName,
        segment_ids: Sequence[str] | None = None,
        max_parallel: int | None = None,
    ) -> list[AnalysisReport]:
        """Analyze several segments concurrently.

        Calls for the same segment are still serialized by the controller.

        Args:
            phase: Phase to analyze for; must be the active phase.
            segment_ids: Segments to analyze (defaults to all segments).
            max_parallel: Optional cap overriding the configured limit.

        Returns:
            list[AnalysisReport]: Reports aligned with the requested ids.

        Raises:
            NotFoundError: If any segment is unknown.
            WorkflowError: If the phase is not active or the run is closed.
        """
        controller = self._require_active(phase)
        ids = list(segment_ids) if segment_ids is not None else self._store.ids
        for segment_id in ids:
            self._store.index_of(segment_id)
        if not ids:
            return []
        semaphore = asyncio.Semaphore(max_parallel or self._max_parallel)
        outcomes: list[AnalysisOutcome | None] = [None] * len(ids)

        async def _run(index: int, segment_id: str) -> None:
            async with semaphore:
                outcome = await controller.analyze(segment_id)
            outcomes[index] = outcome
            await self._log_analysis(controller.phase, outcome)

        async with asyncio.TaskGroup() as group:
            for index, segment_id in enumerate(ids):
                group.create_task(_run(index, segment_id))
        return [outcome.report for outcome in outcomes if outcome is not None]

    async def edit_translation(self, segment_id: str, text: str) -> Segment:
        """Replace a segment's translation.

        The active phase and every later phase the segment entered are
        re-opened; earlier approvals are kept. Any consolidated document is
        cleared.

        Raises:
            NotFoundError: If the segment is unknown.
            WorkflowError: If the run was discarded or the text is empty.
        """
        self._require_open()
        phase = self.active_phase
        before = self._store.get(segment_id)
        reopened = self._entered_from(before, phase)
        updated = self._store.edit_translation(
            segment_id,
            text,
            current_phase=phase,
            change=ChangeRecord(
                change_id=uuid7(),
                kind=ChangeKind.EDIT,
                phase=phase,
                original=before.translation,
                updated=text,
                recorded_at=self._clock(),
            ),
        )
        self._reopen_run()
        await self._emit_log(
            build_segment_log(
                self._clock(),
                self._run_id,
                phase,
                SegmentEvent.TRANSLATION_EDITED,
                "Translation edited",
                SegmentDecisionData(
                    segment_id=segment_id,
                    revision=updated.revision,
                    reopened_phases=reopened,
                ),
            )
        )
        return updated

    async def apply_suggestion(self, segment_id: str, index: int) -> Segment:
        """Apply a cultural adaptation suggestion to a translation.

        Raises:
            NotFoundError: If the segment is unknown.
            WorkflowError: If the suggestion does not exist or the run is
                closed for edits.
        """
        self._require_open()
        controller = self._active_controller
        before = self._store.get(segment_id)
        reopened = self._entered_from(before, controller.phase)
        updated = controller.apply_suggestion(segment_id, index)
        self._reopen_run()
        await self._log_suggestion(
            controller.phase,
            "Suggestion applied",
            SegmentDecisionData(
                segment_id=segment_id,
                revision=updated.revision,
                reopened_phases=reopened,
            ),
        )
        return updated

    async def flag_suggestion(self, segment_id: str, index: int) -> Segment:
        """Mark a suggestion for manual review."""
        return await self._decide_suggestion(
            segment_id, index, ChangeKind.SUGGESTION_FLAGGED
        )

    async def reject_suggestion(self, segment_id: str, index: int) -> Segment:
        """Record that a suggestion was rejected."""
        return await self._decide_suggestion(
            segment_id, index, ChangeKind.SUGGESTION_REJECTED
        )

    async def approve(self, phase: PhaseName, segment_id: str | None = None) -> Segment:
        """Approve a segment in the active phase.

        Args:
            phase: Phase to approve for; must be the active phase.
            segment_id: Segment to approve (defaults to the selection).

        Returns:
            Segment: Updated segment.

        Raises:
            NotFoundError: If the segment is unknown.
            GateBlockedError: If the phase gate refuses the approval.
            WorkflowError: If the phase is not active or the run is closed.
        """
        controller = self._require_active(phase)
        try:
            segment = controller.approve(segment_id)
        except GateBlockedError as exc:
            await self._emit_log(
                build_segment_log(
                    self._clock(),
                    self._run_id,
                    controller.phase,
                    SegmentEvent.APPROVAL_BLOCKED,
                    "Approval blocked by phase gate",
                    SegmentDecisionData(
                        segment_id=exc.segment_id,
                        reasons=exc.reasons,
                    ),
                )
            )
            raise
        await self._emit_log(
            build_segment_log(
                self._clock(),
                self._run_id,
                controller.phase,
                SegmentEvent.APPROVED,
                "Segment approved",
                SegmentDecisionData(
                    segment_id=segment.id,
                    next_segment_id=controller.selected_segment_id,
                ),
            )
        )
        return segment

    def is_phase_complete(self, phase: PhaseName | None = None) -> bool:
        """Return True when every segment is complete in the phase."""
        return self.controller(phase or self.active_phase).is_phase_complete()

    async def advance_phase(self) -> PhaseName:
        """Advance to the next phase once the active phase is complete.

        Returns:
            PhaseName: The newly active phase.

        Raises:
            PhaseIncompleteError: If segments are still open; the active phase
                is unchanged.
            WorkflowError: If the active phase is the last one or the run is
                closed.
        """
        self._require_open()
        current = self.active_phase
        if self._active_index == len(WORKFLOW_PHASE_ORDER) - 1:
            raise invalid_state(
                f"{current.value} is the last phase; finalize the run instead",
                phase=current,
            )
        await self._require_complete(current)
        timestamp = self._clock()
        self._complete_history(current, timestamp)
        await self._emit_log(
            build_phase_log(timestamp, self._run_id, current, PhaseEvent.COMPLETED)
        )
        self._active_index += 1
        await self._enter_phase(self.active_phase)
        return self.active_phase

    async def finalize(self) -> ConsolidatedDeliverable:
        """Merge every translation into the final document.

        Consolidation is recomputed on each call from the current
        translations; no analysis is run.

        Returns:
            ConsolidatedDeliverable: Final document plus the approved segments.

        Raises:
            PhaseIncompleteError: If quality is not active or not complete.
            WorkflowError: If the run was discarded.
        """
        self._require_open()
        current = self.active_phase
        if current != PhaseName.QUALITY:
            raise PhaseIncompleteError(
                PhaseName.QUALITY,
                self._controllers[PhaseName.QUALITY].incomplete_segment_ids(),
            )
        await self._require_complete(current)
        segments = self._store.list()
        document = DOCUMENT_SEPARATOR.join(segment.translation for segment in segments)
        timestamp = self._clock()
        self._complete_history(current, timestamp)
        self._final_document = document
        self._status = RunStatus.FINALIZED
        await self._emit_log(
            build_run_finalized_log(
                timestamp, self._run_id, len(segments), len(document)
            )
        )
        return ConsolidatedDeliverable(
            run_id=self._run_id,
            final_document=document,
            segments=segments,
            phase_summaries=[
                PhaseSummary(
                    phase=phase,
                    average_score=self._controllers[phase].average_score(),
                    fallback_reports=sum(
                        1
                        for segment in segments
                        if (report := segment.report(phase)) is not None
                        and report.generated_by_fallback
                    ),
                )
                for phase in WORKFLOW_PHASE_ORDER
            ],
            finalized_at=timestamp,
        )

    async def discard(self, reason: str | None = None) -> None:
        """Discard the run, for example after the source draft changed.

        Raises:
            WorkflowError: If the run was already discarded.
        """
        self._require_open()
        self._status = RunStatus.DISCARDED
        self._discard_reason = reason
        self._final_document = None
        await self._emit_log(
            build_run_discarded_log(self._clock(), self._run_id, reason)
        )

    @property
    def _active_controller(self) -> PhaseController:
        return self._controllers[self.active_phase]

    def _require_open(self) -> None:
        if self._status == RunStatus.DISCARDED:
            raise invalid_state(f"Run {self._run_id} was discarded")

    def _require_active(self, phase: PhaseName) -> PhaseController:
        self._require_open()
        requested = PhaseName(phase)
        if requested != self.active_phase:
            raise invalid_state(
                f"{requested.value} is not the active phase "
                f"({self.active_phase.value})",
                phase=requested,
            )
        return self._controllers[requested]

    async def _require_complete(self, phase: PhaseName) -> None:
        incomplete = self._controllers[phase].incomplete_segment_ids()
        if not incomplete:
            return
        await self._emit_log(
            build_phase_log(
                self._clock(),
                self._run_id,
                phase,
                PhaseEvent.ADVANCE_BLOCKED,
                incomplete_segment_ids=incomplete,
            )
        )
        raise PhaseIncompleteError(phase, incomplete)

    async def _enter_phase(self, phase: PhaseName) -> None:
        timestamp = self._clock()
        self._store.enter_phase(phase)
        self._phase_history.append(PhaseRecord(phase=phase, started_at=timestamp))
        controller = self._controllers[phase]
        if controller.selected_segment_id is None:
            controller.select_first()
        await self._emit_log(
            build_phase_log(timestamp, self._run_id, phase, PhaseEvent.STARTED)
        )

    def _complete_history(self, phase: PhaseName, timestamp: Timestamp) -> None:
        for record in reversed(self._phase_history):
            if PhaseName(record.phase) == phase:
                record.completed_at = timestamp
                return

    def _reopen_run(self) -> None:
        self._final_document = None
        self._status = RunStatus.IN_REVIEW

    def _entered_from(self, segment: Segment, phase: PhaseName) -> list[PhaseName]:
        start = WORKFLOW_PHASE_ORDER.index(PhaseName(phase))
        return [
            candidate
            for candidate in WORKFLOW_PHASE_ORDER[start:]
            if segment.phase_state(candidate) is not None
        ]

    async def _decide_suggestion(
        self, segment_id: str, index: int, kind: ChangeKind
    ) -> Segment:
        self._require_open()
        controller = self._active_controller
        updated = controller.decide_suggestion(segment_id, index, kind)
        message = (
            "Suggestion flagged for review"
            if kind == ChangeKind.SUGGESTION_FLAGGED
            else "Suggestion rejected"
        )
        await self._log_suggestion(
            controller.phase, message, SegmentDecisionData(segment_id=segment_id)
        )
        return updated

    async def _log_selection(self, segment_id: str) -> None:
        await self._emit_log(
            build_segment_log(
                self._clock(),
                self._run_id,
                self.active_phase,
                SegmentEvent.SELECTED,
                "Segment selected",
                SegmentDecisionData(segment_id=segment_id),
            )
        )

    async def _log_suggestion(
        self, phase: PhaseName, message: str, data: SegmentDecisionData
    ) -> None:
        await self._emit_log(
            build_segment_log(
                self._clock(),
                self._run_id,
                phase,
                SegmentEvent.SUGGESTION_DECIDED,
                message,
                data,
            )
        )

    async def _log_analysis(self, phase: PhaseName, outcome: AnalysisOutcome) -> None:
        report = outcome.report
        if not outcome.recorded:
            event = SegmentEvent.ANALYSIS_STALE
        elif report.generated_by_fallback:
            event = SegmentEvent.ANALYSIS_DEGRADED
        else:
            event = SegmentEvent.ANALYZED
        await self._emit_log(
            build_segment_analyzed_log(
                self._clock(),
                self._run_id,
                phase,
                event,
                SegmentAnalyzedData(
                    segment_id=outcome.segment_id,
                    overall_score=report.overall_score,
                    risk_level=RiskLevel(report.risk_level),
                    issue_count=len(report.issues),
                    generated_by_fallback=report.generated_by_fallback,
                    fallback_reason=report.fallback_reason,
                ),
            )
        )

    async def _emit_log(self, entry: LogEntry) -> None:
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(entry)
