"""Test doubles for the review workflow."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from itertools import count

from glocal_core.analysis import AnalysisGateway
from glocal_core.orchestrator import WorkflowOrchestrator
from glocal_schemas.analysis import AnalysisContext, AnalysisRequest
from glocal_schemas.logs import LogEntry
from glocal_schemas.primitives import PhaseName, Timestamp
from glocal_schemas.segments import SegmentInput

type ProviderReply = str | BaseException | Callable[[AnalysisRequest], str]

CULTURAL_OK = json.dumps(
    {
        "appropriateness_score": 88,
        "tone_score": 90,
        "terminology_score": 85,
        "visual_score": 80,
        "cultural_risks": [],
        "actions": [
            {
                "priority": "high",
                "original_text": "Hola",
                "suggested_alternatives": [
                    {"text": "Estimado paciente", "rationale": "More formal"}
                ],
            }
        ],
        "suggestions": ["Use formal register"],
    }
)
REGULATORY_OK = json.dumps(
    {
        "compliance_score": 92,
        "risk_level": "low",
        "issues": [],
        "recommendations": ["Keep fair balance"],
        "required_changes": [],
    }
)
REGULATORY_HIGH_RISK = json.dumps(
    {
        "compliance_score": 40,
        "risk_level": "high",
        "issues": [{"severity": "high", "issue": "Unsubstantiated efficacy claim"}],
        "recommendations": [],
        "required_changes": ["Remove unsubstantiated efficacy claim"],
    }
)
QUALITY_OK = json.dumps(
    {
        "quality_score": 91,
        "accuracy_issues": [],
        "terminology_problems": [],
        "improvements": ["Tighten wording"],
    }
)

DEFAULT_REPLIES: dict[PhaseName, ProviderReply] = {
    PhaseName.CULTURAL: CULTURAL_OK,
    PhaseName.REGULATORY: REGULATORY_OK,
    PhaseName.QUALITY: QUALITY_OK,
}


class StubAnalysisProvider:
    """Provider returning canned replies per phase and recording requests."""

    def __init__(
        self,
        replies: dict[PhaseName, ProviderReply] | None = None,
        *,
        delay_s: float = 0.0,
    ) -> None:
        self.replies: dict[PhaseName, ProviderReply] = dict(
            replies or DEFAULT_REPLIES
        )
        self.requests: list[AnalysisRequest] = []
        self.delay_s = delay_s
        self.in_flight = 0
        self.max_in_flight = 0

    async def request_analysis(self, request: AnalysisRequest) -> str:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            reply = self.replies[PhaseName(request.phase)]
            if isinstance(reply, BaseException):
                raise reply
            if callable(reply):
                return reply(request)
            return reply
        finally:
            self.in_flight -= 1


class ListLogSink:
    """Log sink collecting entries in memory."""

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    async def emit_log(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def events(self) -> list[str]:
        return [entry.event for entry in self.entries]


def fixed_clock() -> Callable[[], Timestamp]:
    """Return a clock that ticks one second per call."""
    ticks = count()

    def _clock() -> Timestamp:
        seconds = next(ticks)
        return f"2026-03-01T00:{seconds // 60 % 60:02d}:{seconds % 60:02d}Z"

    return _clock


def build_records(total: int = 3, market: str = "ES") -> list[SegmentInput]:
    """Build upstream records with predictable ids and text."""
    return [
        SegmentInput(
            id=f"seg-{index}",
            source_text=f"Hello patient {index}",
            translation=f"Hola paciente {index}",
            type="body",
            target_market=market,
        )
        for index in range(1, total + 1)
    ]


async def create_orchestrator(
    provider: StubAnalysisProvider | None = None,
    *,
    records: list[SegmentInput] | None = None,
    log_sink: ListLogSink | None = None,
    timeout_s: float = 5.0,
    max_parallel: int = 4,
) -> WorkflowOrchestrator:
    """Create a run wired to the stub provider and a deterministic clock."""
    clock = fixed_clock()
    gateway = AnalysisGateway(provider, timeout_s=timeout_s, clock=clock)
    return await WorkflowOrchestrator.create_run(
        records or build_records(),
        gateway,
        context=AnalysisContext(therapeutic_area="oncology", brand_id="brand-x"),
        log_sink=log_sink,
        clock=clock,
        max_parallel=max_parallel,
    )


async def complete_phase(orchestrator: WorkflowOrchestrator) -> None:
    """Analyze and approve every segment in the active phase."""
    phase = orchestrator.active_phase
    for segment in orchestrator.list_segments():
        await orchestrator.analyze(phase, segment.id)
        await orchestrator.approve(phase, segment.id)
