"""Unit tests for phase controller analysis semantics."""

from __future__ import annotations

import asyncio
import json

import pytest

from glocal_schemas.analysis import AnalysisRequest
from glocal_schemas.primitives import PhaseName, SegmentStatus
from tests.helpers.workflow import (
    REGULATORY_HIGH_RISK,
    ListLogSink,
    StubAnalysisProvider,
    complete_phase,
    create_orchestrator,
)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_analysis_moves_pending_segment_in_progress(
    provider: StubAnalysisProvider,
) -> None:
    """The first analysis stores the report and starts the review."""
    orchestrator = await create_orchestrator(provider)

    report = await orchestrator.analyze(PhaseName.CULTURAL)

    segment = orchestrator.get_segment("seg-1")
    assert segment.status(PhaseName.CULTURAL) == SegmentStatus.IN_PROGRESS
    assert segment.report(PhaseName.CULTURAL) == report
    assert report.overall_score == 86
    assert report.suggestions[0].suggested_text == "Estimado paciente"
    request = provider.requests[0]
    assert request.brand_context == {
        "therapeutic_area": "oncology",
        "brand_id": "brand-x",
    }
    assert request.target_market == "ES"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reanalysis_replaces_previous_report() -> None:
    """Re-validation overwrites the prior report instead of merging."""
    scores = iter([70, 95])

    def _reply(request: AnalysisRequest) -> str:
        return json.dumps({"appropriateness_score": next(scores)})

    provider = StubAnalysisProvider({PhaseName.CULTURAL: _reply})
    orchestrator = await create_orchestrator(provider)

    await orchestrator.analyze(PhaseName.CULTURAL, "seg-1")
    await orchestrator.analyze(PhaseName.CULTURAL, "seg-1")

    report = orchestrator.get_segment("seg-1").report(PhaseName.CULTURAL)
    assert report is not None
    assert report.overall_score == 95
    assert report.risk_level == "low"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reanalysis_revokes_approval_that_no_longer_passes() -> None:
    """A complete segment that turns high risk loses its approval."""
    provider = StubAnalysisProvider()
    orchestrator = await create_orchestrator(provider)
    await complete_phase(orchestrator)
    await orchestrator.advance_phase()
    await orchestrator.analyze(PhaseName.REGULATORY, "seg-1")
    await orchestrator.approve(PhaseName.REGULATORY, "seg-1")

    provider.replies[PhaseName.REGULATORY] = REGULATORY_HIGH_RISK
    await orchestrator.analyze(PhaseName.REGULATORY, "seg-1")

    segment = orchestrator.get_segment("seg-1")
    assert not segment.is_approved(PhaseName.REGULATORY)
    assert segment.status(PhaseName.REGULATORY) == SegmentStatus.IN_PROGRESS


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reanalysis_keeps_approval_that_still_passes(
    provider: StubAnalysisProvider,
) -> None:
    """Re-checking an approved cultural segment keeps it complete."""
    orchestrator = await create_orchestrator(provider)
    await orchestrator.analyze(PhaseName.CULTURAL, "seg-1")
    await orchestrator.approve(PhaseName.CULTURAL, "seg-1")

    await orchestrator.analyze(PhaseName.CULTURAL, "seg-1")

    assert orchestrator.get_segment("seg-1").status(PhaseName.CULTURAL) == (
        SegmentStatus.COMPLETE
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stale_result_is_not_recorded(log_sink: ListLogSink) -> None:
    """A report for a translation edited mid-flight is discarded."""
    provider = StubAnalysisProvider(delay_s=0.05)
    orchestrator = await create_orchestrator(provider, log_sink=log_sink)

    task = asyncio.create_task(orchestrator.analyze(PhaseName.CULTURAL, "seg-1"))
    while provider.in_flight == 0:
        await asyncio.sleep(0)
    await orchestrator.edit_translation("seg-1", "Texto nuevo")
    report = await task

    segment = orchestrator.get_segment("seg-1")
    assert report.translation_revision == 0
    assert segment.report(PhaseName.CULTURAL) is None
    assert segment.revision == 1
    assert log_sink.events()[-1] == "analysis_stale"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_analyses_for_one_segment_are_serialized() -> None:
    """Concurrent calls for a segment never overlap; the last call wins."""
    scores = iter([60, 90])

    def _reply(request: AnalysisRequest) -> str:
        return json.dumps({"appropriateness_score": next(scores)})

    provider = StubAnalysisProvider({PhaseName.CULTURAL: _reply}, delay_s=0.01)
    orchestrator = await create_orchestrator(provider)

    await asyncio.gather(
        orchestrator.analyze(PhaseName.CULTURAL, "seg-1"),
        orchestrator.analyze(PhaseName.CULTURAL, "seg-1"),
    )

    assert provider.max_in_flight == 1
    report = orchestrator.get_segment("seg-1").report(PhaseName.CULTURAL)
    assert report is not None
    assert report.overall_score == 90


@pytest.mark.unit
@pytest.mark.asyncio
async def test_analyze_without_selection_or_id_uses_selection(
    provider: StubAnalysisProvider,
) -> None:
    """Omitting the id analyzes the selected segment."""
    orchestrator = await create_orchestrator(provider)
    await orchestrator.select_next()

    await orchestrator.analyze(PhaseName.CULTURAL)

    assert provider.requests[0].segment_id == "seg-2"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_average_score_ignores_unanalyzed_segments(
    provider: StubAnalysisProvider,
) -> None:
    """Averages only include segments with a report."""
    orchestrator = await create_orchestrator(provider)
    controller = orchestrator.controller(PhaseName.CULTURAL)
    assert controller.average_score() is None

    await orchestrator.analyze(PhaseName.CULTURAL, "seg-1")

    assert controller.average_score() == 86
