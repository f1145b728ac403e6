"""Unit tests for deliverable exporters."""

from __future__ import annotations

import asyncio
from pathlib import Path
from uuid import UUID

import pytest

from glocal_core.ports.export import ExportError, ExportErrorCode
from glocal_io.export import JsonlAuditExporter, TxtDeliverableExporter
from glocal_schemas.primitives import PhaseName
from glocal_schemas.segments import Segment
from glocal_schemas.workflow import ConsolidatedDeliverable, PhaseSummary
from tests.helpers.workflow import build_records


def _deliverable() -> ConsolidatedDeliverable:
    segments = [Segment.from_input(record) for record in build_records(2)]
    return ConsolidatedDeliverable(
        run_id=UUID("01890a5c-91c8-7b2a-9f51-9b40d0cfb620"),
        final_document="Hola paciente 1\n\nHola paciente 2",
        segments=segments,
        phase_summaries=[
            PhaseSummary(
                phase=PhaseName.QUALITY, average_score=90.0, fallback_reports=0
            )
        ],
        finalized_at="2026-03-01T00:00:00Z",
    )


def test_txt_exporter_writes_final_document(tmp_path: Path) -> None:
    """The final document is written with a trailing newline."""
    output = tmp_path / "out" / "final.txt"

    written = asyncio.run(
        TxtDeliverableExporter().write_deliverable(_deliverable(), str(output))
    )

    assert written == str(output)
    assert output.read_text(encoding="utf-8") == "Hola paciente 1\n\nHola paciente 2\n"


def test_jsonl_audit_exporter_writes_one_segment_per_line(tmp_path: Path) -> None:
    """Each approved segment becomes one audit line."""
    output = tmp_path / "audit.jsonl"

    asyncio.run(JsonlAuditExporter().write_deliverable(_deliverable(), str(output)))

    lines = output.read_text(encoding="utf-8").splitlines()
    assert [Segment.model_validate_json(line).id for line in lines] == [
        "seg-1",
        "seg-2",
    ]


def test_exporter_reports_io_errors(tmp_path: Path) -> None:
    """Unwritable destinations raise an export IO error."""
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(ExportError) as exc_info:
        asyncio.run(
            TxtDeliverableExporter().write_deliverable(
                _deliverable(), str(blocker / "final.txt")
            )
        )

    assert exc_info.value.info.code == ExportErrorCode.IO_ERROR
