"""Unit tests for glocal-cli."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

import glocal_cli.main as cli_main
from glocal_cli.main import app
from glocal_schemas.config import AnalysisConfig
from glocal_schemas.exit_codes import ExitCode
from glocal_schemas.logs import LogEntry
from glocal_schemas.primitives import PhaseName
from tests.helpers.workflow import REGULATORY_HIGH_RISK, StubAnalysisProvider

runner = CliRunner()


def _write_config(tmp_path: Path, *, with_analysis: bool = True) -> Path:
    config_path = tmp_path / "glocal.toml"
    content = textwrap.dedent(
        """
        [project]
        name = "launch-es"
        asset_type = "email"
        therapeutic_area = "oncology"

        [logging]
        [[logging.sinks]]
        type = "file"
        """
    )
    if with_analysis:
        content += textwrap.dedent(
            """
            [analysis]
            base_url = "http://localhost:8000/v1"
            model_id = "test-model"
            api_key_env = "TEST_GLOCAL_KEY"
            timeout_s = 5.0
            """
        )
    config_path.write_text(content, encoding="utf-8")
    return config_path


def _write_segments(tmp_path: Path, translations: list[str]) -> Path:
    path = tmp_path / "segments.jsonl"
    lines = [
        json.dumps(
            {
                "id": f"seg-{index}",
                "sourceText": f"Source {index}",
                "translation": text,
                "targetMarket": "ES",
            }
        )
        for index, text in enumerate(translations, start=1)
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _invoke_json(args: list[str], config_path: Path) -> dict[str, Any]:
    result = runner.invoke(app, [*args, "--config", str(config_path), "--json"])
    return {"exit_code": result.exit_code, **json.loads(result.stdout)}


@pytest.fixture
def stub_provider(monkeypatch: pytest.MonkeyPatch) -> StubAnalysisProvider:
    """Route CLI analysis through a stub provider.

    Returns:
        StubAnalysisProvider: Provider used by the CLI.
    """
    provider = StubAnalysisProvider()

    def _build(config: AnalysisConfig, *, api_key: str) -> StubAnalysisProvider:
        assert api_key == "fake-key"
        return provider

    monkeypatch.setenv("TEST_GLOCAL_KEY", "fake-key")
    monkeypatch.setattr(cli_main, "OpenAICompatibleAnalysisRuntime", _build)
    return provider


def test_full_review_flow(tmp_path: Path, stub_provider: StubAnalysisProvider) -> None:
    """A run goes from init through every phase to the final document."""
    config_path = _write_config(tmp_path)
    segments = _write_segments(tmp_path, ["A.", "B.", "C."])

    init = _invoke_json(["init", "--input", str(segments)], config_path)
    assert init["exit_code"] == 0
    assert init["data"]["active_phase"] == "cultural"
    assert init["data"]["selected_segment_id"] == "seg-1"

    for phase in ("cultural", "regulatory", "quality"):
        analyzed = _invoke_json(["analyze", "--all"], config_path)
        assert analyzed["exit_code"] == 0
        assert analyzed["data"]["phase"] == phase
        assert len(analyzed["data"]["reports"]) == 3
        for _ in range(3):
            assert _invoke_json(["approve"], config_path)["exit_code"] == 0
        if phase != "quality":
            advanced = _invoke_json(["advance"], config_path)
            assert advanced["exit_code"] == 0

    output = tmp_path / "out" / "final.txt"
    audit = tmp_path / "out" / "audit.jsonl"
    finalized = _invoke_json(
        ["finalize", "--output", str(output), "--audit", str(audit)], config_path
    )

    assert finalized["exit_code"] == 0
    assert finalized["data"]["deliverable"]["final_document"] == "A.\n\nB.\n\nC."
    assert output.read_text(encoding="utf-8") == "A.\n\nB.\n\nC.\n"
    assert len(audit.read_text(encoding="utf-8").splitlines()) == 3

    status = _invoke_json(["status"], config_path)
    assert status["data"]["status"] == "finalized"
    assert status["data"]["finalized"] is True

    log_files = list((tmp_path / ".glocal" / "logs").glob("*.jsonl"))
    assert len(log_files) == 1
    events = {
        LogEntry.model_validate_json(line).event
        for line in log_files[0].read_text(encoding="utf-8").splitlines()
    }
    assert {"run_created", "phase_completed", "run_finalized"} <= events


def test_advance_with_open_segments_returns_workflow_exit_code(
    tmp_path: Path, stub_provider: StubAnalysisProvider
) -> None:
    """Blocked advances report the open segments."""
    config_path = _write_config(tmp_path)
    segments = _write_segments(tmp_path, ["A.", "B."])
    _invoke_json(["init", "--input", str(segments)], config_path)

    advanced = _invoke_json(["advance"], config_path)

    assert advanced["exit_code"] == ExitCode.WORKFLOW_ERROR
    assert advanced["data"] is None
    assert advanced["error"]["code"] == "phase_incomplete"
    assert advanced["error"]["details"]["reasons"] == ["seg-1", "seg-2"]


def test_blocked_approval_explains_reasons(
    tmp_path: Path, stub_provider: StubAnalysisProvider
) -> None:
    """A high-risk regulatory report blocks approval with its issues."""
    stub_provider.replies[PhaseName.REGULATORY] = REGULATORY_HIGH_RISK
    config_path = _write_config(tmp_path)
    segments = _write_segments(tmp_path, ["A."])
    _invoke_json(["init", "--input", str(segments)], config_path)
    _invoke_json(["approve", "seg-1"], config_path)
    _invoke_json(["advance"], config_path)
    _invoke_json(["analyze", "seg-1"], config_path)

    result = runner.invoke(app, ["approve", "seg-1", "--config", str(config_path)])

    assert result.exit_code == ExitCode.WORKFLOW_ERROR
    assert "Unsubstantiated efficacy claim" in result.stdout


def test_edit_and_show_segment(
    tmp_path: Path, stub_provider: StubAnalysisProvider
) -> None:
    """Edits persist between commands and bump the revision."""
    config_path = _write_config(tmp_path)
    segments = _write_segments(tmp_path, ["A.", "B."])
    _invoke_json(["init", "--input", str(segments)], config_path)

    edited = _invoke_json(["edit", "seg-2", "--text", "B revisado."], config_path)
    shown = _invoke_json(["show", "seg-2"], config_path)

    assert edited["exit_code"] == 0
    assert shown["data"]["translation"] == "B revisado."
    assert shown["data"]["revision"] == 1
    assert shown["data"]["changes"][0]["kind"] == "edit"


def test_unknown_segment_returns_not_found(
    tmp_path: Path, stub_provider: StubAnalysisProvider
) -> None:
    """Unknown ids surface the workflow not-found error."""
    config_path = _write_config(tmp_path)
    segments = _write_segments(tmp_path, ["A."])
    _invoke_json(["init", "--input", str(segments)], config_path)

    shown = _invoke_json(["show", "nope"], config_path)

    assert shown["exit_code"] == ExitCode.WORKFLOW_ERROR
    assert shown["error"]["code"] == "not_found"


def test_analyze_without_api_key_is_config_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Analysis needs the configured API key."""
    monkeypatch.delenv("TEST_GLOCAL_KEY", raising=False)
    config_path = _write_config(tmp_path)
    segments = _write_segments(tmp_path, ["A."])
    _invoke_json(["init", "--input", str(segments)], config_path)

    analyzed = _invoke_json(["analyze"], config_path)

    assert analyzed["exit_code"] == ExitCode.CONFIG_ERROR
    assert "TEST_GLOCAL_KEY" in analyzed["error"]["message"]


def test_analyze_without_analysis_section_uses_fallback(tmp_path: Path) -> None:
    """Without an analysis service every report asks for manual review."""
    config_path = _write_config(tmp_path, with_analysis=False)
    segments = _write_segments(tmp_path, ["A."])
    _invoke_json(["init", "--input", str(segments)], config_path)

    analyzed = _invoke_json(["analyze"], config_path)

    assert analyzed["exit_code"] == 0
    report = analyzed["data"]["reports"][0]
    assert report["generated_by_fallback"] is True
    assert report["overall_score"] == 50


def test_status_without_run_is_config_error(tmp_path: Path) -> None:
    """Commands other than init need an existing run."""
    config_path = _write_config(tmp_path, with_analysis=False)

    status = _invoke_json(["status"], config_path)

    assert status["exit_code"] == ExitCode.CONFIG_ERROR
    assert "glocal init" in status["error"]["message"]


def test_missing_config_is_config_error(tmp_path: Path) -> None:
    """A missing config file is reported."""
    result = runner.invoke(
        app, ["status", "--config", str(tmp_path / "missing.toml"), "--json"]
    )

    assert result.exit_code == ExitCode.CONFIG_ERROR
    assert json.loads(result.stdout)["error"]["code"] == "config_error"


def test_invalid_input_returns_ingest_exit_code(tmp_path: Path) -> None:
    """Broken upstream records fail init with the ingest exit code."""
    config_path = _write_config(tmp_path, with_analysis=False)
    source = tmp_path / "segments.jsonl"
    source.write_text('{"id": "a"}\n{oops\n', encoding="utf-8")

    init = _invoke_json(["init", "--input", str(source)], config_path)

    assert init["exit_code"] == ExitCode.INGEST_ERROR
    assert "2 ingest error(s)" in init["error"]["message"]


def test_discard_closes_run(tmp_path: Path) -> None:
    """Discarded runs reject later actions."""
    config_path = _write_config(tmp_path, with_analysis=False)
    segments = _write_segments(tmp_path, ["A."])
    _invoke_json(["init", "--input", str(segments)], config_path)

    discarded = _invoke_json(["discard", "--reason", "source changed"], config_path)
    approved = _invoke_json(["approve"], config_path)

    assert discarded["data"]["status"] == "discarded"
    assert approved["exit_code"] == ExitCode.WORKFLOW_ERROR
    assert approved["error"]["code"] == "invalid_state"


def test_rich_status_output(tmp_path: Path) -> None:
    """Human-readable status renders the phase table."""
    config_path = _write_config(tmp_path, with_analysis=False)
    segments = _write_segments(tmp_path, ["A."])
    _invoke_json(["init", "--input", str(segments)], config_path)

    result = runner.invoke(app, ["status", "--config", str(config_path)])

    assert result.exit_code == 0
    assert "cultural" in result.stdout
    assert "Phases" in result.stdout


def test_rich_output_keeps_bracketed_text_literal(
    tmp_path: Path, stub_provider: StubAnalysisProvider
) -> None:
    """Severities, translations and gate reasons with brackets render verbatim."""
    stub_provider.replies[PhaseName.REGULATORY] = json.dumps(
        {
            "compliance_score": 35,
            "risk_level": "high",
            "issues": [{"severity": "high", "issue": "Claim lacks [/ref] citation"}],
            "recommendations": [],
            "required_changes": [],
        }
    )
    config_path = _write_config(tmp_path)
    segments = _write_segments(tmp_path, ["Consulte [/ref] la ficha"])
    _invoke_json(["init", "--input", str(segments)], config_path)
    _invoke_json(["approve", "seg-1"], config_path)
    _invoke_json(["advance"], config_path)

    analyzed = runner.invoke(app, ["analyze", "seg-1", "--config", str(config_path)])
    shown = runner.invoke(app, ["show", "seg-1", "--config", str(config_path)])
    blocked = runner.invoke(app, ["approve", "seg-1", "--config", str(config_path)])

    assert analyzed.exit_code == 0
    assert "[high] (must_change) Claim lacks [/ref] citation" in analyzed.stdout
    assert shown.exit_code == 0
    assert "Consulte [/ref] la ficha" in shown.stdout
    assert "[high]" in shown.stdout
    assert blocked.exit_code == ExitCode.WORKFLOW_ERROR
    assert "Claim lacks [/ref] citation" in blocked.stdout


def test_non_utf8_input_returns_ingest_exit_code(tmp_path: Path) -> None:
    """Undecodable upstream files fail init as ingest errors."""
    config_path = _write_config(tmp_path, with_analysis=False)
    source = tmp_path / "segments.jsonl"
    source.write_bytes(b'{"id": "seg-1", "translation": "Caf\xe9"}\n')

    init = _invoke_json(["init", "--input", str(source)], config_path)

    assert init["exit_code"] == ExitCode.INGEST_ERROR
    assert init["error"]["code"] == "parse_error"
