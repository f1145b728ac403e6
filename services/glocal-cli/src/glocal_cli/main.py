"""CLI entry point - thin adapter over glocal-core."""

from __future__ import annotations

import asyncio
import os
import tomllib
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import NamedTuple

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from glocal_core.analysis import AnalysisGateway
from glocal_core.orchestrator import WorkflowOrchestrator
from glocal_core.ports.errors import StructuredError
from glocal_core.ports.export import ExportError
from glocal_core.ports.ingest import IngestBatchError, IngestError
from glocal_core.ports.storage import StorageError
from glocal_core.ports.workflow import LogSinkProtocol, WorkflowError
from glocal_io.export import JsonlAuditExporter, TxtDeliverableExporter
from glocal_io.ingest import JsonlSegmentIngestAdapter
from glocal_io.storage import (
    FileSystemLogStore,
    FileSystemRunStateStore,
    build_log_sink,
)
from glocal_llm import OpenAICompatibleAnalysisRuntime
from glocal_schemas.analysis import AnalysisReport
from glocal_schemas.base import BaseSchema
from glocal_schemas.config import WorkflowConfig
from glocal_schemas.exit_codes import ExitCode, resolve_exit_code
from glocal_schemas.primitives import JsonValue, PhaseName, SegmentStatus
from glocal_schemas.responses import (
    AnalysisBatchResult,
    ApiResponse,
    ErrorResponse,
    FinalizeResult,
    MetaInfo,
    PhaseDraft,
)
from glocal_schemas.segments import Segment
from glocal_schemas.workflow import WorkflowProgress

CONFIG_OPTION = typer.Option(
    Path("glocal.toml"),
    "--config",
    "-c",
    help="Path to glocal TOML config",
)
JSON_OPTION = typer.Option(False, "--json", help="Output the result as JSON")
SEGMENT_ARGUMENT = typer.Argument(..., help="Segment identifier")
OPTIONAL_SEGMENT_ARGUMENT = typer.Argument(
    None, help="Segment identifier (defaults to the selected segment)"
)
INDEX_ARGUMENT = typer.Argument(..., help="Suggestion index from `show`")

_ERROR_DOMAINS: tuple[tuple[type[Exception], str], ...] = (
    (WorkflowError, "workflow"),
    (IngestError, "ingest"),
    (ExportError, "export"),
    (StorageError, "storage"),
)

app = typer.Typer(
    help="Multi-phase localization review workflow",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    """Glocal CLI."""


@app.command()
def init(
    input_path: Path = typer.Option(
        ..., "--input", "-i", help="JSONL file of upstream segment records"
    ),
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Create a workflow run from upstream segment records."""

    async def _init() -> WorkflowProgress:
        config = _load_config(config_path)
        workspace = _workspace_dir(config, config_path)
        records = await JsonlSegmentIngestAdapter().load_segments(str(input_path))
        orchestrator = await WorkflowOrchestrator.create_run(
            records,
            _build_gateway(config, require_provider=False),
            context=config.project.to_analysis_context(),
            log_sink=_build_log_sink(config, workspace),
            max_parallel=_max_parallel(config),
        )
        await FileSystemRunStateStore(str(workspace)).save_run_state(
            orchestrator.to_state()
        )
        return orchestrator.get_phase_progress()

    _execute(_init, json_output, _render_progress)


@app.command()
def status(
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Show per-phase progress for the current run."""
    _run_session(
        config_path,
        json_output,
        _status_action,
        _render_progress,
        persist=False,
    )


@app.command()
def show(
    segment_id: str = SEGMENT_ARGUMENT,
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Show a segment with its reports and change log."""

    async def _show(orchestrator: WorkflowOrchestrator) -> Segment:
        return orchestrator.get_segment(segment_id)

    _run_session(config_path, json_output, _show, _render_segment, persist=False)


@app.command()
def select(
    segment_id: str = SEGMENT_ARGUMENT,
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Select a segment in the active phase."""

    async def _select(orchestrator: WorkflowOrchestrator) -> Segment:
        return await orchestrator.select_segment(segment_id)

    _run_session(config_path, json_output, _select, _render_segment)


@app.command("next")
def select_next(
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Select the following segment."""

    async def _next(orchestrator: WorkflowOrchestrator) -> Segment:
        return await orchestrator.select_next()

    _run_session(config_path, json_output, _next, _render_segment)


@app.command("previous")
def select_previous(
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Select the preceding segment."""

    async def _previous(orchestrator: WorkflowOrchestrator) -> Segment:
        return await orchestrator.select_previous()

    _run_session(config_path, json_output, _previous, _render_segment)


@app.command()
def analyze(
    segment_id: str | None = OPTIONAL_SEGMENT_ARGUMENT,
    all_segments: bool = typer.Option(
        False, "--all", help="Analyze every segment concurrently"
    ),
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Run the active phase's analysis for a segment."""

    async def _analyze(orchestrator: WorkflowOrchestrator) -> AnalysisBatchResult:
        phase = orchestrator.active_phase
        if all_segments:
            reports = await orchestrator.analyze_many(phase)
        else:
            reports = [await orchestrator.analyze(phase, segment_id)]
        return AnalysisBatchResult(phase=phase, reports=reports)

    _run_session(
        config_path,
        json_output,
        _analyze,
        _render_analysis,
        require_provider=True,
    )


@app.command()
def edit(
    segment_id: str = SEGMENT_ARGUMENT,
    text: str = typer.Option(..., "--text", "-t", help="New translation text"),
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Replace a segment's translation and re-open its gates."""

    async def _edit(orchestrator: WorkflowOrchestrator) -> Segment:
        return await orchestrator.edit_translation(segment_id, text)

    _run_session(config_path, json_output, _edit, _render_segment)


@app.command("apply-suggestion")
def apply_suggestion(
    segment_id: str = SEGMENT_ARGUMENT,
    index: int = INDEX_ARGUMENT,
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Apply a cultural adaptation suggestion to a translation."""

    async def _apply(orchestrator: WorkflowOrchestrator) -> Segment:
        return await orchestrator.apply_suggestion(segment_id, index)

    _run_session(config_path, json_output, _apply, _render_segment)


@app.command("flag-suggestion")
def flag_suggestion(
    segment_id: str = SEGMENT_ARGUMENT,
    index: int = INDEX_ARGUMENT,
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Flag a suggestion for manual review."""

    async def _flag(orchestrator: WorkflowOrchestrator) -> Segment:
        return await orchestrator.flag_suggestion(segment_id, index)

    _run_session(config_path, json_output, _flag, _render_segment)


@app.command("reject-suggestion")
def reject_suggestion(
    segment_id: str = SEGMENT_ARGUMENT,
    index: int = INDEX_ARGUMENT,
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Reject a suggestion."""

    async def _reject(orchestrator: WorkflowOrchestrator) -> Segment:
        return await orchestrator.reject_suggestion(segment_id, index)

    _run_session(config_path, json_output, _reject, _render_segment)


@app.command()
def approve(
    segment_id: str | None = OPTIONAL_SEGMENT_ARGUMENT,
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Approve a segment in the active phase."""

    async def _approve(orchestrator: WorkflowOrchestrator) -> Segment:
        return await orchestrator.approve(orchestrator.active_phase, segment_id)

    _run_session(config_path, json_output, _approve, _render_segment)


@app.command()
def advance(
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Advance to the next phase once every segment is approved."""

    async def _advance(orchestrator: WorkflowOrchestrator) -> WorkflowProgress:
        await orchestrator.advance_phase()
        return orchestrator.get_phase_progress()

    _run_session(config_path, json_output, _advance, _render_progress)


@app.command()
def draft(
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Preview the current translations as a numbered draft."""

    async def _draft(orchestrator: WorkflowOrchestrator) -> PhaseDraft:
        return PhaseDraft(
            phase=orchestrator.active_phase, draft=orchestrator.build_phase_draft()
        )

    _run_session(config_path, json_output, _draft, _render_draft, persist=False)


@app.command()
def finalize(
    output_path: Path = typer.Option(
        ..., "--output", "-o", help="Path for the final document"
    ),
    audit_path: Path | None = typer.Option(
        None, "--audit", help="Optional JSONL audit trail path"
    ),
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Consolidate the approved segments into the final document."""

    async def _finalize(orchestrator: WorkflowOrchestrator) -> FinalizeResult:
        deliverable = await orchestrator.finalize()
        written = await TxtDeliverableExporter().write_deliverable(
            deliverable, str(output_path)
        )
        audit: str | None = None
        if audit_path is not None:
            audit = await JsonlAuditExporter().write_deliverable(
                deliverable, str(audit_path)
            )
        return FinalizeResult(
            deliverable=deliverable, output_path=written, audit_path=audit
        )

    _run_session(config_path, json_output, _finalize, _render_finalize)


@app.command()
def discard(
    reason: str = typer.Option(..., "--reason", "-r", help="Why the run is dropped"),
    config_path: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Discard the current run, for example after the source draft changed."""

    async def _discard(orchestrator: WorkflowOrchestrator) -> WorkflowProgress:
        await orchestrator.discard(reason)
        return orchestrator.get_phase_progress()

    _run_session(config_path, json_output, _discard, _render_progress)


class _ConfigError(Exception):
    """Raised for CLI configuration issues."""


class _Session(NamedTuple):
    orchestrator: WorkflowOrchestrator
    state_store: FileSystemRunStateStore


type _Action[ResultT: BaseSchema] = Callable[
    [WorkflowOrchestrator], Awaitable[ResultT]
]


def _now_timestamp() -> str:
    timestamp = datetime.now(UTC).isoformat()
    return timestamp.replace("+00:00", "Z")


async def _status_action(orchestrator: WorkflowOrchestrator) -> WorkflowProgress:
    return orchestrator.get_phase_progress()


def _run_session[ResultT: BaseSchema](
    config_path: Path,
    json_output: bool,
    action: _Action[ResultT],
    render: Callable[[ResultT], None],
    *,
    persist: bool = True,
    require_provider: bool = False,
) -> None:
    async def _run() -> ResultT:
        session = await _open_session(config_path, require_provider=require_provider)
        result = await action(session.orchestrator)
        if persist:
            await session.state_store.save_run_state(session.orchestrator.to_state())
        return result

    _execute(_run, json_output, render)


def _execute[ResultT: BaseSchema](
    runner: Callable[[], Awaitable[ResultT]],
    json_output: bool,
    render: Callable[[ResultT], None],
) -> None:
    try:
        result = asyncio.run(runner())
    except Exception as exc:
        error, exit_code = _error_from_exception(exc)
        if json_output:
            print(_error_response(error).model_dump_json())
        else:
            _render_error(error)
        raise typer.Exit(code=int(exit_code)) from None
    if json_output:
        response = ApiResponse[type(result)](
            data=result,
            error=None,
            meta=MetaInfo(timestamp=_now_timestamp()),
        )
        print(response.model_dump_json())
        return
    render(result)


async def _open_session(config_path: Path, *, require_provider: bool) -> _Session:
    config = _load_config(config_path)
    workspace = _workspace_dir(config, config_path)
    state_store = FileSystemRunStateStore(str(workspace))
    state = await state_store.load_latest_run_state()
    if state is None:
        raise _ConfigError(
            f"No workflow run found in {workspace}; run `glocal init` first"
        )
    orchestrator = WorkflowOrchestrator.from_state(
        state,
        _build_gateway(config, require_provider=require_provider),
        log_sink=_build_log_sink(config, workspace),
        max_parallel=_max_parallel(config),
    )
    return _Session(orchestrator=orchestrator, state_store=state_store)


def _load_config(config_path: Path) -> WorkflowConfig:
    _load_dotenv(config_path)
    if not config_path.exists():
        raise _ConfigError(f"Config not found: {config_path}")
    try:
        with open(config_path, "rb") as handle:
            payload: dict[str, JsonValue] = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise _ConfigError(f"Failed to read config: {exc}") from exc
    return WorkflowConfig.model_validate(payload)


def _load_dotenv(config_path: Path) -> None:
    env_path = config_path.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)


def _workspace_dir(config: WorkflowConfig, config_path: Path) -> Path:
    workspace = Path(config.storage.workspace_dir)
    if not workspace.is_absolute():
        workspace = (config_path.parent / workspace).resolve()
    return workspace


def _max_parallel(config: WorkflowConfig) -> int:
    return config.analysis.max_parallel if config.analysis is not None else 4


def _build_log_sink(config: WorkflowConfig, workspace: Path) -> LogSinkProtocol:
    return build_log_sink(config.logging, FileSystemLogStore(str(workspace)))


def _build_gateway(
    config: WorkflowConfig, *, require_provider: bool
) -> AnalysisGateway:
    analysis = config.analysis
    if analysis is None:
        return AnalysisGateway(None)
    api_key = os.getenv(analysis.api_key_env)
    if not api_key:
        if require_provider:
            raise _ConfigError(
                f"Missing API key environment variable: {analysis.api_key_env}"
            )
        return AnalysisGateway(None, timeout_s=analysis.timeout_s)
    return AnalysisGateway(
        OpenAICompatibleAnalysisRuntime(analysis, api_key=api_key),
        timeout_s=analysis.timeout_s,
    )


def _error_response(error: ErrorResponse) -> ApiResponse[BaseSchema]:
    return ApiResponse(
        data=None,
        error=error,
        meta=MetaInfo(timestamp=_now_timestamp()),
    )


def _error_from_exception(exc: Exception) -> tuple[ErrorResponse, ExitCode]:
    if isinstance(exc, IngestBatchError):
        first = exc.errors[0].to_error_response()
        error = first.model_copy(
            update={
                "message": f"{first.message} ({len(exc.errors)} ingest error(s))"
            }
        )
        return error, resolve_exit_code(error.code, domain="ingest")
    if isinstance(exc, StructuredError):
        error = exc.info.to_error_response()
        domain = next(
            (
                name
                for error_type, name in _ERROR_DOMAINS
                if isinstance(exc, error_type)
            ),
            None,
        )
        return error, resolve_exit_code(error.code, domain=domain)
    if isinstance(exc, ValidationError):
        message = "Config validation failed"
        errors = exc.errors()
        if errors:
            first_error = errors[0]
            label = ".".join(str(part) for part in first_error.get("loc", []))
            detail = first_error.get("msg", "")
            message = f"Config validation failed: {label} - {detail}"
        error = ErrorResponse(code="validation_error", message=message)
        return error, ExitCode.VALIDATION_ERROR
    if isinstance(exc, _ConfigError):
        error = ErrorResponse(code="config_error", message=str(exc))
        return error, ExitCode.CONFIG_ERROR
    if isinstance(exc, ValueError):
        error = ErrorResponse(code="validation_error", message=str(exc))
        return error, ExitCode.VALIDATION_ERROR
    error = ErrorResponse(code="runtime_error", message=str(exc) or type(exc).__name__)
    return error, ExitCode.RUNTIME_ERROR


def _render_error(error: ErrorResponse) -> None:
    rprint(f"[red]Error:[/red] {escape(error.message)}")
    if error.details is not None and error.details.reasons:
        for reason in error.details.reasons:
            rprint(f"  [red]-[/red] {escape(reason)}")


def _render_progress(progress: WorkflowProgress) -> None:
    console = Console()
    console.print(
        Panel(
            f"Run [bold]{progress.run_id}[/bold]\n"
            f"Status: {progress.status}\n"
            f"Active phase: [bold]{progress.active_phase}[/bold]\n"
            f"Selected segment: {escape(progress.selected_segment_id or '-')}",
            title="glocal",
        )
    )
    table = Table(title="Phases")
    for column in (
        "Phase",
        "State",
        "Pending",
        "In progress",
        "Complete",
        "Blocked",
        "Fallback",
        "Avg score",
        "%",
    ):
        table.add_column(column)
    for phase in progress.phases:
        table.add_row(
            str(phase.phase),
            str(phase.state),
            str(phase.pending),
            str(phase.in_progress),
            str(phase.complete),
            str(phase.blocked),
            str(phase.fallback_reports),
            "-" if phase.average_score is None else f"{phase.average_score:g}",
            f"{phase.percent_complete:g}",
        )
    console.print(table)


def _render_segment(segment: Segment) -> None:
    console = Console()
    console.print(
        Panel(
            f"[dim]Source:[/dim] {escape(segment.source_text)}\n"
            f"[dim]Translation:[/dim] {escape(segment.translation)}\n"
            f"[dim]Market:[/dim] {escape(segment.target_market)}  "
            f"[dim]Type:[/dim] {escape(segment.type or '-')}  "
            f"[dim]Revision:[/dim] {segment.revision}",
            title=f"Segment {escape(segment.id)}",
        )
    )
    table = Table(title="Phases")
    for column in ("Phase", "Status", "Approved", "Score", "Risk", "Issues"):
        table.add_column(column)
    for phase in PhaseName:
        state = segment.phase_state(phase)
        if state is None:
            continue
        report = state.report
        table.add_row(
            phase.value,
            _format_status(SegmentStatus(state.status)),
            "yes" if state.approved else "no",
            "-" if report is None else f"{report.overall_score:g}",
            "-" if report is None else str(report.risk_level),
            "-" if report is None else str(len(report.issues)),
        )
    console.print(table)
    for phase in PhaseName:
        report = segment.report(phase)
        if report is not None:
            _render_report_details(console, segment.id, report)


def _render_analysis(result: AnalysisBatchResult) -> None:
    console = Console()
    for report in result.reports:
        _render_report_details(console, None, report)


def _render_report_details(
    console: Console, segment_id: str | None, report: AnalysisReport
) -> None:
    title = f"{report.phase} report"
    if segment_id is not None:
        title = f"{title} for {escape(segment_id)}"
    lines = [
        f"Score: {report.overall_score:g}  Risk: {report.risk_level}",
    ]
    if report.readiness is not None:
        lines.append(f"Readiness: {report.readiness}")
    if report.generated_by_fallback:
        lines.append(
            "[bold yellow]Fallback report: AI analysis unavailable, "
            "manual review required[/bold yellow]"
        )
        if report.fallback_reason:
            lines.append(f"[dim]{escape(report.fallback_reason)}[/dim]")
    for issue in report.issues:
        requirement = f" ({issue.requirement})" if issue.requirement else ""
        lines.append(f"- \\[{issue.severity}]{requirement} {escape(issue.message)}")
    for index, suggestion in enumerate(report.suggestions):
        lines.append(
            f"  #{index}: {escape(repr(suggestion.original_text))} -> "
            f"{escape(repr(suggestion.suggested_text))}"
        )
    console.print(Panel("\n".join(lines), title=title))


def _render_draft(result: PhaseDraft) -> None:
    Console().print(Panel(escape(result.draft), title=f"{result.phase} draft"))


def _render_finalize(result: FinalizeResult) -> None:
    console = Console()
    console.print(
        f"[green]Final document written to[/green] {escape(result.output_path)} "
        f"({len(result.deliverable.segments)} segments)"
    )
    if result.audit_path:
        console.print(f"Audit trail written to {escape(result.audit_path)}")


def _format_status(status: SegmentStatus) -> str:
    colors = {
        SegmentStatus.PENDING: "dim",
        SegmentStatus.IN_PROGRESS: "yellow",
        SegmentStatus.COMPLETE: "green",
    }
    return f"[{colors[status]}]{status.value}[/{colors[status]}]"


if __name__ == "__main__":
    app()
