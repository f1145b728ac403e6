"""CLI exit code taxonomy and error-to-exit-code registry.

Exit code ranges:
- 0: Success
- 10-19: Client/input errors (config, validation)
- 20-29: Domain/processing errors (workflow, ingest, export, storage)
- 99: Unexpected runtime errors
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """CLI exit codes by failure category."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    VALIDATION_ERROR = 11
    WORKFLOW_ERROR = 20
    INGEST_ERROR = 21
    EXPORT_ERROR = 22
    STORAGE_ERROR = 23
    RUNTIME_ERROR = 99


# Domain error codes are qualified with a domain prefix to avoid collisions
# (e.g. "ingest.validation_error" vs "storage.validation_error").
ERROR_CODE_TO_EXIT_CODE: dict[str, ExitCode] = {
    "config_error": ExitCode.CONFIG_ERROR,
    "validation_error": ExitCode.VALIDATION_ERROR,
    "runtime_error": ExitCode.RUNTIME_ERROR,
    "workflow.not_found": ExitCode.WORKFLOW_ERROR,
    "workflow.gate_blocked": ExitCode.WORKFLOW_ERROR,
    "workflow.phase_incomplete": ExitCode.WORKFLOW_ERROR,
    "workflow.invalid_state": ExitCode.WORKFLOW_ERROR,
    "workflow.forbidden_field": ExitCode.WORKFLOW_ERROR,
    "ingest.parse_error": ExitCode.INGEST_ERROR,
    "ingest.validation_error": ExitCode.INGEST_ERROR,
    "ingest.duplicate_id": ExitCode.INGEST_ERROR,
    "ingest.io_error": ExitCode.INGEST_ERROR,
    "export.io_error": ExitCode.EXPORT_ERROR,
    "storage.not_found": ExitCode.STORAGE_ERROR,
    "storage.io_error": ExitCode.STORAGE_ERROR,
    "storage.validation_error": ExitCode.STORAGE_ERROR,
}


def resolve_exit_code(code: str, *, domain: str | None = None) -> ExitCode:
    """Resolve an error code to its exit code.

    Args:
        code: Error code value (e.g. "gate_blocked").
        domain: Optional domain prefix (workflow, ingest, export, storage).

    Returns:
        ExitCode: Registered exit code, or RUNTIME_ERROR when unknown.
    """
    if domain:
        qualified = ERROR_CODE_TO_EXIT_CODE.get(f"{domain}.{code}")
        if qualified is not None:
            return qualified
    return ERROR_CODE_TO_EXIT_CODE.get(code, ExitCode.RUNTIME_ERROR)
