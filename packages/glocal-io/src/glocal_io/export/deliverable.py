"""Writers for the consolidated deliverable and its audit trail."""

from __future__ import annotations

import asyncio
from pathlib import Path

from glocal_core.ports.export import (
    DeliverableExporterProtocol,
    ExportError,
    ExportErrorCode,
    ExportErrorInfo,
)
from glocal_schemas.workflow import ConsolidatedDeliverable


class TxtDeliverableExporter(DeliverableExporterProtocol):
    """Write the final document as UTF-8 text."""

    async def write_deliverable(
        self, deliverable: ConsolidatedDeliverable, output_path: str
    ) -> str:
        """Write the final document.

        Returns:
            str: Output path.
        """
        return await asyncio.to_thread(
            _write_text, output_path, deliverable.final_document + "\n"
        )


class JsonlAuditExporter(DeliverableExporterProtocol):
    """Write one JSON line per approved segment, with reports and change log."""

    async def write_deliverable(
        self, deliverable: ConsolidatedDeliverable, output_path: str
    ) -> str:
        """Write the audit trail.

        Returns:
            str: Output path.
        """
        payload = "".join(
            segment.model_dump_json(exclude_none=True) + "\n"
            for segment in deliverable.segments
        )
        return await asyncio.to_thread(_write_text, output_path, payload)


def _write_text(output_path: str, payload: str) -> str:
    path = Path(output_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload, encoding="utf-8")
    except OSError as exc:
        raise ExportError(
            ExportErrorInfo(
                code=ExportErrorCode.IO_ERROR,
                message=str(exc),
                output_path=output_path,
            )
        ) from exc
    return output_path
