"""JSONL ingest adapter for upstream segment records."""

from __future__ import annotations

import asyncio
import json

from pydantic import ValidationError

from glocal_core.ports.ingest import (
    IngestBatchError,
    IngestError,
    IngestErrorCode,
    IngestErrorDetails,
    IngestErrorInfo,
)
from glocal_schemas.segments import SegmentInput

FIELD_ALIASES = {
    "id": "id",
    "source_text": "source_text",
    "sourceText": "source_text",
    "translation": "translation",
    "type": "type",
    "context": "type",
    "target_market": "target_market",
    "targetMarket": "target_market",
}
REQUIRED_FIELDS = ["id", "source_text", "translation", "target_market"]


class JsonlSegmentIngestAdapter:
    """Load segment records from a JSONL file, one object per line."""

    async def load_segments(self, source_path: str) -> list[SegmentInput]:
        """Load JSONL content into segment records.

        Args:
            source_path: Path to the JSONL file.

        Returns:
            list[SegmentInput]: Records in file order.

        Raises:
            IngestError: If the file cannot be read or holds no records.
            IngestBatchError: If any line is invalid.
        """
        return await asyncio.to_thread(_load_jsonl_sync, source_path)


def _load_jsonl_sync(source_path: str) -> list[SegmentInput]:
    records: list[SegmentInput] = []
    errors: list[IngestErrorInfo] = []
    seen: set[str] = set()
    try:
        with open(source_path, encoding="utf-8") as handle:
            for line_number, raw_line in enumerate(handle, start=1):
                if raw_line.strip() == "":
                    continue
                try:
                    record = _parse_line(raw_line, line_number, source_path)
                except IngestError as exc:
                    errors.append(exc.info)
                    continue
                if record.id in seen:
                    errors.append(
                        IngestErrorInfo(
                            code=IngestErrorCode.DUPLICATE_ID,
                            message=f"Duplicate segment id: {record.id}",
                            details=IngestErrorDetails(
                                field="id",
                                line_number=line_number,
                                provided=record.id,
                                source_path=source_path,
                            ),
                        )
                    )
                    continue
                seen.add(record.id)
                records.append(record)
    except UnicodeDecodeError as exc:
        raise IngestError(
            IngestErrorInfo(
                code=IngestErrorCode.PARSE_ERROR,
                message=f"JSONL file is not valid UTF-8: {exc.reason}",
                details=IngestErrorDetails(source_path=source_path),
            )
        ) from exc
    except OSError as exc:
        raise IngestError(
            IngestErrorInfo(
                code=IngestErrorCode.IO_ERROR,
                message=f"Failed to read JSONL file: {exc}",
                details=IngestErrorDetails(source_path=source_path),
            )
        ) from exc
    if errors:
        raise IngestBatchError(errors)
    if not records:
        raise IngestError(
            IngestErrorInfo(
                code=IngestErrorCode.VALIDATION_ERROR,
                message="JSONL file contains no segment records",
                details=IngestErrorDetails(source_path=source_path),
            )
        )
    return records


def _parse_line(raw_line: str, line_number: int, source_path: str) -> SegmentInput:
    try:
        parsed: object = json.loads(raw_line)
    except json.JSONDecodeError as exc:
        raise _line_error(
            IngestErrorCode.PARSE_ERROR,
            "JSONL line is not valid JSON",
            line_number,
            source_path,
        ) from exc
    if not isinstance(parsed, dict):
        raise _line_error(
            IngestErrorCode.VALIDATION_ERROR,
            "JSONL line must be a JSON object",
            line_number,
            source_path,
        )
    payload: dict[str, object] = {}
    for key, value in parsed.items():
        field = FIELD_ALIASES.get(key)
        if field is None:
            raise _line_error(
                IngestErrorCode.VALIDATION_ERROR,
                f"JSONL object has unexpected field: {key}",
                line_number,
                source_path,
                field=key,
            )
        payload[field] = value
    missing = [name for name in REQUIRED_FIELDS if payload.get(name) in (None, "")]
    if missing:
        raise _line_error(
            IngestErrorCode.VALIDATION_ERROR,
            f"Missing required field(s): {', '.join(missing)}",
            line_number,
            source_path,
            field=missing[0],
        )
    if isinstance(payload["id"], int) and not isinstance(payload["id"], bool):
        payload["id"] = str(payload["id"])
    try:
        return SegmentInput.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or None
        raise _line_error(
            IngestErrorCode.VALIDATION_ERROR,
            first["msg"],
            line_number,
            source_path,
            field=location,
        ) from exc


def _line_error(
    code: IngestErrorCode,
    message: str,
    line_number: int,
    source_path: str,
    *,
    field: str | None = None,
) -> IngestError:
    return IngestError(
        IngestErrorInfo(
            code=code,
            message=message,
            details=IngestErrorDetails(
                field=field, line_number=line_number, source_path=source_path
            ),
        )
    )
