"""Unit tests for the JSONL segment ingest adapter."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from glocal_core.ports.ingest import IngestBatchError, IngestError, IngestErrorCode
from glocal_io.ingest import JsonlSegmentIngestAdapter


def _write_lines(path: Path, lines: list[str]) -> str:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)


def test_jsonl_ingest_accepts_camel_and_snake_case(tmp_path: Path) -> None:
    """Upstream records load in file order with either key style."""
    source = _write_lines(
        tmp_path / "segments.jsonl",
        [
            json.dumps(
                {
                    "id": 1,
                    "sourceText": "Hello",
                    "translation": "Hola",
                    "context": "subject",
                    "targetMarket": "ES",
                }
            ),
            "",
            json.dumps(
                {
                    "id": "body-1",
                    "source_text": "Take daily",
                    "translation": "Tomar a diario",
                    "target_market": "ES",
                }
            ),
        ],
    )

    records = asyncio.run(JsonlSegmentIngestAdapter().load_segments(source))

    assert [record.id for record in records] == ["1", "body-1"]
    assert records[0].type == "subject"
    assert records[1].type is None
    assert records[1].source_text == "Take daily"


def test_jsonl_ingest_collects_line_errors(tmp_path: Path) -> None:
    """Every bad line is reported with its line number."""
    good = {
        "id": "a",
        "source_text": "Hi",
        "translation": "Hola",
        "target_market": "ES",
    }
    source = _write_lines(
        tmp_path / "segments.jsonl",
        [
            json.dumps(good),
            "{not json",
            json.dumps({"id": "b", "source_text": "Hi", "target_market": "ES"}),
            json.dumps(good),
            json.dumps({**good, "id": "c", "extra": True}),
            "[1, 2]",
        ],
    )

    with pytest.raises(IngestBatchError) as exc_info:
        asyncio.run(JsonlSegmentIngestAdapter().load_segments(source))

    errors = exc_info.value.errors
    assert [error.code for error in errors] == [
        IngestErrorCode.PARSE_ERROR,
        IngestErrorCode.VALIDATION_ERROR,
        IngestErrorCode.DUPLICATE_ID,
        IngestErrorCode.VALIDATION_ERROR,
        IngestErrorCode.VALIDATION_ERROR,
    ]
    assert [error.details.line_number for error in errors if error.details] == [
        2,
        3,
        4,
        5,
        6,
    ]
    assert errors[1].details is not None
    assert errors[1].details.field == "translation"
    assert errors[3].details is not None
    assert errors[3].details.field == "extra"


def test_jsonl_ingest_rejects_empty_file(tmp_path: Path) -> None:
    """A file without records is a validation error."""
    source = _write_lines(tmp_path / "empty.jsonl", ["", "  "])

    with pytest.raises(IngestError) as exc_info:
        asyncio.run(JsonlSegmentIngestAdapter().load_segments(source))

    assert exc_info.value.info.code == IngestErrorCode.VALIDATION_ERROR


def test_jsonl_ingest_missing_file_is_io_error(tmp_path: Path) -> None:
    """Unreadable files raise an IO error."""
    with pytest.raises(IngestError) as exc_info:
        asyncio.run(
            JsonlSegmentIngestAdapter().load_segments(str(tmp_path / "missing.jsonl"))
        )

    assert exc_info.value.info.code == IngestErrorCode.IO_ERROR


def test_jsonl_ingest_non_utf8_file_is_parse_error(tmp_path: Path) -> None:
    """Files in another encoding raise a structured parse error."""
    path = tmp_path / "latin1.jsonl"
    path.write_bytes(b'{"id": "seg-1", "translation": "Caf\xe9"}\n')

    with pytest.raises(IngestError) as exc_info:
        asyncio.run(JsonlSegmentIngestAdapter().load_segments(str(path)))

    assert exc_info.value.info.code == IngestErrorCode.PARSE_ERROR
    assert exc_info.value.info.details is not None
    assert exc_info.value.info.details.source_path == str(path)
