"""Segment ingest adapters."""

from glocal_io.ingest.jsonl_adapter import JsonlSegmentIngestAdapter

__all__ = ["JsonlSegmentIngestAdapter"]
