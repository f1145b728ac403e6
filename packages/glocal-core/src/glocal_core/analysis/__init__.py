"""Analysis gateway and report normalization."""

from glocal_core.analysis.gateway import AnalysisGateway, now_timestamp
from glocal_core.analysis.normalize import (
    PayloadError,
    build_fallback_report,
    deduplicate_issues,
    derive_risk_level,
    parse_report,
    strip_code_fences,
)

__all__ = [
    "AnalysisGateway",
    "PayloadError",
    "build_fallback_report",
    "deduplicate_issues",
    "derive_risk_level",
    "now_timestamp",
    "parse_report",
    "strip_code_fences",
]
