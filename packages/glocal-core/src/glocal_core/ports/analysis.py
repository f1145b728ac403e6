"""Protocol definitions for the external AI analysis service."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from glocal_schemas.analysis import AnalysisRequest


@runtime_checkable
class AnalysisProviderProtocol(Protocol):
    """Protocol for providers that analyze a segment for one phase.

    Providers return the raw response text. Parsing and normalization happen in
    the gateway so that malformed output degrades the same way as outages.
    """

    async def request_analysis(self, request: AnalysisRequest) -> str:
        """Request an analysis and return the raw JSON text."""
        raise NotImplementedError
