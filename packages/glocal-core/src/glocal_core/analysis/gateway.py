"""Analysis gateway that turns provider calls into phase reports."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from glocal_core.analysis.normalize import build_fallback_report, parse_report
from glocal_core.ports.analysis import AnalysisProviderProtocol
from glocal_schemas.analysis import AnalysisContext, AnalysisReport, AnalysisRequest
from glocal_schemas.primitives import JsonValue, PhaseName, Timestamp
from glocal_schemas.segments import Segment

_log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 60.0


def now_timestamp() -> Timestamp:
    """Return the current UTC time as an ISO-8601 timestamp."""
    value = datetime.now(tz=UTC).isoformat()
    return value.replace("+00:00", "Z")


class AnalysisGateway:
    """Call the analysis provider and always return a usable report.

    Provider failures, timeouts and malformed output are absorbed here and
    replaced by a fallback report flagged with ``generated_by_fallback``. Each
    call makes at most one provider request; nothing is retried.
    """

    def __init__(
        self,
        provider: AnalysisProviderProtocol | None,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        clock: Callable[[], Timestamp] | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            provider: Analysis provider, or None to always fall back.
            timeout_s: Per-call timeout in seconds.
            clock: Optional timestamp provider.

        Raises:
            ValueError: If timeout_s is not positive.
        """
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self._provider = provider
        self._timeout_s = timeout_s
        self._clock = clock or now_timestamp

    @staticmethod
    def build_request(
        phase: PhaseName, segment: Segment, context: AnalysisContext
    ) -> AnalysisRequest:
        """Build the provider request for a segment.

        Args:
            phase: Phase requesting the analysis.
            segment: Segment to analyze.
            context: Phase-specific parameters.

        Returns:
            AnalysisRequest: Request payload for the provider.
        """
        brand_context: dict[str, JsonValue] = dict(context.brand_context or {})
        if context.therapeutic_area:
            brand_context.setdefault("therapeutic_area", context.therapeutic_area)
        if context.brand_id:
            brand_context.setdefault("brand_id", context.brand_id)
        return AnalysisRequest(
            phase=PhaseName(phase),
            segment_id=segment.id,
            source_text=segment.source_text,
            translation=segment.translation,
            target_market=context.target_market or segment.target_market,
            asset_type=context.asset_type,
            brand_context=brand_context,
        )

    async def analyze(
        self, phase: PhaseName, segment: Segment, context: AnalysisContext
    ) -> AnalysisReport:
        """Analyze a segment for a phase.

        Args:
            phase: Phase requesting the analysis.
            segment: Segment snapshot to analyze.
            context: Phase-specific parameters.

        Returns:
            AnalysisReport: Normalized report, or the fallback report when the
            provider fails, times out or returns invalid output.
        """
        phase = PhaseName(phase)
        revision = segment.revision
        if self._provider is None:
            return self._fallback(phase, revision, "analysis provider not configured")
        request = self.build_request(phase, segment, context)
        try:
            async with asyncio.timeout(self._timeout_s):
                raw = await self._provider.request_analysis(request)
            return parse_report(
                phase,
                raw,
                translation_revision=revision,
                generated_at=self._clock(),
            )
        except TimeoutError:
            reason = f"analysis timed out after {self._timeout_s:g}s"
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}"
        _log.warning(
            "Analysis fallback for segment %s (%s): %s",
            segment.id,
            phase.value,
            reason,
        )
        return self._fallback(phase, revision, reason)

    def _fallback(
        self, phase: PhaseName, revision: int, reason: str
    ) -> AnalysisReport:
        return build_fallback_report(
            phase,
            reason,
            translation_revision=revision,
            generated_at=self._clock(),
        )
