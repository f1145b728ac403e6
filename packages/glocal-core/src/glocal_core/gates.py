"""Per-phase approval gates and their registry."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from glocal_schemas.primitives import PhaseName, RiskLevel
from glocal_schemas.segments import Segment


@dataclass(frozen=True, slots=True)
class GateDecision:
    """Outcome of evaluating a gate for one segment."""

    allowed: bool
    reasons: list[str] = field(default_factory=list)


@runtime_checkable
class ApprovalGate(Protocol):
    """Predicate that must hold before a segment can be approved."""

    phase: PhaseName

    def evaluate(self, segment: Segment) -> GateDecision:
        """Decide whether the segment can be approved for the phase."""
        raise NotImplementedError


class CulturalGate:
    """Cultural scores are advisory; approval records operator sign-off."""

    phase = PhaseName.CULTURAL

    def evaluate(self, segment: Segment) -> GateDecision:
        """Always allow approval.

        Returns:
            GateDecision: Allowed decision.
        """
        return GateDecision(allowed=True)


class RegulatoryGate:
    """Block approval while the latest regulatory report carries high risk."""

    phase = PhaseName.REGULATORY

    def evaluate(self, segment: Segment) -> GateDecision:
        """Evaluate the latest regulatory report.

        A segment without a report is not blocked: its risk is unknown rather
        than high.

        Returns:
            GateDecision: Blocked decision listing the issues behind the risk.
        """
        report = segment.report(self.phase)
        if report is None or report.risk_level != RiskLevel.HIGH:
            return GateDecision(allowed=True)
        reasons = [issue.message for issue in report.blocking_issues]
        if not reasons:
            reasons = [issue.message for issue in report.issues]
        if not reasons:
            reasons = [
                f"Regulatory risk is high (compliance score "
                f"{report.overall_score:g})"
            ]
        return GateDecision(allowed=False, reasons=reasons)


class QualityGate:
    """Require a quality analysis to exist; the score itself is informational."""

    phase = PhaseName.QUALITY

    def evaluate(self, segment: Segment) -> GateDecision:
        """Evaluate whether a quality report exists.

        Returns:
            GateDecision: Blocked decision when the segment was never analyzed.
        """
        if segment.report(self.phase) is None:
            return GateDecision(
                allowed=False,
                reasons=["Quality analysis has not been run for this segment"],
            )
        return GateDecision(allowed=True)


type GateFactory = Callable[[], ApprovalGate]


class GateRegistry:
    """Registry mapping phases to approval gate factories."""

    def __init__(self) -> None:
        """Initialize an empty gate registry."""
        self._factories: dict[str, GateFactory] = {}

    def register(self, phase: PhaseName, factory: GateFactory) -> None:
        """Register a gate factory for a phase.

        Raises:
            ValueError: If a gate is already registered for the phase.
        """
        key = PhaseName(phase).value
        if key in self._factories:
            raise ValueError(f"Gate already registered: {key}")
        self._factories[key] = factory

    def create(self, phase: PhaseName) -> ApprovalGate:
        """Create the gate for a phase.

        Raises:
            ValueError: If no gate is registered for the phase.
        """
        factory = self._factories.get(PhaseName(phase).value)
        if factory is None:
            raise ValueError(f"No gate registered for phase: {phase}")
        return factory()

    def list_phases(self) -> list[str]:
        """List phases with a registered gate."""
        return sorted(self._factories)


def get_default_gates() -> GateRegistry:
    """Build the registry with the built-in gates.

    Returns:
        GateRegistry: Registry with cultural, regulatory and quality gates.
    """
    registry = GateRegistry()
    registry.register(PhaseName.CULTURAL, CulturalGate)
    registry.register(PhaseName.REGULATORY, RegulatoryGate)
    registry.register(PhaseName.QUALITY, QualityGate)
    return registry
