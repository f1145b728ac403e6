"""glocal-core: Review workflow engine for localized content."""

from glocal_core.analysis import AnalysisGateway
from glocal_core.gates import (
    ApprovalGate,
    CulturalGate,
    GateDecision,
    GateRegistry,
    QualityGate,
    RegulatoryGate,
    get_default_gates,
)
from glocal_core.orchestrator import WorkflowOrchestrator
from glocal_core.phase import AnalysisOutcome, PhaseController
from glocal_core.ports import (
    AnalysisProviderProtocol,
    GateBlockedError,
    LogSinkProtocol,
    NotFoundError,
    PhaseIncompleteError,
    WorkflowError,
    WorkflowErrorCode,
)
from glocal_core.store import SegmentStore

__all__ = [
    "AnalysisGateway",
    "AnalysisOutcome",
    "AnalysisProviderProtocol",
    "ApprovalGate",
    "CulturalGate",
    "GateBlockedError",
    "GateDecision",
    "GateRegistry",
    "LogSinkProtocol",
    "NotFoundError",
    "PhaseController",
    "PhaseIncompleteError",
    "QualityGate",
    "RegulatoryGate",
    "SegmentStore",
    "WorkflowError",
    "WorkflowErrorCode",
    "WorkflowOrchestrator",
    "get_default_gates",
]
