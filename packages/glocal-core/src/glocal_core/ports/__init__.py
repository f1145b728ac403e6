"""Ports for glocal core adapters and error types."""

from glocal_core.ports.analysis import AnalysisProviderProtocol
from glocal_core.ports.errors import StructuredError, StructuredErrorInfo
from glocal_core.ports.export import (
    DeliverableExporterProtocol,
    ExportError,
    ExportErrorCode,
    ExportErrorInfo,
)
from glocal_core.ports.ingest import (
    IngestBatchError,
    IngestError,
    IngestErrorCode,
    IngestErrorDetails,
    IngestErrorInfo,
    SegmentIngestProtocol,
)
from glocal_core.ports.storage import (
    RunStateStoreProtocol,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
)
from glocal_core.ports.workflow import (
    GateBlockedError,
    LogSinkProtocol,
    NotFoundError,
    PhaseIncompleteError,
    WorkflowError,
    WorkflowErrorCode,
    WorkflowErrorDetails,
    WorkflowErrorInfo,
)

__all__ = [
    "AnalysisProviderProtocol",
    "DeliverableExporterProtocol",
    "ExportError",
    "ExportErrorCode",
    "ExportErrorInfo",
    "GateBlockedError",
    "IngestBatchError",
    "IngestError",
    "IngestErrorCode",
    "IngestErrorDetails",
    "IngestErrorInfo",
    "LogSinkProtocol",
    "NotFoundError",
    "PhaseIncompleteError",
    "RunStateStoreProtocol",
    "SegmentIngestProtocol",
    "StorageError",
    "StorageErrorCode",
    "StorageErrorDetails",
    "StorageErrorInfo",
    "StructuredError",
    "StructuredErrorInfo",
    "WorkflowError",
    "WorkflowErrorCode",
    "WorkflowErrorDetails",
    "WorkflowErrorInfo",
]
