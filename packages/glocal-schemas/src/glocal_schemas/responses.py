"""Response envelope schemas for CLI output."""

from __future__ import annotations

from pydantic import Field

from glocal_schemas.analysis import AnalysisReport
from glocal_schemas.base import BaseSchema
from glocal_schemas.primitives import PhaseName, Timestamp
from glocal_schemas.workflow import ConsolidatedDeliverable


class MetaInfo(BaseSchema):
    """Metadata for responses."""

    timestamp: Timestamp = Field(..., description="ISO-8601 response timestamp")


class ErrorDetails(BaseSchema):
    """Detailed error context for responses."""

    field: str | None = Field(None, description="Field name if applicable")
    provided: str | None = Field(None, description="Provided value")
    valid_options: list[str] | None = Field(
        None, description="Valid options if applicable"
    )
    reasons: list[str] | None = Field(
        None, description="Operator-actionable reasons (blocking issues, open ids)"
    )


class ErrorResponse(BaseSchema):
    """Error information in response."""

    code: str = Field(..., min_length=1, description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: ErrorDetails | None = Field(None, description="Optional error details")


class ApiResponse[ResponseData](BaseSchema):
    """Generic response envelope."""

    data: ResponseData | None = Field(
        None, description="Success payload, null on error"
    )
    error: ErrorResponse | None = Field(
        None, description="Error information, null on success"
    )
    meta: MetaInfo = Field(..., description="Response metadata")


class AnalysisBatchResult(BaseSchema):
    """Reports produced by one analyze command."""

    phase: PhaseName = Field(..., description="Phase analyzed")
    reports: list[AnalysisReport] = Field(..., description="Reports in request order")


class PhaseDraft(BaseSchema):
    """Numbered preview of the current translations."""

    phase: PhaseName = Field(..., description="Active phase")
    draft: str = Field(..., min_length=1, description="Rendered draft")


class FinalizeResult(BaseSchema):
    """Result of consolidating and exporting a run."""

    deliverable: ConsolidatedDeliverable = Field(..., description="Deliverable")
    output_path: str = Field(..., min_length=1, description="Document path")
    audit_path: str | None = Field(None, description="Audit trail path")
