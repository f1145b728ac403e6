"""Analysis request, provider payload and report schemas."""

from __future__ import annotations

from pydantic import Field

from glocal_schemas.base import BaseSchema
from glocal_schemas.primitives import (
    ChangeRequirement,
    IssueSeverity,
    JsonValue,
    MarketCode,
    PhaseName,
    QualityReadiness,
    RiskLevel,
    Score,
    Timestamp,
)

FALLBACK_SCORE = 50.0
FALLBACK_ISSUE_MESSAGE = "Unable to verify — manual review required"


class AnalysisContext(BaseSchema):
    """Phase-specific parameters forwarded with every analysis call."""

    target_market: MarketCode | None = Field(
        None, description="Market override; defaults to the segment market"
    )
    asset_type: str = Field(
        "marketing material", min_length=1, description="Asset type being localized"
    )
    therapeutic_area: str | None = Field(None, description="Therapeutic area")
    brand_id: str | None = Field(None, description="Brand identifier")
    brand_context: dict[str, JsonValue] | None = Field(
        None, description="Free-form brand metadata"
    )


class AnalysisRequest(BaseSchema):
    """Request sent to the external AI analysis service."""

    phase: PhaseName = Field(..., description="Phase requesting the analysis")
    segment_id: str = Field(..., min_length=1, description="Segment identifier")
    source_text: str = Field(..., min_length=1, description="Original text")
    translation: str = Field(..., min_length=1, description="Current translation")
    target_market: MarketCode = Field(..., description="Target market")
    asset_type: str = Field(..., min_length=1, description="Asset type")
    brand_context: dict[str, JsonValue] = Field(
        default_factory=dict, description="Brand and therapeutic metadata"
    )


class AnalysisIssue(BaseSchema):
    """Single finding surfaced by an analysis."""

    message: str = Field(..., min_length=1, description="Issue description")
    severity: IssueSeverity = Field(
        IssueSeverity.MEDIUM, description="Issue severity"
    )
    requirement: ChangeRequirement | None = Field(
        None, description="Regulatory change requirement when applicable"
    )
    rationale: str | None = Field(None, description="Why the issue matters")


class AdaptationSuggestion(BaseSchema):
    """Cultural adaptation suggestion that can be applied to a translation."""

    original_text: str = Field(..., min_length=1, description="Text to replace")
    suggested_text: str = Field(..., min_length=1, description="Replacement text")
    rationale: str | None = Field(None, description="Why the change helps")
    priority: IssueSeverity | None = Field(None, description="Suggestion priority")


class AnalysisReport(BaseSchema):
    """Normalized result of one analysis run for a segment and phase."""

    phase: PhaseName = Field(..., description="Phase the report belongs to")
    overall_score: Score = Field(..., description="Overall score (0-100)")
    risk_level: RiskLevel = Field(..., description="Risk level")
    issues: list[AnalysisIssue] = Field(
        default_factory=list, description="Findings from the analysis"
    )
    recommendations: list[str] = Field(
        default_factory=list, description="High-level recommendations"
    )
    suggestions: list[AdaptationSuggestion] = Field(
        default_factory=list, description="Applicable adaptation suggestions"
    )
    readiness: QualityReadiness | None = Field(
        None, description="Release readiness for quality reports"
    )
    generated_by_fallback: bool = Field(
        False, description="True when the AI service could not be used"
    )
    fallback_reason: str | None = Field(
        None, description="Failure that triggered the fallback"
    )
    translation_revision: int = Field(
        0, ge=0, description="Translation revision the report was computed for"
    )
    generated_at: Timestamp | None = Field(None, description="Report timestamp")

    @property
    def blocking_issues(self) -> list[AnalysisIssue]:
        """Issues that must be resolved before sign-off."""
        return [
            issue
            for issue in self.issues
            if issue.severity == IssueSeverity.HIGH
            or issue.requirement == ChangeRequirement.MUST_CHANGE
        ]


class CulturalAlternative(BaseSchema):
    """Alternative phrasing proposed for a cultural action."""

    text: str = Field(..., min_length=1, description="Adapted alternative")
    rationale: str | None = Field(None, description="Why it fits better")


class CulturalAction(BaseSchema):
    """Provider-side cultural action with alternatives."""

    original_text: str = Field(..., min_length=1, description="Text element")
    priority: IssueSeverity | None = Field(None, description="Action priority")
    suggested_alternatives: list[CulturalAlternative] = Field(
        default_factory=list, description="Alternative phrasings"
    )


class CulturalAnalysisPayload(BaseSchema):
    """Raw cultural analysis returned by the AI service."""

    appropriateness_score: Score = Field(..., description="Overall fit score")
    tone_score: Score | None = Field(None, description="Cultural tone score")
    terminology_score: Score | None = Field(None, description="Terminology score")
    visual_score: Score | None = Field(None, description="Visual guidance score")
    cultural_risks: list[str] = Field(
        default_factory=list, description="Cultural risks"
    )
    actions: list[CulturalAction] = Field(
        default_factory=list, description="Actionable adaptations"
    )
    suggestions: list[str] = Field(
        default_factory=list, description="High-level suggestions"
    )


class RegulatoryFinding(BaseSchema):
    """Raw regulatory finding returned by the AI service."""

    severity: IssueSeverity = Field(..., description="Finding severity")
    issue: str = Field(..., min_length=1, description="Finding description")


class RegulatoryAnalysisPayload(BaseSchema):
    """Raw regulatory analysis returned by the AI service."""

    compliance_score: Score = Field(..., description="Compliance score")
    risk_level: RiskLevel | None = Field(None, description="Explicit risk level")
    issues: list[RegulatoryFinding] = Field(
        default_factory=list, description="Compliance findings"
    )
    recommendations: list[str] = Field(
        default_factory=list, description="Recommendations"
    )
    required_changes: list[str] = Field(
        default_factory=list, description="Mandatory changes"
    )


class QualityAnalysisPayload(BaseSchema):
    """Raw quality analysis returned by the AI service."""

    quality_score: Score = Field(..., description="Quality score")
    risk_level: RiskLevel | None = Field(None, description="Explicit risk level")
    accuracy_issues: list[str] = Field(
        default_factory=list, description="Medical accuracy issues"
    )
    terminology_problems: list[str] = Field(
        default_factory=list, description="Terminology problems"
    )
    improvements: list[str] = Field(
        default_factory=list, description="Recommended improvements"
    )

