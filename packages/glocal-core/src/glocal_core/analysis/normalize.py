"""Normalize raw provider payloads into phase analysis reports."""

from __future__ import annotations

import re

from pydantic import ValidationError

from glocal_schemas.analysis import (
    FALLBACK_ISSUE_MESSAGE,
    FALLBACK_SCORE,
    AdaptationSuggestion,
    AnalysisIssue,
    AnalysisReport,
    CulturalAnalysisPayload,
    QualityAnalysisPayload,
    RegulatoryAnalysisPayload,
)
from glocal_schemas.primitives import (
    ChangeRequirement,
    IssueSeverity,
    PhaseName,
    QualityReadiness,
    RiskLevel,
)

HIGH_RISK_BELOW = 60.0
MEDIUM_RISK_BELOW = 80.0
PRODUCTION_READY_ABOVE = 85.0
DUPLICATE_SIMILARITY = 0.7
CULTURAL_WEIGHTS = (0.4, 0.4, 0.2)

_FENCE_PATTERN = re.compile(r"^\s*```(?:json)?\s*\n?|\n?\s*```\s*$", re.IGNORECASE)


class PayloadError(ValueError):
    """Raised when provider output cannot be turned into a report."""


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences that models wrap around JSON output.

    Args:
        text: Raw provider output.

    Returns:
        str: Output without leading/trailing fences.
    """
    return _FENCE_PATTERN.sub("", text).strip()


def derive_risk_level(score: float) -> RiskLevel:
    """Map a 0-100 score onto a risk level.

    Returns:
        RiskLevel: High below 60, medium below 80, otherwise low.
    """
    if score < HIGH_RISK_BELOW:
        return RiskLevel.HIGH
    if score < MEDIUM_RISK_BELOW:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def cultural_weighted_score(
    tone: float, terminology: float, visual: float
) -> float:
    """Combine cultural sub-scores into the overall score.

    Returns:
        float: Rounded weighted score.
    """
    tone_w, term_w, visual_w = CULTURAL_WEIGHTS
    return float(round(tone * tone_w + terminology * term_w + visual * visual_w))


def levenshtein_distance(left: str, right: str) -> int:
    """Return the edit distance between two strings."""
    if len(left) < len(right):
        left, right = right, left
    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(
                min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            )
        previous = current
    return previous[-1]


def similarity(left: str, right: str) -> float:
    """Normalized similarity in [0, 1] based on edit distance."""
    longer = max(len(left), len(right))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(left, right)) / longer


def deduplicate_issues(issues: list[AnalysisIssue]) -> list[AnalysisIssue]:
    """Merge issues whose messages are near-duplicates.

    The first occurrence is kept; its severity is raised to the highest of the
    merged issues and rationales are joined with ``"; "``.

    Args:
        issues: Issues in provider order.

    Returns:
        list[AnalysisIssue]: De-duplicated issues.
    """
    merged: list[AnalysisIssue] = []
    for issue in issues:
        key = issue.message.lower()
        for index, kept in enumerate(merged):
            if similarity(key, kept.message.lower()) > DUPLICATE_SIMILARITY:
                merged[index] = _merge_issue(kept, issue)
                break
        else:
            merged.append(issue)
    return merged


def readiness_for(score: float) -> QualityReadiness:
    """Return release readiness for a quality score."""
    if score > PRODUCTION_READY_ABOVE:
        return QualityReadiness.PRODUCTION_READY
    return QualityReadiness.NEEDS_REVIEW


def parse_report(
    phase: PhaseName, raw: str, *, translation_revision: int, generated_at: str
) -> AnalysisReport:
    """Validate raw provider text and normalize it into a report.

    Args:
        phase: Phase the analysis belongs to.
        raw: Raw provider output (JSON, possibly fenced).
        translation_revision: Revision of the analyzed translation.
        generated_at: ISO-8601 timestamp.

    Returns:
        AnalysisReport: Normalized report.

    Raises:
        PayloadError: If the output is empty, not JSON, or misses fields.
    """
    text = strip_code_fences(raw)
    if not text:
        raise PayloadError("empty analysis response")
    try:
        match PhaseName(phase):
            case PhaseName.CULTURAL:
                report = _cultural_report(
                    CulturalAnalysisPayload.model_validate_json(text)
                )
            case PhaseName.REGULATORY:
                report = _regulatory_report(
                    RegulatoryAnalysisPayload.model_validate_json(text)
                )
            case PhaseName.QUALITY:
                report = _quality_report(
                    QualityAnalysisPayload.model_validate_json(text)
                )
    except ValidationError as exc:
        raise PayloadError(
            f"invalid {PhaseName(phase).value} analysis payload: "
            f"{exc.error_count()} validation error(s)"
        ) from exc
    return report.model_copy(
        update={
            "translation_revision": translation_revision,
            "generated_at": generated_at,
        }
    )


def build_fallback_report(
    phase: PhaseName,
    reason: str,
    *,
    translation_revision: int,
    generated_at: str,
) -> AnalysisReport:
    """Build the conservative report used when analysis is unavailable.

    Returns:
        AnalysisReport: Fallback report flagged for manual review.
    """
    return AnalysisReport(
        phase=PhaseName(phase),
        overall_score=FALLBACK_SCORE,
        risk_level=RiskLevel.MEDIUM,
        issues=[AnalysisIssue(message=FALLBACK_ISSUE_MESSAGE)],
        readiness=(
            QualityReadiness.NEEDS_REVIEW
            if PhaseName(phase) == PhaseName.QUALITY
            else None
        ),
        generated_by_fallback=True,
        fallback_reason=reason,
        translation_revision=translation_revision,
        generated_at=generated_at,
    )


def _cultural_report(payload: CulturalAnalysisPayload) -> AnalysisReport:
    score = payload.appropriateness_score
    if (
        payload.tone_score is not None
        and payload.terminology_score is not None
        and payload.visual_score is not None
    ):
        score = cultural_weighted_score(
            payload.tone_score, payload.terminology_score, payload.visual_score
        )
    issues = [
        AnalysisIssue(message=risk, severity=IssueSeverity.MEDIUM)
        for risk in payload.cultural_risks
    ]
    suggestions: list[AdaptationSuggestion] = []
    for action in payload.actions:
        if not action.suggested_alternatives:
            continue
        best = action.suggested_alternatives[0]
        suggestions.append(
            AdaptationSuggestion(
                original_text=action.original_text,
                suggested_text=best.text,
                rationale=best.rationale,
                priority=(
                    IssueSeverity(action.priority)
                    if action.priority is not None
                    else None
                ),
            )
        )
    return AnalysisReport(
        phase=PhaseName.CULTURAL,
        overall_score=score,
        risk_level=derive_risk_level(score),
        issues=issues,
        recommendations=list(payload.suggestions),
        suggestions=suggestions,
    )


def _regulatory_report(payload: RegulatoryAnalysisPayload) -> AnalysisReport:
    issues = [
        AnalysisIssue(
            message=finding.issue,
            severity=IssueSeverity(finding.severity),
            requirement=(
                ChangeRequirement.MUST_CHANGE
                if finding.severity == IssueSeverity.HIGH
                else ChangeRequirement.SHOULD_CHANGE
            ),
        )
        for finding in payload.issues
    ]
    issues.extend(
        AnalysisIssue(
            message=change,
            severity=IssueSeverity.HIGH,
            requirement=ChangeRequirement.MUST_CHANGE,
        )
        for change in payload.required_changes
    )
    issues = deduplicate_issues(issues)
    risk = (
        RiskLevel(payload.risk_level)
        if payload.risk_level is not None
        else derive_risk_level(payload.compliance_score)
    )
    if any(issue.requirement == ChangeRequirement.MUST_CHANGE for issue in issues):
        risk = RiskLevel.HIGH
    return AnalysisReport(
        phase=PhaseName.REGULATORY,
        overall_score=payload.compliance_score,
        risk_level=risk,
        issues=issues,
        recommendations=list(payload.recommendations),
    )


def _quality_report(payload: QualityAnalysisPayload) -> AnalysisReport:
    issues = [
        AnalysisIssue(message=text, severity=IssueSeverity.HIGH)
        for text in payload.accuracy_issues
    ]
    issues.extend(
        AnalysisIssue(message=text, severity=IssueSeverity.MEDIUM)
        for text in payload.terminology_problems
    )
    risk = (
        RiskLevel(payload.risk_level)
        if payload.risk_level is not None
        else derive_risk_level(payload.quality_score)
    )
    return AnalysisReport(
        phase=PhaseName.QUALITY,
        overall_score=payload.quality_score,
        risk_level=risk,
        issues=issues,
        recommendations=list(payload.improvements),
        readiness=readiness_for(payload.quality_score),
    )


_SEVERITY_RANK = {
    IssueSeverity.LOW: 0,
    IssueSeverity.MEDIUM: 1,
    IssueSeverity.HIGH: 2,
}


def _merge_issue(kept: AnalysisIssue, duplicate: AnalysisIssue) -> AnalysisIssue:
    severity = max(
        IssueSeverity(kept.severity),
        IssueSeverity(duplicate.severity),
        key=_SEVERITY_RANK.__getitem__,
    )
    requirement = kept.requirement
    if ChangeRequirement.MUST_CHANGE in (kept.requirement, duplicate.requirement):
        requirement = ChangeRequirement.MUST_CHANGE
    rationales = [
        text
        for text in (kept.rationale, duplicate.rationale, duplicate.message)
        if text and text != kept.message
    ]
    return AnalysisIssue(
        message=kept.message,
        severity=severity,
        requirement=(
            ChangeRequirement(requirement) if requirement is not None else None
        ),
        rationale="; ".join(dict.fromkeys(rationales)) or None,
    )
