"""System and user prompts for the phase analyzers."""

from __future__ import annotations

import json

from glocal_schemas.analysis import AnalysisRequest
from glocal_schemas.primitives import PhaseName

JSON_ONLY = "Respond with a single JSON object and nothing else."

CULTURAL_PROMPT = """\
You are an expert pharmaceutical cultural adaptation specialist for {market}.
Analyze this translated pharmaceutical content for cultural appropriateness and
provide actionable recommendations.
CONTEXT:
- Asset Type: {asset_type}
- Therapeutic Area: {therapeutic_area}
Provide analysis in JSON format:
{{
  "appropriateness_score": 0-100,
  "tone_score": 0-100,
  "terminology_score": 0-100,
  "visual_score": 0-100,
  "actions": [
    {{
      "priority": "high|medium|low",
      "original_text": "specific text element from the translation",
      "suggested_alternatives": [
        {{"text": "culturally adapted alternative", "rationale": "why it fits"}}
      ]
    }}
  ],
  "cultural_risks": ["risk1", "risk2"],
  "suggestions": ["high-level suggestion1", "suggestion2"]
}}
Consider tone for the audience in {market}, formality and respect markers,
direct versus indirect communication, color, number or symbol sensitivities,
and the cultural appropriateness of medical terminology."""

REGULATORY_PROMPT = """\
You are a regulatory compliance expert for pharmaceutical marketing.
Analyze the following content for regulatory compliance in {market}.
CRITICAL: Avoid duplicate findings. Consolidate similar compliance concerns into
a single issue. Focus on distinct, non-overlapping regulatory concerns.
Provide analysis in JSON format:
{{
  "compliance_score": 0-100,
  "risk_level": "low|medium|high",
  "issues": [{{"severity": "high|medium|low", "issue": "description"}}],
  "recommendations": ["recommendation1", "recommendation2"],
  "required_changes": ["change1", "change2"]
}}"""

QUALITY_PROMPT = """\
You are a quality assurance expert for medical translations.
Analyze the following content for translation quality and medical accuracy.
Provide analysis in JSON format:
{{
  "quality_score": 0-100,
  "accuracy_issues": ["issue1", "issue2"],
  "terminology_problems": ["problem1", "problem2"],
  "improvements": ["improvement1", "improvement2"]
}}"""

_PROMPTS = {
    PhaseName.CULTURAL: CULTURAL_PROMPT,
    PhaseName.REGULATORY: REGULATORY_PROMPT,
    PhaseName.QUALITY: QUALITY_PROMPT,
}


def build_system_prompt(request: AnalysisRequest) -> str:
    """Build the system prompt for the request's phase.

    Args:
        request: Analysis request.

    Returns:
        str: System prompt text.
    """
    template = _PROMPTS[PhaseName(request.phase)]
    therapeutic_area = request.brand_context.get("therapeutic_area") or "general"
    prompt = template.format(
        market=request.target_market,
        asset_type=request.asset_type,
        therapeutic_area=therapeutic_area,
    )
    return f"{prompt}\n{JSON_ONLY}"


def build_user_prompt(request: AnalysisRequest) -> str:
    """Build the user prompt carrying the context and the content.

    Args:
        request: Analysis request.

    Returns:
        str: User prompt text.
    """
    context = {
        "segment_id": request.segment_id,
        "target_market": request.target_market,
        "asset_type": request.asset_type,
        "source_text": request.source_text,
        **request.brand_context,
    }
    return (
        f"Context: {json.dumps(context, ensure_ascii=False)}\n\n"
        f"Content to analyze:\n{request.translation}"
    )
