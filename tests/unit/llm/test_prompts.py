"""Tests for phase analyzer prompts."""

from __future__ import annotations

import json

import pytest

from glocal_llm.prompts import JSON_ONLY, build_system_prompt, build_user_prompt
from glocal_schemas.analysis import AnalysisRequest
from glocal_schemas.primitives import PhaseName


def _request(phase: PhaseName, **brand: str) -> AnalysisRequest:
    return AnalysisRequest(
        phase=phase,
        segment_id="seg-1",
        source_text="Ask your doctor",
        translation="Fragen Sie Ihren Arzt",
        target_market="DE",
        asset_type="banner",
        brand_context=dict(brand),
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    ("phase", "marker"),
    [
        (PhaseName.CULTURAL, "appropriateness_score"),
        (PhaseName.REGULATORY, "compliance_score"),
        (PhaseName.QUALITY, "quality_score"),
    ],
)
def test_system_prompt_per_phase(phase: PhaseName, marker: str) -> None:
    """Each phase asks for its own JSON schema."""
    prompt = build_system_prompt(_request(phase))

    assert marker in prompt
    assert prompt.endswith(JSON_ONLY)


@pytest.mark.unit
def test_cultural_prompt_names_market_and_area() -> None:
    """Cultural prompt is parameterized by market and therapeutic area."""
    prompt = build_system_prompt(
        _request(PhaseName.CULTURAL, therapeutic_area="dermatology")
    )

    assert "specialist for DE" in prompt
    assert "Therapeutic Area: dermatology" in prompt
    assert "Asset Type: banner" in prompt


@pytest.mark.unit
def test_cultural_prompt_defaults_therapeutic_area() -> None:
    """A missing therapeutic area reads as general."""
    prompt = build_system_prompt(_request(PhaseName.CULTURAL))

    assert "Therapeutic Area: general" in prompt


@pytest.mark.unit
def test_user_prompt_carries_context_and_translation() -> None:
    """User prompt embeds the JSON context and the content."""
    prompt = build_user_prompt(_request(PhaseName.REGULATORY, brand_id="brand-x"))

    context_line, content = prompt.split("\n\n", 1)
    context = json.loads(context_line.removeprefix("Context: "))
    assert context["brand_id"] == "brand-x"
    assert context["source_text"] == "Ask your doctor"
    assert content == "Content to analyze:\nFragen Sie Ihren Arzt"
