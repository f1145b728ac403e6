"""glocal-llm: pydantic-ai backed analysis provider."""

from glocal_llm.openai_runtime import OpenAICompatibleAnalysisRuntime
from glocal_llm.prompts import build_system_prompt, build_user_prompt

__all__ = [
    "OpenAICompatibleAnalysisRuntime",
    "build_system_prompt",
    "build_user_prompt",
]
