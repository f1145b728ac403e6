"""OpenAI-compatible analysis provider powered by pydantic-ai."""

from __future__ import annotations

from typing import cast

from pydantic_ai import Agent
from pydantic_ai.models.openai import OpenAIChatModel, OpenAIChatModelSettings
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from glocal_core.ports.analysis import AnalysisProviderProtocol
from glocal_llm.prompts import build_system_prompt, build_user_prompt
from glocal_schemas.analysis import AnalysisRequest
from glocal_schemas.config import AnalysisConfig

DEFAULT_MAX_OUTPUT_TOKENS = 4096


class OpenAICompatibleAnalysisRuntime(AnalysisProviderProtocol):
    """Analysis provider for OpenAI-compatible chat endpoints."""

    def __init__(self, config: AnalysisConfig, *, api_key: str) -> None:
        """Initialize the runtime.

        Args:
            config: Endpoint and model settings.
            api_key: API key for the endpoint.
        """
        self._config = config
        self._api_key = api_key

    async def request_analysis(self, request: AnalysisRequest) -> str:
        """Run the phase analyzer and return the raw model output.

        Returns:
            str: Model output text, expected to be JSON.
        """
        provider = OpenAIProvider(
            base_url=self._config.base_url,
            api_key=self._api_key,
        )
        model = OpenAIChatModel(self._config.model_id, provider=provider)
        model_settings: OpenAIChatModelSettings = {
            "temperature": self._config.temperature,
            "timeout": self._config.timeout_s,
        }
        model_settings["max_tokens"] = (
            self._config.max_output_tokens or DEFAULT_MAX_OUTPUT_TOKENS
        )
        agent = Agent(model, instructions=build_system_prompt(request))
        result = await agent.run(
            build_user_prompt(request),
            model_settings=cast(ModelSettings, model_settings),
        )
        return str(result.output)
