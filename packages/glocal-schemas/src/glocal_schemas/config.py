"""Configuration schemas for glocal workflows."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import Field, field_validator, model_validator

from glocal_schemas.analysis import AnalysisContext
from glocal_schemas.base import BaseSchema
from glocal_schemas.primitives import JsonValue, LogLevel, LogSinkType, MarketCode


class ProjectConfig(BaseSchema):
    """Project metadata forwarded to the analysis service."""

    name: str = Field(..., min_length=1, description="Project name")
    target_market: MarketCode | None = Field(
        None, description="Market override for every segment"
    )
    asset_type: str = Field(
        "marketing material", min_length=1, description="Asset type"
    )
    therapeutic_area: str | None = Field(None, description="Therapeutic area")
    brand_id: str | None = Field(None, description="Brand identifier")
    brand_context: dict[str, JsonValue] | None = Field(
        None, description="Free-form brand metadata"
    )

    def to_analysis_context(self) -> AnalysisContext:
        """Build the analysis context for this project.

        Returns:
            AnalysisContext: Context forwarded with every analysis call.
        """
        return AnalysisContext(
            target_market=self.target_market,
            asset_type=self.asset_type,
            therapeutic_area=self.therapeutic_area,
            brand_id=self.brand_id,
            brand_context=self.brand_context,
        )


class AnalysisConfig(BaseSchema):
    """Endpoint and model settings for the AI analysis service."""

    base_url: str = Field(..., min_length=1, description="OpenAI-compatible base URL")
    api_key_env: str = Field(
        "GLOCAL_API_KEY", min_length=1, description="Env var holding the API key"
    )
    model_id: str = Field(..., min_length=1, description="Model identifier")
    temperature: float = Field(0.2, ge=0, le=2, description="Sampling temperature")
    max_output_tokens: int | None = Field(
        None, ge=1, description="Maximum output tokens (None uses model default)"
    )
    timeout_s: float = Field(60.0, gt=0, description="Per-call timeout in seconds")
    max_parallel: int = Field(
        4, ge=1, description="Cap on concurrent analyses across segments"
    )

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("base_url must be an http(s) URL")
        return value


class LogSinkConfig(BaseSchema):
    """Configuration for a single log sink."""

    type: LogSinkType = Field(..., description="Log sink type (console|file|noop)")
    min_level: LogLevel | None = Field(
        None, description="Lowest level written by this sink (all when omitted)"
    )

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> object:
        return LogSinkType(value) if isinstance(value, str) else value

    @field_validator("min_level", mode="before")
    @classmethod
    def _coerce_min_level(cls, value: object) -> object:
        return LogLevel(value) if isinstance(value, str) else value


class LoggingConfig(BaseSchema):
    """Logging configuration for workflow runs and CLI commands."""

    sinks: list[LogSinkConfig] = Field(
        ..., min_length=1, description="Log sinks to enable"
    )

    @model_validator(mode="after")
    def validate_sink_types(self) -> LoggingConfig:
        """Ensure log sink types are unique.

        Returns:
            LoggingConfig: Validated logging configuration.

        Raises:
            ValueError: If sink types are duplicated.
        """
        sink_types = [sink.type for sink in self.sinks]
        if len(set(sink_types)) != len(sink_types):
            raise ValueError("log sinks must not contain duplicates")
        return self


class StorageConfig(BaseSchema):
    """Filesystem locations for run state and logs."""

    workspace_dir: str = Field(
        ".glocal", min_length=1, description="Directory for run state and logs"
    )


class WorkflowConfig(BaseSchema):
    """Top-level glocal.toml configuration."""

    project: ProjectConfig = Field(..., description="Project metadata")
    analysis: AnalysisConfig | None = Field(
        None, description="AI analysis service settings"
    )
    logging: LoggingConfig = Field(
        default_factory=lambda: LoggingConfig(
            sinks=[LogSinkConfig(type=LogSinkType.FILE)]
        ),
        description="Logging configuration",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig, description="Storage configuration"
    )
