from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResolverSettings(BaseModel):
    max_iterations: int = Field(
        10,
        ge=1,
        description="Upper bound on plan calls per resolver invocation. Never unbounded.",
    )
    tool_retry_attempts: int = Field(1, ge=1, description="Attempts per tool invocation, including the first.")
    tool_retry_backoff_seconds: float = Field(0.0, ge=0.0, description="Base backoff between tool retries.")
    tool_retry_max_backoff_seconds: float = Field(5.0, ge=0.0)
    fail_on_tool_error: bool = Field(
        False,
        description="Raise ToolExecutionError instead of recording the failure as an observation.",
    )


class TeamSettings(BaseModel):
    global_timeout: float | None = Field(
        300.0,
        gt=0.0,
        description="Run-level timeout in seconds; cancels every running agent when exceeded.",
    )
    default_agent_timeout: float | None = Field(
        None,
        gt=0.0,
        description="Per-agent timeout applied when a child agent does not declare its own.",
    )


class ContextSettings(BaseModel):
    summary_limit: int = Field(20, ge=1, description="Entries rendered in the coordination summary.")


class GateSettings(BaseModel):
    max_interventions: int = Field(10, ge=0)
    input_timeout: float = Field(300.0, gt=0.0, description="Seconds to wait for human input.")
    default_prompt: str = Field("Please provide your input:", min_length=1)
    allow_empty_response: bool = Field(False)


class ObservabilitySettings(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    metrics_enabled: bool = Field(True)


class Settings(BaseSettings):
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)  # type: ignore[arg-type]
    team: TeamSettings = Field(default_factory=TeamSettings)  # type: ignore[arg-type]
    context: ContextSettings = Field(default_factory=ContextSettings)  # type: ignore[arg-type]
    gate: GateSettings = Field(default_factory=GateSettings)  # type: ignore[arg-type]
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)  # type: ignore[arg-type]

    model_config = SettingsConfigDict(
        env_prefix="CONCORD_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )


@lru_cache(maxsize=1)
def _get_cached_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def get_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    """Return settings, using cached defaults unless overrides are provided."""
    if overrides:
        return Settings(**dict(overrides))
    return _get_cached_settings()
