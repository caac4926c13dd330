"""Pydantic models for converge.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from converge.llm.base import MAX_RETRY_AFTER

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "gemini": "gemini-2.0-flash",
}


class ProviderConfig(BaseModel):
    """Model backend configuration."""

    name: Literal["openai", "anthropic", "gemini"] = Field(
        default="openai",
        description="Provider adapter to use",
    )
    model: str | None = Field(
        default=None,
        description="Model name (defaults to a per-provider model)",
    )
    api_key: str | None = Field(
        default=None,
        description="API key; prefer the CONVERGE_API_KEY environment variable",
        repr=False,
    )
    base_url: str | None = Field(
        default=None,
        description="Override the provider endpoint (e.g. an OpenAI-compatible server)",
    )
    timeout: float = Field(default=120.0, description="Model request timeout in seconds", gt=0)
    temperature: float = Field(default=0.7, description="Sampling temperature", ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, description="Maximum tokens per response", ge=1)
    retry_backoff: float = Field(
        default=1.0,
        description="Seconds to wait before the single retry of a transient failure",
        ge=0.0,
    )

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS[self.name]


class AgentConfig(BaseModel):
    """Agent loop configuration."""

    max_iterations: int = Field(
        default=8,
        description="Maximum tool-dispatch cycles per user request",
        ge=1,
        le=50,
    )
    model_timeout: float = Field(
        default=300.0,
        description="Upper bound in seconds for one model call, retries included",
        gt=0,
    )
    system_prompt: str = Field(
        default=(
            "You are a helpful assistant. You can search the web, run Python code and "
            "call an analysis pipeline. Use tools when they help, then answer concisely."
        ),
        description="System prompt for the agent",
    )


class SearchConfig(BaseModel):
    """Web search tool configuration."""

    enabled: bool = Field(default=True, description="Register the web_search tool")
    api_key: str | None = Field(default=None, description="Search API key", repr=False)
    engine_id: str | None = Field(default=None, description="Search engine (scope) identifier")
    endpoint: str = Field(
        default="https://www.googleapis.com/customsearch/v1",
        description="Search API endpoint",
    )
    timeout: float = Field(default=15.0, description="Search request timeout in seconds", gt=0)
    max_results: int = Field(default=5, description="Default number of results", ge=1, le=10)


class CodeExecutionConfig(BaseModel):
    """Code execution tool configuration."""

    enabled: bool = Field(default=True, description="Register the code_execution tool")
    timeout: float = Field(default=10.0, description="Wall-clock limit in seconds", gt=0, le=300)
    max_output_bytes: int = Field(default=65536, description="Captured output cap", ge=1024)
    memory_limit_mb: int = Field(
        default=256,
        description="Container memory limit, swap included",
        ge=32,
    )
    image: str = Field(
        default="python:3.12-slim",
        description="Container image providing the Python interpreter",
    )
    runtime: str | None = Field(
        default=None,
        description='Container runtime, e.g. "runsc" for gVisor (engine default if unset)',
    )
    pids_limit: int = Field(default=64, description="Maximum processes in the container", ge=8)
    cpu_cores: float = Field(default=1.0, description="CPU share for the container", gt=0)


class PipelineConfig(BaseModel):
    """Analysis pipeline tool configuration."""

    enabled: bool = Field(default=True, description="Register the pipeline tool")
    endpoint: str | None = Field(
        default=None,
        description="Pipeline service URL; placeholder responses are used when unset",
    )
    api_key: str | None = Field(default=None, description="Pipeline API key", repr=False)
    timeout: float = Field(default=60.0, description="Pipeline request timeout in seconds", gt=0)


class ToolsConfig(BaseModel):
    """Tool availability configuration."""

    search: SearchConfig = Field(default_factory=SearchConfig)
    code_execution: CodeExecutionConfig = Field(default_factory=CodeExecutionConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)


class ConvergeConfig(BaseModel):
    """Root configuration model."""

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)

    @model_validator(mode="after")
    def _model_call_outlasts_code_execution(self) -> "ConvergeConfig":
        if self.agent.model_timeout <= self.tools.code_execution.timeout:
            raise ValueError(
                "agent.model_timeout must be longer than tools.code_execution.timeout"
            )
        return self

    @model_validator(mode="after")
    def _model_call_covers_retry(self) -> "ConvergeConfig":
        # Two attempts plus the longest wait between them
        worst_case = 2 * self.provider.timeout + max(self.provider.retry_backoff, MAX_RETRY_AFTER)
        if self.agent.model_timeout <= worst_case:
            raise ValueError(
                f"agent.model_timeout must be longer than {worst_case:g}s "
                "(two provider.timeout attempts plus the retry wait)"
            )
        return self
