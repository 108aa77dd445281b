"""Configuration schema using Pydantic."""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExecToolConfig(BaseModel):
    """Command execution configuration."""
    timeout_seconds: int = 10  # Used when the agent gives no timeout
    max_output_chars: int = 200_000  # Per stream, 200KB
    approval_policy: Literal["suggest", "auto-edit", "full-auto"] = "suggest"
    # What to do when a sandboxed command exits non-zero
    full_auto_error_mode: Literal["ask-user", "ignore-and-continue"] = "ignore-and-continue"


class ToolsConfig(BaseModel):
    """Tools configuration."""
    exec: ExecToolConfig = Field(default_factory=ExecToolConfig)


class Config(BaseSettings):
    """Root configuration for agentexec."""
    tools: ToolsConfig = Field(default_factory=ToolsConfig)

    model_config = SettingsConfigDict(
        env_prefix="AGENTEXEC_",
        env_nested_delimiter="__",
    )

    @property
    def exec(self) -> ExecToolConfig:
        """Shortcut to the exec tool section."""
        return self.tools.exec
