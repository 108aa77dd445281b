"""Configuration module for agentexec."""

from agentexec.config.loader import load_config, get_config_path
from agentexec.config.schema import Config, ExecToolConfig

__all__ = ["Config", "ExecToolConfig", "load_config", "get_config_path"]
