"""Agent tools."""

from agentexec.agent.tools.base import Tool
from agentexec.agent.tools.shell import ShellTool

__all__ = ["Tool", "ShellTool"]
