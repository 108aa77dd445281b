"""CLI module for agentexec."""
