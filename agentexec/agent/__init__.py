"""Agent-facing integration of the execution core."""
