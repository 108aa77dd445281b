"""
agentexec - execution core for autonomous coding agents.
"""

__version__ = "0.1.0"
__logo__ = "⚙️"
