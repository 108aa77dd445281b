"""Approval-gated, sandbox-aware command execution."""

from agentexec.exec.types import (
    ApplyPatchCommand,
    ApprovalPolicy,
    AskUser,
    AutoApprove,
    CommandConfirmation,
    ExecInput,
    ExecResult,
    HandleExecCommandResult,
    Reject,
    ReviewDecision,
    SafetyAssessment,
    SandboxKind,
)
from agentexec.exec.approvals import (
    SessionApprovalCache,
    derive_command_key,
)
from agentexec.exec.platform_commands import adapt_command_for_platform
from agentexec.exec.sandbox import SandboxUnavailableError, get_sandbox
from agentexec.exec.runner import exec_apply_patch, exec_command_input
from agentexec.exec.executor import handle_exec_command

__all__ = [
    "ApplyPatchCommand",
    "ApprovalPolicy",
    "AskUser",
    "AutoApprove",
    "CommandConfirmation",
    "ExecInput",
    "ExecResult",
    "HandleExecCommandResult",
    "Reject",
    "ReviewDecision",
    "SafetyAssessment",
    "SandboxKind",
    "SessionApprovalCache",
    "derive_command_key",
    "adapt_command_for_platform",
    "SandboxUnavailableError",
    "get_sandbox",
    "exec_apply_patch",
    "exec_command_input",
    "handle_exec_command",
]
