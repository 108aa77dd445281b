"""Shell tool backed by the approval-gated executor."""

import asyncio
from typing import Any

from loguru import logger

from agentexec.agent.tools.base import Tool
from agentexec.config.schema import ExecToolConfig
from agentexec.exec import (
    ExecInput,
    HandleExecCommandResult,
    SessionApprovalCache,
    derive_command_key,
    handle_exec_command,
)
from agentexec.exec.types import ConfirmationCallback, PolicyEvaluator


class ShellTool(Tool):
    """
    Shell command and patch execution tool.

    Features:
    - Policy evaluation with ask-user / auto-approve / reject outcomes
    - Session-wide "always approve" memory per command key
    - Platform sandboxing (Seatbelt on macOS)
    - apply_patch support for the agent patch format
    """

    def __init__(
        self,
        config: ExecToolConfig,
        evaluate_policy: PolicyEvaluator,
        confirmation_callback: ConfirmationCallback,
        working_dir: str | None = None,
        approvals: SessionApprovalCache | None = None,
    ):
        self.config = config
        self.working_dir = working_dir
        self._evaluate_policy = evaluate_policy
        self._confirmation_callback = confirmation_callback
        self._approvals = approvals or SessionApprovalCache()
        self.last_result: HandleExecCommandResult | None = None

    @property
    def name(self) -> str:
        return "shell"

    @property
    def description(self) -> str:
        return (
            "Run a command and return its output.\n\n"
            f"Approval policy: {self.config.approval_policy}\n"
            'To edit files, call ["apply_patch", "<patch text>"] with a patch that starts with '
            "'*** Begin Patch' and ends with '*** End Patch'."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "The command to execute, as argv",
                },
                "workdir": {
                    "type": "string",
                    "description": "Optional working directory for the command",
                },
                "timeout": {
                    "type": "integer",
                    "description": f"Optional timeout in milliseconds (default: {self.config.timeout_seconds * 1000})",
                },
            },
            "required": ["command"],
        }

    @property
    def approvals(self) -> SessionApprovalCache:
        """Session approvals, for external inspection."""
        return self._approvals

    async def execute(
        self,
        command: list[str] | str,
        workdir: str | None = None,
        timeout: int | None = None,
        abort: asyncio.Event | None = None,
        **kwargs: Any,
    ) -> str:
        """Run a command through the approval flow and format the outcome."""
        if isinstance(command, str):
            command = ["bash", "-lc", command]

        logger.info(f"Shell request: key={derive_command_key(command)} workdir={workdir or '.'}")

        result = await handle_exec_command(
            ExecInput(cmd=command, workdir=workdir, timeout_ms=timeout),
            self.config,
            self.config.approval_policy,
            self._confirmation_callback,
            evaluate_policy=self._evaluate_policy,
            approvals=self._approvals,
            abort=abort,
            effective_cwd=self.working_dir,
        )
        self.last_result = result

        output_parts = [result.output_text] if result.output_text else []

        for item in result.additional_items or []:
            for part in item.get("content", []):
                if part.get("type") == "text":
                    output_parts.append(part["text"])

        exit_code = result.metadata.get("exit_code")
        if exit_code:
            output_parts.append(f"\nExit code: {exit_code}")

        return "\n".join(output_parts) if output_parts else "(no output)"
