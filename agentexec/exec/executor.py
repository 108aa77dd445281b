"""Command orchestrator: approval, sandbox routing and execution."""

import asyncio
import math
import os
import shlex
import time
from pathlib import Path

from loguru import logger

from agentexec.config.schema import ExecToolConfig
from agentexec.exec.approvals import (
    APPLY_PATCH_KEY,
    SessionApprovalCache,
    ask_user_permission,
    derive_command_key,
)
from agentexec.exec.runner import exec_apply_patch, exec_command_input
from agentexec.exec.sandbox import get_sandbox
from agentexec.exec.types import (
    ApplyPatchCommand,
    ApprovalPolicy,
    AskUser,
    AutoApprove,
    ConfirmationCallback,
    ExecCommandSummary,
    ExecInput,
    HandleExecCommandResult,
    PolicyEvaluator,
    Reject,
)
from agentexec.patch.parser import identify_files_added, identify_files_needed
from agentexec.patch.types import UPDATE_FILE_PREFIX


async def handle_exec_command(
    args: ExecInput,
    config: ExecToolConfig,
    policy: ApprovalPolicy,
    get_command_confirmation: ConfirmationCallback,
    *,
    evaluate_policy: PolicyEvaluator,
    approvals: SessionApprovalCache,
    abort: asyncio.Event | None = None,
    effective_cwd: str | None = None,
) -> HandleExecCommandResult:
    """
    Decide whether a command may run, then run it.

    Flow:
    1. Commands the user always-approved this session run unsandboxed
    2. Otherwise the policy evaluator decides: reject, auto-approve or ask
    3. Run the command (or apply the patch)
    4. Optionally offer an unsandboxed retry when a sandboxed run fails

    Never raises, except SandboxUnavailableError when a sandbox is
    mandated on a platform that has none.
    """
    key = derive_command_key(args.cmd)

    if approvals.contains(key):
        logger.debug(f"Command key '{key}' is always-approved, skipping policy")
        summary = await exec_command(args, apply_patch_from_argv(args.cmd), False, config, abort, effective_cwd)
        if abort is not None and abort.is_set():
            return HandleExecCommandResult(output_text="", metadata={})
        return convert_summary_to_result(summary)

    writable_root = effective_cwd or os.getcwd()
    safety = evaluate_policy(args.cmd, policy, [writable_root])

    if isinstance(safety, Reject):
        logger.info(f"Command rejected by policy: {safety.reason}")
        return HandleExecCommandResult(
            output_text="aborted",
            metadata={
                "error": "command rejected",
                "reason": safety.reason or "Command rejected by auto-approval system.",
            },
        )
    elif isinstance(safety, AskUser):
        review = await ask_user_permission(args, safety.apply_patch, get_command_confirmation, approvals)
        if review is not None:
            return review
        run_in_sandbox = False
    elif isinstance(safety, AutoApprove):
        run_in_sandbox = safety.run_in_sandbox
    else:
        raise TypeError(f"Unknown safety assessment: {safety!r}")

    apply_patch = safety.apply_patch
    summary = await exec_command(args, apply_patch, run_in_sandbox, config, abort, effective_cwd)

    # A cancelled turn must not emit output
    if abort is not None and abort.is_set():
        return HandleExecCommandResult(output_text="", metadata={})

    if summary.exit_code != 0 and run_in_sandbox and config.full_auto_error_mode == "ask-user":
        review = await ask_user_permission(args, apply_patch, get_command_confirmation, approvals)
        if review is not None:
            result = convert_summary_to_result(summary)
            result.additional_items = review.additional_items
            return result

        logger.info("Retrying command outside the sandbox")
        summary = await exec_command(args, apply_patch, False, config, abort, effective_cwd)
        if abort is not None and abort.is_set():
            return HandleExecCommandResult(output_text="", metadata={})

    return convert_summary_to_result(summary)


def apply_patch_from_argv(cmd: list[str]) -> ApplyPatchCommand | None:
    """Recover the patch payload from a direct `["apply_patch", text]` invocation."""
    if len(cmd) == 2 and cmd[0] == APPLY_PATCH_KEY:
        return ApplyPatchCommand(patch=cmd[1])
    return None


def convert_summary_to_result(summary: ExecCommandSummary) -> HandleExecCommandResult:
    return HandleExecCommandResult(
        output_text=summary.stdout or summary.stderr,
        metadata={
            "exit_code": summary.exit_code,
            "duration_seconds": math.floor(summary.duration_ms / 100 + 0.5) / 10,
        },
    )


def resolve_workdir(workdir: str | None, effective_cwd: str | None) -> str:
    """
    Resolve the agent-supplied workdir.

    With an effective cwd (e.g. a cloned repository), workdir is relative to
    it. Otherwise workdir is used as given, falling back to the process cwd.
    """
    if effective_cwd:
        return str(Path(effective_cwd) / workdir) if workdir else effective_cwd
    return workdir or os.getcwd()


def format_apply_patch_summary(patch: str) -> str:
    """Success message telling the agent which files it should re-read."""
    updated = [
        line[len(UPDATE_FILE_PREFIX):].strip()
        for line in patch.split("\n")
        if line.startswith(UPDATE_FILE_PREFIX)
    ]
    affected = list(dict.fromkeys([
        *identify_files_needed(patch),
        *identify_files_added(patch),
        *updated,
    ]))

    if len(affected) == 1:
        return (
            f"Patch successfully applied to '{affected[0]}'. The file content has changed. "
            "If you need to perform further operations on this file, please re-read it "
            "to ensure you have the latest version."
        )
    if affected:
        return (
            f"Patch successfully applied. The following files have changed: [{', '.join(affected)}]. "
            "Please re-read them if you need to perform further operations."
        )
    return "Patch successfully applied. Please re-read any affected files if necessary."


async def exec_command(
    exec_input: ExecInput,
    apply_patch: ApplyPatchCommand | None,
    run_in_sandbox: bool,
    config: ExecToolConfig,
    abort: asyncio.Event | None = None,
    effective_cwd: str | None = None,
) -> ExecCommandSummary:
    """Run an approved command or patch and time it."""
    workdir = resolve_workdir(exec_input.workdir, effective_cwd)
    if not Path(workdir).is_dir():
        # Let the spawn surface the real error rather than guessing another directory
        logger.warning(f"EXEC workdir={workdir} does not exist")

    if apply_patch is not None:
        logger.debug("EXEC running apply_patch command")
    else:
        timeout = exec_input.timeout_ms / 1000 if exec_input.timeout_ms else config.timeout_seconds
        logger.debug(f"EXEC running `{shlex.join(exec_input.cmd)}` in workdir={workdir} with timeout={timeout:g}s")

    start = time.monotonic()
    if apply_patch is not None:
        result = exec_apply_patch(apply_patch.patch, workdir)
    else:
        sandbox = get_sandbox(run_in_sandbox)
        result = await exec_command_input(
            ExecInput(cmd=exec_input.cmd, workdir=workdir, timeout_ms=exec_input.timeout_ms),
            sandbox,
            abort,
            default_timeout_ms=config.timeout_seconds * 1000,
            max_output_chars=config.max_output_chars,
        )
    duration_ms = int((time.monotonic() - start) * 1000)

    stdout = result.stdout
    if apply_patch is not None and result.exit_code == 0:
        stdout = format_apply_patch_summary(apply_patch.patch)

    logger.debug(f"EXEC exit={result.exit_code} time={duration_ms}ms:\n\tSTDOUT: {stdout}\n\tSTDERR: {result.stderr}")

    return ExecCommandSummary(
        stdout=stdout,
        stderr=result.stderr,
        exit_code=result.exit_code,
        duration_ms=duration_ms,
    )
