"""Session approvals: command keys, the always-approve cache and the confirmation flow."""

import json

from loguru import logger

from agentexec.exec.types import (
    ApplyPatchCommand,
    CommandConfirmation,
    ConfirmationCallback,
    ExecInput,
    HandleExecCommandResult,
    ReviewDecision,
)

APPLY_PATCH_KEY = "apply_patch"

DEFAULT_CONTINUE_NOTE = "No, don't do that — keep going though."
DEFAULT_STOP_NOTE = "No, don't do that — stop for now."


def _first_token(text: str) -> str:
    parts = text.split()
    return parts[0] if parts else ""


def _is_login_shell_script(cmd: list[str]) -> bool:
    return len(cmd) >= 2 and cmd[1] == "-lc" and bool(cmd[0])


def derive_command_key(cmd: list[str]) -> str:
    """
    Derive a coarse, stable key for a command.

    The key ignores volatile arguments (patch bodies, file paths) so that an
    "always approve" answer generalizes to equivalent invocations:

    - anything invoking ``apply_patch`` maps to ``"apply_patch"``
    - ``[shell, "-lc", script]`` maps to the program name at the start of script
    - everything else maps to the first token of the first argv element
    """
    if not cmd:
        return json.dumps(cmd)

    head = cmd[0]
    if head.startswith(APPLY_PATCH_KEY):
        return APPLY_PATCH_KEY

    if _is_login_shell_script(cmd):
        # Only the script of a shell invocation may name apply_patch
        script = _first_token(cmd[2]) if len(cmd) >= 3 else ""
        if script.startswith(APPLY_PATCH_KEY):
            return APPLY_PATCH_KEY
        return script or "bash"

    return _first_token(head) or json.dumps(cmd)


class SessionApprovalCache:
    """
    Keys the user chose to always approve during this process.

    Grows only through the confirmation flow and is never persisted. Not
    thread-safe: callers run at most one confirmation at a time.
    """

    def __init__(self):
        self._keys: set[str] = set()

    def contains(self, key: str) -> bool:
        return key in self._keys

    def insert(self, key: str) -> None:
        if key not in self._keys:
            logger.info(f"Always-approving commands with key '{key}' for this session")
        self._keys.add(key)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


def denial_note(confirmation: CommandConfirmation) -> str:
    """User-visible note fed back to the agent when a command is declined."""
    if confirmation.review == ReviewDecision.NO_CONTINUE:
        custom = (confirmation.custom_deny_message or "").strip()
        return custom or DEFAULT_CONTINUE_NOTE
    return DEFAULT_STOP_NOTE


async def ask_user_permission(
    args: ExecInput,
    apply_patch: ApplyPatchCommand | None,
    get_command_confirmation: ConfirmationCallback,
    approvals: SessionApprovalCache,
) -> HandleExecCommandResult | None:
    """
    Ask the user whether to run a command.

    Returns None when the command may run, otherwise the "aborted" result that
    should be handed back to the agent.
    """
    confirmation = await get_command_confirmation(args.cmd, apply_patch)

    if confirmation.review == ReviewDecision.ALWAYS:
        approvals.insert(derive_command_key(args.cmd))

    if confirmation.review in (ReviewDecision.YES, ReviewDecision.ALWAYS):
        return None

    logger.debug(f"Command declined by user ({confirmation.review.value}): {args.cmd[:1]}")
    return HandleExecCommandResult(
        output_text="aborted",
        metadata={},
        additional_items=[
            {
                "role": "user",
                "content": [{"type": "text", "text": denial_note(confirmation)}],
            }
        ],
    )
