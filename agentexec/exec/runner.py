"""Running a single command or patch once it has been approved."""

import asyncio
import os
import shlex
import tempfile
from pathlib import Path

from loguru import logger

from agentexec.exec.platform_commands import adapt_command_for_platform
from agentexec.exec.sandbox import get_backend
from agentexec.exec.types import ExecInput, ExecResult, SandboxKind, SpawnOptions
from agentexec.patch.commit import process_patch
from agentexec.patch.types import DiffError

DEFAULT_TIMEOUT_MS = 10_000

SHELL_OPERATOR_CHARS = frozenset("();<>|&")

# Filename expansion only happens when these appear outside quotes
GLOB_CHARS = frozenset("*?[")


def _has_unquoted_glob(text: str) -> bool:
    quote = None
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
        elif quote:
            if ch == quote:
                quote = None
            elif ch == "\\" and quote == '"':
                escaped = True
        elif ch == "\\":
            escaped = True
        elif ch in "'\"":
            quote = ch
        elif ch in GLOB_CHARS:
            return True
    return False


def requires_shell(cmd: list[str]) -> bool:
    """
    Check whether a command only works through a shell.

    A single-string command containing operators (pipes, redirects, `&&`,
    ...) or unquoted glob patterns needs one. Split argv never does, even if
    an element is `|` or `*.py`.
    """
    if len(cmd) != 1:
        return False

    lexer = shlex.shlex(cmd[0], posix=True, punctuation_chars=True)
    lexer.whitespace_split = True
    try:
        tokens = list(lexer)
    except ValueError:
        # Unbalanced quotes: let the shell report the syntax error
        return True
    if any(token and set(token) <= SHELL_OPERATOR_CHARS for token in tokens):
        return True
    return _has_unquoted_glob(cmd[0])


def get_writable_roots() -> list[str]:
    """Directories a sandboxed command may write to."""
    return [os.getcwd(), tempfile.gettempdir()]


async def exec_command_input(
    exec_input: ExecInput,
    sandbox: SandboxKind,
    abort: asyncio.Event | None = None,
    *,
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    max_output_chars: int = 200_000,
) -> ExecResult:
    """
    Adapt, route and run a command.

    Never raises: any failure comes back as a non-zero exit code with the
    error text in stderr.
    """
    adapted, adapted_needs_shell = adapt_command_for_platform(exec_input.cmd)
    use_shell = requires_shell(exec_input.cmd) or adapted_needs_shell

    options = SpawnOptions(
        timeout_ms=exec_input.timeout_ms or default_timeout_ms,
        cwd=exec_input.workdir,
        shell=use_shell,
        max_output_chars=max_output_chars,
    )
    backend = get_backend(sandbox)

    try:
        return await backend(adapted, options, get_writable_roots(), abort)
    except Exception as e:
        logger.error(f"Command execution error: {e}")
        return ExecResult(stderr=str(e), exit_code=1)


def exec_apply_patch(patch_text: str, cwd: str) -> ExecResult:
    """Apply patch text with paths resolved against `cwd`."""
    root = Path(cwd)

    def resolve(p: str) -> Path:
        if os.path.isabs(p):
            raise DiffError("We do not support absolute paths.")
        return root / p

    def open_fn(p: str) -> str:
        with open(resolve(p), encoding="utf-8", newline="") as f:
            return f.read()

    def write_fn(p: str, content: str) -> None:
        target = resolve(p)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write(content)

    def remove_fn(p: str) -> None:
        resolve(p).unlink()

    try:
        result = process_patch(patch_text, open_fn, write_fn, remove_fn)
    except (DiffError, OSError, ValueError) as e:
        logger.debug(f"apply_patch failed: {e}")
        return ExecResult(stderr=str(e), exit_code=1)

    return ExecResult(stdout=result)
