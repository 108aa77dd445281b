"""Unsandboxed process backend."""

import asyncio
import os
import signal

from loguru import logger

from agentexec.exec.types import ExecResult, SpawnOptions


def _truncate(text: str, max_output: int) -> str:
    if len(text) > max_output:
        return text[:max_output] + f"\n... (truncated, {len(text)} total chars)"
    return text


def _decode(data: bytes | None, max_output: int) -> str:
    if not data:
        return ""
    return _truncate(data.decode("utf-8", errors="replace"), max_output)


def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill a process and, on POSIX, its whole process group."""
    if process.returncode is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass


async def raw_exec(
    command: list[str],
    options: SpawnOptions,
    writable_roots: list[str],
    abort: asyncio.Event | None = None,
) -> ExecResult:
    """
    Spawn a command without isolation.

    Never raises: spawn failures, timeouts and aborts are reported through a
    non-zero exit code and stderr. `writable_roots` is accepted for interface
    parity with sandboxed backends and ignored.
    """
    if not command:
        return ExecResult(stderr="Empty command", exit_code=1)

    try:
        if options.shell:
            process = await asyncio.create_subprocess_shell(
                " ".join(command),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=options.cwd,
                start_new_session=os.name == "posix",
            )
        else:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=options.cwd,
                start_new_session=os.name == "posix",
            )
    except (OSError, ValueError) as e:
        logger.error(f"Failed to spawn {command[0]!r}: {e}")
        return ExecResult(stderr=str(e), exit_code=1)

    communicate = asyncio.ensure_future(process.communicate())
    waiters: set[asyncio.Future] = {communicate}
    abort_wait = None
    if abort is not None:
        abort_wait = asyncio.ensure_future(abort.wait())
        waiters.add(abort_wait)

    timeout = options.timeout_ms / 1000
    try:
        done, _ = await asyncio.wait(
            waiters,
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        if abort_wait is not None:
            abort_wait.cancel()

    max_output = options.max_output_chars

    if communicate in done:
        stdout, stderr = communicate.result()
        return ExecResult(
            stdout=_decode(stdout, max_output),
            stderr=_decode(stderr, max_output),
            exit_code=process.returncode if process.returncode is not None else 1,
        )

    # Timed out or aborted: kill, then wait so no process is left behind
    _kill(process)
    stdout, stderr = await communicate
    stderr_str = _decode(stderr, max_output)

    if abort is not None and abort.is_set():
        logger.debug(f"Aborted {command[0]!r} (pid {process.pid})")
        return ExecResult(
            stdout=_decode(stdout, max_output),
            stderr=(stderr_str + "\n" if stderr_str else "") + "Command aborted",
            exit_code=process.returncode or 1,
        )

    logger.warning(f"Command {command[0]!r} timed out after {timeout:g} seconds")
    return ExecResult(
        stdout=_decode(stdout, max_output),
        stderr=(stderr_str + "\n" if stderr_str else "") + f"Command timed out after {timeout:g} seconds",
        exit_code=-1,
    )
