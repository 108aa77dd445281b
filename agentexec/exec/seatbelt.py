"""macOS Seatbelt (sandbox-exec) backend."""

import asyncio
import os

from loguru import logger

from agentexec.exec.raw import raw_exec
from agentexec.exec.types import ExecResult, SpawnOptions

SANDBOX_EXEC = "/usr/bin/sandbox-exec"

# Read-only by default; writes are re-enabled per writable root below
READ_ONLY_SEATBELT_POLICY = """\
(version 1)

(deny default)

(allow file-read*)

(allow process-exec)
(allow process-fork)
(allow signal (target self))

(allow file-write-data
  (require-all
    (path "/dev/null")
    (vnode-type CHARACTER-DEVICE)))

(allow sysctl-read)
(allow mach-lookup)
(allow ipc-posix-shm)
(allow pseudo-tty)
(allow file-ioctl (literal "/dev/tty"))
"""


def build_seatbelt_command(command: list[str], options: SpawnOptions, writable_roots: list[str]) -> list[str]:
    """
    Build the full sandbox-exec invocation for a command.

    Writable roots are passed as -D parameters so paths never need escaping
    inside the policy text.
    """
    params: list[str] = []
    clauses: list[str] = []
    for index, root in enumerate(writable_roots):
        name = f"WRITABLE_ROOT_{index}"
        params.append(f"-D{name}={os.path.realpath(root)}")
        clauses.append(f'(subpath (param "{name}"))')

    policy = READ_ONLY_SEATBELT_POLICY
    if clauses:
        policy += f"\n(allow file-write*\n  {' '.join(clauses)})\n"

    if options.shell:
        command = ["/bin/sh", "-c", " ".join(command)]

    return [SANDBOX_EXEC, "-p", policy, *params, "--", *command]


async def exec_with_seatbelt(
    command: list[str],
    options: SpawnOptions,
    writable_roots: list[str],
    abort: asyncio.Event | None = None,
) -> ExecResult:
    """Run a command under sandbox-exec with writes confined to `writable_roots`."""
    full_command = build_seatbelt_command(command, options, writable_roots)
    logger.debug(f"Seatbelt writable roots: {writable_roots}")
    sandboxed = SpawnOptions(
        timeout_ms=options.timeout_ms,
        cwd=options.cwd,
        shell=False,
        max_output_chars=options.max_output_chars,
    )
    return await raw_exec(full_command, sandboxed, writable_roots, abort)
