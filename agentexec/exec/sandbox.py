"""Sandbox selection for the host platform."""

import asyncio
import sys
from typing import Awaitable, Callable

from loguru import logger

from agentexec.exec.raw import raw_exec
from agentexec.exec.seatbelt import exec_with_seatbelt
from agentexec.exec.types import ExecResult, SandboxKind, SpawnOptions

SandboxBackend = Callable[
    [list[str], SpawnOptions, list[str], asyncio.Event | None],
    Awaitable[ExecResult],
]


class SandboxUnavailableError(RuntimeError):
    """A sandbox was mandated but the platform has none."""


def get_sandbox(run_in_sandbox: bool, platform: str | None = None) -> SandboxKind:
    """
    Pick the sandbox for this platform.

    macOS uses Seatbelt. Linux and Windows have no backend yet and degrade to
    running unsandboxed with a warning. Any other platform is a configuration
    error when a sandbox is required.
    """
    if not run_in_sandbox:
        return SandboxKind.NONE

    platform = platform or sys.platform

    if platform == "darwin":
        return SandboxKind.MACOS_SEATBELT
    if platform.startswith("linux"):
        logger.warning("Sandbox was requested but is not available on Linux. Continuing without sandbox.")
        return SandboxKind.NONE
    if platform == "win32":
        logger.warning("Sandbox was requested but is not available on Windows. Continuing without sandbox.")
        return SandboxKind.NONE

    raise SandboxUnavailableError("Sandbox was mandated, but no sandbox is available!")


def get_backend(kind: SandboxKind) -> SandboxBackend:
    """Backend callable for a sandbox kind."""
    if kind == SandboxKind.MACOS_SEATBELT:
        return exec_with_seatbelt
    # TODO: route LINUX_CONTAINER to a bubblewrap backend once one exists
    return raw_exec
